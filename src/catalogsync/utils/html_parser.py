"""HTML 解析工具."""

import html
import re

from bs4 import BeautifulSoup

URL_PATTERN = re.compile(r"https?://[^\s\"'<>]+", re.IGNORECASE)
_HTTP_PREFIX = re.compile(r"^https?://", re.IGNORECASE)
_TRAILING_PUNCTUATION = re.compile(r"[)\"'\]}>,;]+$")
_TRAILING_QUOTES = re.compile(r"[\"']+$")
_TOKEN_TAIL = re.compile(r"(?:[)\"'\]}>,;]|&quot;|&#34;)+")


def extract_image_sources(content: str) -> list[str]:
    """
    提取 HTML 中所有 <img> 的 src.

    Args:
        content: HTML 内容

    Returns:
        按出现顺序去重后的 src 列表
    """
    if not content or "<img" not in content.lower():
        return []

    soup = BeautifulSoup(content, "lxml")

    sources: list[str] = []
    for img in soup.find_all("img"):
        src = img.get("src")
        # 确保是字符串
        if isinstance(src, list):
            src = src[0] if src else None
        if src and src not in sources:
            sources.append(src)

    return sources


def replace_urls(content: str, replacements: dict[str, str]) -> str:
    """
    按完整 URL 替换文本中的链接.

    只有与 replacements 中某个 URL 完全一致的片段才会被替换（允许尾部标点），
    另一个 URL 的前缀不会被误改。同时处理实体转义后的写法（& -> &amp;）。

    Args:
        content: 文本或 HTML 内容
        replacements: 原 URL -> 新 URL

    Returns:
        替换后的内容
    """
    if not content or not replacements:
        return content

    forms: list[tuple[str, str]] = []
    for old in sorted(replacements, key=len, reverse=True):
        new = replacements[old]
        forms.append((old, new))
        escaped_old = html.escape(old, quote=False)
        if escaped_old != old:
            forms.append((escaped_old, html.escape(new, quote=False)))

    def _replace(match: re.Match[str]) -> str:
        token = match.group(0)
        for old, new in forms:
            if not token.startswith(old):
                continue
            rest = token[len(old) :]
            if not rest or _TOKEN_TAIL.fullmatch(rest):
                return new + rest
        return token

    return URL_PATTERN.sub(_replace, content)


def is_http_url(value: object) -> bool:
    """是否为 http(s) URL."""
    return isinstance(value, str) and bool(_HTTP_PREFIX.match(value))


def decode_html_entities(value: str) -> str:
    """解码 URL 中常见的 HTML 实体残留."""
    return value.replace("&quot;", '"').replace("&#34;", '"').replace("&amp;", "&")


def sanitize_url_candidate(value: str) -> str | None:
    """清理 URL 候选串尾部的标点与引号，无效时返回 None."""
    if not value:
        return None
    candidate = decode_html_entities(value.strip())
    candidate = _TRAILING_PUNCTUATION.sub("", candidate)
    candidate = _TRAILING_QUOTES.sub("", candidate)
    if not is_http_url(candidate):
        return None
    return candidate


def extract_urls(text: str) -> list[str]:
    """
    提取文本中的所有 http(s) URL.

    Returns:
        清理并按出现顺序去重后的 URL 列表
    """
    if not text or "http" not in text.lower():
        return []

    urls: list[str] = []
    for match in URL_PATTERN.findall(text):
        cleaned = sanitize_url_candidate(match)
        if cleaned and cleaned not in urls:
            urls.append(cleaned)
    return urls
