"""镜像 key 生成与 URL 规范化."""

import posixpath
import uuid
from urllib.parse import quote, urlsplit, urlunsplit

# 与浏览器 encodeURI 保留字符一致，额外保留 % 避免二次编码
_URI_SAFE_CHARS = ";,/?:@&=+$-_.!~*'()#%[]"


def _reserialize(url: str) -> str:
    if any(ch.isspace() or ord(ch) > 127 for ch in url):
        msg = f"URL 含非法字符: {url!r}"
        raise ValueError(msg)

    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        msg = f"不是绝对 URL: {url!r}"
        raise ValueError(msg)

    return urlunsplit(
        (
            parts.scheme.lower(),
            parts.netloc.lower(),
            parts.path,
            parts.query,
            parts.fragment,
        )
    )


def normalize_url(url: str) -> str:
    """
    规范化 URL（解析后重新序列化）.

    解析失败时先做百分号编码再试一次，仍失败则原样返回，不会抛异常。
    """
    if not url:
        return url
    try:
        return _reserialize(url)
    except ValueError:
        pass
    try:
        return _reserialize(quote(url, safe=_URI_SAFE_CHARS))
    except ValueError:
        return url


def extract_key_from_url(url: str) -> str | None:
    """取 URL 路径部分作为对象 key（去掉开头的 /）."""
    normalized = normalize_url(url)
    try:
        parts = urlsplit(normalized)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return parts.path.lstrip("/") or None


def get_extension(url: str, hint_key: str | None = None) -> str:
    """从 URL 路径（或备用 key）推断文件扩展名."""
    for candidate in (extract_key_from_url(url), hint_key):
        if not candidate:
            continue
        ext = posixpath.splitext(candidate)[1]
        if ext and "/" not in ext:
            return ext
    return ""


def derive_mirror_key(
    source_url: str,
    slug: str | None,
    entity_type: str | None,
    *,
    prefix: str,
    hint_key: str | None = None,
) -> str | None:
    """
    生成镜像对象 key.

    格式为 ``{prefix}/{entity_type}/{slug}/{uuid}{ext}``。每次调用都生成新的
    随机后缀，同一 URL 的去重由调用方的缓存负责。

    Args:
        source_url: 源 URL
        slug: 所属目录项
        entity_type: 目录项类型（如 PBT、UIX）
        prefix: key 前缀
        hint_key: 源对象 key，URL 路径没有扩展名时用于推断

    Returns:
        对象 key；源 URL 为空时返回 None
    """
    if not source_url:
        return None
    ext = get_extension(source_url, hint_key)
    return "/".join(
        [
            (prefix or "assets").strip("/"),
            entity_type or "unknown",
            slug or "unknown",
            f"{uuid.uuid4()}{ext}",
        ]
    )


def already_mirrored(url: str, mirror_base: str) -> bool:
    """URL 是否已经指向镜像存储."""
    if not url or not mirror_base:
        return False
    return normalize_url(url).startswith(normalize_url(mirror_base.rstrip("/")))
