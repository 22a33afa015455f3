"""目录 API 客户端（列表 + 详情）."""

from dataclasses import dataclass, field
from typing import Any

import httpx

from catalogsync.config import Settings

MAX_WINDOW_MARKERS = (
    "max_result_window",
    "Result window is too large",
    "result window is too large",
)


class CatalogError(Exception):
    """目录 API 错误."""


@dataclass
class ListPage:
    """一页列表数据."""

    items: list[dict[str, Any]] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def error(self) -> str | None:
        """响应体中携带的业务错误."""
        return get_list_error(self.meta)


def build_default_headers(settings: Settings) -> dict[str, str]:
    """构造默认请求头."""
    headers = {
        "Accept": "application/json, text/plain, */*",
        "User-Agent": settings.api_user_agent,
    }
    if settings.api_referer:
        headers["Referer"] = settings.api_referer
    if settings.api_cookie:
        headers["Cookie"] = settings.api_cookie
    if settings.api_csrf_token:
        headers["X-Csrftoken"] = settings.api_csrf_token
    return headers


def get_list_error(meta: Any) -> str | None:
    """取 meta 中的错误信息."""
    if not isinstance(meta, dict):
        return None
    if meta.get("error"):
        return str(meta["error"])
    if meta.get("error_type"):
        return str(meta["error_type"])
    return None


def is_max_window_error(message: str | None) -> bool:
    """是否为分页窗口上限错误."""
    if not message:
        return False
    return any(marker in message for marker in MAX_WINDOW_MARKERS)


def parse_list_payload(payload: Any) -> ListPage:
    """解析列表响应：数据位于 ``objects[0]`` 的 objects / meta 中."""
    if not isinstance(payload, dict):
        return ListPage()
    wrappers = payload.get("objects")
    if not isinstance(wrappers, list) or not wrappers:
        return ListPage()
    wrapper = wrappers[0]
    if not isinstance(wrapper, dict):
        return ListPage()

    items = wrapper.get("objects") or []
    meta = wrapper.get("meta") or {}
    return ListPage(
        items=[item for item in items if isinstance(item, dict)],
        meta=meta if isinstance(meta, dict) else {},
    )


class CatalogClient:
    """目录 API 客户端."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient) -> None:
        self.settings = settings
        self._client = client

    def build_list_params(self, offset: int, query: str | None) -> dict[str, Any]:
        """列表请求参数."""
        settings = self.settings
        return {
            "index": settings.list_index,
            "limit": settings.list_limit,
            "narrow": settings.effective_list_narrow,
            "offset": offset,
            "order_by": settings.list_order_by,
            "page_type": settings.list_page_type,
            "q": settings.list_query if query is None else query,
            "tag": settings.list_tag,
            "view": settings.list_view,
        }

    def detail_url(self, slug: str) -> str:
        """详情接口 URL."""
        return f"{self.settings.detail_base_url.rstrip('/')}/{slug}"

    async def fetch_list_page(self, offset: int, query: str | None = None) -> ListPage:
        """获取一页列表."""
        response = await self._client.get(
            self.settings.list_base_url,
            params=self.build_list_params(offset, query),
        )
        response.raise_for_status()
        return parse_list_payload(response.json())

    async def fetch_detail(self, slug: str) -> dict[str, Any]:
        """获取详情."""
        response = await self._client.get(
            self.detail_url(slug),
            params={
                "__env": self.settings.detail_env,
                "__user": self.settings.detail_user,
            },
        )
        response.raise_for_status()

        data = response.json()
        if not isinstance(data, dict):
            msg = f"详情响应不是对象: {slug}"
            raise CatalogError(msg)
        return data
