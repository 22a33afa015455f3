"""测试配置和 fixtures."""

from collections.abc import AsyncGenerator, Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from catalogsync.config import Settings
from catalogsync.core.catalog import CatalogClient
from catalogsync.core.orchestrator import SyncOrchestrator
from catalogsync.core.retry import RetryPolicy
from catalogsync.mirror.asset import AssetMirror
from catalogsync.mirror.storage import StorageAdapter
from catalogsync.models.repository import SyncRepository

API_HOST = "api.example.com"
LIST_URL = f"https://{API_HOST}/list"
DETAIL_URL = f"https://{API_HOST}/detail"


def make_settings(**overrides: Any) -> Settings:
    """测试用配置（不读取 .env，立即模式，重试不等待）."""
    values: dict[str, Any] = {
        "list_base_url": LIST_URL,
        "detail_base_url": DETAIL_URL,
        "list_limit": 2,
        "delay_mode": "immediate",
        "max_retries": 2,
        "retry_delay_sec": 0.5,
        "rate_limit_delay_sec": 30.0,
        "asset_sync_enabled": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeCatalogAPI:
    """
    模拟目录 API：按 (query, offset) 返回列表页，按 slug 返回详情.

    其他主机的请求视为资源下载，返回固定内容。
    """

    def __init__(
        self,
        items: dict[str, list[dict[str, Any]]] | list[dict[str, Any]],
        details: dict[str, dict[str, Any]] | None = None,
    ) -> None:
        self.items = items if isinstance(items, dict) else {"": items}
        self.details = details if details is not None else {}
        self.list_errors: dict[int, str] = {}
        self.failing_list_offsets: set[int] = set()
        self.requests: list[httpx.Request] = []

    @property
    def list_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/list"]

    @property
    def detail_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.startswith("/detail/")]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.host != API_HOST:
            return httpx.Response(200, content=b"asset-bytes")

        if request.url.path == "/list":
            query = request.url.params.get("q", "")
            offset = int(request.url.params["offset"])
            limit = int(request.url.params["limit"])
            if offset in self.failing_list_offsets:
                return httpx.Response(500, json={"detail": "upstream error"})

            items = self.items.get(query, [])
            meta: dict[str, Any] = {
                "offset": offset,
                "limit": limit,
                "total_count": len(items),
                "page_number": offset // limit + 1,
            }
            page = items[offset : offset + limit]
            if offset in self.list_errors:
                meta["error"] = self.list_errors[offset]
                page = []
            return httpx.Response(
                200, json={"objects": [{"objects": page, "meta": meta}]}
            )

        slug = request.url.path.rsplit("/", 1)[-1]
        if slug not in self.details:
            return httpx.Response(404, json={"detail": "Not found."})
        return httpx.Response(200, json=self.details[slug])


def list_item(slug: str, **extra: Any) -> dict[str, Any]:
    """构造列表项."""
    return {
        "slug": slug,
        "django_id": f"id-{slug}",
        "category": "algorithms",
        "status": "published",
        "level": "easy",
        "modified": "2024-01-02T03:04:05Z",
        **extra,
    }


def detail_for(slug: str, **extra: Any) -> dict[str, Any]:
    """构造详情数据."""
    return {
        "id": f"detail-{slug}",
        "slug": slug,
        "problem_type": "GEN",
        "description": f"<p>{slug}</p>",
        **extra,
    }


@pytest_asyncio.fixture
async def async_session() -> AsyncGenerator[AsyncSession, None]:
    """创建测试用的内存数据库会话."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def repository(async_session: AsyncSession) -> SyncRepository:
    """同步仓库."""
    return SyncRepository(async_session)


@pytest.fixture
def sleeps() -> list[float]:
    """记录所有等待时长."""
    return []


@pytest.fixture
def fake_sleep(sleeps: list[float]) -> Callable[[float], Any]:
    """不真正等待的 sleep."""

    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep


@pytest_asyncio.fixture
async def make_orchestrator(
    async_session: AsyncSession, fake_sleep: Callable[[float], Any]
) -> AsyncGenerator[Callable[..., SyncOrchestrator], None]:
    """按配置与模拟 API 组装编排器."""
    clients: list[httpx.AsyncClient] = []

    def _make(
        settings: Settings, api: FakeCatalogAPI, s3: Any = None
    ) -> SyncOrchestrator:
        client = httpx.AsyncClient(transport=httpx.MockTransport(api.handler))
        clients.append(client)
        repository = SyncRepository(async_session)
        return SyncOrchestrator(
            settings,
            CatalogClient(settings, client),
            repository,
            RetryPolicy.from_settings(settings, repository.record_error, fake_sleep),
            AssetMirror(settings, StorageAdapter(settings, client, s3)),
            sleep=fake_sleep,
        )

    yield _make

    for client in clients:
        await client.aclose()
