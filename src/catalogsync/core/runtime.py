"""运行期共享资源 - HTTP 客户端与 S3 客户端."""

import asyncio
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from catalogsync.config import Settings
from catalogsync.core.catalog import CatalogClient, build_default_headers
from catalogsync.core.orchestrator import SyncOrchestrator
from catalogsync.core.retry import RetryPolicy, Sleeper
from catalogsync.mirror.asset import AssetMirror
from catalogsync.mirror.storage import StorageAdapter, create_s3_client
from catalogsync.models.repository import SyncRepository


class SyncResources:
    """
    一次同步运行所用的客户端.

    外部传入的客户端由调用方负责关闭，这里只关闭自己创建的客户端。
    """

    def __init__(
        self,
        settings: Settings,
        *,
        catalog_http: httpx.AsyncClient | None = None,
        asset_http: httpx.AsyncClient | None = None,
        s3_client: Any | None = None,
    ) -> None:
        self.settings = settings
        self.catalog_http = catalog_http
        self.asset_http = asset_http
        self.s3_client = s3_client
        self._owned_http: list[httpx.AsyncClient] = []
        self._owns_s3 = False

    async def __aenter__(self) -> "SyncResources":
        timeout = httpx.Timeout(self.settings.request_timeout_sec)
        if self.catalog_http is None:
            self.catalog_http = httpx.AsyncClient(
                timeout=timeout,
                headers=build_default_headers(self.settings),
            )
            self._owned_http.append(self.catalog_http)
        if self.asset_http is None:
            self.asset_http = httpx.AsyncClient(timeout=timeout, follow_redirects=True)
            self._owned_http.append(self.asset_http)
        if self.s3_client is None and self.settings.remote_mirror_enabled:
            self.s3_client = create_s3_client(self.settings)
            self._owns_s3 = True
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """关闭自己创建的客户端."""
        for client in self._owned_http:
            await client.aclose()
        self._owned_http.clear()
        if self._owns_s3 and self.s3_client is not None:
            self.s3_client.close()
            self.s3_client = None
            self._owns_s3 = False

    def build_orchestrator(
        self, session: AsyncSession, sleep: Sleeper = asyncio.sleep
    ) -> SyncOrchestrator:
        """组装编排器."""
        if self.catalog_http is None or self.asset_http is None:
            msg = "资源尚未初始化，请在 async with 中使用"
            raise RuntimeError(msg)

        repository = SyncRepository(session)
        storage = StorageAdapter(self.settings, self.asset_http, self.s3_client)
        return SyncOrchestrator(
            self.settings,
            CatalogClient(self.settings, self.catalog_http),
            repository,
            RetryPolicy.from_settings(self.settings, repository.record_error, sleep),
            AssetMirror(self.settings, storage),
            sleep=sleep,
        )
