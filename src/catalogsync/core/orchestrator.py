"""同步编排 - 可断点续传的列表 / 详情抓取."""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

from catalogsync.config import Settings
from catalogsync.core.catalog import CatalogClient, ListPage, is_max_window_error
from catalogsync.core.checkpoint import Checkpointer, MultiQueryState, QueryProgress
from catalogsync.core.documents import as_int, build_detail_doc, build_list_doc
from catalogsync.core.retry import RetryPolicy, Sleeper
from catalogsync.mirror.asset import AssetMirror
from catalogsync.mirror.scanner import process_detail_assets
from catalogsync.models.repository import SyncRepository
from catalogsync.models.sync_state import StopReason, SyncState, SyncStatus
from catalogsync.utils.delay import calc_delay_seconds

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """
    同步编排器.

    按查询逐页拉取列表，批量写入列表项，再逐条抓取详情、镜像资源并写入详情。
    每个提交点都会把 offset、计数器与多查询进度写入状态文档，进程中断后
    再次运行会从最后提交的 offset 继续。
    """

    def __init__(
        self,
        settings: Settings,
        catalog: CatalogClient,
        repository: SyncRepository,
        retry: RetryPolicy,
        mirror: AssetMirror,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.catalog = catalog
        self.repository = repository
        self.retry = retry
        self.mirror = mirror
        self._sleep = sleep
        self._checkpoint: Checkpointer | None = None
        self._legacy_query: str | None = None
        self._legacy_offset = 0
        self._total_count: int | None = None
        self._total_pages: int | None = None

    @property
    def checkpoint(self) -> Checkpointer:
        if self._checkpoint is None:
            msg = "同步尚未开始"
            raise RuntimeError(msg)
        return self._checkpoint

    async def run(self) -> SyncState:
        """
        执行一次同步.

        Returns:
            最终的运行状态

        Raises:
            列表请求重试耗尽时抛出最后一次的异常（状态已标记为 failed）
        """
        settings = self.settings
        state_id = settings.state_doc_id
        existing = await self.repository.load_state(state_id)

        multi = MultiQueryState.from_state(existing)
        configured = settings.query_list or [settings.list_query]
        if not multi.queries:
            multi.queries = configured
        elif multi.queries != configured:
            logger.warning(
                f"查询列表与首次运行时不同，沿用已保存的列表: {multi.queries}"
            )

        if (
            existing is not None
            and existing.status == SyncStatus.COMPLETED
            and not settings.force_resume
            and multi.current_index >= len(multi.queries)
        ):
            logger.info("同步已完成，如需重新运行请设置 FORCE_RESUME=true")
            return existing

        if settings.force_resume:
            multi.current_index = 0

        if existing is not None:
            self._legacy_query = existing.current_query
            self._legacy_offset = existing.last_offset or 0
            self._total_count = existing.total_count
            self._total_pages = existing.total_pages

        self._checkpoint = Checkpointer(self.repository, state_id, multi, existing)
        now = datetime.now(UTC)
        await self.checkpoint.commit(
            status=SyncStatus.RUNNING,
            started_at=existing.started_at if existing and existing.started_at else now,
            completed_at=None,
            delay_mode=settings.delay_mode,
        )
        logger.info(
            f"开始同步: 查询数={len(multi.queries)}, "
            f"起始位置={multi.current_index}, 模式={settings.delay_mode}"
        )

        for index in range(multi.current_index, len(multi.queries)):
            query = multi.queries[index]
            multi.current_index = index
            progress = self._progress_for(query)

            if progress.status == SyncStatus.COMPLETED and not settings.force_resume:
                logger.info(f"查询已完成，跳过: {query!r}")
                continue

            progress.status = SyncStatus.RUNNING
            progress.stop_reason = None
            await self.checkpoint.commit(
                current_query=query, last_offset=progress.last_offset
            )
            await self._run_query(query, progress)

        multi.current_index = len(multi.queries)
        state = await self.checkpoint.commit(
            status=SyncStatus.COMPLETED,
            completed_at=datetime.now(UTC),
            current_query=None,
        )
        logger.info(
            f"同步完成: 列表请求={state.list_requests}, "
            f"详情保存={state.detail_items_saved}, "
            f"跳过={state.detail_items_skipped}, 失败={state.failed_requests}"
        )
        return state

    def _progress_for(self, query: str) -> QueryProgress:
        """取查询进度，旧状态文档回退到顶层 last_offset."""
        per_query = self.checkpoint.multi_query.per_query
        progress = per_query.get(query)
        if progress is None:
            progress = QueryProgress()
            if self._legacy_query == query:
                progress.last_offset = self._legacy_offset
            per_query[query] = progress
        return progress

    async def _run_query(self, query: str, progress: QueryProgress) -> None:
        settings = self.settings
        limit = settings.list_limit
        window = settings.list_max_result_window
        max_pages = settings.max_pages_per_query
        offset = progress.last_offset
        pages = 0

        while True:
            if window > 0 and offset + limit > window:
                message = f"Reached max result window ({window})."
                logger.info(f"{message} query={query!r} offset={offset}")
                await self._finish_query(
                    query,
                    progress,
                    offset,
                    status=SyncStatus.COMPLETED,
                    stop_reason=StopReason.MAX_RESULT_WINDOW,
                    error=message,
                )
                return

            if max_pages > 0 and pages >= max_pages:
                message = f"Reached max pages per query ({max_pages})."
                logger.info(f"{message} query={query!r} offset={offset}")
                await self._finish_query(
                    query,
                    progress,
                    offset,
                    status=SyncStatus.COMPLETED,
                    stop_reason=StopReason.MAX_PAGES,
                    error=message,
                )
                return

            page = await self._fetch_list(query, offset, progress)
            pages += 1

            if page.error:
                window_hit = is_max_window_error(page.error)
                logger.warning(f"列表返回错误: query={query!r} - {page.error}")
                await self._finish_query(
                    query,
                    progress,
                    offset,
                    status=SyncStatus.COMPLETED if window_hit else SyncStatus.FAILED,
                    stop_reason=(
                        StopReason.MAX_RESULT_WINDOW
                        if window_hit
                        else StopReason.LIST_ERROR
                    ),
                    error=page.error,
                )
                return

            if not page.items:
                logger.info(f"列表已到末尾: query={query!r} offset={offset}")
                await self._finish_query(
                    query, progress, offset, status=SyncStatus.COMPLETED
                )
                return

            await self._process_page(query, offset, page, progress)

            offset += limit
            progress.last_offset = offset
            await self.checkpoint.commit(last_offset=offset, current_query=query)
            await self._delay(
                settings.list_delay_min_sec, settings.list_delay_max_sec
            )

    async def _finish_query(
        self,
        query: str,
        progress: QueryProgress,
        offset: int,
        *,
        status: str,
        stop_reason: str | None = None,
        error: str | None = None,
    ) -> None:
        progress.status = status
        progress.last_offset = offset
        progress.stop_reason = stop_reason
        if error:
            progress.last_error = error
        if status == SyncStatus.COMPLETED:
            progress.completed_at = datetime.now(UTC)

        fields: dict[str, Any] = {
            "current_query": query,
            "last_offset": offset,
            "stop_reason": stop_reason,
        }
        if error:
            fields["last_error"] = error
        await self.checkpoint.commit(**fields)

    async def _fetch_list(
        self, query: str, offset: int, progress: QueryProgress
    ) -> ListPage:
        """获取一页列表；重试耗尽时标记失败并抛出."""
        self.checkpoint.bump("list_requests", progress)
        await self.checkpoint.commit(current_query=query)

        context = {
            "type": "list",
            "offset": offset,
            "url": self.settings.list_base_url,
            "query": query,
        }
        try:
            page = await self.retry.execute(
                lambda: self.catalog.fetch_list_page(offset, query), context
            )
        except Exception as e:
            self.checkpoint.bump("failed_requests", progress)
            progress.last_error = str(e)
            progress.status = SyncStatus.FAILED
            await self.checkpoint.commit(
                status=SyncStatus.FAILED,
                last_error=str(e),
                last_offset=offset,
                current_query=query,
            )
            logger.error(f"列表请求失败，同步中止: query={query!r} offset={offset}")
            raise

        logger.info(
            f"列表页已获取: query={query!r} offset={offset} 条数={len(page.items)}"
        )
        return page

    async def _process_page(
        self, query: str, offset: int, page: ListPage, progress: QueryProgress
    ) -> None:
        meta = page.meta
        if meta.get("total_count") is not None:
            self._total_count = as_int(meta["total_count"])
        if meta.get("total_pages") is not None:
            self._total_pages = as_int(meta["total_pages"])

        items = [item for item in page.items if item.get("slug")]
        now = datetime.now(UTC)
        docs = [build_list_doc(item, meta, now) for item in items]
        if docs:
            result = await self.repository.bulk_upsert_list_items(docs)
            self.checkpoint.bump("list_items_saved", progress, result.upserted)
            logger.info(
                f"列表项已保存: 新增={result.upserted}, 更新={result.matched}, "
                f"失败={result.failed}"
            )

        progress.last_page_number = as_int(meta.get("page_number"))
        progress.last_list_fetched_at = now
        await self.checkpoint.commit(
            current_query=query,
            last_offset=offset,
            last_page_number=progress.last_page_number,
            total_count=self._total_count,
            total_pages=self._total_pages,
            last_list_meta=meta,
            last_list_fetched_at=now,
        )

        slugs = [doc["slug"] for doc in docs]
        existing = await self.repository.existing_detail_slugs(slugs)
        for slug in slugs:
            await self._process_item(query, offset, meta, slug, existing, progress)

    async def _process_item(
        self,
        query: str,
        offset: int,
        meta: dict[str, Any],
        slug: str,
        existing: set[str],
        progress: QueryProgress,
    ) -> None:
        settings = self.settings
        if slug in existing:
            if settings.skip_existing_details or settings.detail_only_if_missing:
                self.checkpoint.bump("detail_items_skipped", progress)
                progress.last_slug_processed = slug
                await self.checkpoint.commit(
                    current_query=query, last_slug_processed=slug
                )
                logger.info(f"详情已存在，跳过: {slug}")
                return
            logger.info(f"详情已存在，重新抓取: {slug}")

        self.checkpoint.bump("detail_requests", progress)
        await self.checkpoint.commit(current_query=query)

        context = {
            "type": "detail",
            "slug": slug,
            "offset": offset,
            "url": self.catalog.detail_url(slug),
            "query": query,
        }
        try:
            detail = await self.retry.execute(
                lambda: self.catalog.fetch_detail(slug), context
            )
        except Exception as e:
            self.checkpoint.bump("failed_requests", progress)
            progress.last_error = str(e)
            progress.last_slug_processed = slug
            await self.checkpoint.commit(
                current_query=query,
                last_offset=offset,
                last_error=str(e),
                last_slug_processed=slug,
            )
            logger.warning(f"详情获取失败，跳过: {slug} - {e}")
            return

        try:
            await process_detail_assets(detail, slug, self.mirror)
        except Exception as e:
            logger.exception(f"资源同步失败: {slug} - {e}")
            self.checkpoint.bump("failed_requests", progress)
            progress.last_error = str(e)
            await self.checkpoint.commit(current_query=query, last_error=str(e))
            await self.repository.record_error(
                type="asset",
                slug=slug,
                offset=offset,
                query=query,
                message=str(e) or "Asset sync failed",
            )

        now = datetime.now(UTC)
        inserted = await self.repository.upsert_detail(
            build_detail_doc(slug, detail, meta, now)
        )
        self.checkpoint.bump("detail_items_saved", progress)
        progress.last_slug_processed = slug
        progress.last_detail_fetched_at = now
        await self.checkpoint.commit(
            current_query=query,
            last_slug_processed=slug,
            last_detail_fetched_at=now,
        )
        logger.info(f"详情已保存: {slug} ({'新增' if inserted else '更新'})")

        await self._delay(settings.detail_delay_min_sec, settings.detail_delay_max_sec)

    async def _delay(self, min_sec: float, max_sec: float) -> None:
        seconds = calc_delay_seconds(self.settings.delay_mode, min_sec, max_sec)
        if seconds > 0:
            logger.debug(f"等待 {seconds}s")
            await self._sleep(seconds)
