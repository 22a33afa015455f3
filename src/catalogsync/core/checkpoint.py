"""同步检查点 - 多查询进度与提交点."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from catalogsync.models.repository import SyncRepository
from catalogsync.models.sync_state import SyncState, SyncStatus

COUNTER_FIELDS = (
    "list_requests",
    "detail_requests",
    "list_items_saved",
    "detail_items_saved",
    "detail_items_skipped",
    "failed_requests",
)


class QueryProgress(BaseModel):
    """单个查询的进度."""

    status: str = SyncStatus.RUNNING
    last_offset: int = 0
    last_page_number: int | None = None
    list_requests: int = 0
    detail_requests: int = 0
    list_items_saved: int = 0
    detail_items_saved: int = 0
    detail_items_skipped: int = 0
    failed_requests: int = 0
    last_error: str | None = None
    stop_reason: str | None = None
    last_slug_processed: str | None = None
    last_list_fetched_at: datetime | None = None
    last_detail_fetched_at: datetime | None = None
    completed_at: datetime | None = None


class MultiQueryState(BaseModel):
    """多查询模式的进度（queries 在首次运行时固定）."""

    queries: list[str] = Field(default_factory=list)
    current_index: int = 0
    per_query: dict[str, QueryProgress] = Field(default_factory=dict)

    @classmethod
    def from_state(cls, state: SyncState | None) -> "MultiQueryState":
        """从已保存的状态恢复."""
        if state is None or not state.multi_query:
            return cls()
        return cls.model_validate(state.multi_query)


class Checkpointer:
    """
    提交点.

    每次 commit 把给定字段、全部全局计数器和当前多查询进度一次性写入
    状态文档，写入完成后才会进入下一个挂起点。
    """

    def __init__(
        self,
        repository: SyncRepository,
        state_id: str,
        multi_query: MultiQueryState,
        existing: SyncState | None = None,
    ) -> None:
        self.repository = repository
        self.state_id = state_id
        self.multi_query = multi_query
        self.counters: dict[str, int] = {
            name: (getattr(existing, name, 0) or 0) if existing else 0
            for name in COUNTER_FIELDS
        }

    def bump(self, counter: str, progress: QueryProgress, amount: int = 1) -> int:
        """同时累加全局计数与查询计数，返回全局值."""
        self.counters[counter] += amount
        setattr(progress, counter, getattr(progress, counter) + amount)
        return self.counters[counter]

    async def commit(self, **fields: Any) -> SyncState:
        """写入检查点."""
        payload: dict[str, Any] = {**self.counters, **fields}
        payload["multi_query"] = self.multi_query.model_dump(mode="json")
        return await self.repository.set_state(self.state_id, payload)
