"""SyncState 同步状态模型."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class SyncStatus:
    """同步状态枚举."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class StopReason:
    """查询停止原因."""

    MAX_RESULT_WINDOW = "max_result_window"
    LIST_ERROR = "list_error"
    MAX_PAGES = "max_pages"


class SyncState(SQLModel, table=True):
    """一次同步运行的检查点（按 state_doc_id 唯一）."""

    __tablename__ = "sync_state"  # type: ignore[assignment]

    id: str = Field(primary_key=True, description="运行 ID (state_doc_id)")
    status: str = Field(
        default=SyncStatus.RUNNING, description="状态: running|completed|failed"
    )
    last_offset: int = Field(default=0, description="最后一个页边界 offset")
    last_page_number: int | None = Field(default=None)
    total_count: int | None = Field(default=None)
    total_pages: int | None = Field(default=None)

    # 计数器
    list_requests: int = Field(default=0)
    detail_requests: int = Field(default=0)
    list_items_saved: int = Field(default=0)
    detail_items_saved: int = Field(default=0)
    detail_items_skipped: int = Field(default=0)
    failed_requests: int = Field(default=0)

    last_error: str | None = Field(default=None)
    stop_reason: str | None = Field(default=None)
    current_query: str | None = Field(default=None)
    last_slug_processed: str | None = Field(default=None)
    delay_mode: str | None = Field(default=None)

    last_list_meta: dict[str, Any] | None = Field(
        default=None, sa_column=Column(JSON)
    )
    multi_query: dict[str, Any] | None = Field(
        default=None, sa_column=Column(JSON), description="多查询进度"
    )

    last_list_fetched_at: datetime | None = Field(default=None)
    last_detail_fetched_at: datetime | None = Field(default=None)
    started_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)
    updated_at: datetime | None = Field(default=None)
