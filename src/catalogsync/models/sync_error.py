"""SyncError 错误审计模型."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class SyncError(SQLModel, table=True):
    """不可恢复的请求或处理失败（只追加）."""

    __tablename__ = "sync_errors"  # type: ignore[assignment]

    id: int | None = Field(default=None, primary_key=True)
    type: str = Field(description="错误类型: list|detail|asset")
    slug: str | None = Field(default=None)
    offset: int | None = Field(default=None)
    url: str | None = Field(default=None)
    query: str | None = Field(default=None)
    status: int | None = Field(default=None, description="HTTP 状态码")
    message: str = Field(default="Unknown error")
    data: Any | None = Field(default=None, sa_column=Column(JSON))
    headers: dict[str, str] | None = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), index=True
    )
