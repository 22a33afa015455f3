"""目录列表项与详情记录模型."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class ListItem(SQLModel, table=True):
    """列表接口返回的一行目录项."""

    __tablename__ = "catalog_list_items"  # type: ignore[assignment]

    slug: str = Field(primary_key=True, description="目录项唯一标识")
    problem_id: str | None = Field(default=None, index=True)
    category: str | None = Field(default=None)
    status: str | None = Field(default=None)
    level: str | None = Field(default=None)
    modified: datetime | None = Field(default=None, index=True)
    fetched_at: datetime | None = Field(default=None)
    list_offset: int | None = Field(default=None, description="来源页 offset")
    list_page_number: int | None = Field(default=None, description="来源页码")
    raw: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))


class DetailRecord(SQLModel, table=True):
    """详情接口返回的完整内容（资源 URL 已改写）."""

    __tablename__ = "catalog_details"  # type: ignore[assignment]

    slug: str = Field(primary_key=True, description="目录项唯一标识")
    detail_id: str | None = Field(default=None, index=True)
    problem_type: str | None = Field(default=None)
    category: str | None = Field(default=None)
    status: str | None = Field(default=None)
    level: str | None = Field(default=None)
    modified: datetime | None = Field(default=None, index=True)
    fetched_at: datetime | None = Field(default=None)
    list_offset: int | None = Field(default=None)
    list_page_number: int | None = Field(default=None)
    raw: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
