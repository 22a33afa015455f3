"""持久化仓库 - 同步状态、目录数据与错误日志的读写."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel, col, select

from catalogsync.models.catalog import DetailRecord, ListItem
from catalogsync.models.sync_error import SyncError
from catalogsync.models.sync_state import SyncState

logger = logging.getLogger(__name__)


@dataclass
class BulkWriteResult:
    """批量 upsert 结果."""

    upserted: int = 0
    matched: int = 0
    failed: int = 0


class SyncRepository:
    """同步相关集合的存取.

    每次写入都立即提交，保证中断后已写入的检查点可见。
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def load_state(self, state_id: str) -> SyncState | None:
        """读取运行状态."""
        return await self.session.get(SyncState, state_id)

    async def set_state(self, state_id: str, fields: dict[str, Any]) -> SyncState:
        """设置状态字段（不存在时创建）."""
        unknown = set(fields) - set(SyncState.model_fields)
        if unknown:
            msg = f"未知的状态字段: {sorted(unknown)}"
            raise ValueError(msg)

        state = await self.session.get(SyncState, state_id)
        if state is None:
            state = SyncState(id=state_id)
            self.session.add(state)

        for key, value in fields.items():
            setattr(state, key, value)
        state.updated_at = datetime.now(UTC)

        await self.session.commit()
        return state

    async def bulk_upsert_list_items(
        self, docs: Iterable[dict[str, Any]]
    ) -> BulkWriteResult:
        """按 slug 无序批量 upsert，单条失败不影响其他条目."""
        result = BulkWriteResult()

        for doc in docs:
            try:
                inserted = await self._upsert(ListItem, doc["slug"], doc)
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                result.failed += 1
                logger.warning(f"列表项写入失败: {doc.get('slug')} - {e}")
                continue

            if inserted:
                result.upserted += 1
            else:
                result.matched += 1

        return result

    async def existing_detail_slugs(self, slugs: list[str]) -> set[str]:
        """批量查询已存在详情的 slug（只取 slug 列）."""
        if not slugs:
            return set()
        stmt = select(DetailRecord.slug).where(col(DetailRecord.slug).in_(slugs))
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def upsert_detail(self, doc: dict[str, Any]) -> bool:
        """按 slug upsert 详情记录，返回是否为新增."""
        inserted = await self._upsert(DetailRecord, doc["slug"], doc)
        await self.session.commit()
        return inserted

    async def record_error(self, **fields: Any) -> SyncError:
        """追加一条错误记录."""
        error = SyncError(**fields)
        self.session.add(error)
        await self.session.commit()
        return error

    async def recent_errors(self, limit: int = 20) -> list[SyncError]:
        """获取最近的错误记录."""
        stmt = (
            select(SyncError)
            .order_by(col(SyncError.created_at).desc(), col(SyncError.id).desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def _upsert(
        self, model: type[SQLModel], key: str, doc: dict[str, Any]
    ) -> bool:
        existing = await self.session.get(model, key)
        if existing is None:
            self.session.add(model(**doc))
            await self.session.flush()
            return True

        for field, value in doc.items():
            setattr(existing, field, value)
        await self.session.flush()
        return False
