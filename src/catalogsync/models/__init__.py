"""数据模型."""

from catalogsync.models.catalog import DetailRecord, ListItem
from catalogsync.models.database import close_db, get_session, init_db
from catalogsync.models.repository import BulkWriteResult, SyncRepository
from catalogsync.models.sync_error import SyncError
from catalogsync.models.sync_state import StopReason, SyncState, SyncStatus

__all__ = [
    "BulkWriteResult",
    "DetailRecord",
    "ListItem",
    "StopReason",
    "SyncError",
    "SyncRepository",
    "SyncState",
    "SyncStatus",
    "close_db",
    "get_session",
    "init_db",
]
