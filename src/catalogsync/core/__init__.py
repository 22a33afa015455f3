"""核心业务逻辑."""

from catalogsync.core.catalog import CatalogClient, CatalogError, ListPage
from catalogsync.core.checkpoint import Checkpointer, MultiQueryState, QueryProgress
from catalogsync.core.orchestrator import SyncOrchestrator
from catalogsync.core.retry import RetryPolicy
from catalogsync.core.runner import SyncAlreadyRunningError, is_sync_running, run_sync
from catalogsync.core.runtime import SyncResources

__all__ = [
    "CatalogClient",
    "CatalogError",
    "Checkpointer",
    "ListPage",
    "MultiQueryState",
    "QueryProgress",
    "RetryPolicy",
    "SyncAlreadyRunningError",
    "SyncOrchestrator",
    "SyncResources",
    "is_sync_running",
    "run_sync",
]
