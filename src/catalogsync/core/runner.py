"""同步运行入口."""

import logging

from catalogsync.config import Settings, get_settings
from catalogsync.core.runtime import SyncResources
from catalogsync.models.database import async_session_maker, init_db
from catalogsync.models.sync_state import SyncState

logger = logging.getLogger(__name__)

# 进程内只允许一个同步在运行
_running = False


class SyncAlreadyRunningError(RuntimeError):
    """已有同步在运行."""


def is_sync_running() -> bool:
    """是否有同步正在运行."""
    return _running


async def run_sync(settings: Settings | None = None) -> SyncState:
    """
    执行一次完整同步.

    Raises:
        SyncAlreadyRunningError: 已有同步在运行
    """
    global _running

    settings = settings or get_settings()
    if _running:
        logger.warning("已有同步在运行，本次请求被拒绝")
        msg = "已有同步在运行"
        raise SyncAlreadyRunningError(msg)

    _running = True
    try:
        await init_db(settings.database_url)
        session_factory = async_session_maker()
        async with SyncResources(settings) as resources, session_factory() as session:
            orchestrator = resources.build_orchestrator(session)
            return await orchestrator.run()
    finally:
        _running = False
