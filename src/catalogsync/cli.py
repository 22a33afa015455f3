"""命令行入口：执行一次同步."""

import asyncio
import logging
import sys
from datetime import UTC, datetime

from catalogsync.core.runner import run_sync
from catalogsync.models.database import close_db
from catalogsync.models.sync_state import SyncState


async def _run() -> SyncState:
    try:
        return await run_sync()
    finally:
        await close_db()


def main() -> int:
    """执行一次同步，成功返回 0，失败返回 1."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        asyncio.run(_run())
    except Exception as e:
        timestamp = datetime.now(UTC).isoformat()
        print(f"[{timestamp}] Sync failed: {e}", file=sys.stderr)
        return 1
    return 0
