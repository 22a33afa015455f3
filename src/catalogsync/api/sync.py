"""同步 API."""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from catalogsync.config import get_settings
from catalogsync.core.runner import is_sync_running
from catalogsync.models.database import get_session
from catalogsync.models.repository import SyncRepository
from catalogsync.scheduler.tasks import sync_task

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.post("", status_code=202)
async def trigger_sync(background_tasks: BackgroundTasks) -> dict:
    """在后台触发一次同步."""
    if is_sync_running():
        raise HTTPException(status_code=409, detail="已有同步在运行")

    background_tasks.add_task(sync_task, get_settings())
    return {"started": True}


@router.get("/status")
async def get_sync_status(
    session: AsyncSession = Depends(get_session),
) -> dict:
    """获取运行状态."""
    settings = get_settings()
    state = await SyncRepository(session).load_state(settings.state_doc_id)

    return {
        "running": is_sync_running(),
        "state": state.model_dump(mode="json") if state else None,
    }


@router.get("/errors")
async def list_sync_errors(
    limit: int = Query(20, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """获取最近的错误记录."""
    errors = await SyncRepository(session).recent_errors(limit)
    return {"items": [error.model_dump(mode="json") for error in errors]}
