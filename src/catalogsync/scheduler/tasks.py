"""定时任务定义."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from catalogsync.config import Settings

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


async def sync_task(settings: Settings) -> None:
    """同步任务：拉取目录列表与详情."""
    from catalogsync.core.runner import is_sync_running, run_sync

    # 检查是否已有任务在运行
    if is_sync_running():
        logger.info("已有同步任务在运行，跳过本次调度")
        return

    logger.info("开始同步任务...")
    try:
        state = await run_sync(settings)
        logger.info(
            f"同步任务结束: 状态={state.status}, "
            f"详情保存={state.detail_items_saved}, 失败={state.failed_requests}"
        )
    except Exception as e:
        logger.exception(f"同步任务失败: {e}")


def create_scheduler(settings: Settings) -> AsyncIOScheduler | None:
    """创建并启动定时任务调度器（间隔为 0 时不启动）."""
    global _scheduler

    if settings.sync_interval_minutes <= 0:
        logger.info("未配置同步间隔，定时任务未启动")
        return None

    _scheduler = AsyncIOScheduler()

    _scheduler.add_job(
        sync_task,
        "interval",
        minutes=settings.sync_interval_minutes,
        args=[settings],
        id="catalog_sync_task",
        name="目录同步",
        replace_existing=True,
    )

    # 启动时立即执行一次
    _scheduler.add_job(
        sync_task,
        "date",
        args=[settings],
        id="catalog_sync_task_initial",
        name="初始同步",
    )

    _scheduler.start()
    logger.info(
        f"定时任务调度器已启动，同步间隔: {settings.sync_interval_minutes} 分钟"
    )

    return _scheduler


async def shutdown_scheduler() -> None:
    """关闭定时任务调度器."""
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        logger.info("定时任务调度器已关闭")
        _scheduler = None
