"""定时任务."""

from catalogsync.scheduler.tasks import create_scheduler, shutdown_scheduler, sync_task

__all__ = [
    "create_scheduler",
    "shutdown_scheduler",
    "sync_task",
]
