"""
Notification Cleanup Scheduler

Deletes notifications past the retention window once a day, during idle
hours. The same job can be triggered externally through
POST /notifications/cleanup (see main.py).
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from services.notification_service import NotificationService
from config import settings
from typing import Optional
import logging

logger = logging.getLogger(__name__)

JOB_ID = "notification_cleanup"


async def run_notification_cleanup(service: NotificationService, days_old: Optional[int] = None) -> dict:
    """
    Run one retention pass.

    Never raises: a failed pass is logged and reported so the scheduler
    keeps running.

    Returns:
        {"status": "success" | "error", "days_old": int, "error"?: str}
    """
    if days_old is None:
        days_old = settings.NOTIFICATION_RETENTION_DAYS
    logger.info(f"Starting notification cleanup (older than {days_old} days)")

    try:
        result = await service.cleanup_old_notifications(days_old)
    except Exception as e:
        logger.error(f"Notification cleanup failed: {e}", exc_info=True)
        return {"status": "error", "days_old": days_old, "error": str(e)}

    if not result.success:
        logger.error(f"Notification cleanup failed: {result.error}")
        return {"status": "error", "days_old": days_old, "error": result.error}

    logger.info("Notification cleanup complete")
    return {"status": "success", "days_old": days_old}


def start_scheduler(service: NotificationService) -> AsyncIOScheduler:
    """
    Start the daily cleanup job on the running event loop.

    Args:
        service: NotificationService the job runs against

    Returns:
        APScheduler AsyncIOScheduler instance
    """
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        run_notification_cleanup,
        trigger=CronTrigger(
            hour=settings.NOTIFICATION_CLEANUP_HOUR,
            minute=settings.NOTIFICATION_CLEANUP_MINUTE,
        ),
        args=[service],
        id=JOB_ID,
        name="Notification retention cleanup",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(
        f"Notification cleanup scheduler started (runs daily at "
        f"{settings.NOTIFICATION_CLEANUP_HOUR:02d}:{settings.NOTIFICATION_CLEANUP_MINUTE:02d})"
    )
    return scheduler


def stop_scheduler(scheduler: AsyncIOScheduler):
    scheduler.shutdown(wait=False)
    logger.info("Notification cleanup scheduler stopped")
