"""
APScheduler wiring for the notification engine.

The same AsyncIOScheduler hosts two kinds of jobs:
  • "notification_pass"       — periodic full reconciliation of all providers
  • "notification:<key>"      — one-shot delivery jobs owned by
                                ScheduledPushNotificationStore

AsyncIOScheduler runs jobs in the application's event loop, so the
manager's asyncio.Lock serialises them with every other entry point.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from notification_engine.core.config import settings
from notification_engine.notifications.manager import NotificationManager

logger = logging.getLogger(__name__)

NOTIFICATION_PASS_JOB_ID = "notification_pass"


def create_scheduler() -> AsyncIOScheduler:
    """
    Create the APScheduler AsyncIOScheduler.
    Call scheduler.start() from the FastAPI lifespan context.
    """
    return AsyncIOScheduler(timezone="UTC")


def schedule_notification_pass(
    scheduler: AsyncIOScheduler,
    manager: NotificationManager,
    *,
    minutes: int = settings.RECONCILE_INTERVAL_MINUTES,
) -> None:
    """Run a full notification pass every `minutes` minutes."""
    scheduler.add_job(
        manager.update_notifications,
        trigger="interval",
        minutes=minutes,
        id=NOTIFICATION_PASS_JOB_ID,
        name="Notification pass",
        replace_existing=True,
        misfire_grace_time=60,
        coalesce=True,
    )
    logger.info("Notification pass scheduled every %d minutes", minutes)
