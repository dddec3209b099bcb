"""Scheduler package."""
from notification_engine.scheduler.reconcile_scheduler import (
    NOTIFICATION_PASS_JOB_ID,
    create_scheduler,
    schedule_notification_pass,
)

__all__ = ["NOTIFICATION_PASS_JOB_ID", "create_scheduler", "schedule_notification_pass"]
