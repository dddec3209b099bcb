"""Notification coordination engine."""
from notification_engine.models.notification import (
    InAppNotificationDescriptor,
    InAppSeverity,
    NotificationDescriptor,
)
from notification_engine.notifications import (
    AccountExpiryNotificationProvider,
    NotificationManager,
    NotificationProvider,
)
from notification_engine.services.account import Account
from notification_engine.services.trigger import compute_trigger

__all__ = [
    "Account",
    "AccountExpiryNotificationProvider",
    "InAppNotificationDescriptor",
    "InAppSeverity",
    "NotificationDescriptor",
    "NotificationManager",
    "NotificationProvider",
    "compute_trigger",
]

__version__ = "1.0.0"
