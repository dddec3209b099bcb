"""Notification providers and the manager that reconciles them."""
from notification_engine.notifications.account_expiry import (
    ACCOUNT_EXPIRY_NOTIFICATION_KEY,
    AccountExpiryNotificationProvider,
)
from notification_engine.notifications.manager import (
    InAppNotificationObserver,
    NotificationManager,
    ProviderRegistrationError,
    merge_in_app_descriptors,
)
from notification_engine.notifications.provider import NotificationProvider

__all__ = [
    "ACCOUNT_EXPIRY_NOTIFICATION_KEY",
    "AccountExpiryNotificationProvider",
    "InAppNotificationObserver",
    "NotificationManager",
    "NotificationProvider",
    "ProviderRegistrationError",
    "merge_in_app_descriptors",
]
