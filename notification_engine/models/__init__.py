from notification_engine.models.notification import (
    AuthorizationOption,
    AuthorizationStatus,
    DeliveredNotification,
    InAppNotificationDescriptor,
    InAppSeverity,
    NotificationDescriptor,
)

__all__ = [
    "AuthorizationOption",
    "AuthorizationStatus",
    "DeliveredNotification",
    "InAppNotificationDescriptor",
    "InAppSeverity",
    "NotificationDescriptor",
]
