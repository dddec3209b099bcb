"""System notification stores."""
from notification_engine.store.base import NotificationStore
from notification_engine.store.memory import InMemoryNotificationStore, NotificationStoreError
from notification_engine.store.scheduled_push import ScheduledPushNotificationStore

__all__ = [
    "InMemoryNotificationStore",
    "NotificationStore",
    "NotificationStoreError",
    "ScheduledPushNotificationStore",
]
