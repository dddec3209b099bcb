from datetime import datetime, timezone
from typing import Optional, Sequence

import pytest

from notification_engine.models.notification import (
    InAppNotificationDescriptor,
    InAppSeverity,
    NotificationDescriptor,
)
from notification_engine.notifications.provider import NotificationProvider

# Fixed reference instant used as "now" throughout the suite
D = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, now: datetime = D) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class RecordingObserver:
    def __init__(self) -> None:
        self.updates: list[list[InAppNotificationDescriptor]] = []

    def on_in_app_notifications_updated(
        self, descriptors: Sequence[InAppNotificationDescriptor]
    ) -> None:
        self.updates.append(list(descriptors))


class RecordingHandle:
    def __init__(self) -> None:
        self.posted: list[str] = []

    def post(self, key: str) -> None:
        self.posted.append(key)


class StaticProvider(NotificationProvider):
    """Provider whose outputs are plain attributes tests can change."""

    def __init__(
        self,
        key: str,
        *,
        request: Optional[NotificationDescriptor] = None,
        banner: Optional[InAppNotificationDescriptor] = None,
        clear_pending: bool = False,
        clear_delivered: bool = False,
        system: bool = True,
        in_app: bool = True,
    ) -> None:
        super().__init__()
        self._key = key
        self.request = request
        self.banner = banner
        self.clear_pending = clear_pending
        self.clear_delivered = clear_delivered
        self.supports_system_notifications = system
        self.supports_in_app_notifications = in_app
        self.system_queries = 0
        self.in_app_queries = 0

    @property
    def key(self) -> str:
        return self._key

    def system_notification(self) -> Optional[NotificationDescriptor]:
        self.system_queries += 1
        return self.request

    def should_clear_pending_system_request(self) -> bool:
        return self.clear_pending

    def should_clear_delivered_system_request(self) -> bool:
        return self.clear_delivered

    def in_app_notification(self) -> Optional[InAppNotificationDescriptor]:
        self.in_app_queries += 1
        return self.banner


def make_request(key: str, fire_at: datetime = datetime(2026, 4, 1, 9, tzinfo=timezone.utc)) -> NotificationDescriptor:
    return NotificationDescriptor(identifier=key, body=f"{key} body", fire_at=fire_at)


def make_banner(key: str, title: str = "title") -> InAppNotificationDescriptor:
    return InAppNotificationDescriptor(
        identifier=key, severity=InAppSeverity.warning, title=title, body=f"{key} body"
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()
