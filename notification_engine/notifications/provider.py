"""
Provider contract.

A provider computes, from its own state, at most one system notification
and at most one in-app notification. The manager only talks to providers
through the methods below and branches on the `supports_*` flags, never on
the concrete type.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol

from notification_engine.models.notification import (
    InAppNotificationDescriptor,
    NotificationDescriptor,
)

logger = logging.getLogger(__name__)


class InvalidationHandle(Protocol):
    """Endpoint a provider posts its key to when its outputs change."""

    def post(self, key: str) -> None: ...


class NotificationProvider:
    supports_system_notifications: bool = False
    supports_in_app_notifications: bool = False

    def __init__(self) -> None:
        self._handle: Optional[InvalidationHandle] = None

    @property
    def key(self) -> str:
        return "default"

    def attach(self, handle: Optional[InvalidationHandle]) -> None:
        self._handle = handle

    def invalidate(self) -> None:
        """Tell the owning manager to re-query this provider. Thread-safe."""
        handle = self._handle
        if handle is None:
            logger.debug("Provider %s invalidated while unregistered", self.key)
            return
        handle.post(self.key)

    # ── System notification capability ───────────────────────────────────────

    def system_notification(self) -> Optional[NotificationDescriptor]:
        return None

    def should_clear_pending_system_request(self) -> bool:
        return False

    def should_clear_delivered_system_request(self) -> bool:
        return False

    # ── In-app notification capability ───────────────────────────────────────

    def in_app_notification(self) -> Optional[InAppNotificationDescriptor]:
        return None
