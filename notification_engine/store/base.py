"""
Contract of the external system notification store.

All operations are coroutines. A failing `add` or `remove_*` raises; the
caller decides whether to log or propagate.
"""
from __future__ import annotations

from typing import AbstractSet, Iterable, Protocol

from notification_engine.models.notification import (
    AuthorizationOption,
    AuthorizationStatus,
    DeliveredNotification,
    NotificationDescriptor,
)


class NotificationStore(Protocol):
    async def get_authorization_status(self) -> AuthorizationStatus: ...

    async def request_authorization(self, options: AbstractSet[AuthorizationOption]) -> bool: ...

    async def add(self, request: NotificationDescriptor) -> None: ...

    async def remove_pending(self, identifiers: Iterable[str]) -> None: ...

    async def remove_delivered(self, identifiers: Iterable[str]) -> None: ...

    async def list_pending(self) -> list[NotificationDescriptor]: ...

    async def list_delivered(self) -> list[DeliveredNotification]: ...
