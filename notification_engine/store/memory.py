"""In-memory notification store that records every call for inspection."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import AbstractSet, Any, Iterable, Optional

from notification_engine.models.notification import (
    AuthorizationOption,
    AuthorizationStatus,
    DeliveredNotification,
    NotificationDescriptor,
)


class NotificationStoreError(RuntimeError):
    pass


class InMemoryNotificationStore:
    def __init__(
        self,
        *,
        status: Any = AuthorizationStatus.authorized,
        grant: bool = True,
        failing_identifiers: Iterable[str] = (),
    ) -> None:
        # `status` is deliberately untyped so tests can feed unknown values
        self.status = status
        self.grant = grant
        self.failing_identifiers = set(failing_identifiers)
        self.pending: dict[str, NotificationDescriptor] = {}
        self.delivered: dict[str, DeliveredNotification] = {}
        self.calls: list[tuple[str, Any]] = []

    def calls_named(self, name: str) -> list[Any]:
        return [arg for call, arg in self.calls if call == name]

    async def get_authorization_status(self) -> Any:
        self.calls.append(("get_authorization_status", None))
        return self.status

    async def request_authorization(self, options: AbstractSet[AuthorizationOption]) -> bool:
        self.calls.append(("request_authorization", frozenset(options)))
        self.status = AuthorizationStatus.authorized if self.grant else AuthorizationStatus.denied
        return self.grant

    async def add(self, request: NotificationDescriptor) -> None:
        self.calls.append(("add", request))
        if request.identifier in self.failing_identifiers:
            raise NotificationStoreError(f"cannot schedule {request.identifier}")
        self.pending[request.identifier] = request

    async def remove_pending(self, identifiers: Iterable[str]) -> None:
        identifiers = frozenset(identifiers)
        self.calls.append(("remove_pending", identifiers))
        for identifier in identifiers:
            self.pending.pop(identifier, None)

    async def remove_delivered(self, identifiers: Iterable[str]) -> None:
        identifiers = frozenset(identifiers)
        self.calls.append(("remove_delivered", identifiers))
        for identifier in identifiers:
            self.delivered.pop(identifier, None)

    async def list_pending(self) -> list[NotificationDescriptor]:
        self.calls.append(("list_pending", None))
        return list(self.pending.values())

    async def list_delivered(self) -> list[DeliveredNotification]:
        return list(self.delivered.values())

    def deliver(self, identifier: str, at: Optional[datetime] = None) -> None:
        """Move a pending request to the delivered list, as the device would."""
        request = self.pending.pop(identifier)
        self.delivered[identifier] = DeliveredNotification(
            request=request, delivered_at=at or datetime.now(timezone.utc)
        )
