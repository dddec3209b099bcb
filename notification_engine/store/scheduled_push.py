"""
System notification store backed by APScheduler and Firebase Cloud Messaging.

  pending   — one APScheduler `date` job per request identifier; re-adding an
              identifier replaces its job, so identical requests never pile up.
  delivered — requests whose job fired and whose FCM send succeeded.

Authorization follows device registration: a registered FCM token means the
user can receive pushes. FCM reporting the token as unregistered clears it
and marks authorization as denied until a new token is registered.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import AbstractSet, Callable, Iterable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from notification_engine.models.notification import (
    AuthorizationOption,
    AuthorizationStatus,
    DeliveredNotification,
    NotificationDescriptor,
)
from notification_engine.services.fcm_service import FCMResult, send_notification

logger = logging.getLogger(__name__)

Sender = Callable[[str, NotificationDescriptor], FCMResult]


def _job_id(identifier: str) -> str:
    return f"notification:{identifier}"


class ScheduledPushNotificationStore:
    def __init__(
        self,
        scheduler: AsyncIOScheduler,
        *,
        device_token: Optional[str] = None,
        sender: Sender = send_notification,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._scheduler = scheduler
        self._sender = sender
        self._clock = clock
        self._device_token: Optional[str] = None
        self._status = AuthorizationStatus.not_determined
        self._pending: dict[str, NotificationDescriptor] = {}
        self._delivered: dict[str, DeliveredNotification] = {}
        if device_token:
            self.register_device(device_token)

    # ── Device registration ──────────────────────────────────────────────────

    @property
    def device_token(self) -> Optional[str]:
        return self._device_token

    def register_device(self, token: str) -> None:
        self._device_token = token
        self._status = AuthorizationStatus.authorized
        logger.info("Registered FCM device token %s…", token[:20])

    def unregister_device(self) -> None:
        self._device_token = None
        self._status = AuthorizationStatus.denied
        logger.warning("Cleared FCM device token; pushes disabled until re-registration")

    # ── Authorization ────────────────────────────────────────────────────────

    async def get_authorization_status(self) -> AuthorizationStatus:
        return self._status

    async def request_authorization(self, options: AbstractSet[AuthorizationOption]) -> bool:
        if self._device_token:
            self._status = AuthorizationStatus.authorized
            return True
        logger.info(
            "Authorization requested (%s) but no device token is registered",
            ",".join(sorted(o.value for o in options)),
        )
        return False

    # ── Requests ─────────────────────────────────────────────────────────────

    async def add(self, request: NotificationDescriptor) -> None:
        self._scheduler.add_job(
            self._deliver,
            trigger="date",
            run_date=request.fire_at,
            args=[request.identifier],
            id=_job_id(request.identifier),
            name=f"Deliver {request.identifier}",
            replace_existing=True,
            # Deliver late rather than never
            misfire_grace_time=None,
        )
        self._pending[request.identifier] = request
        logger.debug("Scheduled %s for %s", request.identifier, request.fire_at.isoformat())

    async def remove_pending(self, identifiers: Iterable[str]) -> None:
        for identifier in identifiers:
            self._pending.pop(identifier, None)
            try:
                self._scheduler.remove_job(_job_id(identifier))
            except JobLookupError:
                continue
            logger.debug("Removed pending notification %s", identifier)

    async def remove_delivered(self, identifiers: Iterable[str]) -> None:
        for identifier in identifiers:
            if self._delivered.pop(identifier, None) is not None:
                logger.debug("Removed delivered notification %s", identifier)

    async def list_pending(self) -> list[NotificationDescriptor]:
        return list(self._pending.values())

    async def list_delivered(self) -> list[DeliveredNotification]:
        return list(self._delivered.values())

    # ── Delivery job ─────────────────────────────────────────────────────────

    async def _deliver(self, identifier: str) -> None:
        request = self._pending.pop(identifier, None)
        if request is None:
            return

        token = self._device_token
        if not token:
            logger.warning("No device token; dropping notification %s", identifier)
            return

        # The FCM client blocks on HTTP; keep it off the event loop
        result = await asyncio.to_thread(self._sender, token, request)
        if not result.success:
            logger.warning("FCM send failed for %s: %s", identifier, result.error)
            if result.error == "token_unregistered":
                self.unregister_device()
            return

        self._delivered[identifier] = DeliveredNotification(
            request=request,
            delivered_at=self._clock(),
            message_id=result.message_id,
        )
        logger.info("Delivered notification %s (%s)", identifier, result.message_id)
