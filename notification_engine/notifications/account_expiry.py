"""
Account expiry notifications.

  System push: scheduled at 09:00 local time, `lead` days before expiry,
               only while that moment is still in the future.
  In-app:      shown during the final `lead` days up to and including the
               expiry instant itself.

Logging out clears both pending and delivered pushes.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import pytz

from notification_engine.core.config import settings
from notification_engine.models.notification import (
    InAppNotificationDescriptor,
    InAppSeverity,
    NotificationDescriptor,
)
from notification_engine.notifications.provider import NotificationProvider
from notification_engine.services.account import Account
from notification_engine.services.notification_templates import (
    MessageLookup,
    format_remaining_duration,
    get_message,
)
from notification_engine.services.trigger import as_aware, compute_trigger

logger = logging.getLogger(__name__)

ACCOUNT_EXPIRY_NOTIFICATION_KEY = "account-expiry"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountExpiryNotificationProvider(NotificationProvider):
    supports_system_notifications = True
    supports_in_app_notifications = True

    def __init__(
        self,
        account: Optional[Account] = None,
        *,
        lead: Optional[timedelta] = None,
        tz: Optional[pytz.BaseTzInfo] = None,
        hour: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
        messages: MessageLookup = get_message,
    ) -> None:
        super().__init__()
        self._lead = lead if lead is not None else timedelta(days=settings.ACCOUNT_EXPIRY_LEAD_DAYS)
        self._tz = tz or settings.timezone
        self._hour = hour if hour is not None else settings.NOTIFICATION_HOUR
        self._clock = clock
        self._messages = messages
        self._expiry: Optional[datetime] = None

        if account is not None:
            self._expiry = as_aware(account.expiry) if account.expiry else None
            account.add_observer(self)

    @property
    def key(self) -> str:
        return ACCOUNT_EXPIRY_NOTIFICATION_KEY

    @property
    def expiry(self) -> Optional[datetime]:
        return self._expiry

    def set_expiry(self, expiry: Optional[datetime]) -> None:
        self._expiry = as_aware(expiry) if expiry is not None else None
        logger.debug("Account expiry for notifications set to %s", self._expiry)
        self.invalidate()

    # ── System notification ──────────────────────────────────────────────────

    def system_notification(self) -> Optional[NotificationDescriptor]:
        expiry = self._expiry
        if expiry is None:
            return None

        fire_at = compute_trigger(
            expiry, self._lead, self._clock(), tz=self._tz, hour=self._hour
        )
        if fire_at is None:
            return None

        return NotificationDescriptor(
            identifier=self.key,
            body=self._messages("ACCOUNT_EXPIRY_SYSTEM_NOTIFICATION_BODY", days=str(self._lead.days)),
            fire_at=fire_at,
            sound=True,
        )

    def should_clear_pending_system_request(self) -> bool:
        return self._expiry is None

    def should_clear_delivered_system_request(self) -> bool:
        return self._expiry is None

    # ── In-app notification ──────────────────────────────────────────────────

    def in_app_notification(self) -> Optional[InAppNotificationDescriptor]:
        expiry = self._expiry
        if expiry is None:
            return None

        try:
            threshold = expiry - self._lead
        except OverflowError:
            return None

        now = as_aware(self._clock())
        if not threshold <= now <= expiry:
            return None

        duration = format_remaining_duration(now, expiry)
        return InAppNotificationDescriptor(
            identifier=self.key,
            severity=InAppSeverity.warning,
            title=self._messages("ACCOUNT_EXPIRY_INAPP_NOTIFICATION_TITLE"),
            body=self._messages("ACCOUNT_EXPIRY_INAPP_NOTIFICATION_BODY", duration=duration),
        )

    # ── Account events ───────────────────────────────────────────────────────

    def account_did_update_expiry(self, account: Account, expiry: datetime) -> None:
        self.set_expiry(expiry)

    def account_did_login(self, account: Account, token: str, expiry: datetime) -> None:
        self.set_expiry(expiry)

    def account_did_logout(self, account: Account) -> None:
        self.set_expiry(None)
