"""
Value types exchanged between providers, the manager and the stores.

Descriptors are created fresh on every reconciliation pass and never
mutated; a newer descriptor for the same key supersedes the old one.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


# ──────────────────────────────────────────────
# Enums
# ──────────────────────────────────────────────

class InAppSeverity(str, Enum):
    success = "success"
    warning = "warning"
    error = "error"


class AuthorizationStatus(str, Enum):
    not_determined = "notDetermined"
    authorized = "authorized"
    provisional = "provisional"
    denied = "denied"
    ephemeral = "ephemeral"


class AuthorizationOption(str, Enum):
    alert = "alert"
    sound = "sound"
    provisional = "provisional"


# ──────────────────────────────────────────────
# Descriptors
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class NotificationDescriptor:
    """A single-shot notification scheduled through the system store."""

    identifier: str
    body: str
    fire_at: datetime
    sound: bool = True

    def to_fcm_data(self) -> dict[str, str]:
        """
        Build the dict that goes into the FCM `data` payload.
        All values must be strings.
        """
        return {
            "identifier": self.identifier,
            "body":       self.body,
            "sound":      "default" if self.sound else "none",
            "fire_at":    self.fire_at.isoformat(),
        }


@dataclass(frozen=True)
class InAppNotificationDescriptor:
    identifier: str
    severity: InAppSeverity
    title: str
    body: str

    def to_dict(self) -> dict[str, str]:
        return {
            "identifier": self.identifier,
            "severity":   self.severity.value,
            "title":      self.title,
            "body":       self.body,
        }


@dataclass(frozen=True)
class DeliveredNotification:
    """A request that has already been handed to the device."""

    request: NotificationDescriptor
    delivered_at: datetime
    message_id: Optional[str] = None
