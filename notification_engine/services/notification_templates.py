"""
Message catalog for notifications produced by the engine.

Texts are looked up by key so that providers never hard-code user-facing
copy. Placeholders use str.format syntax.
"""

from datetime import datetime
from typing import Callable

# ─────────────────────────────────────────────────────────────────────────────
# Catalog
# ─────────────────────────────────────────────────────────────────────────────

MESSAGES: dict[str, str] = {
    "ACCOUNT_EXPIRY_SYSTEM_NOTIFICATION_BODY": (
        "Your account will expire in {days} days. Add more time to stay connected."
    ),
    "ACCOUNT_EXPIRY_INAPP_NOTIFICATION_TITLE": "ACCOUNT CREDIT EXPIRES SOON",
    "ACCOUNT_EXPIRY_INAPP_NOTIFICATION_BODY": "{duration} left. Buy more credit.",
}

# Signature of the collaborator providers use to obtain texts
MessageLookup = Callable[..., str]


def get_message(key: str, **kwargs: str) -> str:
    """Return the catalog text for `key`, falling back to the key itself."""
    template = MESSAGES.get(key, key)
    return template.format(**kwargs) if kwargs else template


# ─────────────────────────────────────────────────────────────────────────────
# Duration formatting
# ─────────────────────────────────────────────────────────────────────────────

_UNITS: list[tuple[str, int]] = [
    ("day", 24 * 3600),
    ("hour", 3600),
    ("minute", 60),
]


def format_remaining_duration(start: datetime, end: datetime) -> str:
    """
    Human-readable time between `start` and `end` using the largest whole
    unit only, e.g. "2 days", "1 hour", "0 minutes".
    """
    seconds = max(0, int((end - start).total_seconds()))
    for unit, size in _UNITS[:-1]:
        count = seconds // size
        if count:
            return _pluralize(count, unit)
    return _pluralize(seconds // 60, "minute")


def _pluralize(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"
