"""
Centralised engine settings loaded from environment variables / .env file.
Every setting has a default so the engine can be embedded without a .env.
"""
import logging
import os

import pytz
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key, "").strip().lower()
    if not value:
        return default
    return value in ("1", "true", "yes", "on")


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Invalid integer %r for %s; using %d", value, key, default)
        return default


class _Settings:
    # ── Timing ────────────────────────────────────────────────────────────────
    NOTIFICATION_TIMEZONE: str = os.getenv("NOTIFICATION_TIMEZONE", "UTC")
    NOTIFICATION_HOUR: int = _env_int("NOTIFICATION_HOUR", 9)
    ACCOUNT_EXPIRY_LEAD_DAYS: int = _env_int("ACCOUNT_EXPIRY_LEAD_DAYS", 3)

    # ── Reconciliation ────────────────────────────────────────────────────────
    RECONCILE_INTERVAL_MINUTES: int = _env_int("RECONCILE_INTERVAL_MINUTES", 15)

    # Skip re-adding a request that is already pending unchanged
    DEDUPE_PENDING_REQUESTS: bool = _env_bool("DEDUPE_PENDING_REQUESTS", False)

    # ── Firebase Cloud Messaging ──────────────────────────────────────────────
    FIREBASE_SERVICE_ACCOUNT_PATH: str = os.getenv("FIREBASE_CREDENTIALS_PATH", "")
    FCM_DEVICE_TOKEN: str = os.getenv("FCM_DEVICE_TOKEN", "")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def timezone(self) -> pytz.BaseTzInfo:
        """The user's calendar timezone; unknown names fall back to UTC."""
        try:
            return pytz.timezone(self.NOTIFICATION_TIMEZONE)
        except pytz.UnknownTimeZoneError:
            logger.warning(
                "Unknown timezone %r; falling back to UTC", self.NOTIFICATION_TIMEZONE
            )
            return pytz.utc


settings = _Settings()
