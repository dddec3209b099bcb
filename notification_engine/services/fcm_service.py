# Push delivery for scheduled system notifications.
#
# The scheduled push store hands each due NotificationDescriptor to
# send_notification, which sends it to the registered device as a data-only
# FCM message. The device renders the alert itself from the data payload.

import logging
from dataclasses import dataclass
from typing import Optional

import firebase_admin
from firebase_admin import credentials, messaging
from firebase_admin import _apps as firebase_apps

from notification_engine.core.config import settings
from notification_engine.models.notification import NotificationDescriptor

logger = logging.getLogger(__name__)

# A scheduled alert that is still undelivered an hour after firing is stale
_PUSH_TTL_SECONDS = 3600


def _ensure_firebase_app() -> None:
    """Initialise firebase-admin once per process."""
    if firebase_apps:
        return
    try:
        if settings.FIREBASE_SERVICE_ACCOUNT_PATH:
            firebase_admin.initialize_app(
                credentials.Certificate(settings.FIREBASE_SERVICE_ACCOUNT_PATH)
            )
        else:
            firebase_admin.initialize_app()
        logger.info("Firebase Admin SDK initialised for notification pushes")
    except Exception as exc:
        logger.error("Cannot initialise Firebase Admin SDK: %s", exc)
        raise


@dataclass
class FCMResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


def send_notification(fcm_token: str, request: NotificationDescriptor) -> FCMResult:
    """Push one scheduled notification request to the device."""
    result = send_data_message(fcm_token, request.to_fcm_data())
    if result.success:
        logger.info(
            "Pushed notification %s (fire_at=%s) as %s",
            request.identifier,
            request.fire_at.isoformat(),
            result.message_id,
        )
    return result


def send_data_message(
    fcm_token: str,
    data: dict[str, str],
    *,
    android_priority: str = "high",
) -> FCMResult:
    """
    Send a data-only FCM message to a single device token.

    An unregistered or malformed token is reported as "token_unregistered"
    so the store can stop pushing to it.
    """
    try:
        _ensure_firebase_app()
    except Exception as exc:
        return FCMResult(success=False, error=f"firebase_unavailable: {exc}")

    # FCM only accepts string values in the data payload
    payload = {k: str(v) for k, v in data.items()}
    message = messaging.Message(
        data=payload,
        token=fcm_token,
        android=messaging.AndroidConfig(priority=android_priority, ttl=_PUSH_TTL_SECONDS),
    )

    try:
        message_id = messaging.send(message)
    except messaging.UnregisteredError:
        logger.warning("Device token %s… is no longer registered", fcm_token[:20])
        return FCMResult(success=False, error="token_unregistered")
    except messaging.SenderIdMismatchError:
        return FCMResult(success=False, error="sender_id_mismatch")
    except Exception as exc:
        reason = str(exc)
        if "registration token" in reason.lower():
            logger.warning("Device token %s… rejected by FCM: %s", fcm_token[:20], reason)
            return FCMResult(success=False, error="token_unregistered")
        logger.error("Push for %s failed: %s", payload.get("identifier"), reason)
        return FCMResult(success=False, error=reason)

    logger.debug("FCM accepted %s as %s", payload.get("identifier"), message_id)
    return FCMResult(success=True, message_id=message_id)
