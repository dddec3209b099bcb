"""
Notification routes
  GET  /notifications/in-app           — current in-app notification list
  POST /notifications/update           — run a full notification pass now
  GET  /notifications/pending          — system requests waiting to fire
  GET  /notifications/delivered        — system requests already delivered
  POST /notifications/register-token   — store the device's FCM token
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from notification_engine.models.notification import (
    DeliveredNotification,
    NotificationDescriptor,
)
from notification_engine.notifications.manager import NotificationManager

router = APIRouter(tags=["Notifications"])


# ─────────────────────────────────────────────────────────────────────────────
# Request models
# ─────────────────────────────────────────────────────────────────────────────

class RegisterTokenRequest(BaseModel):
    fcm_token: str = Field(..., min_length=1)


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _manager(request: Request) -> NotificationManager:
    return request.app.state.manager


def _serialise_request(descriptor: NotificationDescriptor) -> dict:
    return {
        "identifier": descriptor.identifier,
        "body": descriptor.body,
        "sound": descriptor.sound,
        "fire_at": descriptor.fire_at.isoformat(),
    }


def _serialise_delivered(delivered: DeliveredNotification) -> dict:
    return {
        **_serialise_request(delivered.request),
        "delivered_at": delivered.delivered_at.isoformat(),
        "message_id": delivered.message_id,
    }


# ─────────────────────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/in-app", summary="Current in-app notifications")
async def get_in_app(request: Request):
    notifications = [d.to_dict() for d in _manager(request).in_app_notifications]
    return {"notifications": notifications, "count": len(notifications)}


@router.post("/update", summary="Run a full notification pass")
async def update_notifications(request: Request):
    descriptors = await _manager(request).update_notifications()
    notifications = [d.to_dict() for d in descriptors]
    return {"status": "ok", "notifications": notifications, "count": len(notifications)}


@router.get("/pending", summary="Pending system notification requests")
async def get_pending(request: Request):
    pending = await request.app.state.store.list_pending()
    return {"pending": [_serialise_request(r) for r in pending], "count": len(pending)}


@router.get("/delivered", summary="Delivered system notifications")
async def get_delivered(request: Request):
    delivered = await request.app.state.store.list_delivered()
    return {"delivered": [_serialise_delivered(d) for d in delivered], "count": len(delivered)}


@router.post("/register-token", summary="Register or refresh the FCM device token")
async def register_token(body: RegisterTokenRequest, request: Request):
    """
    Called on every app open.
    Stores the latest FCM token so scheduled notifications can be delivered,
    then runs a pass so anything held back by missing permission is scheduled.
    """
    store = request.app.state.store
    register_device = getattr(store, "register_device", None)
    if register_device is None:
        raise HTTPException(status_code=400, detail="Store does not accept device tokens.")
    register_device(body.fcm_token)
    await _manager(request).update_notifications()
    return {"status": "ok", "message": "FCM token registered"}
