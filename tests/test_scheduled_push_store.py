import logging
import threading
from datetime import timedelta
from unittest.mock import patch

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from firebase_admin import messaging

from notification_engine.models.notification import (
    AuthorizationOption,
    AuthorizationStatus,
    NotificationDescriptor,
)
from notification_engine.services import fcm_service
from notification_engine.services.fcm_service import FCMResult
from notification_engine.store.scheduled_push import ScheduledPushNotificationStore

from tests.conftest import D, FrozenClock, make_request


class _RecordingSender:
    def __init__(self, result: FCMResult) -> None:
        self.result = result
        self.sent: list[tuple[str, dict[str, str]]] = []
        self.threads: list[int] = []

    def __call__(self, token: str, request: NotificationDescriptor) -> FCMResult:
        self.sent.append((token, request.to_fcm_data()))
        self.threads.append(threading.get_ident())
        return self.result


def _store(sender=None, token="device-token") -> ScheduledPushNotificationStore:
    scheduler = AsyncIOScheduler(timezone="UTC")
    return ScheduledPushNotificationStore(
        scheduler,
        device_token=token,
        sender=sender or _RecordingSender(FCMResult(success=True, message_id="m-1")),
        clock=FrozenClock(D),
    )


@pytest.mark.asyncio
async def test_authorization_follows_device_registration() -> None:
    store = _store(token=None)

    assert await store.get_authorization_status() is AuthorizationStatus.not_determined
    assert not await store.request_authorization({AuthorizationOption.alert})

    store.register_device("device-token")
    assert await store.get_authorization_status() is AuthorizationStatus.authorized
    assert await store.request_authorization({AuthorizationOption.alert})

    store.unregister_device()
    assert await store.get_authorization_status() is AuthorizationStatus.denied


@pytest.mark.asyncio
async def test_add_schedules_one_job_per_identifier() -> None:
    store = _store()
    store._scheduler.start(paused=True)
    try:
        await store.add(make_request("a", fire_at=D + timedelta(days=1)))
        later = make_request("a", fire_at=D + timedelta(days=2))
        await store.add(later)

        jobs = store._scheduler.get_jobs()
        assert [job.id for job in jobs] == ["notification:a"]
        assert await store.list_pending() == [later]
    finally:
        store._scheduler.shutdown(wait=False)


@pytest.mark.asyncio
async def test_remove_pending_drops_job_and_ignores_unknown() -> None:
    store = _store()
    store._scheduler.start(paused=True)
    try:
        await store.add(make_request("a"))
        await store.add(make_request("b"))

        await store.remove_pending({"a", "missing"})

        assert [job.id for job in store._scheduler.get_jobs()] == ["notification:b"]
        assert [r.identifier for r in await store.list_pending()] == ["b"]
    finally:
        store._scheduler.shutdown(wait=False)


@pytest.mark.asyncio
async def test_delivery_moves_request_to_delivered() -> None:
    sender = _RecordingSender(FCMResult(success=True, message_id="m-1"))
    store = _store(sender)
    store._pending["a"] = make_request("a")

    await store._deliver("a")

    assert await store.list_pending() == []
    delivered = await store.list_delivered()
    assert [d.request.identifier for d in delivered] == ["a"]
    assert delivered[0].delivered_at == D
    assert delivered[0].message_id == "m-1"
    token, data = sender.sent[0]
    assert token == "device-token"
    assert data["identifier"] == "a"
    assert data["sound"] == "default"

    await store.remove_delivered({"a"})
    assert await store.list_delivered() == []


@pytest.mark.asyncio
async def test_push_is_sent_off_the_event_loop_thread() -> None:
    sender = _RecordingSender(FCMResult(success=True, message_id="m-1"))
    store = _store(sender)
    store._pending["a"] = make_request("a")

    await store._deliver("a")

    assert len(sender.threads) == 1
    assert sender.threads[0] != threading.get_ident()


@pytest.mark.asyncio
async def test_unregistered_token_disables_pushes() -> None:
    store = _store(_RecordingSender(FCMResult(success=False, error="token_unregistered")))
    store._pending["a"] = make_request("a")

    await store._deliver("a")

    assert await store.list_delivered() == []
    assert store.device_token is None
    assert await store.get_authorization_status() is AuthorizationStatus.denied


@pytest.mark.asyncio
async def test_delivery_without_token_is_dropped() -> None:
    sender = _RecordingSender(FCMResult(success=True))
    store = _store(sender, token=None)
    store._pending["a"] = make_request("a")

    await store._deliver("a")

    assert sender.sent == []
    assert await store.list_delivered() == []


def test_send_data_message_maps_unregistered_token() -> None:
    with patch.object(fcm_service, "_ensure_firebase_app"), patch.object(
        fcm_service.messaging, "send", side_effect=messaging.UnregisteredError("gone")
    ):
        result = fcm_service.send_data_message("token", {"identifier": "a"})

    assert result == FCMResult(success=False, error="token_unregistered")


def test_send_data_message_reports_message_id() -> None:
    with patch.object(fcm_service, "_ensure_firebase_app"), patch.object(
        fcm_service.messaging, "send", return_value="projects/p/messages/1"
    ) as send:
        result = fcm_service.send_data_message("token", {"identifier": "a", "sound": True})

    assert result.success
    assert result.message_id == "projects/p/messages/1"
    message = send.call_args.args[0]
    assert message.data == {"identifier": "a", "sound": "True"}


def test_send_data_message_without_firebase() -> None:
    with patch.object(fcm_service, "_ensure_firebase_app", side_effect=ValueError("no credentials")):
        result = fcm_service.send_data_message("token", {})

    assert not result.success
    assert result.error.startswith("firebase_unavailable")


def test_send_notification_pushes_descriptor_payload(caplog) -> None:
    caplog.set_level(logging.INFO, logger="notification_engine.services.fcm_service")
    request = make_request("account-expiry", fire_at=D + timedelta(days=7))

    with patch.object(fcm_service, "_ensure_firebase_app"), patch.object(
        fcm_service.messaging, "send", return_value="projects/p/messages/2"
    ) as send:
        result = fcm_service.send_notification("token", request)

    assert result == FCMResult(success=True, message_id="projects/p/messages/2")
    message = send.call_args.args[0]
    assert message.token == "token"
    assert message.data == request.to_fcm_data()
    assert "account-expiry" in caplog.text
    assert "fire_at=2026-03-17T12:00:00+00:00" in caplog.text
