from datetime import datetime, timedelta, timezone

import pytest
import pytz

from notification_engine.models.notification import InAppSeverity
from notification_engine.notifications.account_expiry import (
    ACCOUNT_EXPIRY_NOTIFICATION_KEY,
    AccountExpiryNotificationProvider,
)
from notification_engine.services.account import Account

from tests.conftest import D, FrozenClock, RecordingHandle


def _provider(clock: FrozenClock, expiry=None, **kwargs) -> AccountExpiryNotificationProvider:
    provider = AccountExpiryNotificationProvider(
        lead=timedelta(days=3), tz=pytz.utc, hour=9, clock=clock, **kwargs
    )
    provider.set_expiry(expiry)
    return provider


def test_key_is_fixed() -> None:
    assert AccountExpiryNotificationProvider().key == ACCOUNT_EXPIRY_NOTIFICATION_KEY == "account-expiry"


def test_early_warning_is_scheduled(clock: FrozenClock) -> None:
    provider = _provider(clock, D + timedelta(days=10))

    request = provider.system_notification()

    assert not provider.should_clear_pending_system_request()
    assert not provider.should_clear_delivered_system_request()
    assert request is not None
    assert request.identifier == "account-expiry"
    assert request.fire_at == datetime(2026, 3, 17, 9, 0, tzinfo=timezone.utc)
    assert request.sound is True
    assert request.body
    assert provider.in_app_notification() is None


def test_last_days_show_in_app_warning_only(clock: FrozenClock) -> None:
    provider = _provider(clock, D + timedelta(days=2))

    banner = provider.in_app_notification()

    assert provider.system_notification() is None
    assert banner is not None
    assert banner.identifier == "account-expiry"
    assert banner.severity is InAppSeverity.warning
    assert banner.body == "2 days left. Buy more credit."


def test_logged_out_clears_everything(clock: FrozenClock) -> None:
    provider = _provider(clock, None)

    assert provider.should_clear_pending_system_request()
    assert provider.should_clear_delivered_system_request()
    assert provider.system_notification() is None
    assert provider.in_app_notification() is None


def test_system_boundary_at_exact_threshold() -> None:
    expiry = D + timedelta(days=3)

    assert _provider(FrozenClock(D), expiry).system_notification() is None
    assert _provider(FrozenClock(D - timedelta(seconds=1)), expiry).system_notification() is not None


@pytest.mark.parametrize(
    "now, shown",
    [
        (D - timedelta(seconds=1), False),   # before the window
        (D, True),                           # window opens exactly 3 days out
        (D + timedelta(days=2), True),
        (D + timedelta(days=3), True),       # the expiry instant itself
        (D + timedelta(days=3, seconds=1), False),
    ],
)
def test_in_app_window_is_closed(now: datetime, shown: bool) -> None:
    provider = _provider(FrozenClock(now), D + timedelta(days=3))

    assert (provider.in_app_notification() is not None) is shown


def test_in_app_body_at_expiry_instant(clock: FrozenClock) -> None:
    provider = _provider(clock, D)

    assert provider.in_app_notification().body == "0 minutes left. Buy more credit."


def test_messages_come_from_collaborator(clock: FrozenClock) -> None:
    def messages(key: str, **kwargs: str) -> str:
        return f"{key}:{kwargs.get('duration', '')}"

    provider = _provider(clock, D + timedelta(hours=5), messages=messages)
    banner = provider.in_app_notification()

    assert banner.title == "ACCOUNT_EXPIRY_INAPP_NOTIFICATION_TITLE:"
    assert banner.body == "ACCOUNT_EXPIRY_INAPP_NOTIFICATION_BODY:5 hours"


def test_initial_expiry_is_read_from_account(clock: FrozenClock) -> None:
    account = Account(token="1234", expiry=D + timedelta(days=10))

    provider = AccountExpiryNotificationProvider(account, clock=clock)

    assert provider.expiry == D + timedelta(days=10)


def test_naive_expiry_is_treated_as_utc(clock: FrozenClock) -> None:
    provider = _provider(clock)
    provider.set_expiry((D + timedelta(days=2)).replace(tzinfo=None))

    assert provider.expiry == D + timedelta(days=2)
    assert provider.in_app_notification() is not None


def test_account_events_update_expiry_and_invalidate(clock: FrozenClock) -> None:
    account = Account()
    provider = AccountExpiryNotificationProvider(account, clock=clock)
    handle = RecordingHandle()
    provider.attach(handle)

    account.login("1234", D + timedelta(days=10))
    assert provider.expiry == D + timedelta(days=10)

    account.update_expiry(D + timedelta(days=40))
    assert provider.expiry == D + timedelta(days=40)

    account.logout()
    assert provider.expiry is None

    assert handle.posted == ["account-expiry"] * 3


def test_invalidate_without_manager_is_harmless(clock: FrozenClock) -> None:
    provider = _provider(clock)

    provider.set_expiry(D + timedelta(days=1))

    assert provider.expiry == D + timedelta(days=1)
