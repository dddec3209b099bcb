"""
Account event source.

The account subsystem proper lives elsewhere; this holds the current
session token and expiry and fans account events out to observers.
Events may be raised from any thread.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class AccountObserver(Protocol):
    def account_did_update_expiry(self, account: "Account", expiry: datetime) -> None: ...

    def account_did_login(self, account: "Account", token: str, expiry: datetime) -> None: ...

    def account_did_logout(self, account: "Account") -> None: ...


class Account:
    def __init__(self, token: Optional[str] = None, expiry: Optional[datetime] = None) -> None:
        self._lock = threading.Lock()
        self._token = token
        self._expiry = expiry
        self._observers: list[AccountObserver] = []

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def expiry(self) -> Optional[datetime]:
        return self._expiry

    @property
    def is_logged_in(self) -> bool:
        return self._token is not None

    def add_observer(self, observer: AccountObserver) -> None:
        with self._lock:
            if observer not in self._observers:
                self._observers.append(observer)

    def remove_observer(self, observer: AccountObserver) -> None:
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    def login(self, token: str, expiry: datetime) -> None:
        with self._lock:
            self._token = token
            self._expiry = expiry
            observers = list(self._observers)
        logger.info("Account logged in; expiry=%s", expiry.isoformat())
        for observer in observers:
            observer.account_did_login(self, token, expiry)

    def update_expiry(self, expiry: datetime) -> None:
        with self._lock:
            self._expiry = expiry
            observers = list(self._observers)
        logger.info("Account expiry updated to %s", expiry.isoformat())
        for observer in observers:
            observer.account_did_update_expiry(self, expiry)

    def logout(self) -> None:
        with self._lock:
            self._token = None
            self._expiry = None
            observers = list(self._observers)
        logger.info("Account logged out")
        for observer in observers:
            observer.account_did_logout(self)
