"""
Notification Manager.

Owns the provider registry and reconciles what the providers want against
the system notification store and the in-app notification feed.

  update_notifications()  — full pass over every provider:
       • clear pending/delivered requests providers ask to clear
       • request permission, then add every new system request
       • replace and publish the in-app list
  invalidation            — a provider posts its key on the channel; only
                            that provider is re-queried and only its in-app
                            entry is patched.

Every mutation of the in-app list happens under one asyncio.Lock. Store
calls are queued as batches (clears, then permission, then adds) that run
in the background one after another, in the order their passes took the
lock. Failures are logged per request and never abort a pass.
"""
from __future__ import annotations

import asyncio
import dataclasses
import functools
import logging
from typing import Awaitable, Iterable, Optional, Protocol, Sequence, TypeVar

from notification_engine.core.config import settings
from notification_engine.models.notification import (
    AuthorizationOption,
    AuthorizationStatus,
    InAppNotificationDescriptor,
    NotificationDescriptor,
)
from notification_engine.notifications.provider import NotificationProvider
from notification_engine.store.base import NotificationStore

logger = logging.getLogger(__name__)

PERMISSION_OPTIONS = frozenset(
    {AuthorizationOption.alert, AuthorizationOption.sound, AuthorizationOption.provisional}
)

_GRANTED_STATUSES = (AuthorizationStatus.authorized, AuthorizationStatus.provisional)

_D = TypeVar("_D", NotificationDescriptor, InAppNotificationDescriptor)


class ProviderRegistrationError(ValueError):
    pass


class InAppNotificationObserver(Protocol):
    def on_in_app_notifications_updated(
        self, descriptors: Sequence[InAppNotificationDescriptor]
    ) -> None: ...


def merge_in_app_descriptors(
    previous: Sequence[InAppNotificationDescriptor],
    keys: Iterable[str],
    key: str,
    descriptor: Optional[InAppNotificationDescriptor],
) -> list[InAppNotificationDescriptor]:
    """
    Patch the entry for `key` in `previous`, ordered by `keys`.

    Entries of other keys are carried over as-is; a None `descriptor`
    drops the entry for `key`.
    """
    by_key = {d.identifier: d for d in previous}
    if descriptor is None:
        by_key.pop(key, None)
    else:
        by_key[key] = descriptor
    return [by_key[k] for k in keys if k in by_key]


class _InvalidationChannel:
    """
    Queue of provider keys awaiting re-query.

    `post` may be called from any thread; keys are enqueued on the owning
    loop, and a key that is already queued is not queued twice.
    """

    def __init__(self) -> None:
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue[str]] = None
        self._queued: set[str] = set()

    @property
    def is_open(self) -> bool:
        return self._loop is not None

    def open(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._queue = asyncio.Queue()
        self._queued.clear()

    def close(self) -> None:
        self._loop = None

    def post(self, key: str) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("Dropping invalidation for %s; manager not started", key)
            return
        loop.call_soon_threadsafe(self._enqueue, key)

    def _enqueue(self, key: str) -> None:
        if self._queue is None or key in self._queued:
            return
        self._queued.add(key)
        self._queue.put_nowait(key)

    async def get(self) -> str:
        assert self._queue is not None
        key = await self._queue.get()
        self._queued.discard(key)
        return key

    def task_done(self) -> None:
        assert self._queue is not None
        self._queue.task_done()

    async def join(self) -> None:
        if self._queue is not None:
            await self._queue.join()


class NotificationManager:
    def __init__(
        self,
        store: NotificationStore,
        *,
        observers: Iterable[InAppNotificationObserver] = (),
        dedupe_pending: Optional[bool] = None,
    ) -> None:
        self._store = store
        self._observers = list(observers)
        self._dedupe_pending = (
            settings.DEDUPE_PENDING_REQUESTS if dedupe_pending is None else dedupe_pending
        )
        self._providers: list[NotificationProvider] = []
        self._in_app: list[InAppNotificationDescriptor] = []
        self._lock = asyncio.Lock()
        self._channel = _InvalidationChannel()
        self._consumer: Optional[asyncio.Task] = None
        self._background: set[asyncio.Future] = set()
        self._store_tail: Optional[asyncio.Future] = None

    # ─────────────────────────────────────────────────────────────────────────
    # Registry & observers
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def providers(self) -> tuple[NotificationProvider, ...]:
        return tuple(self._providers)

    @property
    def in_app_notifications(self) -> list[InAppNotificationDescriptor]:
        return list(self._in_app)

    def register_provider(self, provider: NotificationProvider) -> None:
        key = provider.key
        if not key:
            raise ProviderRegistrationError("Provider key must not be empty")
        if self._provider_for(key) is not None:
            raise ProviderRegistrationError(f"Provider key {key!r} is already registered")
        self._providers.append(provider)
        provider.attach(self._channel)
        logger.debug("Registered notification provider %s", key)

    async def unregister_provider(self, key: str) -> Optional[NotificationProvider]:
        async with self._lock:
            provider = self._provider_for(key)
            if provider is None:
                return None
            self._providers.remove(provider)
            provider.attach(None)
            if any(d.identifier == key for d in self._in_app):
                self._publish(
                    merge_in_app_descriptors(self._in_app, self._keys(), key, None)
                )
            logger.debug("Unregistered notification provider %s", key)
            return provider

    def add_observer(self, observer: InAppNotificationObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def remove_observer(self, observer: InAppNotificationObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Begin accepting provider invalidations on the running loop."""
        if self._consumer is not None:
            return
        self._channel.open(asyncio.get_running_loop())
        self._consumer = asyncio.create_task(
            self._consume_invalidations(), name="notification-invalidations"
        )

    async def close(self) -> None:
        self._channel.close()
        consumer, self._consumer = self._consumer, None
        if consumer is not None:
            consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass
        await self._drain_background()

    async def join(self) -> None:
        """Wait until queued invalidations and store calls have settled."""
        # Let callbacks posted from other threads reach the queue
        await asyncio.sleep(0)
        if self._channel.is_open:
            await self._channel.join()
        await self._drain_background()

    async def __aenter__(self) -> "NotificationManager":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ─────────────────────────────────────────────────────────────────────────
    # Full reconciliation
    # ─────────────────────────────────────────────────────────────────────────

    async def update_notifications(self) -> list[InAppNotificationDescriptor]:
        async with self._lock:
            pending_to_clear: set[str] = set()
            delivered_to_clear: set[str] = set()
            requests: list[NotificationDescriptor] = []
            in_app: list[InAppNotificationDescriptor] = []

            for provider in self._providers:
                key = provider.key

                if provider.supports_system_notifications:
                    if provider.should_clear_pending_system_request():
                        pending_to_clear.add(key)
                    if provider.should_clear_delivered_system_request():
                        delivered_to_clear.add(key)
                    request = provider.system_notification()
                    if request is not None:
                        requests.append(_keyed(key, request))

                if provider.supports_in_app_notifications:
                    descriptor = provider.in_app_notification()
                    if descriptor is not None:
                        in_app.append(_keyed(key, descriptor))

            self._enqueue_store_batch(
                frozenset(pending_to_clear),
                frozenset(delivered_to_clear),
                requests,
                always_ask_permission=True,
            )

            self._publish(in_app)
            logger.info(
                "Notification pass: %d providers, %d system requests, %d in-app notifications",
                len(self._providers),
                len(requests),
                len(in_app),
            )
            return list(in_app)

    # ─────────────────────────────────────────────────────────────────────────
    # Single-provider invalidation
    # ─────────────────────────────────────────────────────────────────────────

    async def _consume_invalidations(self) -> None:
        while True:
            key = await self._channel.get()
            try:
                await self._provider_did_invalidate(key)
            except Exception:
                logger.exception("Failed to process invalidation from provider %s", key)
            finally:
                self._channel.task_done()

    async def _provider_did_invalidate(self, key: str) -> None:
        async with self._lock:
            provider = self._provider_for(key)
            if provider is None:
                logger.debug("Ignoring invalidation from unregistered provider %s", key)
                return

            if provider.supports_system_notifications:
                request = provider.system_notification()
                self._enqueue_store_batch(
                    frozenset({key}) if provider.should_clear_pending_system_request() else None,
                    frozenset({key}) if provider.should_clear_delivered_system_request() else None,
                    [_keyed(key, request)] if request is not None else [],
                )

            if provider.supports_in_app_notifications:
                descriptor = provider.in_app_notification()
                if descriptor is not None:
                    descriptor = _keyed(key, descriptor)
                self._publish(
                    merge_in_app_descriptors(self._in_app, self._keys(), key, descriptor)
                )

    # ─────────────────────────────────────────────────────────────────────────
    # Store interaction
    # ─────────────────────────────────────────────────────────────────────────

    def _enqueue_store_batch(
        self,
        pending_to_clear: Optional[frozenset[str]],
        delivered_to_clear: Optional[frozenset[str]],
        requests: list[NotificationDescriptor],
        *,
        always_ask_permission: bool = False,
    ) -> None:
        # Called under the lock, so batches chain in the order callers took it
        previous = self._store_tail
        self._store_tail = self._spawn(
            self._run_store_batch(
                previous,
                pending_to_clear,
                delivered_to_clear,
                requests,
                always_ask_permission,
            ),
            "apply notification store changes",
        )

    async def _run_store_batch(
        self,
        previous: Optional[asyncio.Future],
        pending_to_clear: Optional[frozenset[str]],
        delivered_to_clear: Optional[frozenset[str]],
        requests: list[NotificationDescriptor],
        always_ask_permission: bool,
    ) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])

        clears = []
        if pending_to_clear is not None:
            clears.append(
                _logged(
                    self._store.remove_pending(pending_to_clear),
                    f"remove pending notification requests {sorted(pending_to_clear)}",
                )
            )
        if delivered_to_clear is not None:
            clears.append(
                _logged(
                    self._store.remove_delivered(delivered_to_clear),
                    f"remove delivered notifications {sorted(delivered_to_clear)}",
                )
            )
        if clears:
            await asyncio.gather(*clears)

        if not requests and not always_ask_permission:
            return

        if not await self._request_permission():
            logger.debug("Notification permission not granted; %d requests skipped", len(requests))
            return

        if self._dedupe_pending and requests:
            requests = await self._drop_already_pending(requests)

        await asyncio.gather(
            *(
                _logged(
                    self._store.add(request),
                    f"add notification request with identifier {request.identifier}",
                )
                for request in requests
            )
        )

    async def _request_permission(self) -> bool:
        status = await self._store.get_authorization_status()

        if status == AuthorizationStatus.not_determined:
            try:
                granted = await self._store.request_authorization(PERMISSION_OPTIONS)
            except Exception as exc:
                logger.error("Failed to obtain notification authorization: %s", exc)
                return False
            return bool(granted)

        # Denied, ephemeral and unknown statuses are all "not granted"
        return status in _GRANTED_STATUSES

    async def _drop_already_pending(
        self, requests: list[NotificationDescriptor]
    ) -> list[NotificationDescriptor]:
        try:
            pending = {r.identifier: r for r in await self._store.list_pending()}
        except Exception as exc:
            logger.error("Failed to list pending notification requests: %s", exc)
            return requests
        return [r for r in requests if pending.get(r.identifier) != r]

    def _spawn(self, coro: Awaitable[None], description: str) -> asyncio.Future:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(functools.partial(self._finish_background, description))
        return task

    def _finish_background(self, description: str, task: asyncio.Future) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Failed to %s: %s", description, exc)

    async def _drain_background(self) -> None:
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ─────────────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────────────

    def _provider_for(self, key: str) -> Optional[NotificationProvider]:
        for provider in self._providers:
            if provider.key == key:
                return provider
        return None

    def _keys(self) -> list[str]:
        return [provider.key for provider in self._providers]

    def _publish(self, descriptors: list[InAppNotificationDescriptor]) -> None:
        self._in_app = list(descriptors)
        for observer in list(self._observers):
            try:
                observer.on_in_app_notifications_updated(list(self._in_app))
            except Exception:
                logger.exception("In-app notification observer %r failed", observer)


def _keyed(key: str, descriptor: _D) -> _D:
    if descriptor.identifier == key:
        return descriptor
    logger.warning(
        "Descriptor identifier %r does not match provider key %r; using the key",
        descriptor.identifier,
        key,
    )
    return dataclasses.replace(descriptor, identifier=key)


async def _logged(aw: Awaitable[object], description: str) -> None:
    try:
        await aw
    except Exception as exc:
        logger.error("Failed to %s: %s", description, exc)
