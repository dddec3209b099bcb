import logging
from contextlib import asynccontextmanager
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from notification_engine.core.config import settings
from notification_engine.notifications.account_expiry import AccountExpiryNotificationProvider
from notification_engine.notifications.manager import NotificationManager
from notification_engine.routes.account import router as account_router
from notification_engine.routes.notifications import router as notifications_router
from notification_engine.scheduler import create_scheduler, schedule_notification_pass
from notification_engine.services.account import Account
from notification_engine.store.base import NotificationStore
from notification_engine.store.scheduled_push import ScheduledPushNotificationStore

logging.getLogger("notification_engine").setLevel(settings.LOG_LEVEL)

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"


def create_app(
    *,
    store: Optional[NotificationStore] = None,
    account: Optional[Account] = None,
    scheduler: Optional[AsyncIOScheduler] = None,
) -> FastAPI:
    scheduler = scheduler or create_scheduler()
    if store is None:
        store = ScheduledPushNotificationStore(
            scheduler, device_token=settings.FCM_DEVICE_TOKEN or None
        )
    account = account or Account()

    manager = NotificationManager(store)
    manager.register_provider(AccountExpiryNotificationProvider(account))

    # ─────────────────────────────────────────────────────────────────────────
    # Application lifespan  (startup / shutdown)
    # ─────────────────────────────────────────────────────────────────────────

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # ── Startup ──────────────────────────────────────────────────────────
        logger.info("Starting notification engine…")
        await manager.start()
        schedule_notification_pass(scheduler, manager)
        scheduler.start()

        try:
            await manager.update_notifications()
        except Exception as exc:
            logger.warning("Startup notification pass failed (non-fatal): %s", exc)

        yield   # application runs here

        # ── Shutdown ─────────────────────────────────────────────────────────
        logger.info("Shutting down notification engine…")
        scheduler.shutdown(wait=False)
        await manager.close()

    app = FastAPI(
        title="Notification Engine",
        description="Coordinates system and in-app notifications from providers",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.scheduler = scheduler
    app.state.store = store
    app.state.account = account
    app.state.manager = manager

    app.include_router(notifications_router, prefix="/notifications")
    app.include_router(account_router, prefix="/account")

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    return app


app = create_app()
