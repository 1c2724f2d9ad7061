# src/cryptoadvisor/interfaces/api/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cryptoadvisor.config import settings
from cryptoadvisor.boot import build_services
from cryptoadvisor.logging_conf import setup_logging
from cryptoadvisor.infrastructure.db.uow import create_tables
from cryptoadvisor.infrastructure.sched.alert_scheduler import AlertScheduler
from cryptoadvisor.interfaces.api.routers import alerts as alerts_router
from cryptoadvisor.interfaces.api.routers import notifications as notifications_router
from cryptoadvisor.interfaces.api.routers import users as users_router
from cryptoadvisor.interfaces.api.routers import watchlist as watchlist_router
from cryptoadvisor.interfaces.api.metrics import router as metrics_router

log = logging.getLogger(__name__)

app = FastAPI(title="Crypto Advisor Smart Alerts API", version="1.0.0")
app.state.services = None

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def on_startup():
    setup_logging()
    log.info("Application startup sequence initiated...")

    # Production schemas are managed by Alembic; local SQLite is created on the fly.
    if settings.DATABASE_URL.startswith("sqlite"):
        create_tables()

    app.state.services = build_services()

    scheduler: AlertScheduler = app.state.services.get("alert_scheduler")
    if scheduler and settings.ALERT_SCHEDULER_ENABLED:
        scheduler.start()
    log.info("Application startup complete.")


@app.on_event("shutdown")
async def on_shutdown():
    services = app.state.services or {}
    scheduler: AlertScheduler = services.get("alert_scheduler")
    if scheduler and scheduler.is_running:
        scheduler.stop()


@app.get("/")
def root(): return {"message": "Crypto Advisor API Running"}

@app.get("/health")
def health_check(): return {"status": "ok"}


app.include_router(alerts_router.router)
app.include_router(notifications_router.router)
app.include_router(users_router.router)
app.include_router(watchlist_router.router)
if settings.METRICS_ENABLED:
    app.include_router(metrics_router)
