import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import create_db_and_tables
from app.services.payme_config import warn_if_mock_credentials
from app.routes import (
    admin,
    cron,
    notifications,
    payme,
    subscriptions,
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Run DB creation ONLY in local; elsewhere alembic owns the schema
    if settings.ENV == "local":
        create_db_and_tables()
    warn_if_mock_credentials(settings)
    yield

app = FastAPI(title="Course Platform Payments API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        settings.APP_URL,
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(payme.router, prefix="/payments/payme", tags=["Payme"])
app.include_router(subscriptions.router, prefix="/subscriptions", tags=["Subscriptions"])
app.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])
app.include_router(cron.router, prefix="/cron", tags=["Cron"])


@app.get("/")
def root():
    return {
        "payment_endpoints": [
            "/payments/payme/webhook", "/payments/payme/create"
        ],
        "subscription_endpoints": [
            "/subscriptions/me", "/subscriptions/courses/{course_id}/access"
        ],
        "notification_endpoints": [
            "/notifications", "/notifications/read"
        ],
        "admin_endpoints": [
            "/admin/purchases", "/admin/purchases/{purchase_id}/events",
            "/admin/subscriptions"
        ],
        "cron_endpoints": [
            "/cron/subscription-check"
        ],
    }
