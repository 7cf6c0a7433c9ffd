"""
QuickMed Pharmacy backend.

REST API for the storefront (catalog, cart, checkout, prescriptions) and the
admin console (batches, suppliers, orders, feedback, support, reports).
Every route lives under /api/v1 and answers with the same envelope:

    {"status": "success", "data": ..., "results": n}
    {"status": "fail" | "error", "message": "..."}

Emails are never sent inline; they go through the notification outbox.
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from quickmed.api.routes import (
    auth,
    batches,
    cart,
    feedback,
    notifications,
    orders,
    prescriptions,
    products,
    profile,
    reports,
    suppliers,
    support,
    users,
)
from quickmed.core.config import settings
from quickmed.core.exceptions import (
    StockError,
    http_exception_handler,
    stock_error_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from quickmed.db.init_db import init_db
from quickmed.services.notification_service import start_outbox_dispatcher, stop_outbox_dispatcher

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: create tables, seed the admin, start the outbox dispatcher.
    Shutdown: stop the dispatcher.
    """
    try:
        logger.info("Initializing database...")
        init_db()
        Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
        if settings.OUTBOX_ENABLED:
            start_outbox_dispatcher()
        else:
            logger.warning("Notification outbox dispatcher disabled (OUTBOX_ENABLED=false)")
    except Exception as e:
        logger.error(f"Startup error: {e}", exc_info=e)
        raise

    yield

    if settings.OUTBOX_ENABLED:
        stop_outbox_dispatcher()


app = FastAPI(
    title="QuickMed Pharmacy API",
    description="Storefront and admin API: catalog, batches, orders, prescriptions, reports.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin"],
    max_age=600,
    expose_headers=["Content-Type", "Content-Disposition"],
)


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StockError, stock_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(auth.router, prefix=f"{API_PREFIX}/auth", tags=["auth"])
app.include_router(users.router, prefix=f"{API_PREFIX}/users", tags=["users"])
app.include_router(profile.router, prefix=f"{API_PREFIX}/profile", tags=["profile"])
app.include_router(products.router, prefix=f"{API_PREFIX}/products", tags=["products"])
app.include_router(batches.router, prefix=f"{API_PREFIX}/batches", tags=["batches"])
app.include_router(cart.router, prefix=f"{API_PREFIX}/cart", tags=["cart"])
app.include_router(orders.router, prefix=f"{API_PREFIX}/orders", tags=["orders"])
app.include_router(suppliers.router, prefix=f"{API_PREFIX}/suppliers", tags=["suppliers"])
app.include_router(feedback.router, prefix=f"{API_PREFIX}/feedback", tags=["feedback"])
app.include_router(support.router, prefix=f"{API_PREFIX}/support", tags=["support"])
app.include_router(prescriptions.router, prefix=f"{API_PREFIX}/prescriptions", tags=["prescriptions"])
app.include_router(reports.router, prefix=f"{API_PREFIX}/reports", tags=["reports"])
app.include_router(notifications.router, prefix=f"{API_PREFIX}/notifications", tags=["notifications"])

app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")


@app.get("/health")
def health():
    return {"status": "ok", "outbox": "enabled" if settings.OUTBOX_ENABLED else "disabled"}
