"""
Notification outbox: enqueue in the request transaction, deliver later.

enqueue_* only add a row to the session; the caller's commit makes the
intent durable together with the change that caused it. dispatch_pending
sends rows through the mailer with retry, and the background loop below
calls it every OUTBOX_INTERVAL_SECONDS.

A failed send never fails the originating request.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from quickmed.core.config import settings
from quickmed.db.session import SessionLocal
from quickmed.models.notification import (
    Notification,
    NOTIFICATION_FAILED,
    NOTIFICATION_PENDING,
    NOTIFICATION_SENDING,
    NOTIFICATION_SENT,
)
from quickmed.services import email_templates, mailer

logger = logging.getLogger(__name__)


def _enqueue(db: Session, kind: str, recipient: str, subject: str, body: str) -> Optional[Notification]:
    if not recipient:
        logger.warning(f"[Outbox] No recipient configured for '{kind}' notification, skipped")
        return None
    notification = Notification(
        kind=kind,
        recipient=recipient,
        subject=subject,
        body=body,
        status=NOTIFICATION_PENDING,
        attempts=0,
    )
    db.add(notification)
    logger.info(f"[Outbox] Queued {kind} for {recipient}: {subject}")
    return notification


def enqueue_order_request(db: Session, order, customer_email: str) -> Optional[Notification]:
    items = [
        {"name": i.name, "quantity": i.quantity, "price": float(i.price)}
        for i in order.items
    ]
    subject, body = email_templates.order_request(
        order.order_number, order.customer, customer_email, float(order.total_amount), items
    )
    return _enqueue(db, "order_request", settings.ADMIN_EMAIL, subject, body)


def enqueue_low_stock(db: Session, products) -> Optional[Notification]:
    rows = [{"name": p.name, "brand": p.brand, "total_stock": p.total_stock} for p in products]
    subject, body = email_templates.low_stock(rows)
    return _enqueue(db, "low_stock", settings.ADMIN_EMAIL, subject, body)


def enqueue_out_of_stock(db: Session, product_name: str, order_number: str,
                         requested: int, available: int) -> Optional[Notification]:
    subject, body = email_templates.out_of_stock(product_name, order_number, requested, available)
    return _enqueue(db, "out_of_stock", settings.ADMIN_EMAIL, subject, body)


def enqueue_restock_request(db: Session, recommendations: List[dict]) -> Optional[Notification]:
    subject, body = email_templates.restock_request(recommendations)
    return _enqueue(db, "restock_request", settings.SUPPLIER_EMAIL, subject, body)


def enqueue_configuration_check(db: Session) -> Optional[Notification]:
    subject, body = email_templates.configuration_check()
    return _enqueue(db, "test", settings.ADMIN_EMAIL, subject, body)


def _claim(db: Session, notification: Notification) -> bool:
    """Guarded pending -> sending. False when another pass claimed it first."""
    claimed = (
        db.query(Notification)
        .filter(
            Notification.id == notification.id,
            Notification.status == NOTIFICATION_PENDING,
            Notification.attempts == notification.attempts,
        )
        .update(
            {
                Notification.status: NOTIFICATION_SENDING,
                Notification.attempts: Notification.attempts + 1,
            },
            synchronize_session=False,
        )
    )
    db.commit()
    if claimed != 1:
        return False
    db.refresh(notification)
    return True


def dispatch_pending(db: Session, limit: Optional[int] = None) -> dict:
    """
    Try to send pending notifications, oldest first.

    A row is claimed (pending -> sending) and committed before the mailer
    runs, so an overlapping pass skips it. Each row is committed on its own
    so one bad recipient does not hold back the rest.

    Returns:
        dict with sent / failed / retrying counts for this run
    """
    limit = limit or settings.OUTBOX_BATCH_SIZE
    pending = (
        db.query(Notification)
        .filter(Notification.status == NOTIFICATION_PENDING)
        .order_by(Notification.created_at.asc(), Notification.id.asc())
        .limit(limit)
        .all()
    )
    summary = {"sent": 0, "failed": 0, "retrying": 0}

    for notification in pending:
        if not _claim(db, notification):
            logger.info(f"[Outbox] Notification #{notification.id} already claimed, skipped")
            continue
        try:
            mailer.send_email(notification.recipient, notification.subject, notification.body)
        except Exception as e:
            notification.last_error = f"{type(e).__name__}: {e}"
            if notification.attempts >= settings.OUTBOX_MAX_ATTEMPTS:
                notification.status = NOTIFICATION_FAILED
                summary["failed"] += 1
                logger.error(
                    f"[Outbox] Giving up on notification #{notification.id} "
                    f"after {notification.attempts} attempts: {notification.last_error}"
                )
            else:
                notification.status = NOTIFICATION_PENDING
                summary["retrying"] += 1
                logger.warning(
                    f"[Outbox] Notification #{notification.id} attempt {notification.attempts} failed: "
                    f"{notification.last_error}"
                )
        else:
            notification.status = NOTIFICATION_SENT
            notification.sent_at = datetime.now(timezone.utc)
            notification.last_error = None
            summary["sent"] += 1
        db.commit()

    if pending:
        logger.info(f"[Outbox] Dispatch run: {summary}")
    return summary


def release_stale_claims(db: Session) -> int:
    """
    Put rows left in 'sending' by a process that died mid-send back to pending.

    Only safe while no dispatch pass is running, so it is called once before
    the background loop starts.
    """
    released = (
        db.query(Notification)
        .filter(Notification.status == NOTIFICATION_SENDING)
        .update({Notification.status: NOTIFICATION_PENDING}, synchronize_session=False)
    )
    db.commit()
    if released:
        logger.warning(f"[Outbox] Released {released} notification(s) stuck in sending")
    return released


def dispatch_once() -> dict:
    """Run one dispatch pass with its own session. Used by the background loop."""
    db = SessionLocal()
    try:
        return dispatch_pending(db)
    finally:
        db.close()


# ============================================================================
# BACKGROUND TASK - Runs in asyncio loop alongside FastAPI
# ============================================================================

_dispatcher_running = False
_dispatcher_task: Optional[asyncio.Task] = None


async def _dispatcher_loop():
    global _dispatcher_running
    _dispatcher_running = True
    logger.info(f"[Outbox] Dispatcher started. Interval: {settings.OUTBOX_INTERVAL_SECONDS}s")

    while _dispatcher_running:
        try:
            # SMTP is blocking, keep it off the event loop
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, dispatch_once)
        except Exception as e:
            logger.error(f"[Outbox] Dispatcher error: {e}")

        await asyncio.sleep(settings.OUTBOX_INTERVAL_SECONDS)


def start_outbox_dispatcher():
    """Start the background dispatcher. Called from FastAPI lifespan."""
    global _dispatcher_task
    try:
        db = SessionLocal()
        try:
            release_stale_claims(db)
        finally:
            db.close()
        _dispatcher_task = asyncio.create_task(_dispatcher_loop())
        logger.info("[Outbox] Notification dispatcher initialized")
    except Exception as e:
        logger.error(f"[Outbox] Failed to start dispatcher: {e}")


def stop_outbox_dispatcher():
    """Stop the dispatcher. Called from FastAPI shutdown."""
    global _dispatcher_running, _dispatcher_task
    _dispatcher_running = False
    if _dispatcher_task is not None:
        _dispatcher_task.cancel()
        _dispatcher_task = None
    logger.info("[Outbox] Dispatcher stopped")
