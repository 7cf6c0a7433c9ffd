"""Notification outbox: queued with the request, delivered later with retries."""
import smtplib

import pytest

from quickmed.core.config import settings
from quickmed.models.notification import Notification
from quickmed.services import mailer, notification_service

NOTIFICATIONS = "/api/v1/notifications"


@pytest.fixture
def failing_mailer(monkeypatch):
    calls = []

    def refuse(recipient, subject, html_body):
        calls.append(recipient)
        raise smtplib.SMTPRecipientsRefused({recipient: (550, b"mailbox unavailable")})

    monkeypatch.setattr(mailer, "send_email", refuse)
    return calls


def _queue_check(db):
    notification = notification_service.enqueue_configuration_check(db)
    db.commit()
    return notification


def test_dispatch_sends_and_marks_sent(db, sent_emails):
    notification = _queue_check(db)

    summary = notification_service.dispatch_pending(db)

    assert summary == {"sent": 1, "failed": 0, "retrying": 0}
    db.refresh(notification)
    assert notification.status == "sent"
    assert notification.attempts == 1
    assert notification.sent_at is not None
    assert sent_emails[0][0] == "alerts@quickmed.test"

    assert notification_service.dispatch_pending(db) == {"sent": 0, "failed": 0, "retrying": 0}
    assert len(sent_emails) == 1


def test_overlapping_dispatch_sends_once(db, session_factory, monkeypatch):
    notification = _queue_check(db)
    sent = []
    overlapping = []

    def send_while_another_pass_runs(recipient, subject, html_body):
        other = session_factory()
        try:
            overlapping.append(notification_service.dispatch_pending(other))
        finally:
            other.close()
        sent.append(recipient)

    monkeypatch.setattr(mailer, "send_email", send_while_another_pass_runs)

    summary = notification_service.dispatch_pending(db)

    assert len(sent) == 1
    assert summary["sent"] == 1
    assert overlapping == [{"sent": 0, "failed": 0, "retrying": 0}]
    db.refresh(notification)
    assert notification.status == "sent"
    assert notification.attempts == 1


def test_stale_sending_rows_are_released(db, sent_emails):
    notification = _queue_check(db)
    notification.status = "sending"
    notification.attempts = 1
    db.commit()

    assert notification_service.dispatch_pending(db)["sent"] == 0
    assert notification_service.release_stale_claims(db) == 1

    assert notification_service.dispatch_pending(db)["sent"] == 1
    db.refresh(notification)
    assert notification.attempts == 2
    assert len(sent_emails) == 1


def test_failures_retry_then_give_up(db, failing_mailer, monkeypatch):
    monkeypatch.setattr(settings, "OUTBOX_MAX_ATTEMPTS", 2)
    notification = _queue_check(db)

    assert notification_service.dispatch_pending(db)["retrying"] == 1
    db.refresh(notification)
    assert notification.status == "pending"
    assert "SMTPRecipientsRefused" in notification.last_error

    assert notification_service.dispatch_pending(db)["failed"] == 1
    db.refresh(notification)
    assert notification.status == "failed"
    assert notification.attempts == 2

    notification_service.dispatch_pending(db)
    assert len(failing_mailer) == 2


def test_unconfigured_smtp_is_a_failed_attempt(db, monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_USER", "")
    monkeypatch.setattr(settings, "EMAIL_PASSWORD", "")
    notification = _queue_check(db)

    notification_service.dispatch_pending(db)

    db.refresh(notification)
    assert notification.attempts == 1
    assert notification.last_error.startswith("MailerNotConfigured")


def test_missing_recipient_skips_queueing(db, monkeypatch):
    monkeypatch.setattr(settings, "SUPPLIER_EMAIL", "")
    assert notification_service.enqueue_restock_request(db, []) is None
    db.commit()
    assert db.query(Notification).count() == 0


def test_email_bodies_escape_user_text(db):
    notification_service.enqueue_out_of_stock(db, "<script>x</script>", "ORD-1", 5, 0)
    db.commit()
    body = db.query(Notification).one().body
    assert "<script>" not in body
    assert "&lt;script&gt;" in body


def test_admin_can_list_and_flush_outbox(client, admin_headers, customer_headers, sent_emails):
    assert client.get(f"{NOTIFICATIONS}", headers=customer_headers).status_code == 403
    assert client.get("/api/v1/products/test-email", headers=admin_headers).status_code == 202

    listed = client.get(NOTIFICATIONS, params={"status": "pending"}, headers=admin_headers).json()
    assert listed["results"] == 1
    assert listed["data"][0]["kind"] == "test"

    resp = client.post(f"{NOTIFICATIONS}/dispatch", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"] == {"sent": 1, "failed": 0, "retrying": 0}
    assert len(sent_emails) == 1
