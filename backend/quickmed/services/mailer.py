"""SMTP delivery. Only the outbox dispatcher calls send_email."""
import logging
import smtplib
from email.message import EmailMessage

from quickmed.core.config import settings

logger = logging.getLogger(__name__)


class MailerNotConfigured(RuntimeError):
    pass


def send_email(recipient: str, subject: str, html_body: str) -> None:
    """
    Send one HTML email through the configured relay.

    Raises:
        MailerNotConfigured: EMAIL_USER / EMAIL_PASSWORD missing
        smtplib.SMTPException / OSError: delivery failed
    """
    if not settings.email_configured:
        raise MailerNotConfigured("Email configuration is missing. Set EMAIL_USER and EMAIL_PASSWORD")

    msg = EmailMessage()
    msg["From"] = settings.EMAIL_USER
    msg["To"] = recipient
    msg["Subject"] = subject
    msg.set_content("This message requires an HTML capable mail client.")
    msg.add_alternative(html_body, subtype="html")

    if settings.EMAIL_SECURE:
        with smtplib.SMTP_SSL(settings.EMAIL_HOST, settings.EMAIL_PORT, timeout=30) as smtp:
            smtp.login(settings.EMAIL_USER, settings.EMAIL_PASSWORD)
            smtp.send_message(msg)
    else:
        with smtplib.SMTP(settings.EMAIL_HOST, settings.EMAIL_PORT, timeout=30) as smtp:
            smtp.starttls()
            smtp.login(settings.EMAIL_USER, settings.EMAIL_PASSWORD)
            smtp.send_message(msg)

    logger.info(f"Email sent to {recipient}: {subject}")
