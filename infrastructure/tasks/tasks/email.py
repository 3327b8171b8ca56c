"""Email related Celery tasks"""
from __future__ import annotations

import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from celery import shared_task

from ..utils.base_task import BaseTask
from core.config import settings
from core.logging_config import get_logger

logger = get_logger(__name__)


# template -> (subject, body); bodies use str.format_map over the payload
EMAIL_TEMPLATES: dict[str, tuple[str, str]] = {
    "payment_confirmation": (
        "Payment received",
        "We received your payment of {amount} {currency} for {service_type} service {service_id}.\n"
        "Transaction: {transaction_id}\nInvoice: {invoice_id}\n",
    ),
    "payment_failed": (
        "Payment failed",
        "Your payment of {amount} {currency} for {service_type} service {service_id} could not be completed.\n"
        "Reason: {error}\n",
    ),
    "booking_confirmation": (
        "Your booking {booking_id}",
        "Your {service_type} booking {booking_id} on {appointment_date} is {status}.\n",
    ),
    "booking_received": (
        "New booking {booking_id}",
        "A {service_type} booking {booking_id} was made for {appointment_date} ({timeslot}).\n",
    ),
}


class _Defaulting(dict):
    def __missing__(self, key: str) -> str:
        return ""


def render_email(template: str, data: dict[str, Any]) -> tuple[str, str]:
    if template not in EMAIL_TEMPLATES:
        raise KeyError(f"Unknown email template: {template}")
    subject, body = EMAIL_TEMPLATES[template]
    values = _Defaulting({k: "" if v is None else v for k, v in data.items()})
    return subject.format_map(values), body.format_map(values)


def _deliver(recipient: str, subject: str, body: str) -> None:
    smtp = settings.smtp
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = smtp.from_address
    msg["To"] = recipient
    msg.attach(MIMEText(body, "plain", "utf-8"))

    context = ssl.create_default_context()
    if smtp.port == 465:
        server = smtplib.SMTP_SSL(smtp.host, smtp.port, context=context, timeout=smtp.timeout)
    else:
        server = smtplib.SMTP(smtp.host, smtp.port, timeout=smtp.timeout)
    try:
        if smtp.use_tls and smtp.port != 465:
            server.starttls(context=context)
        if smtp.username and smtp.password:
            server.login(smtp.username, smtp.password)
        server.sendmail(smtp.from_address, [recipient], msg.as_string())
    finally:
        try:
            server.quit()
        except smtplib.SMTPServerDisconnected:
            # the server already dropped the session; just release the socket
            server.close()


@shared_task(
    bind=True,
    base=BaseTask,
    autoretry_for=(smtplib.SMTPException, OSError),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
    retry_kwargs={"max_retries": 5},
)
def send_notification_email(self, recipient: str, template: str, data: dict[str, Any]) -> None:
    """Render a notification template and send it over SMTP."""
    subject, body = render_email(template, data)
    _deliver(recipient, subject, body)
    logger.info("notification_email_sent", recipient=recipient, template=template)
