import smtplib

import pytest

from infrastructure.notifications import CeleryEmailNotifier
from infrastructure.tasks.tasks import email as email_tasks


class RecordingDispatcher:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls = []

    def send_notification_email(self, recipient, template, data):
        if self.fail:
            raise ConnectionError("broker unreachable")
        self.calls.append((recipient, template, data))


@pytest.mark.asyncio
async def test_notifier_dispatches_jsonable_payload():
    dispatcher = RecordingDispatcher()
    sent = await CeleryEmailNotifier(dispatcher).send(
        "amina@example.com", "payment_confirmation", {"amount": 12, "invoice_id": None, "when": object()}
    )

    assert sent is True
    recipient, template, data = dispatcher.calls[0]
    assert (recipient, template) == ("amina@example.com", "payment_confirmation")
    assert data["amount"] == 12
    assert data["invoice_id"] is None
    assert isinstance(data["when"], str)


@pytest.mark.asyncio
async def test_notifier_without_email_returns_false():
    dispatcher = RecordingDispatcher()
    assert await CeleryEmailNotifier(dispatcher).send("cust_1", "payment_failed", {}) is False
    assert dispatcher.calls == []


@pytest.mark.asyncio
async def test_notifier_never_raises():
    assert await CeleryEmailNotifier(RecordingDispatcher(fail=True)).send("a@b.io", "payment_failed", {}) is False


def test_render_email_fills_missing_keys():
    subject, body = email_tasks.render_email(
        "booking_confirmation", {"booking_id": "b1", "service_type": "HEALTH", "status": "CONFIRMED"}
    )
    assert subject == "Your booking b1"
    assert "HEALTH booking b1" in body
    assert "is CONFIRMED" in body


def test_render_unknown_template():
    with pytest.raises(KeyError):
        email_tasks.render_email("newsletter", {})


def test_task_renders_and_delivers(monkeypatch):
    delivered = []
    monkeypatch.setattr(email_tasks, "_deliver", lambda *args: delivered.append(args))

    email_tasks.send_notification_email.apply(
        kwargs={"recipient": "a@b.io", "template": "payment_failed", "data": {"amount": "5", "error": "declined"}}
    )

    recipient, subject, body = delivered[0]
    assert recipient == "a@b.io"
    assert subject == "Payment failed"
    assert "Reason: declined" in body


def test_deliver_uses_starttls(monkeypatch):
    events = []

    class FakeSMTP:
        def __init__(self, host, port, timeout):
            events.append(("connect", host, port))

        def starttls(self, context):
            events.append(("starttls",))

        def login(self, user, password):
            events.append(("login", user))

        def sendmail(self, sender, recipients, message):
            events.append(("sendmail", recipients))

        def quit(self):
            events.append(("quit",))

    smtp = email_tasks.settings.smtp
    monkeypatch.setattr(smtp, "port", 587)
    monkeypatch.setattr(smtp, "use_tls", True)
    monkeypatch.setattr(smtp, "username", "mailer")
    monkeypatch.setattr(smtp, "password", "pw")
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)

    email_tasks._deliver("a@b.io", "Hi", "Body")

    assert [e[0] for e in events] == ["connect", "starttls", "login", "sendmail", "quit"]
    assert events[3] == ("sendmail", ["a@b.io"])


def test_deliver_closes_session_when_starttls_fails(monkeypatch):
    events = []

    class NoTLS:
        def __init__(self, host, port, timeout):
            events.append("connect")

        def starttls(self, context):
            raise smtplib.SMTPNotSupportedError("STARTTLS extension not supported by server.")

        def sendmail(self, sender, recipients, message):
            events.append("sendmail")

        def quit(self):
            events.append("quit")

    smtp = email_tasks.settings.smtp
    monkeypatch.setattr(smtp, "port", 587)
    monkeypatch.setattr(smtp, "use_tls", True)
    monkeypatch.setattr(smtplib, "SMTP", NoTLS)

    with pytest.raises(smtplib.SMTPNotSupportedError):
        email_tasks._deliver("a@b.io", "Hi", "Body")

    assert events == ["connect", "quit"]
