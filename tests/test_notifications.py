from __future__ import annotations

import smtplib
from datetime import datetime, timezone
from decimal import Decimal
from email.message import EmailMessage
from typing import List

import pytest

from app.schemas import Reading, ThresholdConfig
from notifications.message import build_alert_message, format_local, to_local
from notifications.smtp import SmtpNotifier
from services.errors import NotifyError

SUMMER_NOON = datetime(2024, 7, 1, 12, 0, tzinfo=timezone.utc)


class FakeSMTP:
    instances: List["FakeSMTP"] = []

    def __init__(self, host: str, port: int, timeout: float) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout
        self.started_tls = False
        self.login_args: tuple[str, str] | None = None
        self.messages: List[EmailMessage] = []
        FakeSMTP.instances.append(self)

    def __enter__(self) -> "FakeSMTP":
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def starttls(self) -> None:
        self.started_tls = True

    def login(self, username: str, password: str) -> None:
        self.login_args = (username, password)

    def send_message(self, message: EmailMessage) -> None:
        self.messages.append(message)


@pytest.fixture(autouse=True)
def _reset_fake_smtp() -> None:
    FakeSMTP.instances.clear()


def test_local_time_is_presentation_only() -> None:
    local = to_local(SUMMER_NOON, "Europe/Madrid")

    assert local.hour == 14
    assert local == SUMMER_NOON
    assert format_local(SUMMER_NOON, "UTC") == "2024-07-01 12:00:00 (UTC)"


def test_alert_message_describes_reading_and_range() -> None:
    reading = Reading(sensor_id="fridge-1", timestamp=SUMMER_NOON, temperature=Decimal("9.3"))
    config = ThresholdConfig(
        sensor_id="fridge-1", min=Decimal("2"), max=Decimal("8"), notify_target="ops@example.com"
    )

    message = build_alert_message(reading, config, "Europe/Madrid")

    assert message.subject == "TempGuard - temperature alert (fridge-1)"
    assert "9.3 °C" in message.text
    assert "2024-07-01 14:00:00 (Europe/Madrid)" in message.text
    assert "2 - 8 °C" in message.text
    assert "<li><strong>Sensor:</strong> fridge-1</li>" in message.html


def test_smtp_notifier_sends_multipart_message(monkeypatch) -> None:
    monkeypatch.setattr("notifications.smtp.smtplib.SMTP", FakeSMTP)
    notifier = SmtpNotifier(
        host="mail.example.com",
        port=2525,
        username="user",
        password="pass",
        sender="tempguard@example.com",
        timeout=3.0,
    )

    notifier.send("ops@example.com", "Subject", "plain body", html="<p>html body</p>")

    [client] = FakeSMTP.instances
    assert (client.host, client.port, client.timeout) == ("mail.example.com", 2525, 3.0)
    assert client.started_tls is True
    assert client.login_args == ("user", "pass")
    [message] = client.messages
    assert message["To"] == "ops@example.com"
    assert message["From"] == "tempguard@example.com"
    assert message.get_body(preferencelist=("plain",)).get_content().strip() == "plain body"
    assert "html body" in message.get_body(preferencelist=("html",)).get_content()


def test_smtp_notifier_defaults_sender_to_target(monkeypatch) -> None:
    monkeypatch.setattr("notifications.smtp.smtplib.SMTP", FakeSMTP)
    notifier = SmtpNotifier(host="localhost", starttls=False)

    notifier.send("ops@example.com", "Subject", "body")

    [client] = FakeSMTP.instances
    assert client.started_tls is False
    assert client.login_args is None
    assert client.messages[0]["From"] == "ops@example.com"


@pytest.mark.parametrize(
    "error", [smtplib.SMTPAuthenticationError(535, b"bad credentials"), TimeoutError("timed out")]
)
def test_smtp_failures_raise_notify_error(monkeypatch, error: Exception) -> None:
    class BrokenSMTP(FakeSMTP):
        def send_message(self, message: EmailMessage) -> None:
            raise error

    monkeypatch.setattr("notifications.smtp.smtplib.SMTP", BrokenSMTP)

    with pytest.raises(NotifyError):
        SmtpNotifier(host="localhost").send("ops@example.com", "Subject", "body")
