from __future__ import annotations

import smtplib
from email.message import EmailMessage
from typing import Optional

from services.errors import NotifyError
from settings import Settings


class SmtpNotifier:
    """Delivers alert emails through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        starttls: bool = True,
        sender: Optional[str] = None,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.starttls = starttls
        self.sender = sender
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpNotifier":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            starttls=settings.smtp_starttls,
            sender=settings.smtp_sender,
            timeout=settings.smtp_timeout,
        )

    def send(self, target: str, subject: str, body: str, html: Optional[str] = None) -> None:
        message = EmailMessage()
        # Without a configured sender the recipient mails itself.
        message["From"] = self.sender or target
        message["To"] = target
        message["Subject"] = subject
        message.set_content(body)
        if html is not None:
            message.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as client:
                if self.starttls:
                    client.starttls()
                if self.username and self.password:
                    client.login(self.username, self.password)
                client.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotifyError(f"Could not deliver alert to {target}: {exc}") from exc
