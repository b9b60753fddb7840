"""
EAS Station - Emergency Alert System
Copyright (c) 2025 Timothy Kramer (KR8MER)

This file is part of EAS Station.

EAS Station is dual-licensed software:
- GNU Affero General Public License v3 (AGPL-3.0) for open-source use
- Commercial License for proprietary use

You should have received a copy of both licenses with this software.
For more information, see LICENSE and LICENSE-COMMERCIAL files.

IMPORTANT: This software cannot be rebranded or have attribution removed.
See NOTICE file for complete terms.

Repository: https://github.com/KR8MER/eas-station
"""

from __future__ import annotations

"""SMTP delivery for station alert emails."""

import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from ..errors import MailDispatchFailure
from ..settings import CoreSettings

logger = logging.getLogger(__name__)


class SMTPMailer:
    """Sends one plain-text message per call; raises on any SMTP failure."""

    def __init__(
        self,
        server: Optional[str],
        port: int = 587,
        use_tls: bool = True,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.server = server
        self.port = port
        self.use_tls = use_tls
        self.username = username
        self.password = password
        self.sender = sender or username or "alerts@localhost"
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: CoreSettings) -> "SMTPMailer":
        return cls(
            server=settings.mail_server,
            port=settings.mail_port,
            use_tls=settings.mail_use_tls,
            username=settings.mail_username,
            password=settings.mail_password,
            sender=settings.mail_sender,
        )

    def send(self, to: str, subject: str, body: str) -> None:
        if not self.server:
            raise MailDispatchFailure("Mail server not configured")

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.sender
        message["To"] = to
        message.set_content(body)

        try:
            with smtplib.SMTP(self.server, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailDispatchFailure(f"Failed to send alert email to {to}: {exc}") from exc

        logger.debug("Alert email '%s' sent to %s", subject, to)


__all__ = ["SMTPMailer"]
