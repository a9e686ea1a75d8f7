"""SMTP adapter for the MailTransport port (standard library smtplib)."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from prguard.domain.common.errors import DeliveryError
from prguard.domain.notifications.ports import MailTransport

logger = logging.getLogger(__name__)


class SmtpMailTransport(MailTransport):
    """Opens one connection per message; delivery runs in small batches."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        *,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 30.0,
        from_name: str = "PR Guard",
        from_email: str = "noreply@localhost",
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout
        self._sender = formataddr((from_name, from_email))

    def send(self, recipient: str, subject: str, body: str) -> None:
        if not self._host:
            raise DeliveryError("SMTP host is not configured", transient=False)

        try:
            message = EmailMessage()
            message["From"] = self._sender
            message["To"] = recipient
            message["Subject"] = subject
            message.set_content(body)

            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
                if self._use_tls:
                    smtp.starttls()
                if self._username:
                    smtp.login(self._username, self._password or "")
                smtp.send_message(message)
        except smtplib.SMTPRecipientsRefused as exc:
            raise DeliveryError(f"Recipient refused: {recipient!r}", transient=False) from exc
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"SMTP delivery failed: {exc}") from exc
        except (ValueError, TypeError) as exc:
            # header injection (CR/LF in an address or subject) and the like
            raise DeliveryError(f"Invalid message: {exc}", transient=False) from exc

        logger.info("Sent '%s' to %s", subject, recipient)
