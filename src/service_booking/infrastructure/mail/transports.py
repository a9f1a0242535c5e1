"""Mail transport implementations."""

import asyncio
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional

from ...application.ports.mail import MailMessage, MailTransport
from ..logging import get_logger


class SMTPMailTransport(MailTransport):
    """Delivers messages through an SMTP relay.

    ``smtplib`` is blocking, so each delivery runs in a worker thread.
    Port 465 uses implicit TLS; other ports upgrade with STARTTLS when
    ``use_tls`` is set.
    """

    def __init__(
        self,
        host: str,
        port: int,
        from_address: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        timeout_seconds: float = 30.0
    ):
        self._host = host
        self._port = port
        self._from_address = from_address
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout_seconds
        self._logger = get_logger(__name__)

    async def send(self, message: MailMessage) -> bool:
        """Send one message."""
        try:
            await asyncio.to_thread(self._send_blocking, message)
        except (smtplib.SMTPException, OSError) as exc:
            self._logger.error(
                "SMTP delivery failed",
                extra={"smtp_host": self._host, "subject": message.subject, "error": str(exc)}
            )
            return False

        self._logger.info(
            "SMTP delivery succeeded",
            extra={"smtp_host": self._host, "subject": message.subject}
        )
        return True

    def build_mime(self, message: MailMessage) -> MIMEMultipart:
        """Build the multipart text and HTML message."""
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = self._from_address
        msg["To"] = message.to
        msg.attach(MIMEText(message.text, "plain"))
        msg.attach(MIMEText(message.html, "html"))
        return msg

    def _send_blocking(self, message: MailMessage) -> None:
        msg = self.build_mime(message)
        if self._port == 465:
            server = smtplib.SMTP_SSL(
                self._host, self._port, context=ssl.create_default_context(), timeout=self._timeout
            )
        else:
            server = smtplib.SMTP(self._host, self._port, timeout=self._timeout)
        try:
            if self._port != 465 and self._use_tls:
                server.starttls(context=ssl.create_default_context())
            if self._username and self._password:
                server.login(self._username, self._password)
            server.sendmail(self._envelope_sender(), [message.to], msg.as_string())
        finally:
            server.quit()

    def _envelope_sender(self) -> str:
        return self._from_address.split("<")[-1].rstrip(">")


class LoggingMailTransport(MailTransport):
    """Logs messages instead of sending them (development and tests)."""

    def __init__(self):
        self._sent: List[MailMessage] = []
        self._logger = get_logger(__name__)

    @property
    def sent(self) -> List[MailMessage]:
        """Get a copy of the messages handed to this transport."""
        return list(self._sent)

    async def send(self, message: MailMessage) -> bool:
        """Record the message and report success."""
        self._sent.append(message)
        self._logger.info(
            "Email not sent, SMTP is not configured",
            extra={"mail_to": message.to, "subject": message.subject}
        )
        return True
