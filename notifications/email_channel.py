"""
Email Channel

Sends alerts over SMTP. smtplib is blocking, so each send runs in a worker
thread to keep the event loop free.
"""

import asyncio
import smtplib
from email.message import EmailMessage
from typing import List, Optional

from core.logging import get_logger
from notifications.channel import DeliveryError, NotificationChannel

SUBJECT = "Market alert"


class EmailChannel(NotificationChannel):
    """
    SMTP email delivery.

    Example:
        >>> channel = EmailChannel(["ops@example.com"], sender="alerts@example.com",
        ...                        host="smtp.example.com")
        >>> await channel.send("ops@example.com", "LTC is listed on kraken")
    """

    name = "email"

    def __init__(
        self,
        subscribers: Optional[List[str]] = None,
        sender: str = "",
        host: str = "localhost",
        port: int = 587,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: int = 30,
        enabled: bool = True,
    ):
        super().__init__(subscribers, enabled)
        self.sender = sender
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout
        self.logger = get_logger(__name__)

    def _build_message(self, recipient: str, message: str) -> EmailMessage:
        email = EmailMessage()
        email["Subject"] = SUBJECT
        email["From"] = self.sender
        email["To"] = recipient
        email.set_content(message)
        return email

    def _send_blocking(self, email: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password)
            smtp.send_message(email)

    async def send(self, recipient: str, message: str) -> None:
        email = self._build_message(recipient, message)
        try:
            await asyncio.to_thread(self._send_blocking, email)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(self.name, recipient, str(e)) from e
        self.logger.debug(f"Email sent to {recipient}")
