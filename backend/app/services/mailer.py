"""
Outbound email via SMTP.

Defaults to Gmail's implicit-TLS endpoint (smtp.gmail.com:465) logged in with
an app password (MAIL_USER / MAIL_PASS). The password is never logged.
"""

import logging
import smtplib
from dataclasses import dataclass
from email.header import Header
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import getaddresses
from typing import Optional

logger = logging.getLogger(__name__)


class MailDeliveryError(Exception):
    """The message could not be handed to the SMTP server."""


@dataclass(frozen=True)
class OutboundEmail:
    sender: str
    recipient: str
    subject: str
    html: str
    text: str = ""


def single_recipient(recipient: str) -> str:
    """
    Return the one address in ``recipient``.

    Raises MailDeliveryError when the value holds no address or more than one
    (e.g. ``"a@b.com, c@d.com"``), so a payload cannot fan a message out.
    """
    addresses = [addr for _, addr in getaddresses([recipient]) if addr]
    if len(addresses) != 1 or "@" not in addresses[0] or addresses[0] != recipient.strip():
        raise MailDeliveryError(f"Invalid recipient address: {recipient!r}")
    return addresses[0]


def format_sender(display_name: str, address: str) -> str:
    """Return a From header like ``"Painel - PrecisionX" <user@example.com>``."""
    quoted = display_name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{quoted}" <{address}>'


class SmtpMailer:
    """Sends OutboundEmail messages over SMTP with implicit TLS."""

    def __init__(
        self,
        host: str,
        port: int,
        username: Optional[str],
        password: Optional[str],
        timeout: float = 10.0,
    ):
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self._host and self._username and self._password)

    def format_message(self, email: OutboundEmail) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = Header(email.subject, "utf-8")
        msg["From"] = email.sender
        msg["To"] = email.recipient
        if email.text:
            msg.attach(MIMEText(email.text, "plain", "utf-8"))
        msg.attach(MIMEText(email.html, "html", "utf-8"))
        return msg

    def send(self, email: OutboundEmail) -> None:
        if not self.is_configured:
            raise MailDeliveryError("Email not configured (missing MAIL_USER/MAIL_PASS)")

        to_addr = single_recipient(email.recipient)
        msg = self.format_message(email)
        try:
            with smtplib.SMTP_SSL(self._host, self._port, timeout=self._timeout) as server:
                server.login(self._username, self._password)
                server.send_message(msg, to_addrs=[to_addr])
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(f"SMTP error: {e}") from e

        logger.info(f"E-mail enviado para {email.recipient}: {email.subject!r}")
