"""Outbound mail sink."""

import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Optional, Protocol, Sequence

import structlog

from ..config import Settings

logger = structlog.get_logger(__name__)

MOCK_MESSAGE_ID = "mock-message-id"


@dataclass
class Attachment:
    """A file attached to an outbound message."""
    filename: str
    content: bytes
    content_type: str = "application/pdf"


class Mailer(Protocol):
    def send(
        self,
        to: str,
        subject: str,
        html: str,
        attachments: Sequence[Attachment] = (),
    ) -> dict: ...


class SmtpMailer:
    """
    SMTP delivery built from explicit settings.

    When host, port, user or password is missing nothing is sent and a mock
    acknowledgment is returned instead.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        sender_email: str = "dispatch@DTHLogistics.com",
        sender_name: str = "DTH Logistics",
        use_ssl: bool = True,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender_email = sender_email
        self.sender_name = sender_name
        self.use_ssl = use_ssl
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpMailer":
        return cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            user=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            sender_email=settings.sender_address,
            sender_name=settings.SENDER_NAME,
            use_ssl=settings.SMTP_USE_SSL,
            timeout=settings.SMTP_TIMEOUT,
        )

    @property
    def configured(self) -> bool:
        return bool(self.host and self.port and self.user and self.password)

    def build_message(
        self,
        to: str,
        subject: str,
        html: str,
        attachments: Sequence[Attachment] = (),
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = formataddr((self.sender_name, self.sender_email))
        msg["To"] = to
        msg["Subject"] = subject
        msg["Message-ID"] = make_msgid(domain=self.sender_email.rsplit("@", 1)[-1])
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(html, subtype="html")

        for attachment in attachments:
            maintype, _, subtype = attachment.content_type.partition("/")
            msg.add_attachment(
                attachment.content,
                maintype=maintype,
                subtype=subtype or "octet-stream",
                filename=attachment.filename,
            )
        return msg

    def send(
        self,
        to: str,
        subject: str,
        html: str,
        attachments: Sequence[Attachment] = (),
    ) -> dict:
        """Send one message. Transport errors propagate to the caller."""
        if not self.configured:
            logger.warning("mail_not_configured", to=to, subject=subject)
            return {"messageId": MOCK_MESSAGE_ID}

        msg = self.build_message(to, subject, html, attachments)

        if self.use_ssl:
            server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)

        with server:
            if not self.use_ssl:
                server.starttls()
            server.login(self.user, self.password)
            server.send_message(msg)

        return {"messageId": msg["Message-ID"]}
