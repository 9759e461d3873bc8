"""SMTP email channel.

Sends the ticket message as plain text with an HTML twin.  A media
reference that points at a readable local file is attached; anything
else is ignored.
"""
from __future__ import annotations

import asyncio
import html
import logging
import mimetypes
from email.message import EmailMessage
from email.utils import make_msgid
from pathlib import Path

import aiosmtplib

from gatepass.errors import ProviderError

from .base import AddressKind, BaseChannel, DeliveryResult

logger = logging.getLogger(__name__)


class SMTPEmailChannel(BaseChannel):
    """Email delivery through an authenticated SMTP relay (STARTTLS)."""

    name = "email"
    address = AddressKind.EMAIL
    supports_media = True

    def __init__(
        self,
        *,
        host: str,
        port: int = 587,
        username: str | None,
        password: str | None,
        timeout: float = 15.0,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._timeout = timeout

    def is_configured(self) -> bool:
        return bool(self._username and self._password)

    def build_message(
        self, recipient: str, message: str, attachment: tuple[str, bytes] | None = None
    ) -> EmailMessage:
        first_line = message.splitlines()[0] if message else "Event ticket"
        mail = EmailMessage()
        mail["From"] = self._username or ""
        mail["To"] = recipient
        mail["Subject"] = first_line.strip()
        mail["Message-ID"] = make_msgid()
        mail.set_content(message)
        mail.add_alternative(html.escape(message).replace("\n", "<br>"), subtype="html")

        if attachment is not None:
            filename, content = attachment
            mime_type, _ = mimetypes.guess_type(filename)
            maintype, subtype = (mime_type or "application/octet-stream").split("/", 1)
            mail.add_attachment(content, maintype=maintype, subtype=subtype, filename=filename)
        return mail

    async def _read_attachment(self, media: str | None) -> tuple[str, bytes] | None:
        if not media:
            return None
        path = Path(media)
        if not path.is_file():
            return None
        return path.name, await asyncio.to_thread(path.read_bytes)

    async def send(self, recipient: str, message: str, media: str | None = None) -> DeliveryResult:
        mail = self.build_message(recipient, message, await self._read_attachment(media))
        try:
            await aiosmtplib.send(
                mail,
                hostname=self._host,
                port=self._port,
                username=self._username,
                password=self._password,
                start_tls=True,
                timeout=self._timeout,
            )
        except aiosmtplib.SMTPException as exc:
            raise ProviderError(f"Failed to send email: {exc}", channel=self.name) from exc

        logger.info("Email handed to relay %s", self._host)
        return DeliveryResult(channel=self.name, success=True, provider_message_id=str(mail["Message-ID"]))
