from __future__ import annotations

from urllib.parse import quote

from .base import BaseChannel, DeliveryResult

WA_ME_BASE = "https://wa.me"


def whatsapp_link(recipient: str, message: str) -> str:
    return f"{WA_ME_BASE}/{recipient}?text={quote(message, safe='')}"


class ManualLinkChannel(BaseChannel):
    """Click-to-chat link for sending the message by hand.

    Performs no I/O, so it cannot fail; the dispatcher always ends its chain
    with it.
    """

    name = "link"

    async def send(self, recipient: str, message: str, media: str | None = None) -> DeliveryResult:
        return DeliveryResult(channel=self.name, success=True, link=whatsapp_link(recipient, message))
