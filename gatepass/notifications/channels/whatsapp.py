from __future__ import annotations

import logging
from typing import Any

import httpx

from .base import DeliveryResult, HttpChannel

logger = logging.getLogger(__name__)

GRAPH_API_BASE = "https://graph.facebook.com"


def _first_message(data: Any) -> dict[str, Any]:
    if isinstance(data, dict):
        messages = data.get("messages") or []
        if messages and isinstance(messages[0], dict):
            return messages[0]
    return {}


class WhatsAppBusinessChannel(HttpChannel):
    """WhatsApp Business Cloud API (Meta Graph)."""

    name = "whatsapp_business"
    supports_media = True

    def __init__(
        self,
        *,
        access_token: str | None,
        phone_number_id: str | None,
        api_version: str = "v18.0",
        client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ) -> None:
        super().__init__(client=client, timeout=timeout)
        self._access_token = access_token
        self._phone_number_id = phone_number_id
        self._api_version = api_version

    def is_configured(self) -> bool:
        return bool(self._access_token and self._phone_number_id)

    async def send(self, recipient: str, message: str, media: str | None = None) -> DeliveryResult:
        body: dict[str, Any] = {
            "messaging_product": "whatsapp",
            "to": recipient,
            "type": "text",
            "text": {"body": message},
        }
        if media:
            body["type"] = "document"
            body["document"] = {"link": media, "filename": "ticket.png", "caption": message}
            body.pop("text")

        data = await self._request(
            "POST",
            f"{GRAPH_API_BASE}/{self._api_version}/{self._phone_number_id}/messages",
            json=body,
            headers={"Authorization": f"Bearer {self._access_token}"},
        )
        message_id = _first_message(data).get("id")
        logger.info("WhatsApp Business message accepted (id=%s)", message_id)
        return DeliveryResult(channel=self.name, success=True, provider_message_id=message_id)


class InfobipWhatsAppChannel(HttpChannel):
    """WhatsApp delivery through the Infobip messaging API."""

    name = "whatsapp_provider"
    supports_media = True

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str | None,
        sender: str | None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ) -> None:
        super().__init__(client=client, timeout=timeout)
        self._api_key = api_key
        self._base_url = (base_url or "").rstrip("/")
        self._sender = sender

    def is_configured(self) -> bool:
        return bool(self._api_key and self._base_url and self._sender)

    async def send(self, recipient: str, message: str, media: str | None = None) -> DeliveryResult:
        content: dict[str, Any] = {"type": "text", "text": message}
        if media:
            content = {"type": "image", "image": {"url": media, "caption": message}}

        data = await self._request(
            "POST",
            f"{self._base_url}/whatsapp/1/message/text",
            json={"messages": [{"from": self._sender, "to": recipient, "content": content}]},
            headers={
                "Authorization": f"App {self._api_key}",
                "Accept": "application/json",
            },
        )
        message_id = _first_message(data).get("messageId")
        logger.info("Infobip accepted WhatsApp message (id=%s)", message_id)
        return DeliveryResult(channel=self.name, success=True, provider_message_id=message_id)
