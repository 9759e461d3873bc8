from __future__ import annotations

import logging

import httpx

from .base import DeliveryResult, HttpChannel

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class TwilioSMSChannel(HttpChannel):
    """SMS delivery through the Twilio Messages REST resource."""

    name = "sms"
    supports_media = True

    def __init__(
        self,
        *,
        account_sid: str | None,
        auth_token: str | None,
        from_number: str | None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ) -> None:
        super().__init__(client=client, timeout=timeout)
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_number = from_number

    def is_configured(self) -> bool:
        return bool(self._account_sid and self._auth_token)

    async def send(self, recipient: str, message: str, media: str | None = None) -> DeliveryResult:
        form = {"To": f"+{recipient}", "From": self._from_number or "", "Body": message}
        if media and media.startswith(("http://", "https://")):
            form["MediaUrl"] = media
        data = await self._request(
            "POST",
            f"{TWILIO_API_BASE}/Accounts/{self._account_sid}/Messages.json",
            data=form,
            auth=(self._account_sid or "", self._auth_token or ""),
        )
        message_id = data.get("sid") if isinstance(data, dict) else None
        logger.info("SMS accepted by Twilio (sid=%s)", message_id)
        return DeliveryResult(channel=self.name, success=True, provider_message_id=message_id)
