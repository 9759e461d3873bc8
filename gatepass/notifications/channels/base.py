from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Protocol

import httpx

from gatepass.errors import ProviderError


class AddressKind(str, Enum):
    """Which recipient address a channel delivers to."""

    PHONE = "phone"
    EMAIL = "email"


@dataclass(slots=True, frozen=True)
class DeliveryResult:
    """Outcome of one channel attempt."""

    channel: str
    success: bool
    provider_message_id: str | None = None
    error: str | None = None
    link: str | None = None


class ChannelAdapter(Protocol):
    name: str
    address: AddressKind
    supports_media: bool

    def is_configured(self) -> bool:
        ...

    async def send(self, recipient: str, message: str, media: str | None = None) -> DeliveryResult:
        ...

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...


class BaseChannel:
    """Defaults shared by the concrete channels."""

    name = "base"
    address = AddressKind.PHONE
    supports_media = False

    def is_configured(self) -> bool:
        return True

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None


def _extract_error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or "Unknown provider error"

    if isinstance(data, Mapping):
        for key in ("message", "error_message"):
            if isinstance(data.get(key), str):
                return data[key]
        error = data.get("error")
        if isinstance(error, Mapping) and isinstance(error.get("message"), str):
            return error["message"]
        request_error = data.get("requestError")
        if isinstance(request_error, Mapping):
            service_exception = request_error.get("serviceException") or {}
            if isinstance(service_exception, Mapping) and service_exception.get("text"):
                return str(service_exception["text"])
    return response.text or "Unknown provider error"


class HttpChannel(BaseChannel):
    """Channel talking to a provider's REST API through one `httpx.AsyncClient`."""

    def __init__(self, *, client: httpx.AsyncClient | None = None, timeout: float = 15.0) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True

    async def stop(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        if self._client is None:
            await self.start()
        assert self._client is not None

        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ProviderError(f"{self.name} request failed: {exc}", channel=self.name) from exc

        if response.status_code >= 400:
            raise ProviderError(
                _extract_error_message(response),
                channel=self.name,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(f"{self.name} returned a non-JSON response", channel=self.name) from exc
