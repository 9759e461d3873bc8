"""Single logical send over a prioritised chain of channels.

The chain is fixed when the dispatcher is built: every configured
networked channel in priority order, followed by the manual link channel.
Channels are tried one at a time and the first success ends the chain.
A failing channel is recorded as a failed attempt and the next one is
tried, so a dispatch always ends with at least the link attempt.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from opentelemetry import trace

from gatepass.errors import ProviderError, ValidationError
from gatepass.tickets.models import Ticket
from gatepass.tickets.phone import normalize_phone

from .channels import AddressKind, ChannelAdapter, DeliveryResult, ManualLinkChannel
from .message import format_ticket_message

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass(slots=True)
class DispatchOutcome:
    """Every attempt made for one send, in order, and the channel that delivered."""

    attempts: list[DeliveryResult] = field(default_factory=list)
    primary_method: str | None = None

    @property
    def success(self) -> bool:
        return any(attempt.success for attempt in self.attempts)

    @property
    def fallback_used(self) -> bool:
        return self.primary_method == ManualLinkChannel.name


class Dispatcher:
    """Deliver ticket messages through the best available channel."""

    def __init__(
        self,
        channels: Sequence[ChannelAdapter] = (),
        *,
        link_channel: ChannelAdapter | None = None,
        phone_region: str = "RO",
    ) -> None:
        self._available = list(channels)
        self._link = link_channel or ManualLinkChannel()
        self._chain: list[ChannelAdapter] = [
            channel
            for channel in self._available
            if channel.name != self._link.name and channel.is_configured()
        ]
        self._chain.append(self._link)
        self._phone_region = phone_region
        logger.info("Notification chain: %s", " -> ".join(channel.name for channel in self._chain))

    @property
    def chain(self) -> tuple[ChannelAdapter, ...]:
        return tuple(self._chain)

    async def start(self) -> None:
        for channel in self._chain:
            await channel.start()

    async def stop(self) -> None:
        for channel in self._chain:
            try:
                await channel.stop()
            except Exception:
                logger.exception("Failed to stop channel %s", channel.name)

    def status(self) -> dict[str, Any]:
        return {
            "channels": {channel.name: channel.is_configured() for channel in self._available},
            "chain": [channel.name for channel in self._chain],
        }

    async def send(
        self,
        ticket: Ticket | None,
        recipient: str | None,
        *,
        email: str | None = None,
        media: str | None = None,
    ) -> DispatchOutcome:
        if ticket is None:
            raise ValidationError("Ticket is required")
        if not recipient or not recipient.strip():
            raise ValidationError("Recipient phone number is required")

        phone = normalize_phone(recipient, default_region=self._phone_region).digits
        message = format_ticket_message(ticket)
        outcome = DispatchOutcome()

        for channel in self._chain:
            destination = email if channel.address == AddressKind.EMAIL else phone
            if not destination:
                continue

            result = await self._attempt(channel, destination, message, media)
            outcome.attempts.append(result)
            if result.success:
                outcome.primary_method = channel.name
                logger.info("Ticket %s delivered via %s", ticket.id, channel.name)
                return outcome

        raise ProviderError(f"Every channel failed for ticket {ticket.id}")

    async def _attempt(
        self,
        channel: ChannelAdapter,
        destination: str,
        message: str,
        media: str | None,
    ) -> DeliveryResult:
        with tracer.start_as_current_span(f"notify.{channel.name}") as span:
            try:
                result = await channel.send(destination, message, media if channel.supports_media else None)
            except Exception as exc:
                span.record_exception(exc)
                logger.warning("Channel %s failed: %s", channel.name, exc)
                return DeliveryResult(channel=channel.name, success=False, error=str(exc))
            span.set_attribute("notify.success", result.success)
            if not result.success:
                logger.warning("Channel %s reported failure: %s", channel.name, result.error)
            return result
