from __future__ import annotations

import pytest

from gatepass.core.config import Settings
from gatepass.errors import ProviderError, ValidationError
from gatepass.notifications import Dispatcher
from gatepass.notifications.channels import AddressKind, BaseChannel, DeliveryResult, build_channels


class StubChannel(BaseChannel):
    def __init__(self, name, *, configured=True, fails=False, address=AddressKind.PHONE, supports_media=False):
        self.name = name
        self.address = address
        self.supports_media = supports_media
        self._configured = configured
        self._fails = fails
        self.calls = []

    def is_configured(self) -> bool:
        return self._configured

    async def send(self, recipient, message, media=None):
        self.calls.append((recipient, message, media))
        if self._fails:
            raise ProviderError(f"{self.name} is down", channel=self.name)
        return DeliveryResult(channel=self.name, success=True, provider_message_id=f"{self.name}-1")


@pytest.mark.asyncio
async def test_falls_back_to_link_when_every_provider_fails(ticket):
    sms = StubChannel("sms", fails=True)
    whatsapp = StubChannel("whatsapp_business", configured=False)
    provider = StubChannel("whatsapp_provider", configured=False)
    dispatcher = Dispatcher([sms, whatsapp, provider])

    outcome = await dispatcher.send(ticket, "0712345678")

    assert outcome.success is True
    assert outcome.primary_method == "link"
    assert outcome.fallback_used is True
    assert [a.channel for a in outcome.attempts] == ["sms", "link"]
    assert outcome.attempts[0].success is False
    assert "down" in outcome.attempts[0].error
    assert outcome.attempts[-1].link.startswith("https://wa.me/40712345678")
    assert whatsapp.calls == [] and provider.calls == []


@pytest.mark.asyncio
async def test_first_success_short_circuits(ticket):
    sms = StubChannel("sms")
    whatsapp = StubChannel("whatsapp_business")
    dispatcher = Dispatcher([sms, whatsapp])

    outcome = await dispatcher.send(ticket, "+40 712 345 678")

    assert outcome.primary_method == "sms"
    assert outcome.fallback_used is False
    assert len(outcome.attempts) == 1
    assert sms.calls[0][0] == "40712345678"
    assert "Ana Popescu" in sms.calls[0][1]
    assert whatsapp.calls == []


@pytest.mark.asyncio
async def test_chain_preserves_priority_order(ticket):
    first = StubChannel("sms", fails=True)
    second = StubChannel("whatsapp_business", fails=True)
    third = StubChannel("whatsapp_provider")
    dispatcher = Dispatcher([first, second, third])

    outcome = await dispatcher.send(ticket, "0712345678")

    assert [channel.name for channel in dispatcher.chain] == ["sms", "whatsapp_business", "whatsapp_provider", "link"]
    assert [a.channel for a in outcome.attempts] == ["sms", "whatsapp_business", "whatsapp_provider"]
    assert outcome.primary_method == "whatsapp_provider"


@pytest.mark.asyncio
async def test_email_channel_needs_an_address(ticket):
    email = StubChannel("email", address=AddressKind.EMAIL)
    dispatcher = Dispatcher([email])

    without = await dispatcher.send(ticket, "0712345678")
    with_address = await dispatcher.send(ticket, "0712345678", email="ana@example.com")

    assert without.primary_method == "link"
    assert with_address.primary_method == "email"
    assert email.calls == [("ana@example.com", email.calls[0][1], None)]


@pytest.mark.asyncio
async def test_media_only_reaches_channels_that_carry_it(ticket):
    text_only = StubChannel("sms", fails=True)
    media_channel = StubChannel("whatsapp_business", supports_media=True)
    dispatcher = Dispatcher([text_only, media_channel])

    await dispatcher.send(ticket, "0712345678", media="https://cdn.example/ticket.png")

    assert text_only.calls[0][2] is None
    assert media_channel.calls[0][2] == "https://cdn.example/ticket.png"


@pytest.mark.asyncio
async def test_failing_link_channel_raises(ticket):
    dispatcher = Dispatcher([], link_channel=StubChannel("link", fails=True))

    with pytest.raises(ProviderError):
        await dispatcher.send(ticket, "0712345678")


@pytest.mark.asyncio
@pytest.mark.parametrize("recipient", [None, "", "   "])
async def test_missing_recipient_is_rejected(ticket, recipient):
    sms = StubChannel("sms")
    dispatcher = Dispatcher([sms])

    with pytest.raises(ValidationError):
        await dispatcher.send(ticket, recipient)
    assert sms.calls == []


@pytest.mark.asyncio
async def test_missing_ticket_is_rejected():
    with pytest.raises(ValidationError):
        await Dispatcher().send(None, "0712345678")


def test_status_reports_configuration():
    dispatcher = Dispatcher([StubChannel("sms"), StubChannel("whatsapp_web", configured=False)])

    status = dispatcher.status()

    assert status["channels"] == {"sms": True, "whatsapp_web": False}
    assert status["chain"] == ["sms", "link"]


@pytest.mark.asyncio
async def test_unconfigured_providers_leave_only_the_link(ticket):
    dispatcher = Dispatcher(build_channels(Settings(_env_file=None)))

    outcome = await dispatcher.send(ticket, "0712345678", email="ana@example.com")

    assert dispatcher.status() == {
        "channels": {
            "sms": False,
            "email": False,
            "whatsapp_business": False,
            "whatsapp_provider": False,
            "whatsapp_web": False,
        },
        "chain": ["link"],
    }
    assert outcome.primary_method == "link"
    assert outcome.fallback_used is True
    assert [a.channel for a in outcome.attempts] == ["link"]
