from __future__ import annotations

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from conftest import InMemoryTicketStore, make_ticket
from gatepass.errors import ConflictError, NotFoundError, ValidationError
from gatepass.tickets import TicketService, TicketType, VerificationEngine
from gatepass.tickets.payload import build_payload, parse_payload


@pytest.mark.asyncio
async def test_create_ticket_builds_unique_payload():
    store = InMemoryTicketStore()
    service = TicketService(store)

    first = await service.create_ticket(
        group="Bal Economic", holder_name=" Ana Popescu ", phone="0712345678", ticket_type="BAL + AFTER"
    )
    second = await service.create_ticket(
        group="Bal Economic", holder_name="Ana Popescu", phone="0712345678", ticket_type=TicketType.BAL_AFTER
    )

    assert first.holder_name == "Ana Popescu"
    assert first.ticket_type == TicketType.BAL_AFTER
    assert first.verification_count == 0
    assert first.qr_payload != second.qr_payload
    body = parse_payload(first.qr_payload)
    assert body["ticketId"] == first.id
    assert body["type"] == "BAL + AFTER"
    assert set(store.tickets) == {first.id, second.id}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fields",
    [
        {"group": "", "holder_name": "Ana", "phone": "0712345678", "ticket_type": "BAL"},
        {"group": "G", "holder_name": "", "phone": "0712345678", "ticket_type": "BAL"},
        {"group": "G", "holder_name": "Ana", "phone": "", "ticket_type": "BAL"},
        {"group": "G", "holder_name": "Ana", "phone": "0712345678", "ticket_type": "VIP ONLY"},
    ],
)
async def test_create_ticket_rejects_incomplete_input(fields):
    service = TicketService(InMemoryTicketStore())

    with pytest.raises(ValidationError):
        await service.create_ticket(**fields)


@pytest.mark.asyncio
async def test_duplicate_payload_is_a_conflict(store):
    service = TicketService(store)
    store.create_ticket = AsyncMock(side_effect=ConflictError("Duplicate ticket QR code"))

    with pytest.raises(ConflictError):
        await service.create_ticket(group="G", holder_name="Ana", phone="0712345678", ticket_type="BAL")


@pytest.mark.asyncio
async def test_change_type_retires_old_payload(ticket, store):
    service = TicketService(store)
    engine = VerificationEngine(store)
    old_payload = ticket.qr_payload

    updated = await service.change_ticket_type(ticket.id, "AFTER VIP")

    assert updated.ticket_type == TicketType.AFTER_VIP
    assert updated.qr_payload != old_payload
    assert json.loads(updated.qr_payload)["type"] == "AFTER VIP"
    with pytest.raises(NotFoundError):
        await engine.verify_by_payload(old_payload)
    outcome = await engine.verify_by_payload(updated.qr_payload)
    assert outcome.ticket.id == ticket.id


@pytest.mark.asyncio
async def test_mark_sent_and_unsent(ticket, store):
    service = TicketService(store)

    sent = await service.mark_sent(ticket.id)
    assert sent.sent is True
    assert sent.sent_at is not None

    cleared = await service.mark_sent(ticket.id, sent=False)
    assert cleared.sent is False
    assert cleared.sent_at is None


@pytest.mark.asyncio
async def test_set_active_and_delete(ticket, store):
    service = TicketService(store)

    inactive = await service.set_active(ticket.id, False)
    assert inactive.active is False

    await service.delete_ticket(ticket.id)
    with pytest.raises(NotFoundError):
        await service.get_ticket(ticket.id)
    with pytest.raises(NotFoundError):
        await service.delete_ticket(ticket.id)


@pytest.mark.asyncio
async def test_unknown_ticket_operations_raise_not_found(store):
    service = TicketService(store)

    with pytest.raises(NotFoundError):
        await service.change_ticket_type("missing", "BAL")
    with pytest.raises(NotFoundError):
        await service.mark_sent("missing")
    with pytest.raises(NotFoundError):
        await service.set_active("missing", True)


@pytest.mark.asyncio
async def test_list_tickets_by_group(store):
    service = TicketService(store)
    await service.create_ticket(group="Other", holder_name="Ion", phone="0722222222", ticket_type="BAL")

    tickets = await service.list_tickets("Bal Economic")

    assert [t.id for t in tickets] == ["t-1"]


def test_build_payload_contains_holder_fields():
    raw = build_payload(
        ticket_id="abc",
        group="G",
        holder_name="Ana",
        phone="0712345678",
        ticket_type=TicketType.AFTER,
        issued_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )

    body = parse_payload(raw)
    assert body["ticketId"] == "abc"
    assert body["name"] == "Ana"
    assert body["issuedAt"] == "2025-01-01T00:00:00+00:00"
    assert len(body["nonce"]) == 16


@pytest.mark.asyncio
async def test_change_to_lower_threshold_type_flags_ticket():
    ticket = make_ticket(ticket_type=TicketType.BAL_AFTER)
    store = InMemoryTicketStore([ticket])
    engine = VerificationEngine(store)
    await engine.verify_by_id(ticket.id)
    await engine.verify_by_id(ticket.id)
    assert store.tickets[ticket.id].flagged is False

    updated = await TicketService(store).change_ticket_type(ticket.id, TicketType.BAL)

    assert updated.verification_count == 2
    assert updated.flagged is True
    assert store.tickets[ticket.id].flagged is True


@pytest.mark.asyncio
async def test_change_to_higher_threshold_type_keeps_flag():
    ticket = make_ticket(ticket_type=TicketType.BAL)
    store = InMemoryTicketStore([ticket])
    engine = VerificationEngine(store)
    await engine.verify_by_id(ticket.id)
    await engine.verify_by_id(ticket.id)

    updated = await TicketService(store).change_ticket_type(ticket.id, TicketType.BAL_AFTER)

    assert updated.verification_count == 2
    assert updated.flagged is True


@pytest.mark.asyncio
async def test_change_type_on_unscanned_ticket_stays_unflagged(ticket, store):
    updated = await TicketService(store).change_ticket_type(ticket.id, TicketType.AFTER)

    assert updated.flagged is False
