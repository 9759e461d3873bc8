from __future__ import annotations

import pytest

from conftest import InMemoryTicketStore, make_ticket
from gatepass.errors import NotFoundError, ValidationError
from gatepass.tickets import FlagPolicy, TicketType, VerificationEngine, VerificationStatus
from gatepass.tickets.verification import SUCCESS_MESSAGE


@pytest.mark.asyncio
async def test_single_access_ticket_flags_on_second_scan():
    ticket = make_ticket(ticket_type=TicketType.BAL)
    engine = VerificationEngine(InMemoryTicketStore([ticket]))

    first = await engine.verify_by_id(ticket.id)
    assert first.status == VerificationStatus.VERIFIED
    assert first.ticket.verified is True
    assert first.ticket.verification_count == 1
    assert first.ticket.flagged is False
    assert first.warning is None
    assert first.message == SUCCESS_MESSAGE

    second = await engine.verify_by_id(ticket.id)
    assert second.ticket.verified is True
    assert second.ticket.verification_count == 2
    assert second.ticket.flagged is True
    assert second.warning is not None
    assert "already been verified" in second.warning


@pytest.mark.asyncio
async def test_dual_access_ticket_tolerates_one_extra_scan():
    ticket = make_ticket(ticket_type=TicketType.BAL_AFTER)
    engine = VerificationEngine(InMemoryTicketStore([ticket]))

    outcomes = [await engine.verify_by_id(ticket.id) for _ in range(3)]

    assert [o.ticket.verification_count for o in outcomes] == [1, 2, 3]
    assert [o.ticket.flagged for o in outcomes] == [False, False, True]
    assert outcomes[1].warning is None
    assert outcomes[2].warning is not None


@pytest.mark.asyncio
@pytest.mark.parametrize("ticket_type", list(TicketType))
async def test_count_and_history_track_every_scan(ticket_type):
    ticket = make_ticket(ticket_type=ticket_type)
    store = InMemoryTicketStore([ticket])
    engine = VerificationEngine(store)
    threshold = FlagPolicy().threshold(ticket_type)

    seen_flag = False
    for n in range(1, 6):
        outcome = await engine.verify_by_id(ticket.id)
        current = outcome.ticket
        assert current.verification_count == n
        assert len(current.verification_history) == n
        assert current.flagged == (n >= threshold)
        if seen_flag:
            assert current.flagged
        seen_flag = seen_flag or current.flagged

    history = store.tickets[ticket.id].verification_history
    assert [entry.timestamp for entry in history] == sorted(entry.timestamp for entry in history)
    assert all(entry.verified for entry in history)


@pytest.mark.asyncio
async def test_verify_by_payload_matches_exact_payload(ticket, store):
    engine = VerificationEngine(store)

    outcome = await engine.verify_by_payload(ticket.qr_payload)

    assert outcome.ticket.id == ticket.id
    assert outcome.ticket.verification_count == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", ["", "not-json", "[1, 2]", '"text"'])
async def test_verify_by_payload_rejects_malformed(store, payload):
    engine = VerificationEngine(store)

    with pytest.raises(ValidationError):
        await engine.verify_by_payload(payload)
    assert store.verification_updates == 0


@pytest.mark.asyncio
async def test_verify_by_payload_unknown_ticket(store):
    engine = VerificationEngine(store)

    with pytest.raises(NotFoundError):
        await engine.verify_by_payload('{"ticketId": "other"}')


@pytest.mark.asyncio
async def test_verify_by_id_unknown_ticket(store):
    engine = VerificationEngine(store)

    with pytest.raises(NotFoundError):
        await engine.verify_by_id("missing")


@pytest.mark.asyncio
@pytest.mark.parametrize("stored", ["0712345678", "712345678", "+40712345678", "40712345678"])
@pytest.mark.parametrize("entered", ["0712345678", "712345678", "+40712345678", "40712345678"])
async def test_phone_spellings_resolve_to_the_same_ticket(stored, entered):
    ticket = make_ticket(phone=stored)
    store = InMemoryTicketStore([ticket, make_ticket(ticket_id="t-2", phone="0799999999")])
    engine = VerificationEngine(store)

    outcome = await engine.verify_by_phone(entered)

    assert outcome.status == VerificationStatus.VERIFIED
    assert outcome.ticket.id == ticket.id


@pytest.mark.asyncio
async def test_phone_with_several_tickets_returns_candidates_without_mutation():
    first = make_ticket(ticket_id="t-1", phone="0712345678")
    second = make_ticket(ticket_id="t-2", phone="+40712345678", ticket_type=TicketType.AFTER)
    store = InMemoryTicketStore([first, second])
    engine = VerificationEngine(store)

    outcome = await engine.verify_by_phone("712 345 678")

    assert outcome.status == VerificationStatus.AMBIGUOUS
    assert outcome.ticket is None
    assert {t.id for t in outcome.candidates} == {"t-1", "t-2"}
    assert store.verification_updates == 0
    assert all(t.verification_count == 0 for t in store.tickets.values())

    committed = await engine.verify_by_id("t-2")
    assert committed.ticket.verification_count == 1


@pytest.mark.asyncio
async def test_phone_without_match(store):
    engine = VerificationEngine(store)

    with pytest.raises(NotFoundError):
        await engine.verify_by_phone("0755555555")


@pytest.mark.asyncio
async def test_phone_unparseable(store):
    engine = VerificationEngine(store)

    with pytest.raises(ValidationError):
        await engine.verify_by_phone("call me")


def test_flag_policy_table():
    policy = FlagPolicy()
    assert policy.threshold(TicketType.BAL_AFTER) == 3
    assert policy.threshold(TicketType.BAL_AFTER_VIP) == 3
    assert policy.threshold(TicketType.BAL) == 2
    assert policy.threshold(TicketType.AFTER) == 2
    assert policy.threshold(TicketType.AFTER_VIP) == 2
    assert not policy.is_flagged(TicketType.BAL_AFTER, 2)
    assert policy.is_flagged(TicketType.BAL, 2)
