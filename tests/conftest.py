from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime, timezone
from typing import Sequence

import pytest

from gatepass.errors import ConflictError
from gatepass.tickets.models import Ticket, TicketType
from gatepass.tickets.payload import build_payload


class InMemoryTicketStore:
    """Dict-backed ticket store mirroring the repository's query semantics."""

    def __init__(self, tickets: Sequence[Ticket] = ()) -> None:
        self.tickets: dict[str, Ticket] = {}
        self.verification_updates = 0
        for ticket in tickets:
            self.tickets[ticket.id] = ticket

    async def create_ticket(self, ticket: Ticket) -> None:
        if any(existing.qr_payload == ticket.qr_payload for existing in self.tickets.values()):
            raise ConflictError("Duplicate ticket QR code")
        self.tickets[ticket.id] = ticket

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        return self.tickets.get(ticket_id)

    async def get_by_payload(self, qr_payload: str) -> Ticket | None:
        return next((t for t in self.tickets.values() if t.qr_payload == qr_payload), None)

    async def find_by_phone(self, variants: Sequence[str], suffix: str) -> Sequence[Ticket]:
        return [
            ticket
            for ticket in self.tickets.values()
            if ticket.phone in variants or re.sub(r"\D", "", ticket.phone).endswith(suffix)
        ]

    async def list_by_group(self, group: str) -> Sequence[Ticket]:
        return sorted(
            (t for t in self.tickets.values() if t.group == group),
            key=lambda t: t.created_at,
        )

    async def update_verification(self, ticket: Ticket) -> Ticket | None:
        if ticket.id not in self.tickets:
            return None
        self.verification_updates += 1
        self.tickets[ticket.id] = ticket
        return ticket

    async def update_payload(self, ticket_id, ticket_type, qr_payload, flagged, updated_at):
        current = self.tickets.get(ticket_id)
        if current is None:
            return None
        updated = replace(
            current, ticket_type=ticket_type, qr_payload=qr_payload, flagged=flagged, updated_at=updated_at
        )
        self.tickets[ticket_id] = updated
        return updated

    async def update_sent(self, ticket_id, sent, sent_at, updated_at):
        current = self.tickets.get(ticket_id)
        if current is None:
            return None
        updated = replace(current, sent=sent, sent_at=sent_at, updated_at=updated_at)
        self.tickets[ticket_id] = updated
        return updated

    async def update_active(self, ticket_id, active, updated_at):
        current = self.tickets.get(ticket_id)
        if current is None:
            return None
        updated = replace(current, active=active, updated_at=updated_at)
        self.tickets[ticket_id] = updated
        return updated

    async def delete_ticket(self, ticket_id: str) -> bool:
        return self.tickets.pop(ticket_id, None) is not None


def make_ticket(
    *,
    ticket_id: str = "t-1",
    ticket_type: TicketType = TicketType.BAL,
    phone: str = "0712345678",
    holder_name: str = "Ana Popescu",
    group: str = "Bal Economic",
) -> Ticket:
    now = datetime(2025, 11, 20, 18, 30, tzinfo=timezone.utc)
    return Ticket(
        id=ticket_id,
        group=group,
        holder_name=holder_name,
        phone=phone,
        ticket_type=ticket_type,
        qr_payload=build_payload(
            ticket_id=ticket_id,
            group=group,
            holder_name=holder_name,
            phone=phone,
            ticket_type=ticket_type,
            issued_at=now,
        ),
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def ticket() -> Ticket:
    return make_ticket()


@pytest.fixture
def store(ticket: Ticket) -> InMemoryTicketStore:
    return InMemoryTicketStore([ticket])
