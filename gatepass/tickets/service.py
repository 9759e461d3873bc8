from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Sequence

from gatepass.errors import NotFoundError, ValidationError

from .models import Ticket, TicketType
from .payload import build_payload
from .policy import FlagPolicy
from .repository import TicketStore

logger = logging.getLogger(__name__)


def _coerce_type(value: TicketType | str) -> TicketType:
    try:
        return TicketType(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid ticket type: {value!r}") from exc


class TicketService:
    """Issuance and administrative updates for tickets."""

    def __init__(self, store: TicketStore, *, policy: FlagPolicy | None = None) -> None:
        self._store = store
        self._policy = policy or FlagPolicy()

    async def create_ticket(
        self,
        *,
        group: str,
        holder_name: str,
        phone: str,
        ticket_type: TicketType | str,
    ) -> Ticket:
        if not group or not holder_name or not phone or not ticket_type:
            raise ValidationError("All fields are required")
        kind = _coerce_type(ticket_type)

        now = datetime.now(timezone.utc)
        ticket_id = uuid.uuid4().hex
        ticket = Ticket(
            id=ticket_id,
            group=group,
            holder_name=holder_name.strip(),
            phone=phone.strip(),
            ticket_type=kind,
            qr_payload=build_payload(
                ticket_id=ticket_id,
                group=group,
                holder_name=holder_name.strip(),
                phone=phone.strip(),
                ticket_type=kind,
                issued_at=now,
            ),
            created_at=now,
            updated_at=now,
        )
        await self._store.create_ticket(ticket)
        logger.info("Issued ticket %s (%s) for group %s", ticket.id, kind.value, group)
        return ticket

    async def get_ticket(self, ticket_id: str) -> Ticket:
        ticket = await self._store.get_ticket(ticket_id)
        if ticket is None:
            raise NotFoundError(f"Ticket {ticket_id} not found")
        return ticket

    async def list_tickets(self, group: str) -> Sequence[Ticket]:
        return await self._store.list_by_group(group)

    async def change_ticket_type(self, ticket_id: str, ticket_type: TicketType | str) -> Ticket:
        """Switch the ticket type and issue a fresh QR payload for it.

        The flag is re-evaluated against the new type's threshold; a flagged
        ticket stays flagged.
        """

        kind = _coerce_type(ticket_type)
        current = await self.get_ticket(ticket_id)
        now = datetime.now(timezone.utc)
        payload = build_payload(
            ticket_id=current.id,
            group=current.group,
            holder_name=current.holder_name,
            phone=current.phone,
            ticket_type=kind,
            issued_at=now,
        )
        flagged = current.flagged or self._policy.is_flagged(kind, current.verification_count)
        updated = await self._store.update_payload(ticket_id, kind, payload, flagged, now)
        if updated is None:
            raise NotFoundError(f"Ticket {ticket_id} not found")
        logger.info("Ticket %s changed type %s -> %s", ticket_id, current.ticket_type.value, kind.value)
        return updated

    async def mark_sent(self, ticket_id: str, sent: bool = True) -> Ticket:
        now = datetime.now(timezone.utc)
        updated = await self._store.update_sent(ticket_id, sent, now if sent else None, now)
        if updated is None:
            raise NotFoundError(f"Ticket {ticket_id} not found")
        return updated

    async def set_active(self, ticket_id: str, active: bool) -> Ticket:
        now = datetime.now(timezone.utc)
        updated = await self._store.update_active(ticket_id, active, now)
        if updated is None:
            raise NotFoundError(f"Ticket {ticket_id} not found")
        if not active:
            logger.info("Ticket %s deactivated", ticket_id)
        return updated

    async def delete_ticket(self, ticket_id: str) -> None:
        deleted = await self._store.delete_ticket(ticket_id)
        if not deleted:
            raise NotFoundError(f"Ticket {ticket_id} not found")
