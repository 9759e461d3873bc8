"""Door-scan verification and duplicate-use detection.

A scan never fails because the ticket was already used.  Every scan is
counted and recorded; once the count reaches the flag threshold for the
ticket type the ticket is flagged and each further result carries a
warning so door staff can decide what to do.

The read-increment-write sequence is not guarded: two simultaneous scans
of one ticket may both read the same count.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Sequence

from gatepass.errors import NotFoundError

from .models import Ticket, VerificationEntry
from .payload import parse_payload
from .phone import normalize_phone
from .policy import FlagPolicy
from .repository import TicketStore

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Ticket verified successfully"
AMBIGUOUS_MESSAGE = "Multiple tickets match this phone number; select one to verify"


class VerificationStatus(str, Enum):
    VERIFIED = "verified"
    AMBIGUOUS = "ambiguous"


@dataclass(slots=True)
class VerificationOutcome:
    """Result of a scan: the updated ticket, or candidates to choose from."""

    status: VerificationStatus
    message: str
    ticket: Ticket | None = None
    warning: str | None = None
    candidates: Sequence[Ticket] = field(default_factory=list)

    @property
    def flagged(self) -> bool:
        return self.ticket is not None and self.ticket.flagged


def duplicate_warning(ticket: Ticket) -> str:
    return (
        f"WARNING: this ticket has already been verified "
        f"(scan {ticket.verification_count}, first at {ticket.first_verified_at:%Y-%m-%d %H:%M:%S})"
    )


class VerificationEngine:
    """Turn scan events into verified/flagged ticket transitions."""

    def __init__(
        self,
        store: TicketStore,
        *,
        policy: FlagPolicy | None = None,
        phone_region: str = "RO",
    ) -> None:
        self._store = store
        self._policy = policy or FlagPolicy()
        self._phone_region = phone_region

    async def verify_by_payload(self, qr_payload: str) -> VerificationOutcome:
        parse_payload(qr_payload)
        ticket = await self._store.get_by_payload(qr_payload)
        if ticket is None:
            raise NotFoundError("Ticket not found")
        return await self._verify(ticket)

    async def verify_by_phone(self, phone_number: str) -> VerificationOutcome:
        lookup = normalize_phone(phone_number, default_region=self._phone_region)
        matches = list(await self._store.find_by_phone(lookup.variants, lookup.suffix))
        if not matches:
            raise NotFoundError("No ticket found for this phone number")
        if len(matches) > 1:
            logger.info("Phone lookup matched %d tickets; awaiting selection", len(matches))
            return VerificationOutcome(
                status=VerificationStatus.AMBIGUOUS,
                message=AMBIGUOUS_MESSAGE,
                candidates=matches,
            )
        return await self._verify(matches[0])

    async def verify_by_id(self, ticket_id: str) -> VerificationOutcome:
        ticket = await self._store.get_ticket(ticket_id)
        if ticket is None:
            raise NotFoundError(f"Ticket {ticket_id} not found")
        return await self._verify(ticket)

    async def _verify(self, ticket: Ticket) -> VerificationOutcome:
        now = datetime.now(timezone.utc)
        count = ticket.verification_count + 1
        flagged = ticket.flagged or self._policy.is_flagged(ticket.ticket_type, count)
        candidate = replace(
            ticket,
            verified=True,
            verification_count=count,
            verification_history=[*ticket.verification_history, VerificationEntry(timestamp=now)],
            flagged=flagged,
            updated_at=now,
        )

        updated = await self._store.update_verification(candidate)
        if updated is None:
            raise NotFoundError(f"Ticket {ticket.id} not found")

        if updated.flagged:
            logger.warning(
                "Ticket %s flagged: %d scans (threshold %d)",
                updated.id,
                updated.verification_count,
                self._policy.threshold(updated.ticket_type),
            )
            return VerificationOutcome(
                status=VerificationStatus.VERIFIED,
                message=SUCCESS_MESSAGE,
                ticket=updated,
                warning=duplicate_warning(updated),
            )

        logger.info("Ticket %s verified (scan %d)", updated.id, updated.verification_count)
        return VerificationOutcome(status=VerificationStatus.VERIFIED, message=SUCCESS_MESSAGE, ticket=updated)
