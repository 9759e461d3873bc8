from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Sequence


class TicketType(str, Enum):
    """Ticket types sold for the event."""

    BAL_AFTER = "BAL + AFTER"
    BAL = "BAL"
    AFTER = "AFTER"
    AFTER_VIP = "AFTER VIP"
    BAL_AFTER_VIP = "BAL + AFTER VIP"


@dataclass(slots=True, frozen=True)
class VerificationEntry:
    """A single successful door scan."""

    timestamp: datetime
    verified: bool = True


@dataclass(slots=True)
class Ticket:
    """Issued ticket together with its door-scan state."""

    id: str
    group: str
    holder_name: str
    phone: str
    ticket_type: TicketType
    qr_payload: str
    created_at: datetime
    updated_at: datetime
    verified: bool = False
    verification_count: int = 0
    verification_history: Sequence[VerificationEntry] = field(default_factory=list)
    flagged: bool = False
    sent: bool = False
    sent_at: datetime | None = None
    active: bool = True

    @property
    def first_verified_at(self) -> datetime | None:
        if not self.verification_history:
            return None
        return self.verification_history[0].timestamp
