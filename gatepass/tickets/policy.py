from __future__ import annotations

from typing import Mapping

from .models import TicketType


class FlagPolicy:
    """Number of scans after which a ticket is flagged as suspected reuse.

    Dual-access tickets cover two event phases and tolerate one extra scan.
    """

    _THRESHOLDS: Mapping[TicketType, int] = {
        TicketType.BAL_AFTER: 3,
        TicketType.BAL_AFTER_VIP: 3,
        TicketType.BAL: 2,
        TicketType.AFTER: 2,
        TicketType.AFTER_VIP: 2,
    }

    def __init__(self, thresholds: Mapping[TicketType, int] | None = None) -> None:
        self._thresholds = thresholds or self._THRESHOLDS

    def threshold(self, ticket_type: TicketType) -> int:
        return self._thresholds[ticket_type]

    def is_flagged(self, ticket_type: TicketType, verification_count: int) -> bool:
        return verification_count >= self.threshold(ticket_type)
