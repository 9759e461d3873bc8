from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Literal, Sequence

from gatepass.tickets.models import Ticket

from .dispatcher import Dispatcher, DispatchOutcome

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class BulkItem:
    ticket: Ticket | None
    recipient: str | None
    email: str | None = None
    media: str | None = None


@dataclass(slots=True)
class BulkResult:
    item: BulkItem
    status: Literal["sent", "failed"]
    outcome: DispatchOutcome | None = None
    error: str | None = None


class BulkCoordinator:
    """Send many tickets one after another with a pause between sends.

    Sends are strictly sequential; the pause keeps providers from throttling
    the account.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        *,
        delay_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._dispatcher = dispatcher
        self._delay = delay_seconds
        self._sleep = sleep

    async def send_bulk(self, items: Sequence[BulkItem]) -> list[BulkResult]:
        results: list[BulkResult] = []
        for index, item in enumerate(items):
            if index > 0 and self._delay > 0:
                await self._sleep(self._delay)
            try:
                outcome = await self._dispatcher.send(
                    item.ticket, item.recipient, email=item.email, media=item.media
                )
            except Exception as exc:
                ticket_id = item.ticket.id if item.ticket is not None else None
                logger.warning("Bulk item %d (ticket %s) failed: %s", index, ticket_id, exc)
                results.append(BulkResult(item=item, status="failed", error=str(exc)))
                continue
            results.append(BulkResult(item=item, status="sent", outcome=outcome))

        sent = sum(1 for result in results if result.status == "sent")
        logger.info("Bulk send finished: %d sent, %d failed", sent, len(results) - sent)
        return results
