from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol, Sequence

import asyncpg

from gatepass.errors import ConflictError

from .models import Ticket, TicketType, VerificationEntry


class TicketStore(Protocol):
    """Storage operations the ticketing services depend on."""

    async def create_ticket(self, ticket: Ticket) -> None:
        ...

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        ...

    async def get_by_payload(self, qr_payload: str) -> Ticket | None:
        ...

    async def find_by_phone(self, variants: Sequence[str], suffix: str) -> Sequence[Ticket]:
        ...

    async def list_by_group(self, group: str) -> Sequence[Ticket]:
        ...

    async def update_verification(self, ticket: Ticket) -> Ticket | None:
        ...

    async def update_payload(
        self, ticket_id: str, ticket_type: TicketType, qr_payload: str, flagged: bool, updated_at: datetime
    ) -> Ticket | None:
        ...

    async def update_sent(
        self, ticket_id: str, sent: bool, sent_at: datetime | None, updated_at: datetime
    ) -> Ticket | None:
        ...

    async def update_active(self, ticket_id: str, active: bool, updated_at: datetime) -> Ticket | None:
        ...

    async def delete_ticket(self, ticket_id: str) -> bool:
        ...


_COLUMNS = """
    id, group_name, holder_name, phone, ticket_type, qr_payload, verified, verification_count,
    verification_history, flagged, sent, sent_at, active, created_at, updated_at
"""


class TicketRepository:
    """Persistence helper wrapping the `tickets` table."""

    _CREATE_TICKETS_SQL = """
    CREATE TABLE IF NOT EXISTS tickets (
        id TEXT PRIMARY KEY,
        group_name TEXT NOT NULL,
        holder_name TEXT NOT NULL,
        phone TEXT NOT NULL,
        ticket_type TEXT NOT NULL,
        qr_payload TEXT NOT NULL,
        verified BOOLEAN NOT NULL DEFAULT FALSE,
        verification_count INTEGER NOT NULL DEFAULT 0,
        verification_history JSONB NOT NULL DEFAULT '[]'::jsonb,
        flagged BOOLEAN NOT NULL DEFAULT FALSE,
        sent BOOLEAN NOT NULL DEFAULT FALSE,
        sent_at TIMESTAMPTZ NULL,
        active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL
    )
    """

    _CREATE_PAYLOAD_INDEX_SQL = """
    CREATE UNIQUE INDEX IF NOT EXISTS tickets_qr_payload_key ON tickets (qr_payload)
    """

    _CREATE_GROUP_INDEX_SQL = """
    CREATE INDEX IF NOT EXISTS tickets_group_name_idx ON tickets (group_name, created_at)
    """

    _INSERT_TICKET_SQL = """
    INSERT INTO tickets (
        id, group_name, holder_name, phone, ticket_type, qr_payload, verified, verification_count,
        verification_history, flagged, sent, sent_at, active, created_at, updated_at
    )
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9::jsonb, $10, $11, $12, $13, $14, $15)
    """

    _SELECT_TICKET_SQL = f"SELECT {_COLUMNS} FROM tickets WHERE id = $1"

    _SELECT_BY_PAYLOAD_SQL = f"SELECT {_COLUMNS} FROM tickets WHERE qr_payload = $1"

    _SELECT_BY_PHONE_SQL = f"""
    SELECT {_COLUMNS}
    FROM tickets
    WHERE phone = ANY($1::text[])
       OR regexp_replace(phone, '[^0-9]', '', 'g') LIKE '%' || $2
    ORDER BY created_at ASC
    """

    _SELECT_BY_GROUP_SQL = f"""
    SELECT {_COLUMNS}
    FROM tickets
    WHERE group_name = $1
    ORDER BY created_at ASC
    """

    _UPDATE_VERIFICATION_SQL = f"""
    UPDATE tickets
    SET verified = $2,
        verification_count = $3,
        verification_history = $4::jsonb,
        flagged = $5,
        updated_at = $6
    WHERE id = $1
    RETURNING {_COLUMNS}
    """

    _UPDATE_PAYLOAD_SQL = f"""
    UPDATE tickets
    SET ticket_type = $2, qr_payload = $3, flagged = $4, updated_at = $5
    WHERE id = $1
    RETURNING {_COLUMNS}
    """

    _UPDATE_SENT_SQL = f"""
    UPDATE tickets
    SET sent = $2, sent_at = $3, updated_at = $4
    WHERE id = $1
    RETURNING {_COLUMNS}
    """

    _UPDATE_ACTIVE_SQL = f"""
    UPDATE tickets
    SET active = $2, updated_at = $3
    WHERE id = $1
    RETURNING {_COLUMNS}
    """

    _DELETE_TICKET_SQL = """
    DELETE FROM tickets WHERE id = $1 RETURNING id
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def ensure_schema(self) -> None:
        async with self._pool.acquire() as connection:
            await connection.execute(self._CREATE_TICKETS_SQL)
            await connection.execute(self._CREATE_PAYLOAD_INDEX_SQL)
            await connection.execute(self._CREATE_GROUP_INDEX_SQL)

    async def create_ticket(self, ticket: Ticket) -> None:
        async with self._pool.acquire() as connection:
            try:
                await connection.execute(
                    self._INSERT_TICKET_SQL,
                    ticket.id,
                    ticket.group,
                    ticket.holder_name,
                    ticket.phone,
                    ticket.ticket_type.value,
                    ticket.qr_payload,
                    ticket.verified,
                    ticket.verification_count,
                    _dump_history(ticket.verification_history),
                    ticket.flagged,
                    ticket.sent,
                    ticket.sent_at,
                    ticket.active,
                    ticket.created_at,
                    ticket.updated_at,
                )
            except asyncpg.UniqueViolationError as exc:
                raise ConflictError("Duplicate ticket QR code") from exc

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(self._SELECT_TICKET_SQL, ticket_id)
        if row is None:
            return None
        return self._row_to_ticket(row)

    async def get_by_payload(self, qr_payload: str) -> Ticket | None:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(self._SELECT_BY_PAYLOAD_SQL, qr_payload)
        if row is None:
            return None
        return self._row_to_ticket(row)

    async def find_by_phone(self, variants: Sequence[str], suffix: str) -> Sequence[Ticket]:
        async with self._pool.acquire() as connection:
            rows = await connection.fetch(self._SELECT_BY_PHONE_SQL, list(variants), suffix)
        return [self._row_to_ticket(row) for row in rows]

    async def list_by_group(self, group: str) -> Sequence[Ticket]:
        async with self._pool.acquire() as connection:
            rows = await connection.fetch(self._SELECT_BY_GROUP_SQL, group)
        return [self._row_to_ticket(row) for row in rows]

    async def update_verification(self, ticket: Ticket) -> Ticket | None:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(
                self._UPDATE_VERIFICATION_SQL,
                ticket.id,
                ticket.verified,
                ticket.verification_count,
                _dump_history(ticket.verification_history),
                ticket.flagged,
                ticket.updated_at,
            )
        if row is None:
            return None
        return self._row_to_ticket(row)

    async def update_payload(
        self, ticket_id: str, ticket_type: TicketType, qr_payload: str, flagged: bool, updated_at: datetime
    ) -> Ticket | None:
        async with self._pool.acquire() as connection:
            try:
                row = await connection.fetchrow(
                    self._UPDATE_PAYLOAD_SQL, ticket_id, ticket_type.value, qr_payload, flagged, updated_at
                )
            except asyncpg.UniqueViolationError as exc:
                raise ConflictError("Duplicate ticket QR code") from exc
        if row is None:
            return None
        return self._row_to_ticket(row)

    async def update_sent(
        self, ticket_id: str, sent: bool, sent_at: datetime | None, updated_at: datetime
    ) -> Ticket | None:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(self._UPDATE_SENT_SQL, ticket_id, sent, sent_at, updated_at)
        if row is None:
            return None
        return self._row_to_ticket(row)

    async def update_active(self, ticket_id: str, active: bool, updated_at: datetime) -> Ticket | None:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(self._UPDATE_ACTIVE_SQL, ticket_id, active, updated_at)
        if row is None:
            return None
        return self._row_to_ticket(row)

    async def delete_ticket(self, ticket_id: str) -> bool:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(self._DELETE_TICKET_SQL, ticket_id)
        return row is not None

    @staticmethod
    def _row_to_ticket(row: Mapping[str, Any]) -> Ticket:
        sent_at = row.get("sent_at")
        return Ticket(
            id=str(row["id"]),
            group=str(row["group_name"]),
            holder_name=str(row["holder_name"]),
            phone=str(row["phone"]),
            ticket_type=TicketType(str(row["ticket_type"])),
            qr_payload=str(row["qr_payload"]),
            verified=bool(row["verified"]),
            verification_count=int(row["verification_count"]),
            verification_history=_load_history(row.get("verification_history")),
            flagged=bool(row["flagged"]),
            sent=bool(row["sent"]),
            sent_at=_ensure_datetime(sent_at) if sent_at is not None else None,
            active=bool(row["active"]),
            created_at=_ensure_datetime(row["created_at"]),
            updated_at=_ensure_datetime(row["updated_at"]),
        )


def _dump_history(history: Sequence[VerificationEntry]) -> str:
    return json.dumps([{"timestamp": entry.timestamp.isoformat(), "verified": entry.verified} for entry in history])


def _load_history(value: Any) -> list[VerificationEntry]:
    if not value:
        return []
    items = json.loads(value) if isinstance(value, str) else value
    return [
        VerificationEntry(timestamp=_ensure_datetime(item["timestamp"]), verified=bool(item.get("verified", True)))
        for item in items
    ]


def _ensure_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed
