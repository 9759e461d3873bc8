from __future__ import annotations

import json
import secrets
from datetime import datetime
from typing import Any, Mapping

from gatepass.errors import ValidationError

from .models import TicketType


def build_payload(
    *,
    ticket_id: str,
    group: str,
    holder_name: str,
    phone: str,
    ticket_type: TicketType,
    issued_at: datetime,
) -> str:
    """Serialise the string encoded in a ticket's QR code.

    A random nonce keeps payloads unique even for identical holder data, and
    a regenerated payload never equals the one it replaces.
    """

    body = {
        "ticketId": ticket_id,
        "group": group,
        "name": holder_name,
        "phone": phone,
        "type": ticket_type.value,
        "issuedAt": issued_at.isoformat(),
        "nonce": secrets.token_hex(8),
    }
    return json.dumps(body, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


def parse_payload(raw: str | None) -> Mapping[str, Any]:
    """Decode a scanned payload, rejecting anything that is not a JSON object."""

    if not raw or not raw.strip():
        raise ValidationError("QR code data is required")
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise ValidationError("Invalid QR code data") from exc
    if not isinstance(data, dict):
        raise ValidationError("Invalid QR code data")
    return data
