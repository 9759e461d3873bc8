from __future__ import annotations

from gatepass.tickets.models import Ticket

_TEMPLATE = """Your event ticket

Name: {name}
Phone: {phone}
Ticket type: {ticket_type}
Issued on: {issued}

This ticket is valid for entry.
Please keep it at hand for verification at the door."""


def format_ticket_message(ticket: Ticket) -> str:
    return _TEMPLATE.format(
        name=ticket.holder_name,
        phone=ticket.phone,
        ticket_type=ticket.ticket_type.value,
        issued=ticket.created_at.strftime("%d.%m.%Y"),
    )
