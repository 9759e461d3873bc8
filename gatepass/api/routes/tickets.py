from __future__ import annotations

from fastapi import APIRouter, Query, status

from gatepass.api.schemas import TicketCreateRequest, TicketFlagRequest, TicketResponse, TicketTypeChangeRequest
from gatepass.dependencies.services import TicketServiceDep
from gatepass.tickets.models import Ticket

router = APIRouter(prefix="/tickets", tags=["tickets"])


def _to_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse.model_validate(ticket)


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(payload: TicketCreateRequest, service: TicketServiceDep) -> TicketResponse:
    ticket = await service.create_ticket(
        group=payload.group,
        holder_name=payload.holder_name,
        phone=payload.phone,
        ticket_type=payload.ticket_type,
    )
    return _to_response(ticket)


@router.get("", response_model=list[TicketResponse])
async def list_tickets(service: TicketServiceDep, group: str = Query(..., min_length=1)) -> list[TicketResponse]:
    tickets = await service.list_tickets(group)
    return [_to_response(ticket) for ticket in tickets]


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(ticket_id: str, service: TicketServiceDep) -> TicketResponse:
    return _to_response(await service.get_ticket(ticket_id))


@router.put("/{ticket_id}/type", response_model=TicketResponse)
async def change_ticket_type(
    ticket_id: str, payload: TicketTypeChangeRequest, service: TicketServiceDep
) -> TicketResponse:
    return _to_response(await service.change_ticket_type(ticket_id, payload.ticket_type))


@router.post("/{ticket_id}/sent", response_model=TicketResponse)
async def mark_ticket_sent(ticket_id: str, payload: TicketFlagRequest, service: TicketServiceDep) -> TicketResponse:
    return _to_response(await service.mark_sent(ticket_id, payload.value))


@router.post("/{ticket_id}/active", response_model=TicketResponse)
async def set_ticket_active(ticket_id: str, payload: TicketFlagRequest, service: TicketServiceDep) -> TicketResponse:
    return _to_response(await service.set_active(ticket_id, payload.value))


@router.delete("/{ticket_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ticket(ticket_id: str, service: TicketServiceDep) -> None:
    await service.delete_ticket(ticket_id)
