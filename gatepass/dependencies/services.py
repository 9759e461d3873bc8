from __future__ import annotations

from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request

from gatepass.notifications import BulkCoordinator, Dispatcher, Scheduler
from gatepass.tickets import TicketService, VerificationEngine


def _state_service(request: Request, attribute: str, label: str) -> Any:
    service = getattr(request.app.state, attribute, None)
    if service is None:
        raise HTTPException(status_code=503, detail=f"{label} is not configured")
    return service


async def get_ticket_service(request: Request) -> TicketService:
    return _state_service(request, "ticket_service", "Ticket service")


async def get_verification_engine(request: Request) -> VerificationEngine:
    return _state_service(request, "verification_engine", "Verification engine")


async def get_dispatcher(request: Request) -> Dispatcher:
    return _state_service(request, "dispatcher", "Messaging service")


async def get_bulk_coordinator(request: Request) -> BulkCoordinator:
    return _state_service(request, "bulk_coordinator", "Messaging service")


async def get_scheduler(request: Request) -> Scheduler:
    return _state_service(request, "scheduler", "Scheduler")


TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]
VerificationEngineDep = Annotated[VerificationEngine, Depends(get_verification_engine)]
DispatcherDep = Annotated[Dispatcher, Depends(get_dispatcher)]
BulkCoordinatorDep = Annotated[BulkCoordinator, Depends(get_bulk_coordinator)]
SchedulerDep = Annotated[Scheduler, Depends(get_scheduler)]
