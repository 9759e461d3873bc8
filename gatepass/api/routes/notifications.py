from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, status

from gatepass.api.schemas import (
    BulkItemResponse,
    BulkSendRequest,
    DeliveryResultResponse,
    DispatchResponse,
    ScheduledJobResponse,
    ScheduleRequest,
    ScheduleResponse,
    SendRequest,
)
from gatepass.dependencies.services import BulkCoordinatorDep, DispatcherDep, SchedulerDep, TicketServiceDep
from gatepass.notifications import BulkItem, DispatchOutcome, NotificationJob

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _to_dispatch_response(outcome: DispatchOutcome) -> DispatchResponse:
    return DispatchResponse(
        success=outcome.success,
        primary_method=outcome.primary_method,
        fallback_used=outcome.fallback_used,
        attempts=[DeliveryResultResponse.model_validate(attempt) for attempt in outcome.attempts],
    )


def _to_job_response(job: NotificationJob) -> ScheduledJobResponse:
    return ScheduledJobResponse(
        job_id=job.id,
        ticket_id=job.ticket.id,
        phone=job.recipient,
        email=job.email,
        fire_at=job.fire_at,
        status=job.status.value,
    )


@router.get("/status")
async def notification_status(dispatcher: DispatcherDep, scheduler: SchedulerDep) -> dict[str, Any]:
    return {**dispatcher.status(), "scheduled_jobs": len(scheduler)}


@router.post("/send", response_model=DispatchResponse)
async def send_ticket(payload: SendRequest, tickets: TicketServiceDep, dispatcher: DispatcherDep) -> DispatchResponse:
    ticket = await tickets.get_ticket(payload.ticket_id)
    outcome = await dispatcher.send(ticket, payload.phone, email=payload.email, media=payload.media)
    return _to_dispatch_response(outcome)


@router.post("/bulk", response_model=list[BulkItemResponse])
async def send_bulk(
    payload: BulkSendRequest, tickets: TicketServiceDep, bulk: BulkCoordinatorDep
) -> list[BulkItemResponse]:
    items = [
        BulkItem(
            ticket=await tickets.get_ticket(entry.ticket_id),
            recipient=entry.phone,
            email=entry.email,
            media=entry.media,
        )
        for entry in payload.items
    ]
    results = await bulk.send_bulk(items)
    return [
        BulkItemResponse(
            ticket_id=result.item.ticket.id if result.item.ticket is not None else None,
            phone=result.item.recipient,
            status=result.status,
            result=_to_dispatch_response(result.outcome) if result.outcome is not None else None,
            error=result.error,
        )
        for result in results
    ]


@router.post("/scheduled", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
async def schedule_ticket(
    payload: ScheduleRequest, tickets: TicketServiceDep, scheduler: SchedulerDep
) -> ScheduleResponse:
    ticket = await tickets.get_ticket(payload.ticket_id)
    job_id = scheduler.schedule(ticket, payload.phone, payload.send_time, email=payload.email, media=payload.media)
    return ScheduleResponse(job_id=job_id, fire_at=scheduler.get(job_id).fire_at)


@router.get("/scheduled", response_model=list[ScheduledJobResponse])
async def list_scheduled(scheduler: SchedulerDep) -> list[ScheduledJobResponse]:
    return [_to_job_response(job) for job in scheduler.list_jobs()]


@router.delete("/scheduled/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_scheduled(job_id: str, scheduler: SchedulerDep) -> None:
    if not scheduler.cancel(job_id):
        raise HTTPException(status_code=404, detail="Scheduled message not found")
