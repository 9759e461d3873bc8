from __future__ import annotations

from fastapi import APIRouter

from gatepass.api.schemas import TicketResponse, VerificationResponse, VerifyPayloadRequest, VerifyPhoneRequest
from gatepass.dependencies.services import VerificationEngineDep
from gatepass.tickets.verification import VerificationOutcome

router = APIRouter(prefix="/verify", tags=["verification"])


def _to_response(outcome: VerificationOutcome) -> VerificationResponse:
    return VerificationResponse(
        status=outcome.status.value,
        message=outcome.message,
        warning=outcome.warning,
        flagged=outcome.flagged,
        ticket=TicketResponse.model_validate(outcome.ticket) if outcome.ticket is not None else None,
        candidates=[TicketResponse.model_validate(ticket) for ticket in outcome.candidates],
    )


@router.post("/payload", response_model=VerificationResponse)
async def verify_by_payload(payload: VerifyPayloadRequest, engine: VerificationEngineDep) -> VerificationResponse:
    return _to_response(await engine.verify_by_payload(payload.qr_payload))


@router.post("/phone", response_model=VerificationResponse)
async def verify_by_phone(payload: VerifyPhoneRequest, engine: VerificationEngineDep) -> VerificationResponse:
    return _to_response(await engine.verify_by_phone(payload.phone))


@router.post("/tickets/{ticket_id}", response_model=VerificationResponse)
async def verify_by_id(ticket_id: str, engine: VerificationEngineDep) -> VerificationResponse:
    return _to_response(await engine.verify_by_id(ticket_id))
