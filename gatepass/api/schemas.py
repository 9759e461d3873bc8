from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from gatepass.tickets.models import TicketType


class VerificationEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    timestamp: datetime
    verified: bool


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    group: str
    holder_name: str
    phone: str
    ticket_type: TicketType
    qr_payload: str
    verified: bool
    verification_count: int
    verification_history: list[VerificationEntryResponse]
    flagged: bool
    sent: bool
    sent_at: datetime | None
    active: bool
    created_at: datetime
    updated_at: datetime


class TicketCreateRequest(BaseModel):
    group: str = Field(..., min_length=1, max_length=255)
    holder_name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=1, max_length=32)
    ticket_type: TicketType


class TicketTypeChangeRequest(BaseModel):
    ticket_type: TicketType


class TicketFlagRequest(BaseModel):
    value: bool = True


class VerifyPayloadRequest(BaseModel):
    qr_payload: str


class VerifyPhoneRequest(BaseModel):
    phone: str


class VerificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: Literal["verified", "ambiguous"]
    message: str
    warning: str | None = None
    flagged: bool = False
    ticket: TicketResponse | None = None
    candidates: list[TicketResponse] = Field(default_factory=list)


class SendRequest(BaseModel):
    ticket_id: str
    phone: str
    email: str | None = None
    media: str | None = None


class DeliveryResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    channel: str
    success: bool
    provider_message_id: str | None = None
    error: str | None = None
    link: str | None = None


class DispatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool
    primary_method: str | None
    fallback_used: bool
    attempts: list[DeliveryResultResponse]


class BulkSendRequest(BaseModel):
    items: list[SendRequest] = Field(..., min_length=1)


class BulkItemResponse(BaseModel):
    ticket_id: str | None
    phone: str | None
    status: Literal["sent", "failed"]
    result: DispatchResponse | None = None
    error: str | None = None


class ScheduleRequest(SendRequest):
    send_time: str = Field(..., description="YYYY-MM-DD HH:MM:SS, in the scheduler timezone")


class ScheduleResponse(BaseModel):
    job_id: str
    fire_at: datetime


class ScheduledJobResponse(BaseModel):
    job_id: str
    ticket_id: str
    phone: str
    email: str | None
    fire_at: datetime
    status: str
