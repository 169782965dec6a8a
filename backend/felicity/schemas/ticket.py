"""
Pydantic schemas for registration, tickets and attendance.
"""

from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field

from felicity.schemas.event import EventSummary


class MerchandiseSelection(BaseModel):
    size: Optional[str] = None
    color: Optional[str] = None
    variant: Optional[str] = None
    quantity: int = Field(default=1, ge=1)


class RegistrationCreate(BaseModel):
    team_name: Optional[str] = Field(None, max_length=255)
    answers: dict[str, Any] = {}
    merchandise_selection: Optional[MerchandiseSelection] = None


class TicketResponse(BaseModel):
    id: int
    ticket_id: str
    event_id: int
    participant_id: int
    qr_payload: str
    qr_code: str
    type: str
    status: str
    team_id: Optional[int]
    team_name: Optional[str]
    attendance_marked: bool
    attendance_timestamp: Optional[datetime]
    manual_override: bool
    override_reason: Optional[str]
    answers: Optional[dict[str, Any]]
    merchandise_selection: Optional[MerchandiseSelection]
    created_at: datetime

    model_config = {"from_attributes": True}


class TicketWithEvent(TicketResponse):
    event: Optional[EventSummary] = None


class RegistrationResponse(BaseModel):
    message: str
    ticket: TicketResponse


class TicketCancelResponse(BaseModel):
    message: str
    ticket_id: str
    status: str


class ScanRequest(BaseModel):
    # Either the bare ticket id or the raw JSON read from the QR code
    ticket_id: str = Field(..., min_length=1)


class ManualOverrideRequest(BaseModel):
    ticket_id: str = Field(..., min_length=1)
    override_reason: str = Field(..., min_length=1, max_length=1000)
    attendance_marked: bool


class AttendanceResponse(BaseModel):
    message: str
    ticket: TicketResponse


class AttendeeRow(BaseModel):
    id: int
    ticket_id: str
    participant_id: int
    participant_name: str
    participant_email: str
    type: str
    status: str
    attendance_marked: bool
    attendance_timestamp: Optional[datetime]
    manual_override: bool
    override_reason: Optional[str]
    team_name: Optional[str]
    answers: Optional[dict[str, Any]]
    merchandise_selection: Optional[MerchandiseSelection]
    purchase_date: datetime


class EventAnalytics(BaseModel):
    total_sales: int
    total_revenue: float
    total_attended: int


class EventParticipantsReport(BaseModel):
    event_details: EventSummary
    registration_fee: float
    registration_limit: Optional[int]
    analytics: EventAnalytics
    participants: list[AttendeeRow]
