"""
Pydantic schemas for event-related request/response validation.

The type-specific payload is a tagged union keyed by `event_type`:
normal and hackathon events carry `custom_fields`, merchandise events
carry `merchandise_details`. The branch that does not match the type is
discarded during validation.
"""

from datetime import datetime, timezone
from typing import Any, Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from felicity.schemas.organizer import ClubSummary

EventTypeName = Literal["normal", "merchandise", "hackathon"]
EventStatusName = Literal["Draft", "Published", "Ongoing", "Completed", "Closed", "Cancelled"]

DATE_FIELDS = ("registration_deadline", "start_date", "end_date")


def parse_lenient_date(value: Any) -> Any:
    """Accept dd/mm/yyyy as well as anything pydantic understands (ISO-8601)."""
    if isinstance(value, str) and "/" in value:
        try:
            day, month, year = (int(part) for part in value.strip().split("/"))
            return datetime(year, month, day, tzinfo=timezone.utc)
        except ValueError as exc:
            raise ValueError(f"Invalid date '{value}', expected dd/mm/yyyy") from exc
    return value


class CustomField(BaseModel):
    label: str = Field(..., min_length=1, max_length=255)
    type: Literal["text", "dropdown", "checkbox"]
    required: bool = False
    options: list[str] = []

    @model_validator(mode="after")
    def dropdown_needs_options(self):
        if self.type == "dropdown" and not self.options:
            raise ValueError(f"Dropdown field '{self.label}' needs at least one option")
        return self


class MerchandiseDetails(BaseModel):
    sizes: list[str] = []
    colors: list[str] = []
    variants: list[str] = []
    purchase_limit: int = Field(default=1, ge=1)


class _EventPayloadMixin:
    """Tagged-union cleanup: only the branch matching event_type is kept."""

    def _normalize_payload(self):
        if self.event_type == "merchandise":
            self.custom_fields = []
            if self.merchandise_details is None:
                self.merchandise_details = MerchandiseDetails()
        elif self.event_type is not None:
            self.merchandise_details = None
        return self


class EventCreate(_EventPayloadMixin, BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field("", max_length=5000)
    event_type: EventTypeName
    eligibility: Optional[str] = Field(None, max_length=255)
    registration_deadline: datetime
    start_date: datetime
    end_date: datetime
    registration_limit: Optional[int] = Field(None, ge=0, le=1_000_000)
    registration_fee: float = Field(0, ge=0)
    tags: Optional[str] = Field(None, max_length=500)
    action: Literal["draft", "publish"] = "draft"
    custom_fields: list[CustomField] = []
    merchandise_details: Optional[MerchandiseDetails] = None

    @field_validator(*DATE_FIELDS, mode="before")
    @classmethod
    def parse_dates(cls, value: Any) -> Any:
        return parse_lenient_date(value)

    @field_validator("registration_limit")
    @classmethod
    def zero_means_unlimited(cls, value: Optional[int]) -> Optional[int]:
        return value or None

    @model_validator(mode="after")
    def normalize_payload(self):
        return self._normalize_payload()


class EventUpdate(BaseModel):
    """Partial update. Which keys were sent matters: see event_service.update_event."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    event_type: Optional[EventTypeName] = None
    eligibility: Optional[str] = Field(None, max_length=255)
    registration_deadline: Optional[datetime] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    registration_limit: Optional[int] = Field(None, ge=0, le=1_000_000)
    registration_fee: Optional[float] = Field(None, ge=0)
    tags: Optional[str] = Field(None, max_length=500)
    status: Optional[EventStatusName] = None
    custom_fields: Optional[list[CustomField]] = None
    merchandise_details: Optional[MerchandiseDetails] = None

    @field_validator(*DATE_FIELDS, mode="before")
    @classmethod
    def parse_dates(cls, value: Any) -> Any:
        return parse_lenient_date(value)

    def changes(self) -> dict:
        """
        Only the fields the client actually sent.

        Setting event_type discards the payload of the other branch; the
        stored payload of the matching branch stays unless it was sent.
        """
        data = self.model_dump(exclude_unset=True)
        if "custom_fields" in data:
            data["custom_fields"] = [f.model_dump() for f in self.custom_fields or []]
        if "merchandise_details" in data:
            data["merchandise_details"] = (
                self.merchandise_details.model_dump() if self.merchandise_details else None
            )
        if self.event_type == "merchandise":
            data["custom_fields"] = []
        elif self.event_type is not None:
            data["merchandise_details"] = None
        return data


class EventResponse(BaseModel):
    id: int
    organizer_id: int
    name: str
    description: str
    event_type: str
    eligibility: Optional[str]
    tags: Optional[str]
    registration_deadline: datetime
    start_date: datetime
    end_date: datetime
    registration_limit: Optional[int]
    registration_fee: float
    status: str
    views: int
    sold_count: int
    custom_fields: list[CustomField]
    merchandise_details: Optional[MerchandiseDetails]
    created_at: datetime

    model_config = {"from_attributes": True}


class OrganizerEventResponse(EventResponse):
    registered_count: int = 0


class ParticipantEventResponse(EventResponse):
    organizer: Optional[ClubSummary] = None


class EventCreatedResponse(BaseModel):
    message: str
    event: EventResponse


class EventSummary(BaseModel):
    id: int
    name: str
    event_type: str
    status: str
    start_date: datetime
    end_date: datetime
    organizer_name: Optional[str] = None


class ClubDetails(BaseModel):
    club: ClubSummary
    events: list[EventResponse]
