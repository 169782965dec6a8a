"""
Organizer endpoints: event management, attendance and the club profile.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from felicity.api.deps import get_current_organizer
from felicity.core.logging import get_logger
from felicity.db.session import get_db
from felicity.models.event import Event
from felicity.models.organizer import Organizer
from felicity.schemas.event import (
    EventCreate,
    EventCreatedResponse,
    EventResponse,
    EventUpdate,
    OrganizerEventResponse,
)
from felicity.schemas.organizer import (
    MessageResponse,
    OrganizerProfileResponse,
    OrganizerProfileUpdate,
    OrganizerResponse,
)
from felicity.schemas.ticket import (
    AttendanceResponse,
    AttendeeRow,
    EventParticipantsReport,
    ManualOverrideRequest,
    ScanRequest,
    TicketResponse,
)
from felicity.services import event_service, profile_service, ticket_service
from felicity.services.cache_service import invalidate_event_cache
from felicity.services.notification_service import send_discord_notification

logger = get_logger(__name__)
router = APIRouter(prefix="/organizer", tags=["Organizer"])


def _announce(background_tasks: BackgroundTasks, organizer: Organizer, event: Event) -> None:
    if organizer.discord_webhook:
        background_tasks.add_task(
            send_discord_notification,
            organizer.discord_webhook,
            event_service.webhook_payload(event),
            organizer.name,
        )


@router.post("/events", response_model=EventCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    event_data: EventCreate,
    background_tasks: BackgroundTasks,
    organizer: Organizer = Depends(get_current_organizer),
    db: AsyncSession = Depends(get_db),
):
    """Create an event as a draft, or publish it straight away with action=publish."""
    event = await event_service.create_event(db, organizer, event_data)

    if not event.is_draft:
        await invalidate_event_cache()
        _announce(background_tasks, organizer, event)
        message = "Event published successfully"
    else:
        message = "Event saved as draft"

    return EventCreatedResponse(message=message, event=EventResponse.model_validate(event))


@router.get("/events", response_model=list[OrganizerEventResponse])
async def list_events(
    organizer: Organizer = Depends(get_current_organizer),
    db: AsyncSession = Depends(get_db),
):
    """Drafts and published events, each with its registered count."""
    rows = await event_service.list_organizer_events(db, organizer.id)
    return [
        OrganizerEventResponse(**EventResponse.model_validate(event).model_dump(), registered_count=count)
        for event, count in rows
    ]


@router.get("/events/{event_id}", response_model=EventResponse)
async def get_event(
    event_id: int,
    organizer: Organizer = Depends(get_current_organizer),
    db: AsyncSession = Depends(get_db),
):
    return await event_service.get_owned_event(db, event_id, organizer.id)


@router.put("/events/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: int,
    patch: EventUpdate,
    background_tasks: BackgroundTasks,
    organizer: Organizer = Depends(get_current_organizer),
    db: AsyncSession = Depends(get_db),
):
    """
    Edit an event. What may change depends on its status: drafts are free,
    published events accept a short allow-list, ongoing events only a
    status change, and closed/completed/cancelled events nothing.
    """
    event = await event_service.get_owned_event(db, event_id, organizer.id)
    event, published_now = await event_service.update_event(db, event, patch)

    if not event.is_draft:
        await invalidate_event_cache()
    if published_now:
        _announce(background_tasks, organizer, event)
    return event


@router.delete("/events/{event_id}", response_model=MessageResponse)
async def delete_event(
    event_id: int,
    organizer: Organizer = Depends(get_current_organizer),
    db: AsyncSession = Depends(get_db),
):
    event = await event_service.get_owned_event(db, event_id, organizer.id)
    await event_service.delete_event(db, event)
    return MessageResponse(message="Draft deleted successfully")


@router.get("/events/{event_id}/attendance", response_model=list[AttendeeRow])
async def attendance(
    event_id: int,
    organizer: Organizer = Depends(get_current_organizer),
    db: AsyncSession = Depends(get_db),
):
    event = await event_service.get_owned_event(db, event_id, organizer.id)
    return await ticket_service.list_attendance(db, event)


@router.post("/events/{event_id}/scan", response_model=AttendanceResponse)
async def scan(
    event_id: int,
    data: ScanRequest,
    organizer: Organizer = Depends(get_current_organizer),
    db: AsyncSession = Depends(get_db),
):
    """Mark attendance from a QR scan. Accepts the ticket id or the raw scanned JSON."""
    event = await event_service.get_owned_event(db, event_id, organizer.id)
    ticket = await ticket_service.scan_ticket(db, event, data.ticket_id)
    return AttendanceResponse(
        message="Attendance marked successfully",
        ticket=TicketResponse.model_validate(ticket),
    )


@router.post("/events/{event_id}/manual-override", response_model=AttendanceResponse)
async def manual_override(
    event_id: int,
    data: ManualOverrideRequest,
    organizer: Organizer = Depends(get_current_organizer),
    db: AsyncSession = Depends(get_db),
):
    event = await event_service.get_owned_event(db, event_id, organizer.id)
    ticket = await ticket_service.apply_manual_override(db, event, data)
    return AttendanceResponse(
        message="Manual override applied successfully",
        ticket=TicketResponse.model_validate(ticket),
    )


@router.get("/events/{event_id}/participants", response_model=EventParticipantsReport)
async def participants(
    event_id: int,
    organizer: Organizer = Depends(get_current_organizer),
    db: AsyncSession = Depends(get_db),
):
    event = await event_service.get_owned_event(db, event_id, organizer.id)
    return await ticket_service.participants_report(db, event)


@router.get("/profile", response_model=OrganizerResponse)
async def get_profile(organizer: Organizer = Depends(get_current_organizer)):
    return organizer


@router.put("/profile", response_model=OrganizerProfileResponse)
async def update_profile(
    data: OrganizerProfileUpdate,
    organizer: Organizer = Depends(get_current_organizer),
    db: AsyncSession = Depends(get_db),
):
    organizer = await profile_service.update_organizer_profile(db, organizer, data)
    await invalidate_event_cache()
    return OrganizerProfileResponse(
        message="Profile updated successfully",
        profile=OrganizerResponse.model_validate(organizer),
    )
