"""
Event catalog: organizer CRUD with status-gated edits, and the participant
browse/read paths.

Status changes go through a conditional UPDATE on the current status, so
two organizers' tabs racing the same transition cannot both win, and a
draft becomes published in one statement without changing its id.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from felicity.core.logging import get_logger
from felicity.models.event import Event, EventStatus
from felicity.models.organizer import Organizer
from felicity.models.ticket import Ticket, TicketStatus
from felicity.schemas.event import EventCreate, EventResponse, EventSummary, EventUpdate
from felicity.schemas.organizer import ClubSummary
from felicity.services.cache_service import get_cached_browse, set_cached_browse

logger = get_logger(__name__)

# Fields an organizer may still touch once participants can see the event
PUBLISHED_EDITABLE = {"status", "description", "registration_deadline", "registration_limit"}
REQUIRED_FIELDS = {
    "name", "description", "event_type", "registration_deadline", "start_date", "end_date",
    "registration_fee", "custom_fields",
}


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def event_summary(event: Event, organizer_name: Optional[str] = None) -> EventSummary:
    return EventSummary(
        id=event.id,
        name=event.name,
        event_type=event.event_type,
        status=event.status,
        start_date=event.start_date,
        end_date=event.end_date,
        organizer_name=organizer_name,
    )


def webhook_payload(event: Event) -> dict:
    return {
        "name": event.name,
        "description": event.description,
        "event_type": event.event_type,
        "start_date": as_utc(event.start_date),
        "registration_deadline": as_utc(event.registration_deadline),
    }


async def create_event(db: AsyncSession, organizer: Organizer, event_data: EventCreate) -> Event:
    """Store a new event as a draft or, with action=publish, directly as published."""
    event = Event(
        organizer_id=organizer.id,
        name=event_data.name,
        description=event_data.description,
        event_type=event_data.event_type,
        eligibility=event_data.eligibility,
        tags=event_data.tags,
        registration_deadline=event_data.registration_deadline,
        start_date=event_data.start_date,
        end_date=event_data.end_date,
        registration_limit=event_data.registration_limit,
        registration_fee=event_data.registration_fee,
        status=EventStatus.PUBLISHED if event_data.action == "publish" else EventStatus.DRAFT,
        custom_fields=[f.model_dump() for f in event_data.custom_fields],
        merchandise_details=(
            event_data.merchandise_details.model_dump() if event_data.merchandise_details else None
        ),
        views=0,
        sold_count=0,
    )
    db.add(event)
    await db.flush()
    await db.refresh(event)

    logger.info(
        "event_created",
        event_id=event.id,
        organizer_id=organizer.id,
        event_type=event.event_type,
        status=event.status,
    )
    return event


async def get_event(db: AsyncSession, event_id: int) -> Event:
    result = await db.execute(select(Event).where(Event.id == event_id))
    event = result.scalar_one_or_none()

    if not event:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return event


async def get_owned_event(db: AsyncSession, event_id: int, organizer_id: int) -> Event:
    event = await get_event(db, event_id)
    if event.organizer_id != organizer_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. You do not own this event.",
        )
    return event


async def get_open_event(db: AsyncSession, event_id: int) -> Event:
    """An event that is currently accepting registrations."""
    event = await get_event(db, event_id)
    if event.status not in EventStatus.OPEN_FOR_REGISTRATION:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Event is not open for registration",
        )
    return event


async def registered_counts(db: AsyncSession, event_ids: list[int]) -> dict[int, int]:
    """Sum of ticket quantities per event over Registered and Completed tickets."""
    if not event_ids:
        return {}
    result = await db.execute(
        select(Ticket).where(Ticket.event_id.in_(event_ids), Ticket.status.in_(TicketStatus.COUNTED))
    )
    counts = {event_id: 0 for event_id in event_ids}
    for ticket in result.scalars():
        counts[ticket.event_id] += ticket.quantity
    return counts


async def list_organizer_events(db: AsyncSession, organizer_id: int) -> list[tuple[Event, int]]:
    result = await db.execute(
        select(Event)
        .where(Event.organizer_id == organizer_id)
        .order_by(Event.created_at.desc(), Event.id.desc())
    )
    events = list(result.scalars().all())
    counts = await registered_counts(db, [e.id for e in events])
    return [(event, counts[event.id]) for event in events]


async def _transition(db: AsyncSession, event: Event, new_status: str) -> None:
    """Move an event to a new status only if nobody moved it first."""
    allowed = EventStatus.TRANSITIONS.get(event.status, set())
    if new_status not in allowed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid status transition from {event.status} to {new_status}",
        )

    result = await db.execute(
        update(Event)
        .where(Event.id == event.id, Event.status == event.status)
        .values(status=new_status)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Event status was changed by another request. Please reload.",
        )

    if new_status == EventStatus.COMPLETED:
        completed = await db.execute(
            update(Ticket)
            .where(Ticket.event_id == event.id, Ticket.status == TicketStatus.REGISTERED)
            .values(status=TicketStatus.COMPLETED)
            .execution_options(synchronize_session=False)
        )
        logger.info("event_tickets_completed", event_id=event.id, tickets=completed.rowcount)

    logger.info("event_status_changed", event_id=event.id, old=event.status, new=new_status)
    await db.refresh(event)


def _check_published_edit(event: Event, changes: dict) -> None:
    disallowed = sorted(set(changes) - PUBLISHED_EDITABLE)
    if disallowed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot modify {', '.join(disallowed)} after publishing",
        )

    if changes.get("registration_deadline") is not None:
        new_deadline = as_utc(changes["registration_deadline"])
        if new_deadline < as_utc(event.registration_deadline):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Registration deadline can only be extended",
            )

    if "registration_limit" in changes:
        new_limit = changes["registration_limit"] or None
        if new_limit is not None:
            if event.registration_limit is None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Cannot set a limit on an event with unlimited registrations",
                )
            if new_limit < event.registration_limit:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Registration limit can only be increased",
                )
        changes["registration_limit"] = new_limit


def _normalize_payload(event: Event) -> None:
    if event.is_merchandise:
        event.custom_fields = []
        if event.merchandise_details is None:
            event.merchandise_details = {"sizes": [], "colors": [], "variants": [], "purchase_limit": 1}
    else:
        event.merchandise_details = None


async def update_event(db: AsyncSession, event: Event, patch: EventUpdate) -> tuple[Event, bool]:
    """
    Apply an organizer edit under the status-gated rules.

    Returns the event and whether this edit published it.
    """
    changes = patch.changes()
    new_status = changes.pop("status", None)
    if new_status == event.status:
        new_status = None

    if event.status in EventStatus.TERMINAL:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot edit a {event.status} event",
        )

    if event.status == EventStatus.ONGOING and changes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only status can be changed for ongoing events",
        )

    if event.status == EventStatus.PUBLISHED:
        _check_published_edit(event, changes)
    elif event.is_draft and "registration_limit" in changes:
        changes["registration_limit"] = changes["registration_limit"] or None

    for field, value in changes.items():
        if value is None and field in REQUIRED_FIELDS:
            continue
        setattr(event, field, value)
    if event.is_draft:
        _normalize_payload(event)
    await db.flush()

    published_now = False
    if new_status is not None:
        published_now = event.is_draft and new_status == EventStatus.PUBLISHED
        await _transition(db, event, new_status)
    else:
        await db.refresh(event)

    logger.info("event_updated", event_id=event.id, fields=sorted(changes), status=event.status)
    return event, published_now


async def delete_event(db: AsyncSession, event: Event) -> None:
    if not event.is_draft:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only draft events can be deleted",
        )
    await db.delete(event)
    await db.flush()
    logger.info("event_deleted", event_id=event.id)


def _participant_view(event: Event, organizer: Optional[Organizer]) -> dict:
    data = EventResponse.model_validate(event).model_dump(mode="json")
    data["organizer"] = ClubSummary.model_validate(organizer).model_dump() if organizer else None
    return data


async def list_published_events(db: AsyncSession) -> list[dict]:
    """Every non-draft event, newest first, served from the cache when warm."""
    cached = await get_cached_browse()
    if cached is not None:
        logger.debug("events_browse_cache_hit", count=len(cached))
        return cached

    result = await db.execute(
        select(Event, Organizer)
        .join(Organizer, Event.organizer_id == Organizer.id, isouter=True)
        .where(Event.status != EventStatus.DRAFT)
        .order_by(Event.created_at.desc(), Event.id.desc())
    )
    events = [_participant_view(event, organizer) for event, organizer in result.all()]

    await set_cached_browse(events)
    return events


def order_for_participant(events: list[dict], followed_clubs: Optional[list[str]]) -> list[dict]:
    """Followed clubs first; the sort is stable so each group stays newest first."""
    followed = set(followed_clubs or [])

    def not_followed(item: dict) -> bool:
        organizer = item.get("organizer") or {}
        return organizer.get("name") not in followed

    return sorted(events, key=not_followed)


async def view_event(db: AsyncSession, event_id: int) -> dict:
    """Participant read of one event. Bumps the view counter in the same statement that checks visibility."""
    result = await db.execute(
        update(Event)
        .where(Event.id == event_id, Event.status != EventStatus.DRAFT)
        .values(views=Event.views + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")

    row = (
        await db.execute(
            select(Event, Organizer)
            .join(Organizer, Event.organizer_id == Organizer.id, isouter=True)
            .where(Event.id == event_id)
            .execution_options(populate_existing=True)
        )
    ).one()
    return _participant_view(row[0], row[1])
