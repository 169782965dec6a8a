"""
Registration and attendance with concurrency-safe capacity reservation.

CONCURRENCY STRATEGY: Conditional UPDATE on a sold counter
=========================================================

Problem:
  Two participants try to take the last slot (or the last T-shirts) at the
  same time. Both count existing tickets, both see room, both insert.
  Result: the event is oversold.

Solution:
  `events.sold_count` holds the capacity already consumed. Registration
  reserves its quantity with one statement:

    UPDATE events SET sold_count = sold_count + :qty
    WHERE id = :event_id AND status IN ('Published', 'Ongoing')
      AND (registration_limit IS NULL OR sold_count + :qty <= registration_limit)

  If no row was updated the event is full (or was closed in between) and
  the registration is refused. The ticket insert happens in the same
  request transaction, so a failure after the reservation rolls it back.

  The unique constraint on (event_id, participant_id) is the final safety
  net against a participant registering twice concurrently.

Cancelling a ticket does not give its capacity back.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from felicity.core.logging import get_logger
from felicity.core.metrics import record_registration, record_scan, manual_overrides, tickets_issued
from felicity.models.event import Event, EventStatus
from felicity.models.organizer import Organizer
from felicity.models.team import Team
from felicity.models.ticket import Ticket, TicketStatus
from felicity.models.user import User
from felicity.schemas.ticket import (
    AttendeeRow,
    EventAnalytics,
    EventParticipantsReport,
    ManualOverrideRequest,
    MerchandiseSelection,
    RegistrationCreate,
    TicketResponse,
    TicketWithEvent,
)
from felicity.services.event_service import event_summary, get_event
from felicity.services.qr_service import (
    build_qr_payload,
    derive_ticket_id,
    extract_ticket_id,
    render_qr_png,
    to_data_url,
)

logger = get_logger(__name__)


def capacity_error(event: Event) -> HTTPException:
    if event.is_merchandise:
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Out of stock! Not enough items available.",
        )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Registration limit reached")


async def reserve_capacity(db: AsyncSession, event: Event, quantity: int) -> bool:
    """Atomically consume `quantity` units of the event's capacity."""
    result = await db.execute(
        update(Event)
        .where(
            Event.id == event.id,
            Event.status.in_(EventStatus.OPEN_FOR_REGISTRATION),
            or_(
                Event.registration_limit.is_(None),
                Event.sold_count + quantity <= Event.registration_limit,
            ),
        )
        .values(sold_count=Event.sold_count + quantity)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(event)
    return result.rowcount == 1


async def organizer_name_for(db: AsyncSession, event: Event) -> Optional[str]:
    organizer = await db.get(Organizer, event.organizer_id)
    return organizer.name if organizer else None


def build_ticket(
    event: Event,
    organizer_name: Optional[str],
    participant: User,
    *,
    team: Optional[Team] = None,
    team_name: Optional[str] = None,
    answers: Optional[dict] = None,
    merchandise_selection: Optional[dict] = None,
) -> Ticket:
    """Derive the ticket id and scannable code for one participant."""
    ticket_id = derive_ticket_id(organizer_name, event.name, participant.username)
    payload = build_qr_payload(
        ticket_id=ticket_id,
        event_id=event.id,
        event_name=event.name,
        participant_id=participant.id,
        participant_name=participant.username,
    )
    return Ticket(
        ticket_id=ticket_id,
        event_id=event.id,
        participant_id=participant.id,
        qr_payload=payload,
        qr_code=to_data_url(render_qr_png(payload)),
        type=event.event_type,
        status=TicketStatus.REGISTERED,
        team_id=team.id if team else None,
        team_name=team.name if team else team_name,
        answers=answers,
        merchandise_selection=merchandise_selection,
        attendance_marked=False,
        manual_override=False,
    )


async def ensure_ticket_ids_free(db: AsyncSession, ticket_ids: list[str]) -> None:
    result = await db.execute(select(Ticket.ticket_id).where(Ticket.ticket_id.in_(ticket_ids)))
    taken = result.scalars().first()
    if taken is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Ticket {taken} already exists",
        )


async def find_ticket(db: AsyncSession, event_id: int, participant_id: int) -> Optional[Ticket]:
    result = await db.execute(
        select(Ticket).where(Ticket.event_id == event_id, Ticket.participant_id == participant_id)
    )
    return result.scalar_one_or_none()


def _validate_merchandise(event: Event, selection: Optional[MerchandiseSelection]) -> dict:
    selection = selection or MerchandiseSelection()
    details = event.merchandise_details or {}

    if selection.quantity > event.purchase_limit:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"You can only purchase up to {event.purchase_limit} items.",
        )

    if not selection.size or not selection.color:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please select size and color.")

    for attribute, offered_key in (("size", "sizes"), ("color", "colors"), ("variant", "variants")):
        chosen = getattr(selection, attribute)
        offered = details.get(offered_key) or []
        if chosen and offered and chosen not in offered:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{attribute.capitalize()} '{chosen}' is not available for this item.",
            )

    return selection.model_dump()


def _is_blank(value: Any) -> bool:
    return value is None or value is False or (isinstance(value, (str, list)) and not value)


def _validate_answers(event: Event, answers: dict[str, Any]) -> dict[str, Any]:
    for field in event.custom_fields or []:
        label = field["label"]
        value = answers.get(label)

        if field.get("required") and _is_blank(value):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"'{label}' is required",
            )

        if field["type"] == "dropdown" and not _is_blank(value) and value not in field.get("options", []):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"'{value}' is not a valid option for '{label}'",
            )
    return answers


async def register_for_event(
    db: AsyncSession,
    event_id: int,
    participant: User,
    data: RegistrationCreate,
) -> tuple[Ticket, Event, Optional[str]]:
    """
    Register a participant for an event and issue their ticket.

    Returns the ticket, the event and the organizer's name so the caller can
    schedule the confirmation mail.
    """
    event = await get_event(db, event_id)
    if event.status not in EventStatus.OPEN_FOR_REGISTRATION:
        record_registration("invalid")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Event is not open for registration.",
        )

    if await find_ticket(db, event.id, participant.id):
        record_registration("conflict")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You are already registered for this event.",
        )

    answers = None
    selection = None
    quantity = 1
    try:
        if event.is_merchandise:
            selection = _validate_merchandise(event, data.merchandise_selection)
            quantity = selection["quantity"]
        else:
            answers = _validate_answers(event, data.answers)
    except HTTPException:
        record_registration("invalid")
        raise

    organizer_name = await organizer_name_for(db, event)
    ticket = build_ticket(
        event,
        organizer_name,
        participant,
        team_name=data.team_name,
        answers=answers,
        merchandise_selection=selection,
    )
    await ensure_ticket_ids_free(db, [ticket.ticket_id])

    if not await reserve_capacity(db, event, quantity):
        record_registration("sold_out")
        logger.warning(
            "registration_rejected_capacity",
            event_id=event.id,
            requested=quantity,
            sold=event.sold_count,
            limit=event.registration_limit,
        )
        raise capacity_error(event)

    db.add(ticket)
    await db.flush()
    await db.refresh(ticket)

    record_registration("success")
    tickets_issued.labels(source="direct").inc()
    logger.info(
        "ticket_issued",
        ticket_id=ticket.ticket_id,
        event_id=event.id,
        participant_id=participant.id,
        quantity=quantity,
    )
    return ticket, event, organizer_name


async def list_my_tickets(db: AsyncSession, participant_id: int) -> list[TicketWithEvent]:
    result = await db.execute(
        select(Ticket, Event, Organizer.name)
        .join(Event, Ticket.event_id == Event.id)
        .join(Organizer, Event.organizer_id == Organizer.id, isouter=True)
        .where(Ticket.participant_id == participant_id)
        .order_by(Ticket.created_at.desc(), Ticket.id.desc())
    )
    return [
        TicketWithEvent(
            **TicketResponse.model_validate(ticket).model_dump(),
            event=event_summary(event, organizer_name),
        )
        for ticket, event, organizer_name in result.all()
    ]


async def cancel_ticket(db: AsyncSession, ticket_pk: int, participant_id: int) -> Ticket:
    """Cancel a Registered ticket. Consumed capacity is not restored."""
    result = await db.execute(
        select(Ticket).where(Ticket.id == ticket_pk, Ticket.participant_id == participant_id)
    )
    ticket = result.scalar_one_or_none()

    if not ticket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket not found")

    if ticket.status != TicketStatus.REGISTERED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only registered tickets can be cancelled",
        )

    ticket.status = TicketStatus.CANCELLED
    await db.flush()
    await db.refresh(ticket)

    logger.info("ticket_cancelled", ticket_id=ticket.ticket_id, participant_id=participant_id)
    return ticket


def _attendee_row(ticket: Ticket, participant: Optional[User]) -> AttendeeRow:
    return AttendeeRow(
        id=ticket.id,
        ticket_id=ticket.ticket_id,
        participant_id=ticket.participant_id,
        participant_name=participant.display_name if participant else "Unknown",
        participant_email=participant.username if participant else "Unknown",
        type=ticket.type,
        status=ticket.status,
        attendance_marked=ticket.attendance_marked,
        attendance_timestamp=ticket.attendance_timestamp,
        manual_override=ticket.manual_override,
        override_reason=ticket.override_reason,
        team_name=ticket.team_name,
        answers=ticket.answers,
        merchandise_selection=ticket.merchandise_selection,
        purchase_date=ticket.created_at,
    )


async def _event_tickets(db: AsyncSession, event_id: int) -> list[tuple[Ticket, Optional[User]]]:
    result = await db.execute(
        select(Ticket, User)
        .join(User, Ticket.participant_id == User.id, isouter=True)
        .where(Ticket.event_id == event_id)
        .order_by(Ticket.created_at.desc(), Ticket.id.desc())
    )
    return list(result.all())


async def list_attendance(db: AsyncSession, event: Event) -> list[AttendeeRow]:
    return [_attendee_row(ticket, user) for ticket, user in await _event_tickets(db, event.id)]


async def _event_ticket_by_code(db: AsyncSession, event: Event, code: str) -> Optional[Ticket]:
    result = await db.execute(
        select(Ticket).where(Ticket.ticket_id == extract_ticket_id(code), Ticket.event_id == event.id)
    )
    return result.scalar_one_or_none()


async def scan_ticket(db: AsyncSession, event: Event, code: str) -> Ticket:
    """Mark attendance from a gate scan. A ticket can be scanned in only once."""
    ticket = await _event_ticket_by_code(db, event, code)
    if not ticket:
        record_scan("unknown")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid ticket for this event.")

    if ticket.status != TicketStatus.REGISTERED:
        record_scan("invalid_status")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Ticket status is {ticket.status}. Cannot mark attendance.",
        )

    # Two scanners reading the same code race on this UPDATE; one of them wins
    result = await db.execute(
        update(Ticket)
        .where(
            Ticket.id == ticket.id,
            Ticket.status == TicketStatus.REGISTERED,
            Ticket.attendance_marked.is_(False),
        )
        .values(attendance_marked=True, attendance_timestamp=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        record_scan("duplicate")
        logger.warning("duplicate_scan", ticket_id=ticket.ticket_id, event_id=event.id)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Duplicate Scan: Attendance already marked.",
        )

    await db.refresh(ticket)
    record_scan("accepted")
    logger.info("attendance_marked", ticket_id=ticket.ticket_id, event_id=event.id)
    return ticket


async def apply_manual_override(db: AsyncSession, event: Event, data: ManualOverrideRequest) -> Ticket:
    ticket = await _event_ticket_by_code(db, event, data.ticket_id)
    if not ticket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket not found")

    ticket.attendance_marked = data.attendance_marked
    ticket.attendance_timestamp = datetime.now(timezone.utc) if data.attendance_marked else None
    ticket.manual_override = True
    ticket.override_reason = data.override_reason
    await db.flush()
    await db.refresh(ticket)

    manual_overrides.inc()
    logger.info(
        "attendance_overridden",
        ticket_id=ticket.ticket_id,
        event_id=event.id,
        attendance_marked=data.attendance_marked,
        reason=data.override_reason,
    )
    return ticket


async def participants_report(db: AsyncSession, event: Event) -> EventParticipantsReport:
    rows = await _event_tickets(db, event.id)

    total_sales = 0
    total_attended = 0
    for ticket, _ in rows:
        if ticket.status in TicketStatus.COUNTED:
            total_sales += ticket.quantity
        if ticket.attendance_marked:
            total_attended += ticket.quantity

    return EventParticipantsReport(
        event_details=event_summary(event, await organizer_name_for(db, event)),
        registration_fee=event.registration_fee,
        registration_limit=event.registration_limit,
        analytics=EventAnalytics(
            total_sales=total_sales,
            total_revenue=total_sales * (event.registration_fee or 0),
            total_attended=total_attended,
        ),
        participants=[_attendee_row(ticket, user) for ticket, user in rows],
    )
