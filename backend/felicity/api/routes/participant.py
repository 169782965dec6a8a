"""
Participant endpoints: onboarding, clubs, profile, event browsing and
registration.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from felicity.api.deps import get_current_participant
from felicity.db.session import get_db
from felicity.models.user import User
from felicity.schemas.event import ClubDetails, ParticipantEventResponse
from felicity.schemas.organizer import ClubsResponse, MessageResponse
from felicity.schemas.ticket import (
    RegistrationCreate,
    RegistrationResponse,
    TicketCancelResponse,
    TicketResponse,
    TicketWithEvent,
)
from felicity.schemas.user import (
    FollowResponse,
    OnboardingData,
    OnboardingSubmit,
    PasswordChange,
    ProfileUpdate,
    ProfileUpdateResponse,
    UserResponse,
)
from felicity.services import event_service, profile_service, ticket_service
from felicity.services.notification_service import send_ticket_email
from felicity.services.qr_service import data_url_to_png

router = APIRouter(prefix="/participant", tags=["Participant"])


@router.get("/onboarding-data", response_model=OnboardingData)
async def onboarding_data(
    _: User = Depends(get_current_participant),
    db: AsyncSession = Depends(get_db),
):
    return await profile_service.onboarding_data(db)


@router.post("/onboarding", response_model=MessageResponse)
async def onboarding(
    data: OnboardingSubmit,
    user: User = Depends(get_current_participant),
    db: AsyncSession = Depends(get_db),
):
    await profile_service.complete_onboarding(db, user, data)
    return MessageResponse(message="Onboarding completed successfully")


@router.get("/clubs", response_model=ClubsResponse)
async def list_clubs(
    user: User = Depends(get_current_participant),
    db: AsyncSession = Depends(get_db),
):
    return ClubsResponse(
        clubs=await profile_service.list_clubs(db),
        followed_clubs=list(user.interested_clubs or []),
    )


@router.get("/clubs/{club_id}", response_model=ClubDetails)
async def club_details(
    club_id: int,
    _: User = Depends(get_current_participant),
    db: AsyncSession = Depends(get_db),
):
    return await profile_service.club_details(db, club_id)


@router.post("/clubs/{club_id}/toggle", response_model=FollowResponse)
async def toggle_follow(
    club_id: int,
    user: User = Depends(get_current_participant),
    db: AsyncSession = Depends(get_db),
):
    followed = await profile_service.toggle_follow(db, user, club_id)
    return FollowResponse(message="Follow status updated", followed_clubs=followed)


@router.get("/profile", response_model=UserResponse)
async def get_profile(user: User = Depends(get_current_participant)):
    return user


@router.put("/profile", response_model=ProfileUpdateResponse)
async def update_profile(
    data: ProfileUpdate,
    user: User = Depends(get_current_participant),
    db: AsyncSession = Depends(get_db),
):
    user = await profile_service.update_profile(db, user, data)
    return ProfileUpdateResponse(message="Profile updated successfully", profile=UserResponse.model_validate(user))


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    data: PasswordChange,
    user: User = Depends(get_current_participant),
    db: AsyncSession = Depends(get_db),
):
    await profile_service.change_password(db, user, data)
    return MessageResponse(message="Password changed successfully")


@router.get("/events", response_model=list[ParticipantEventResponse])
async def browse_events(
    user: User = Depends(get_current_participant),
    db: AsyncSession = Depends(get_db),
):
    """Published events, clubs the participant follows first, then newest first."""
    events = await event_service.list_published_events(db)
    return event_service.order_for_participant(events, user.interested_clubs)


@router.get("/events/{event_id}", response_model=ParticipantEventResponse)
async def view_event(
    event_id: int,
    _: User = Depends(get_current_participant),
    db: AsyncSession = Depends(get_db),
):
    """Single event read. Counts as a view."""
    return await event_service.view_event(db, event_id)


@router.post(
    "/events/{event_id}/register",
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(
    event_id: int,
    data: RegistrationCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_participant),
    db: AsyncSession = Depends(get_db),
):
    """
    Register for an event.

    Capacity is reserved atomically, so concurrent registrations cannot
    oversell the event. The confirmation mail is sent after the response.
    """
    ticket, event, organizer_name = await ticket_service.register_for_event(db, event_id, user, data)
    background_tasks.add_task(
        send_ticket_email,
        user.username,
        event.name,
        event.event_type,
        organizer_name,
        ticket.ticket_id,
        data_url_to_png(ticket.qr_code),
    )
    return RegistrationResponse(message="Registration successful!", ticket=TicketResponse.model_validate(ticket))


@router.get("/my-events", response_model=list[TicketWithEvent])
async def my_events(
    user: User = Depends(get_current_participant),
    db: AsyncSession = Depends(get_db),
):
    return await ticket_service.list_my_tickets(db, user.id)


@router.put("/tickets/{ticket_pk}/cancel", response_model=TicketCancelResponse)
async def cancel_ticket(
    ticket_pk: int,
    user: User = Depends(get_current_participant),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a registered ticket. The slot is not released back to the event."""
    ticket = await ticket_service.cancel_ticket(db, ticket_pk, user.id)
    return TicketCancelResponse(
        message="Ticket cancelled successfully",
        ticket_id=ticket.ticket_id,
        status=ticket.status,
    )
