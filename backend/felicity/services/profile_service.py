"""
Participant onboarding, club following and profile maintenance, plus the
organizer's own profile.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from felicity.core.logging import get_logger
from felicity.core.security import hash_password, verify_password
from felicity.models.event import Event, EventStatus
from felicity.models.organizer import Organizer
from felicity.models.user import User
from felicity.schemas.event import ClubDetails, EventResponse
from felicity.schemas.organizer import ClubSummary, OrganizerProfileUpdate
from felicity.schemas.user import OnboardingData, OnboardingSubmit, PasswordChange, ProfileUpdate

logger = get_logger(__name__)


async def _active_clubs(db: AsyncSession) -> list[Organizer]:
    result = await db.execute(
        select(Organizer).where(Organizer.status == "active").order_by(Organizer.name, Organizer.id)
    )
    return list(result.scalars().all())


async def onboarding_data(db: AsyncSession) -> OnboardingData:
    categories: list[str] = []
    clubs: list[str] = []
    for organizer in await _active_clubs(db):
        if organizer.name:
            clubs.append(organizer.name)
        for category in organizer.categories:
            if category not in categories:
                categories.append(category)
    return OnboardingData(categories=categories, clubs=clubs)


async def complete_onboarding(db: AsyncSession, user: User, data: OnboardingSubmit) -> User:
    user.interested_topics = list(data.topics)
    user.interested_clubs = list(data.clubs)
    user.filled = True
    await db.flush()
    await db.refresh(user)

    logger.info("onboarding_completed", user_id=user.id, topics=len(data.topics), clubs=len(data.clubs))
    return user


async def list_clubs(db: AsyncSession) -> list[ClubSummary]:
    return [ClubSummary.model_validate(o) for o in await _active_clubs(db)]


async def get_club(db: AsyncSession, club_id: int) -> Organizer:
    organizer = await db.get(Organizer, club_id)
    if not organizer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Club not found")
    return organizer


async def club_details(db: AsyncSession, club_id: int) -> ClubDetails:
    organizer = await get_club(db, club_id)
    result = await db.execute(
        select(Event)
        .where(Event.organizer_id == organizer.id, Event.status != EventStatus.DRAFT)
        .order_by(Event.start_date.desc())
    )
    return ClubDetails(
        club=ClubSummary.model_validate(organizer),
        events=[EventResponse.model_validate(e) for e in result.scalars().all()],
    )


async def toggle_follow(db: AsyncSession, user: User, club_id: int) -> list[str]:
    """Follow or unfollow a club. Clubs are followed by name."""
    organizer = await get_club(db, club_id)
    if not organizer.name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Club has no name set")

    followed = list(user.interested_clubs or [])
    if organizer.name in followed:
        followed.remove(organizer.name)
        action = "unfollowed"
    else:
        followed.append(organizer.name)
        action = "followed"

    # Reassign so the JSON column is marked dirty
    user.interested_clubs = followed
    await db.flush()

    logger.info("club_follow_toggled", user_id=user.id, club_id=organizer.id, action=action)
    return followed


async def update_profile(db: AsyncSession, user: User, data: ProfileUpdate) -> User:
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(user, field, value)
    await db.flush()
    await db.refresh(user)

    logger.info("profile_updated", user_id=user.id)
    return user


async def change_password(db: AsyncSession, user: User, data: PasswordChange) -> None:
    if user.username != data.email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email does not match your account",
        )

    if not verify_password(data.old_password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect old password")

    user.hashed_password = hash_password(data.new_password)
    await db.flush()
    logger.info("password_changed", user_id=user.id)


async def update_organizer_profile(
    db: AsyncSession,
    organizer: Organizer,
    data: OrganizerProfileUpdate,
) -> Organizer:
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(organizer, field, value)
    await db.flush()
    await db.refresh(organizer)

    logger.info("organizer_profile_updated", organizer_id=organizer.id)
    return organizer
