"""
Admin operations: organizer accounts and password-reset requests.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from felicity.core.logging import get_logger
from felicity.core.security import hash_password
from felicity.models.event import Event
from felicity.models.organizer import Organizer
from felicity.models.password_reset import PasswordReset, ResetStatus
from felicity.models.user import User
from felicity.schemas.organizer import OrganizerCreate, PasswordResetResolve

logger = get_logger(__name__)


@dataclass
class ResolvedIdentity:
    """Every account a login string resolves to, across both account stores."""

    login: str
    organizer: Optional[Organizer] = None
    participant: Optional[User] = None

    @property
    def accounts(self) -> list:
        return [a for a in (self.organizer, self.participant) if a is not None]

    @property
    def found(self) -> bool:
        return bool(self.accounts)


async def resolve_identity(db: AsyncSession, login: str) -> ResolvedIdentity:
    organizer = (
        await db.execute(select(Organizer).where(Organizer.email == login))
    ).scalar_one_or_none()
    participant = (
        await db.execute(select(User).where(User.username == login))
    ).scalar_one_or_none()
    return ResolvedIdentity(login=login, organizer=organizer, participant=participant)


async def create_organizer(db: AsyncSession, data: OrganizerCreate) -> Organizer:
    result = await db.execute(select(Organizer.id).where(Organizer.email == data.email))
    if result.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Organizer with this email already exists",
        )

    organizer = Organizer(
        email=data.email,
        hashed_password=hash_password(data.password),
        name=data.name,
        category=data.category,
        description=data.description,
        contact=data.contact,
        status="active",
    )
    db.add(organizer)
    await db.flush()
    await db.refresh(organizer)

    logger.info("organizer_created", organizer_id=organizer.id, email=organizer.email)
    return organizer


async def list_organizers(db: AsyncSession) -> list[Organizer]:
    result = await db.execute(select(Organizer).order_by(Organizer.id))
    return list(result.scalars().all())


async def get_organizer(db: AsyncSession, organizer_id: int) -> Organizer:
    organizer = await db.get(Organizer, organizer_id)
    if not organizer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organizer not found")
    return organizer


async def delete_organizer(db: AsyncSession, organizer_id: int) -> None:
    """Hard delete. Only organizers without events can be removed outright."""
    organizer = await get_organizer(db, organizer_id)

    result = await db.execute(select(Event.id).where(Event.organizer_id == organizer_id).limit(1))
    if result.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Organizer still owns events. Archive the account instead.",
        )

    await db.execute(delete(Organizer).where(Organizer.id == organizer.id))
    logger.info("organizer_deleted", organizer_id=organizer_id)


async def set_organizer_status(db: AsyncSession, organizer_id: int, new_status: str) -> Organizer:
    organizer = await get_organizer(db, organizer_id)
    organizer.status = new_status
    await db.flush()
    await db.refresh(organizer)

    logger.info("organizer_status_changed", organizer_id=organizer_id, status=new_status)
    return organizer


async def list_password_resets(db: AsyncSession) -> list[PasswordReset]:
    result = await db.execute(
        select(PasswordReset).order_by(PasswordReset.created_at.desc(), PasswordReset.id.desc())
    )
    return list(result.scalars().all())


async def resolve_password_reset(
    db: AsyncSession,
    request_id: int,
    data: PasswordResetResolve,
) -> PasswordReset:
    """
    Approve or reject a pending request.

    Approval rewrites the credential hash of every account the request's
    login resolves to.
    """
    reset = await db.get(PasswordReset, request_id)
    if not reset:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found")

    if reset.status != ResetStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Request already processed",
        )

    if data.action == "Approve":
        if not data.new_password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="New password is required for approval",
            )

        identity = await resolve_identity(db, reset.club_email)
        if not identity.found:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Club/Organizer not found")

        new_hash = hash_password(data.new_password)
        for account in identity.accounts:
            account.hashed_password = new_hash
        reset.status = ResetStatus.APPROVED
    else:
        reset.status = ResetStatus.REJECTED

    await db.flush()
    await db.refresh(reset)

    logger.info("password_reset_resolved", request_id=reset.id, status=reset.status)
    return reset
