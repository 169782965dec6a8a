"""
Admin endpoints: organizer accounts and password-reset requests.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from felicity.api.deps import Principal, require_admin
from felicity.db.session import get_db
from felicity.schemas.organizer import (
    MessageResponse,
    OrganizerCreate,
    OrganizerResponse,
    OrganizerStatusUpdate,
    PasswordResetResolve,
    PasswordResetResponse,
)
from felicity.services import admin_service

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/organizers", response_model=OrganizerResponse, status_code=status.HTTP_201_CREATED)
async def create_organizer(
    data: OrganizerCreate,
    _: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await admin_service.create_organizer(db, data)


@router.get("/organizers", response_model=list[OrganizerResponse])
async def list_organizers(
    _: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await admin_service.list_organizers(db)


@router.delete("/organizers/{organizer_id}", response_model=MessageResponse)
async def delete_organizer(
    organizer_id: int,
    _: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await admin_service.delete_organizer(db, organizer_id)
    return MessageResponse(message="Organizer deleted successfully")


@router.put("/organizers/{organizer_id}/archive", response_model=OrganizerResponse)
async def set_organizer_status(
    organizer_id: int,
    data: OrganizerStatusUpdate,
    _: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Archive or reactivate an organizer. Archived organizers cannot log in."""
    return await admin_service.set_organizer_status(db, organizer_id, data.status)


@router.get("/password-resets", response_model=list[PasswordResetResponse])
async def list_password_resets(
    _: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await admin_service.list_password_resets(db)


@router.put("/password-resets/{request_id}", response_model=PasswordResetResponse)
async def resolve_password_reset(
    request_id: int,
    data: PasswordResetResolve,
    _: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await admin_service.resolve_password_reset(db, request_id, data)
