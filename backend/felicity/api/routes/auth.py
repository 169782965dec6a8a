"""
Authentication endpoints: registration, the three login paths, token
renewal and organizer password-reset requests.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from felicity.core.security import create_access_token
from felicity.db.session import get_db
from felicity.schemas.organizer import MessageResponse
from felicity.schemas.user import (
    AdminLogin,
    PasswordResetRequestCreate,
    RefreshRequest,
    Token,
    UserCreate,
    UserLogin,
)
from felicity.services.auth_service import (
    access_claims,
    authenticate,
    authenticate_admin,
    issue_tokens,
    refresh_access_token,
    register_user,
    request_password_reset,
)
from felicity.services.captcha_service import require_captcha

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """Register a participant account. CAPTCHA is checked before anything else."""
    await require_captcha(user_data.turnstile_token)
    user = await register_user(db, user_data)
    access, refresh = issue_tokens(user)
    return Token(message="Registration successful!", access_token=access, refresh_token=refresh)


@router.post("/login", response_model=Token)
async def login(login_data: UserLogin, db: AsyncSession = Depends(get_db)):
    """Participant or organizer login, selected by the `user_type` hint."""
    await require_captcha(login_data.turnstile_token)
    account = await authenticate(db, login_data)
    access, refresh = issue_tokens(account)
    return Token(message="Login successful!", access_token=access, refresh_token=refresh)


@router.post("/admin-login", response_model=Token)
async def admin_login(login_data: AdminLogin, db: AsyncSession = Depends(get_db)):
    admin = await authenticate_admin(db, login_data)
    return Token(message="Admin login successful", access_token=create_access_token(access_claims(admin)))


@router.post("/refresh", response_model=Token)
async def refresh(data: RefreshRequest, db: AsyncSession = Depends(get_db)):
    access = await refresh_access_token(db, data.refresh_token)
    return Token(message="Token refreshed", access_token=access)


@router.post(
    "/reset-password-request",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def reset_password_request(data: PasswordResetRequestCreate, db: AsyncSession = Depends(get_db)):
    await request_password_reset(db, data)
    return MessageResponse(message="Password reset request submitted to admin.")
