"""
Authentication service: registration, the three login paths, token renewal
and the admin bootstrap account.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from felicity.core.config import get_settings
from felicity.core.logging import get_logger
from felicity.core.security import (
    REFRESH_TOKEN,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from felicity.models.organizer import Organizer
from felicity.models.password_reset import PasswordReset, ResetStatus
from felicity.models.user import User, UserType
from felicity.schemas.user import AdminLogin, PasswordResetRequestCreate, UserCreate, UserLogin

logger = get_logger(__name__)
settings = get_settings()

PARTICIPANT_HINT = "participant"
ORGANIZER_HINT = "organizer"


def _invalid_credentials(detail: str = "Invalid credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def access_claims(account: User | Organizer) -> dict:
    if isinstance(account, Organizer):
        return {
            "sub": str(account.id),
            "role": UserType.ORGANIZER,
            "username": account.email,
            "filled": True,
        }
    return {
        "sub": str(account.id),
        "role": account.user_type,
        "username": account.username,
        "filled": account.filled,
    }


def issue_tokens(account: User | Organizer) -> tuple[str, str]:
    claims = access_claims(account)
    access = create_access_token(claims)
    refresh = create_refresh_token({"sub": claims["sub"], "role": claims["role"]})
    return access, refresh


async def register_user(db: AsyncSession, user_data: UserCreate) -> User:
    """
    Register a new participant with hashed password.
    Raises 409 if the email is already registered.
    """
    result = await db.execute(select(User).where(User.username == user_data.email))
    if result.scalar_one_or_none():
        logger.warning("registration_failed", reason="handle_exists", username=user_data.email)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User already exists",
        )

    user = User(
        username=user_data.email,
        hashed_password=hash_password(user_data.password),
        user_type=user_data.user_type,
        interested_topics=[],
        interested_clubs=[],
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)

    logger.info("user_registered", user_id=user.id, user_type=user.user_type)
    return user


async def authenticate(db: AsyncSession, login_data: UserLogin) -> User | Organizer:
    """
    Verify a participant or organizer login against the store named by the
    role hint. 401 on unknown handle or wrong secret, 403 on role mismatch
    or an archived organizer.
    """
    if login_data.user_type == PARTICIPANT_HINT:
        result = await db.execute(select(User).where(User.username == login_data.email))
        account = result.scalar_one_or_none()
        if not account:
            # An organizer handle used with the participant hint
            result = await db.execute(select(Organizer.id).where(Organizer.email == login_data.email))
            if result.scalar_one_or_none() is not None:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Access denied. Not a participant.",
                )
            logger.warning("login_failed", reason="unknown_handle", hint=login_data.user_type)
            raise _invalid_credentials()
        if not account.is_participant:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied. Not a participant.",
            )
    elif login_data.user_type == ORGANIZER_HINT:
        result = await db.execute(select(Organizer).where(Organizer.email == login_data.email))
        account = result.scalar_one_or_none()
        if not account:
            # A participant handle used with the organizer hint
            result = await db.execute(select(User.id).where(User.username == login_data.email))
            if result.scalar_one_or_none() is not None:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Access denied. Not an organizer.",
                )
            logger.warning("login_failed", reason="unknown_handle", hint=login_data.user_type)
            raise _invalid_credentials()
        if account.is_archived:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Account has been archived. Please contact an administrator.",
            )
    else:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid user type")

    if not verify_password(login_data.password, account.hashed_password):
        logger.warning("login_failed", reason="bad_password", hint=login_data.user_type)
        raise _invalid_credentials()

    logger.info("user_logged_in", account_id=account.id, hint=login_data.user_type)
    return account


async def authenticate_admin(db: AsyncSession, login_data: AdminLogin) -> User:
    result = await db.execute(
        select(User).where(User.username == login_data.username, User.user_type == UserType.ADMIN)
    )
    admin = result.scalar_one_or_none()
    if not admin or not verify_password(login_data.password, admin.hashed_password):
        logger.warning("admin_login_failed")
        raise _invalid_credentials("Invalid admin credentials")

    logger.info("admin_logged_in", admin_id=admin.id)
    return admin


async def refresh_access_token(db: AsyncSession, refresh_token: str) -> str:
    """Exchange a renewal token for an access token built from current account state."""
    payload = decode_token(refresh_token, token_type=REFRESH_TOKEN)
    if payload is None:
        raise _invalid_credentials("Invalid or expired refresh token")

    model = Organizer if payload.get("role") == UserType.ORGANIZER else User
    account = await db.get(model, int(payload["sub"]))
    if account is None:
        raise _invalid_credentials("Account no longer exists")
    if isinstance(account, Organizer) and account.is_archived:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account has been archived. Please contact an administrator.",
        )

    return create_access_token(access_claims(account))


async def ensure_admin_account(db: AsyncSession) -> User:
    """Create the bootstrap admin from settings if it does not exist yet."""
    result = await db.execute(
        select(User).where(User.username == settings.ADMIN_USERNAME, User.user_type == UserType.ADMIN)
    )
    admin = result.scalar_one_or_none()
    if admin:
        return admin

    admin = User(
        username=settings.ADMIN_USERNAME,
        hashed_password=hash_password(settings.ADMIN_PASSWORD),
        user_type=UserType.ADMIN,
        filled=True,
        interested_topics=[],
        interested_clubs=[],
    )
    db.add(admin)
    await db.flush()
    logger.info("admin_account_seeded", username=admin.username)
    return admin


async def request_password_reset(db: AsyncSession, data: PasswordResetRequestCreate) -> PasswordReset:
    result = await db.execute(select(Organizer.id).where(Organizer.email == data.email))
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Club/Organizer not found")

    result = await db.execute(
        select(PasswordReset.id).where(
            PasswordReset.club_email == data.email,
            PasswordReset.status == ResetStatus.PENDING,
        )
    )
    if result.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A password reset request is already pending for this email",
        )

    reset = PasswordReset(club_email=data.email, reason=data.reason, status=ResetStatus.PENDING)
    db.add(reset)
    await db.flush()

    logger.info("password_reset_requested", club_email=data.email)
    return reset
