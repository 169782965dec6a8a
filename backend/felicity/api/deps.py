"""
Bearer-token authentication and role guards.

Every protected route depends on one of the `require_*` guards. The token is
decoded once per request; a missing, expired or tampered token is a 401,
a valid token with the wrong role is a 403.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from felicity.core.security import decode_token
from felicity.db.session import get_db
from felicity.models.organizer import Organizer
from felicity.models.user import User, UserType

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    id: int
    role: str
    username: str
    filled: bool = True

    @property
    def is_participant(self) -> bool:
        return self.role in UserType.PARTICIPANTS


def principal_from_token(token: str) -> Optional[Principal]:
    payload = decode_token(token)
    if payload is None:
        return None
    try:
        account_id = int(payload["sub"])
    except (TypeError, ValueError):
        return None
    return Principal(
        id=account_id,
        role=payload.get("role", ""),
        username=payload.get("username", ""),
        filled=bool(payload.get("filled", True)),
    )


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    principal = principal_from_token(credentials.credentials)
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


def require_roles(*roles: str):
    async def guard(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied.")
        return principal

    return guard


require_participant = require_roles(*UserType.PARTICIPANTS)
require_organizer = require_roles(UserType.ORGANIZER)
require_admin = require_roles(UserType.ADMIN)


async def get_current_participant(
    principal: Principal = Depends(require_participant),
    db: AsyncSession = Depends(get_db),
) -> User:
    user = await db.get(User, principal.id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


async def get_current_organizer(
    principal: Principal = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
) -> Organizer:
    """The organizer behind the token. Archiving takes effect before the token expires."""
    organizer = await db.get(Organizer, principal.id)
    if not organizer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organizer not found")
    if organizer.is_archived:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account has been archived. Please contact an administrator.",
        )
    return organizer
