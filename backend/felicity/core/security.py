"""
Password hashing and signed session tokens.

Two token kinds are issued at login:
  - access:  ~1 hour, carries role claims used for authorization
  - refresh: ~7 days, signed with a separate secret, only exchangeable
             for a new access token
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import JWTError, jwt

from felicity.core.config import get_settings

settings = get_settings()

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    claims = {**data, "type": ACCESS_TOKEN, "exp": expire}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_refresh_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    )
    claims = {**data, "type": REFRESH_TOKEN, "exp": expire}
    return jwt.encode(claims, settings.REFRESH_SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str, token_type: str = ACCESS_TOKEN) -> Optional[dict]:
    """Return the claims of a valid token of the given kind, or None."""
    secret = settings.SECRET_KEY if token_type == ACCESS_TOKEN else settings.REFRESH_SECRET_KEY
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None

    if payload.get("type") != token_type or payload.get("sub") is None:
        return None
    return payload
