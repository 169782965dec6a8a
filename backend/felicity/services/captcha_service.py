"""
Cloudflare Turnstile verification.

Runs before any state is touched on registration and participant/organizer
login. A network failure counts as a failed challenge.
"""

from typing import Optional

import httpx
from fastapi import HTTPException, status

from felicity.core.config import get_settings
from felicity.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()


async def verify_turnstile(token: str) -> bool:
    try:
        async with httpx.AsyncClient(timeout=settings.WEBHOOK_TIMEOUT_SECONDS) as client:
            response = await client.post(
                settings.TURNSTILE_VERIFY_URL,
                data={"secret": settings.TURNSTILE_SECRET_KEY, "response": token},
            )
            outcome = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error("captcha_verification_error", error=str(e))
        return False

    logger.debug("captcha_verified", success=outcome.get("success"))
    return bool(outcome.get("success", False))


async def require_captcha(token: Optional[str]) -> None:
    """Raise 400 unless the Turnstile token checks out."""
    if not settings.TURNSTILE_ENABLED:
        return

    if not token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cloudflare Turnstile CAPTCHA token is missing.",
        )

    if not await verify_turnstile(token):
        logger.warning("captcha_rejected")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="CAPTCHA verification failed. Please try again.",
        )
