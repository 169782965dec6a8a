"""
Team chat persistence. Delivery to live connections is handled by the
hub in core/websocket_manager.py.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from felicity.core.logging import get_logger
from felicity.core.metrics import chat_messages
from felicity.models.chat import ChatMessage
from felicity.models.team import Team
from felicity.models.user import User

logger = get_logger(__name__)

MAX_MESSAGE_LENGTH = 4000


async def save_message(db: AsyncSession, team: Team, sender: User, text: str) -> ChatMessage:
    body = (text or "").strip()
    if not body:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message text is required")
    if len(body) > MAX_MESSAGE_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Message is longer than {MAX_MESSAGE_LENGTH} characters",
        )

    message = ChatMessage(
        team_id=team.id,
        sender_id=sender.id,
        sender_name=sender.display_name,
        text=body,
    )
    db.add(message)
    await db.flush()
    await db.refresh(message)

    chat_messages.inc()
    logger.info("chat_message_saved", team_id=team.id, sender_id=sender.id, message_id=message.id)
    return message


async def list_messages(db: AsyncSession, team_id: int) -> list[ChatMessage]:
    result = await db.execute(
        select(ChatMessage)
        .where(ChatMessage.team_id == team_id)
        .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
    )
    return list(result.scalars().all())
