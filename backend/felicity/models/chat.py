"""
Team chat log. Rows are only ever inserted.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, func

from felicity.db.base import Base


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    sender_name = Column(String(255), nullable=False)
    text = Column(String(4000), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_chat_messages_team_created", "team_id", "created_at"),
    )
