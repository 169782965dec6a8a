"""
Organizer (club) accounts, created by an admin.
"""

from sqlalchemy import Column, Integer, String, CheckConstraint
from sqlalchemy.orm import relationship

from felicity.db.base import Base, TimestampMixin


class Organizer(Base, TimestampMixin):
    __tablename__ = "organizers"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False, default="")
    category = Column(String(255), nullable=False, default="")  # comma separated
    description = Column(String(2000), nullable=False, default="")
    contact = Column(String(255), nullable=False, default="")
    discord_webhook = Column(String(500), nullable=False, default="")
    status = Column(String(20), nullable=False, default="active")  # active, archived

    events = relationship("Event", back_populates="organizer", lazy="noload")

    __table_args__ = (
        CheckConstraint("status IN ('active', 'archived')", name="check_organizer_status"),
    )

    @property
    def is_archived(self) -> bool:
        return self.status == "archived"

    @property
    def categories(self) -> list[str]:
        return [c.strip() for c in self.category.split(",") if c.strip()]

    def __repr__(self) -> str:
        return f"<Organizer(id={self.id}, email={self.email}, status={self.status})>"
