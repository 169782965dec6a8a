"""
Participant and admin accounts.

The login handle is `username` (participants sign up with their email).
Organizers live in their own table; see models/organizer.py.
"""

from sqlalchemy import Column, Integer, String, Boolean, JSON, CheckConstraint
from sqlalchemy.orm import relationship

from felicity.db.base import Base, TimestampMixin


class UserType:
    IIIT = "iiit"
    NON_IIIT = "non-iiit"
    ORGANIZER = "organizer"
    ADMIN = "admin"

    PARTICIPANTS = (IIIT, NON_IIIT)
    ALL = (IIIT, NON_IIIT, ORGANIZER, ADMIN)


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    user_type = Column(String(20), nullable=False)

    # Profile
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    contact_number = Column(String(30), nullable=False, default="")
    college = Column(String(255), nullable=False, default="")
    interested_topics = Column(JSON, nullable=False, default=list)
    interested_clubs = Column(JSON, nullable=False, default=list)
    filled = Column(Boolean, nullable=False, default=False)

    tickets = relationship("Ticket", back_populates="participant", lazy="noload")

    __table_args__ = (
        CheckConstraint(
            "user_type IN ('iiit', 'non-iiit', 'organizer', 'admin')",
            name="check_user_type",
        ),
    )

    @property
    def is_participant(self) -> bool:
        return self.user_type in UserType.PARTICIPANTS

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.username

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username}, type={self.user_type})>"
