"""
Hackathon teams and their members.

`member_count` and `version` exist so that a join can claim a slot with a
single conditional UPDATE (see team_service.join_team); the member rows
are the source of truth for who is in the team.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship

from felicity.db.base import Base, TimestampMixin


class Team(Base, TimestampMixin):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    leader_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    size = Column(Integer, nullable=False)
    invite_code = Column(String(16), unique=True, index=True, nullable=False)
    is_complete = Column(Boolean, nullable=False, default=False)
    member_count = Column(Integer, nullable=False, default=0)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    members = relationship(
        "TeamMember",
        back_populates="team",
        lazy="selectin",
        order_by="TeamMember.id",
    )

    __table_args__ = (
        CheckConstraint("size >= 1", name="check_team_size_positive"),
        CheckConstraint("member_count <= size", name="check_team_not_overfilled"),
    )

    def has_member(self, participant_id: int) -> bool:
        return any(m.participant_id == participant_id for m in self.members)

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name={self.name}, members={self.member_count}/{self.size})>"


class TeamMember(Base, TimestampMixin):
    __tablename__ = "team_members"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    participant_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="accepted")  # pending, accepted

    team = relationship("Team", back_populates="members")
    participant = relationship("User", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("team_id", "participant_id", name="uq_team_member"),
        CheckConstraint("status IN ('pending', 'accepted')", name="check_team_member_status"),
    )
