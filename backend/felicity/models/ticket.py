"""
Ticket model: a participant's claim on an event.

Key design decisions:
- Unique constraint on (event_id, participant_id): one ticket per pair,
  whatever its status
- `ticket_id` is the human-facing derived identifier encoded in the QR code;
  `id` is the internal key used by the cancel endpoint
- Status is never rolled back: Registered -> Completed | Cancelled;
  Cancelled and Rejected are terminal
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, ForeignKey, JSON,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship

from felicity.db.base import Base, TimestampMixin


class TicketStatus:
    REGISTERED = "Registered"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    REJECTED = "Rejected"

    # Statuses that consume capacity in sales analytics
    COUNTED = (REGISTERED, COMPLETED)


class Ticket(Base, TimestampMixin):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(String(512), unique=True, index=True, nullable=False)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    participant_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    qr_payload = Column(Text, nullable=False)
    qr_code = Column(Text, nullable=False)  # PNG data URL
    type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=TicketStatus.REGISTERED)

    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True, index=True)
    team_name = Column(String(255), nullable=True)

    # Attendance tracking
    attendance_marked = Column(Boolean, nullable=False, default=False)
    attendance_timestamp = Column(DateTime(timezone=True), nullable=True)
    manual_override = Column(Boolean, nullable=False, default=False)
    override_reason = Column(String(1000), nullable=True)

    answers = Column(JSON, nullable=True)
    merchandise_selection = Column(JSON, nullable=True)

    event = relationship("Event", lazy="noload")
    participant = relationship("User", back_populates="tickets", lazy="noload")

    __table_args__ = (
        UniqueConstraint("event_id", "participant_id", name="uq_event_participant_ticket"),
        CheckConstraint(
            "status IN ('Registered', 'Completed', 'Cancelled', 'Rejected')",
            name="check_ticket_status",
        ),
    )

    @property
    def quantity(self) -> int:
        if self.merchandise_selection:
            return int(self.merchandise_selection.get("quantity") or 1)
        return 1

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id}, ticket_id={self.ticket_id}, status={self.status})>"
