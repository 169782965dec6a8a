"""
Event model covering both lifecycle partitions.

Key design decisions:
- Drafts and published events share one table; status `Draft` is the draft
  partition. Publishing is a single status UPDATE, so the event keeps its
  id and there is no window where it exists in neither partition.
- `sold_count` is a denormalized counter of consumed capacity (quantities
  for merchandise, one per ticket otherwise). It only ever grows:
  cancellations do not give capacity back.
- The type-specific payload is stored as JSON: `custom_fields` for
  normal/hackathon events, `merchandise_details` for merchandise.
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, Float, ForeignKey, Index, CheckConstraint, JSON,
)
from sqlalchemy.orm import relationship

from felicity.db.base import Base, TimestampMixin


class EventType:
    NORMAL = "normal"
    MERCHANDISE = "merchandise"
    HACKATHON = "hackathon"

    ALL = (NORMAL, MERCHANDISE, HACKATHON)


class EventStatus:
    DRAFT = "Draft"
    PUBLISHED = "Published"
    ONGOING = "Ongoing"
    COMPLETED = "Completed"
    CLOSED = "Closed"
    CANCELLED = "Cancelled"

    ALL = (DRAFT, PUBLISHED, ONGOING, COMPLETED, CLOSED, CANCELLED)
    OPEN_FOR_REGISTRATION = (PUBLISHED, ONGOING)
    TERMINAL = (CLOSED, COMPLETED, CANCELLED)

    TRANSITIONS = {
        DRAFT: {PUBLISHED},
        PUBLISHED: {ONGOING, CLOSED, CANCELLED},
        ONGOING: {COMPLETED, CLOSED},
    }


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    organizer_id = Column(Integer, ForeignKey("organizers.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(String(5000), nullable=False, default="")
    event_type = Column(String(20), nullable=False)
    eligibility = Column(String(255), nullable=True)
    tags = Column(String(500), nullable=True)

    registration_deadline = Column(DateTime(timezone=True), nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)

    registration_limit = Column(Integer, nullable=True)  # NULL = unlimited
    registration_fee = Column(Float, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=EventStatus.DRAFT)
    views = Column(Integer, nullable=False, default=0)
    sold_count = Column(Integer, nullable=False, default=0)

    custom_fields = Column(JSON, nullable=False, default=list)
    merchandise_details = Column(JSON, nullable=True)

    organizer = relationship("Organizer", back_populates="events", lazy="noload")

    __table_args__ = (
        CheckConstraint(
            "event_type IN ('normal', 'merchandise', 'hackathon')", name="check_event_type"
        ),
        CheckConstraint("sold_count >= 0", name="check_sold_count_non_negative"),
        CheckConstraint(
            "registration_limit IS NULL OR registration_limit >= 0",
            name="check_registration_limit_non_negative",
        ),
        Index("ix_events_status_created", "status", "created_at"),
    )

    @property
    def is_draft(self) -> bool:
        return self.status == EventStatus.DRAFT

    @property
    def is_merchandise(self) -> bool:
        return self.event_type == EventType.MERCHANDISE

    @property
    def purchase_limit(self) -> int:
        details = self.merchandise_details or {}
        return int(details.get("purchase_limit") or 1)

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, name={self.name}, status={self.status}, sold={self.sold_count})>"
