from sqlalchemy import Column, Integer, String, CheckConstraint

from felicity.db.base import Base, TimestampMixin


class ResetStatus:
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class PasswordReset(Base, TimestampMixin):
    """An organizer's request for an admin to reset their password."""

    __tablename__ = "password_resets"

    id = Column(Integer, primary_key=True, index=True)
    club_email = Column(String(255), nullable=False, index=True)
    reason = Column(String(1000), nullable=False)
    status = Column(String(20), nullable=False, default=ResetStatus.PENDING)

    __table_args__ = (
        CheckConstraint(
            "status IN ('Pending', 'Approved', 'Rejected')", name="check_password_reset_status"
        ),
    )
