from felicity.models.user import User, UserType
from felicity.models.organizer import Organizer
from felicity.models.event import Event, EventStatus, EventType
from felicity.models.ticket import Ticket, TicketStatus
from felicity.models.team import Team, TeamMember
from felicity.models.chat import ChatMessage
from felicity.models.password_reset import PasswordReset, ResetStatus

__all__ = [
    "User", "UserType", "Organizer",
    "Event", "EventStatus", "EventType",
    "Ticket", "TicketStatus",
    "Team", "TeamMember", "ChatMessage",
    "PasswordReset", "ResetStatus",
]
