from felicity.schemas.user import UserCreate, UserLogin, UserResponse, Token
from felicity.schemas.organizer import OrganizerCreate, OrganizerResponse, MessageResponse
from felicity.schemas.event import EventCreate, EventUpdate, EventResponse
from felicity.schemas.ticket import RegistrationCreate, TicketResponse
from felicity.schemas.team import TeamCreate, TeamJoin, TeamResponse, ChatMessageResponse

__all__ = [
    "UserCreate", "UserLogin", "UserResponse", "Token",
    "OrganizerCreate", "OrganizerResponse", "MessageResponse",
    "EventCreate", "EventUpdate", "EventResponse",
    "RegistrationCreate", "TicketResponse",
    "TeamCreate", "TeamJoin", "TeamResponse", "ChatMessageResponse",
]
