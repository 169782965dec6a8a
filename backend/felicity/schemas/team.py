"""
Pydantic schemas for hackathon teams and team chat.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from felicity.schemas.event import EventSummary


class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    event_id: int
    size: int = Field(..., ge=1, le=50)


class TeamJoin(BaseModel):
    invite_code: str = Field(..., min_length=1, max_length=16)


class TeamMemberResponse(BaseModel):
    participant_id: int
    username: str
    display_name: str
    status: str


class TeamResponse(BaseModel):
    id: int
    name: str
    event_id: int
    leader_id: int
    size: int
    invite_code: str
    is_complete: bool
    members: list[TeamMemberResponse]
    event: Optional[EventSummary] = None
    created_at: datetime


class TeamActionResponse(BaseModel):
    message: str
    team: TeamResponse


class ChatMessageResponse(BaseModel):
    id: int
    team_id: int
    sender_id: int
    sender_name: str
    text: str
    created_at: datetime

    model_config = {"from_attributes": True}
