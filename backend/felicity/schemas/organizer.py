"""
Pydantic schemas for organizer accounts and admin password-reset handling.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, EmailStr, Field


class OrganizerCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: str = ""
    category: str = ""
    description: str = ""
    contact: str = ""


class OrganizerResponse(BaseModel):
    id: int
    email: str
    name: str
    category: str
    description: str
    contact: str
    discord_webhook: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ClubSummary(BaseModel):
    """Public view of an organizer, as participants see it."""

    id: int
    name: str
    category: str
    description: str
    contact: str

    model_config = {"from_attributes": True}


class OrganizerProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    category: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    contact: Optional[str] = Field(None, max_length=255)
    discord_webhook: Optional[str] = Field(None, max_length=500)


class OrganizerStatusUpdate(BaseModel):
    status: Literal["active", "archived"]


class PasswordResetResponse(BaseModel):
    id: int
    club_email: str
    reason: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class PasswordResetResolve(BaseModel):
    action: Literal["Approve", "Reject"]
    new_password: Optional[str] = Field(None, min_length=8, max_length=128)


class MessageResponse(BaseModel):
    message: str


class OrganizerProfileResponse(BaseModel):
    message: str
    profile: OrganizerResponse


class ClubsResponse(BaseModel):
    clubs: list[ClubSummary]
    followed_clubs: list[str]
