"""
Pydantic schemas for accounts, authentication and participant profiles.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    user_type: Literal["iiit", "non-iiit"]
    turnstile_token: Optional[str] = None


class UserLogin(BaseModel):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)
    user_type: str
    turnstile_token: Optional[str] = None


class AdminLogin(BaseModel):
    username: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class PasswordResetRequestCreate(BaseModel):
    email: EmailStr
    reason: str = Field(..., min_length=1, max_length=1000)


class Token(BaseModel):
    message: str
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"


class UserResponse(BaseModel):
    id: int
    username: str
    user_type: str
    first_name: str
    last_name: str
    contact_number: str
    college: str
    interested_topics: list[str]
    interested_clubs: list[str]
    filled: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    contact_number: Optional[str] = Field(None, max_length=30)
    college: Optional[str] = Field(None, max_length=255)
    interested_topics: Optional[list[str]] = None
    interested_clubs: Optional[list[str]] = None


class OnboardingSubmit(BaseModel):
    topics: list[str] = []
    clubs: list[str] = []


class OnboardingData(BaseModel):
    categories: list[str]
    clubs: list[str]


class PasswordChange(BaseModel):
    email: str
    old_password: str
    new_password: str = Field(..., min_length=8, max_length=128)


class ProfileUpdateResponse(BaseModel):
    message: str
    profile: UserResponse


class FollowResponse(BaseModel):
    message: str
    followed_clubs: list[str]
