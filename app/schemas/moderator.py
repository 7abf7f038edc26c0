# app/schemas/moderator.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class ModeratorCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)


class ModeratorLogin(BaseModel):
    email: EmailStr
    password: str


class ModeratorSessionCreate(BaseModel):
    moderator_id: str


class ModeratorSessionUpdate(BaseModel):
    current_event_id: Optional[str] = None
    ended_at: Optional[datetime] = None


class Moderator(BaseModel):
    id: str
    name: str
    email: EmailStr
    created_at: datetime

    model_config = {"from_attributes": True}


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    moderator: Moderator
