# app/schemas/event.py
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class Event(BaseModel):
    id: str = Field(..., json_schema_extra={"example": "evt_c5a6d8e0f9b1"})
    title: str = Field(..., json_schema_extra={"example": "Town Hall Q&A"})
    event_code: str = Field(..., json_schema_extra={"example": "K7Q2ZD"})
    event_date: Optional[date] = None
    accepting_requests: bool
    is_active: bool
    moderator_id: str
    created_at: datetime

    model_config = {"from_attributes": True}


class PublicEvent(BaseModel):
    """What attendees get to see of an event."""

    id: str
    title: str
    event_code: str
    accepting_requests: bool
    is_active: bool

    model_config = {"from_attributes": True}


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, json_schema_extra={"example": "Town Hall Q&A"})
    event_date: Optional[date] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v


class EventUpdate(BaseModel):
    title: Optional[str] = None
    accepting_requests: Optional[bool] = None
    is_active: Optional[bool] = None


class AcceptingRequestsUpdate(BaseModel):
    accepting_requests: bool


class EventWithJoinUrl(Event):
    join_url: str
