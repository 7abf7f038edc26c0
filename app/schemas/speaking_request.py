# app/schemas/speaking_request.py
from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, Field, field_validator

from app.models.speaking_request import RequestStatus


def _strip_required(value: str, label: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError(f"{label} is required")
    return value


class SpeakingRequest(BaseModel):
    id: str
    event_id: str
    attendee_id: Optional[str] = None
    attendee_name: str
    question: str
    status: RequestStatus
    queue_position: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class SpeakingRequestCreate(BaseModel):
    attendee_name: str = Field(..., json_schema_extra={"example": "Ada Lovelace"})
    question: str = Field(
        ..., json_schema_extra={"example": "When will the minutes be published?"}
    )

    @field_validator("attendee_name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        return _strip_required(v, "Name")

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, v: str) -> str:
        return _strip_required(v, "Question")


class DashboardRequestCreate(BaseModel):
    """A question submitted by a verified attendee from their dashboard."""

    event_code: str
    question: str

    @field_validator("event_code")
    @classmethod
    def normalise_code(cls, v: str) -> str:
        return _strip_required(v, "Event code").upper()

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, v: str) -> str:
        return _strip_required(v, "Question")


class ReviewRequest(SpeakingRequest):
    """Moderator review listing, joined with the registered attendee if any."""

    event_title: Optional[str] = None
    attendee_email: Optional[str] = None


class QueueSnapshot(BaseModel):
    event_id: str
    pending: List[SpeakingRequest]
    current_speaker: Optional[SpeakingRequest] = None


class QueueReorder(BaseModel):
    source_index: int = Field(..., ge=0)
    dest_index: int = Field(..., ge=0)
