# app/schemas/session.py
from typing import Optional

from pydantic import BaseModel

from app.schemas.event import PublicEvent
from app.schemas.speaking_request import SpeakingRequest


class SessionSnapshot(BaseModel):
    """Everything the attendee view renders."""

    state: str
    event: PublicEvent
    request: Optional[SpeakingRequest] = None
    queue_position: Optional[int] = None
