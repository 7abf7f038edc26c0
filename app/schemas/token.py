# app/schemas/token.py
from pydantic import BaseModel, Field
from typing import Optional


class TokenPayload(BaseModel):
    sub: str  # moderator id or attendee id
    role: str  # "moderator" or "attendee"
    # The moderator session this token belongs to
    session_id: Optional[str] = Field(default=None, alias="sid")
    exp: int

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }
