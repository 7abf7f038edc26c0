# app/schemas/realtime.py
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    """One row-level change, as pushed to subscribers."""

    table: str
    type: ChangeType
    new: Optional[Dict[str, Any]] = None
    old: Optional[Dict[str, Any]] = None
    commit_timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
