# app/models/event.py
from sqlalchemy import Column, String, Date, DateTime, Boolean, ForeignKey, text
from sqlalchemy.orm import relationship
from app.db.base_class import Base
from app.models._utils import utcnow
import uuid


class Event(Base):
    __tablename__ = "events"

    id = Column(
        String, primary_key=True, default=lambda: f"evt_{uuid.uuid4().hex[:12]}"
    )
    title = Column(String, nullable=False)
    event_code = Column(String, nullable=False, unique=True, index=True)
    event_date = Column(Date, nullable=True)
    accepting_requests = Column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    # Goes false once when the moderator ends the session; never reopened.
    is_active = Column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    moderator_id = Column(
        String, ForeignKey("moderators.id"), nullable=False, index=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    moderator = relationship("Moderator", back_populates="events")
    speaking_requests = relationship("SpeakingRequest", back_populates="event")
