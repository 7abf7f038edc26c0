# app/models/moderator.py
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from app.db.base_class import Base
from app.models._utils import utcnow


class Moderator(Base):
    __tablename__ = "moderators"

    id = Column(
        String, primary_key=True, default=lambda: f"mod_{uuid.uuid4().hex[:12]}"
    )
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    hashed_password = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    events = relationship("Event", back_populates="moderator")
    sessions = relationship("ModeratorSession", back_populates="moderator")


class ModeratorSession(Base):
    """
    A logged-in moderator. Holds the pointer to the event the moderator is
    currently running; ended at logout.
    """

    __tablename__ = "moderator_sessions"

    id = Column(
        String, primary_key=True, default=lambda: f"mss_{uuid.uuid4().hex[:16]}"
    )
    moderator_id = Column(
        String, ForeignKey("moderators.id"), nullable=False, index=True
    )
    current_event_id = Column(String, ForeignKey("events.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    moderator = relationship("Moderator", back_populates="sessions")

    @property
    def is_active(self) -> bool:
        return self.ended_at is None
