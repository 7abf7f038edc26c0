# app/models/speaking_request.py
import enum
import uuid
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Index, Text, text
from sqlalchemy.orm import relationship
from app.db.base_class import Base
from app.models._utils import utcnow


class RequestStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    dismissed = "dismissed"
    completed = "completed"
    rejected = "rejected"


class SpeakingRequest(Base):
    __tablename__ = "speaking_requests"
    __table_args__ = (
        # At most one approved request per event
        Index(
            "uq_speaking_requests_one_speaker",
            "event_id",
            unique=True,
            postgresql_where=text("status = 'approved'"),
            sqlite_where=text("status = 'approved'"),
        ),
    )

    id = Column(
        String, primary_key=True, default=lambda: f"req_{uuid.uuid4().hex[:12]}"
    )
    event_id = Column(String, ForeignKey("events.id"), nullable=False, index=True)
    # Set only for requests made from the registered-attendee dashboard
    attendee_id = Column(String, ForeignKey("attendees.id"), nullable=True, index=True)
    attendee_name = Column(String, nullable=False)
    question = Column(Text, nullable=False)
    status = Column(
        String(20), nullable=False, default=RequestStatus.pending.value, index=True
    )
    # Moderator-chosen order within the pending queue; NULL sorts after ranked rows
    queue_position = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    event = relationship("Event", back_populates="speaking_requests")
    attendee = relationship("Attendee")
