# app/models/attendee.py
import uuid
from sqlalchemy import Column, String, Boolean, DateTime, text
from app.db.base_class import Base
from app.models._utils import utcnow


class Attendee(Base):
    __tablename__ = "attendees"

    id = Column(
        String, primary_key=True, default=lambda: f"att_{uuid.uuid4().hex[:12]}"
    )
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    # Human-enterable code issued at registration, e.g. EVT2025-482913
    attendee_code = Column(String, nullable=False, unique=True, index=True)
    verification_token = Column(String, nullable=False)
    is_verified = Column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self):
        return f"<Attendee {self.attendee_code} ({self.email})>"
