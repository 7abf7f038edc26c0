# app/models/__init__.py
# Import all models to ensure SQLAlchemy can resolve relationships
# Order matters for dependencies - import base models first

from app.db.base_class import Base
from app.models.moderator import Moderator, ModeratorSession
from app.models.attendee import Attendee
from app.models.event import Event
from app.models.speaking_request import SpeakingRequest, RequestStatus
