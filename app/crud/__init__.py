# app/crud/__init__.py

from .crud_attendee import attendee
from .crud_event import event
from .crud_moderator import moderator, moderator_session
from .crud_speaking_request import speaking_request
