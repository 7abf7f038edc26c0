# app/services/attendee_session.py
"""
Attendee-side session state machine.

    default ──start_request──▶ submitting ──submit──▶ queued ──approved──▶ speaking
       ▲                          │                     │                    │
       └────────cancel────────────┘                     │                    │
       ▲◀─────────────dismissed / rejected──────────────┘                    │
       ▲◀─────────────completed (turn over)──────────────────────────────────┘

    any ──event.is_active becomes false──▶ ended   (terminal)

Local actions (start_request, cancel, submit) are method calls. Everything
else is driven by change-feed events passed to ``handle_change``.
"""

import logging
from enum import Enum
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.exceptions import InvalidTransitionError, NotFoundError, ValidationFailedError
from app.crud import crud_event, crud_speaking_request
from app.models.speaking_request import RequestStatus
from app.schemas.event import PublicEvent
from app.schemas.realtime import ChangeEvent, ChangeType
from app.schemas.session import SessionSnapshot
from app.schemas.speaking_request import SpeakingRequest, SpeakingRequestCreate

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    default = "default"
    submitting = "submitting"
    queued = "queued"
    speaking = "speaking"
    ended = "ended"


# Status of the attendee's own request -> state it puts a live session in
_STATE_FOR_STATUS = {
    RequestStatus.pending.value: SessionState.queued,
    RequestStatus.approved.value: SessionState.speaking,
}


class AttendeeSession:
    def __init__(
        self,
        event: PublicEvent,
        request: Optional[SpeakingRequest] = None,
        queue_position: Optional[int] = None,
    ):
        self.event = event
        self.request = request
        # Advisory only: computed once at submission, never refreshed
        self.queue_position = queue_position
        self.state = self._initial_state()

    def _initial_state(self) -> SessionState:
        if not self.event.is_active:
            return SessionState.ended
        if self.request is not None:
            state = _STATE_FOR_STATUS.get(self.request.status.value)
            if state is not None:
                return state
            # a finished request does not belong to the live session any more
            self.request = None
        return SessionState.default

    @classmethod
    def resume(
        cls, db: Session, *, event_code: str, request_id: Optional[str] = None
    ) -> "AttendeeSession":
        """Rebuilds a session from the stored event and, if known, the attendee's request."""
        event = crud_event.event.get_by_code(db, event_code=event_code)
        if not event:
            raise NotFoundError("Event not found")

        request = None
        if request_id:
            db_request = crud_speaking_request.speaking_request.get(db, id=request_id)
            if db_request and db_request.event_id == event.id:
                request = SpeakingRequest.model_validate(db_request)

        return cls(PublicEvent.model_validate(event), request=request)

    @property
    def is_ended(self) -> bool:
        return self.state == SessionState.ended

    def _require(self, action: str, *states: SessionState) -> None:
        if self.state not in states:
            raise InvalidTransitionError(self.state.value, action)

    def _require_open(self, action: str) -> None:
        if not self.event.is_active:
            raise InvalidTransitionError(self.state.value, action, "event has ended")
        if not self.event.accepting_requests:
            raise InvalidTransitionError(
                self.state.value, action, "event is not accepting requests"
            )

    def start_request(self) -> SessionState:
        self._require("start a request", SessionState.default)
        self._require_open("start a request")
        self.state = SessionState.submitting
        return self.state

    def cancel(self) -> SessionState:
        self._require("cancel", SessionState.submitting)
        self.state = SessionState.default
        return self.state

    def submit(self, db: Session, *, attendee_name: str, question: str) -> SessionState:
        """
        Inserts the speaking request. Validation happens before anything is
        sent to the store; a failed insert leaves the session in submitting.
        """
        self._require("submit", SessionState.submitting)
        try:
            obj_in = SpeakingRequestCreate(attendee_name=attendee_name, question=question)
        except ValidationError as e:
            raise ValidationFailedError(str(e)) from e
        self._require_open("submit")

        db_request = crud_speaking_request.speaking_request.create_for_event(
            db, obj_in=obj_in, event_id=self.event.id
        )
        self.request = SpeakingRequest.model_validate(db_request)
        self.state = SessionState.queued

        pending_ids = crud_speaking_request.speaking_request.get_pending_ids_by_creation(
            db, event_id=self.event.id
        )
        if self.request.id in pending_ids:
            self.queue_position = pending_ids.index(self.request.id) + 1
        logger.info(
            f"Request {self.request.id} queued for event {self.event.id} "
            f"at position {self.queue_position}"
        )
        return self.state

    def handle_change(self, change: ChangeEvent) -> bool:
        """
        Applies one change-feed event. Returns True when the session changed.
        """
        if self.is_ended:
            return False
        if change.type == ChangeType.DELETE or not change.new:
            return False

        if change.table == "events":
            return self._apply_event_change(change.new)
        if change.table == "speaking_requests":
            return self._apply_request_change(change.new)
        return False

    def _apply_event_change(self, row: dict) -> bool:
        if row.get("id") != self.event.id:
            return False
        self.event = self.event.model_copy(
            update={k: v for k, v in row.items() if k in PublicEvent.model_fields}
        )
        if not self.event.is_active:
            self.state = SessionState.ended
        return True

    def _apply_request_change(self, row: dict) -> bool:
        if self.request is None or row.get("id") != self.request.id:
            return False

        self.request = SpeakingRequest.model_validate({**self.request.model_dump(), **row})
        status = self.request.status

        if status == RequestStatus.approved:
            self.state = SessionState.speaking
        elif status in (RequestStatus.dismissed, RequestStatus.rejected):
            self.state = SessionState.default
            self.request = None
            self.queue_position = None
        elif status == RequestStatus.completed and self.state == SessionState.speaking:
            self.state = SessionState.default
            self.request = None
            self.queue_position = None
        return True

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self.state.value,
            event=self.event,
            request=self.request,
            queue_position=self.queue_position,
        )
