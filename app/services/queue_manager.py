# app/services/queue_manager.py
"""
Moderator-side view of one event's speaker queue.

The manager keeps an in-memory partition of the event's requests (the
ordered pending queue and the current speaker) and applies moderator actions
to the store. Change notifications are handled by calling ``load()`` again;
there is no incremental patching.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, NotFoundError, ValidationFailedError
from app.crud import crud_event, crud_moderator, crud_speaking_request
from app.models.event import Event
from app.models.moderator import ModeratorSession
from app.models.speaking_request import SpeakingRequest, RequestStatus
from app.schemas.speaking_request import QueueSnapshot

logger = logging.getLogger(__name__)


def resolve_current_event(db: Session, moderator_session: ModeratorSession) -> Optional[Event]:
    """
    The event the moderator is running: the one pinned on their session, or
    else their most recent active event (which then gets pinned).
    """
    if moderator_session.current_event_id:
        event = crud_event.event.get(db, id=moderator_session.current_event_id)
        if event and event.is_active:
            return event

    event = crud_event.event.get_latest_active_for_moderator(
        db, moderator_id=moderator_session.moderator_id
    )
    if event is None:
        if moderator_session.current_event_id:
            crud_moderator.moderator_session.set_current_event(
                db, db_obj=moderator_session, event_id=None
            )
        return None

    if moderator_session.current_event_id != event.id:
        crud_moderator.moderator_session.set_current_event(
            db, db_obj=moderator_session, event_id=event.id
        )
    return event


class QueueManager:
    def __init__(self, db: Session, event: Event):
        self.db = db
        self.event = event
        self.pending: List[SpeakingRequest] = []
        self.current_speaker: Optional[SpeakingRequest] = None

    def load(self) -> QueueSnapshot:
        """Full reload of the pending queue and the current speaker."""
        requests = crud_speaking_request.speaking_request
        self.pending = requests.get_queue(self.db, event_id=self.event.id)
        self.current_speaker = requests.get_approved(self.db, event_id=self.event.id)
        return self.snapshot()

    def snapshot(self) -> QueueSnapshot:
        return QueueSnapshot.model_validate(
            {
                "event_id": self.event.id,
                "pending": self.pending,
                "current_speaker": self.current_speaker,
            },
            from_attributes=True,
        )

    def _get_own_request(self, request_id: str) -> SpeakingRequest:
        db_request = crud_speaking_request.speaking_request.get(self.db, id=request_id)
        if not db_request or db_request.event_id != self.event.id:
            raise NotFoundError("Speaking request not found")
        return db_request

    def approve(self, request_id: str) -> SpeakingRequest:
        """
        Gives the floor to a pending request. The current speaker (if any) is
        completed first; both writes share one transaction and each is guarded
        by the status it expects, so a concurrent change rolls everything back.
        """
        self._get_own_request(request_id)
        requests = crud_speaking_request.speaking_request
        current = self.current_speaker

        try:
            completed = None
            if current is not None:
                completed = requests.transition(
                    self.db,
                    request_id=current.id,
                    from_status=RequestStatus.approved,
                    to_status=RequestStatus.completed,
                    commit=False,
                )
            approved = requests.transition(
                self.db,
                request_id=request_id,
                from_status=RequestStatus.pending,
                to_status=RequestStatus.approved,
                commit=False,
            )
            if approved is None:
                self.db.rollback()
                raise ConflictError("Request is no longer pending")
            self.db.commit()
        except IntegrityError as e:
            # another approval took the floor first
            self.db.rollback()
            raise ConflictError("Another request was approved at the same time") from e
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Approve of {request_id} failed, rolled back", exc_info=True)
            raise

        if completed is not None:
            requests.publish_transition(completed, RequestStatus.approved)
        requests.publish_transition(approved, RequestStatus.pending)

        self.current_speaker = approved
        self.pending = [r for r in self.pending if r.id != request_id]
        logger.info(f"Event {self.event.id}: {approved.attendee_name} now speaking")
        return approved

    def _close_pending(self, request_id: str, to_status: RequestStatus) -> SpeakingRequest:
        self._get_own_request(request_id)
        db_request = crud_speaking_request.speaking_request.transition(
            self.db,
            request_id=request_id,
            from_status=RequestStatus.pending,
            to_status=to_status,
        )
        if db_request is None:
            raise ConflictError("Request is no longer pending")
        self.pending = [r for r in self.pending if r.id != request_id]
        return db_request

    def dismiss(self, request_id: str) -> SpeakingRequest:
        return self._close_pending(request_id, RequestStatus.dismissed)

    def reject(self, request_id: str) -> SpeakingRequest:
        return self._close_pending(request_id, RequestStatus.rejected)

    def end_turn(self) -> Optional[SpeakingRequest]:
        if self.current_speaker is None:
            return None
        speaker = self.current_speaker
        completed = crud_speaking_request.speaking_request.transition(
            self.db,
            request_id=speaker.id,
            from_status=RequestStatus.approved,
            to_status=RequestStatus.completed,
        )
        if completed is None:
            logger.warning(f"Speaker {speaker.id} was no longer approved when ending turn")
        self.current_speaker = None
        return completed

    def toggle_accepting_requests(self, accepting: bool) -> Event:
        self.event = crud_event.event.set_accepting_requests(
            self.db, db_obj=self.event, accepting=accepting
        )
        logger.info(
            f"Event {self.event.id} {'opened' if accepting else 'closed'} its queue"
        )
        return self.event

    def end_session(self, moderator_session: Optional[ModeratorSession] = None) -> Event:
        """Ends the event for good. Safe to call on an event that already ended."""
        self.event = crud_event.event.deactivate(self.db, db_obj=self.event)
        if moderator_session is not None and moderator_session.current_event_id == self.event.id:
            crud_moderator.moderator_session.set_current_event(
                self.db, db_obj=moderator_session, event_id=None
            )
        return self.event

    def reorder(self, source_index: int, dest_index: int) -> List[SpeakingRequest]:
        """Moves one pending request and stores the resulting order."""
        size = len(self.pending)
        if not (0 <= source_index < size and 0 <= dest_index < size):
            raise ValidationFailedError(
                f"Queue positions must be between 0 and {size - 1}"
            )
        items = list(self.pending)
        moved = items.pop(source_index)
        items.insert(dest_index, moved)
        self.pending = crud_speaking_request.speaking_request.set_queue_positions(
            self.db, ordered=items
        )
        return self.pending
