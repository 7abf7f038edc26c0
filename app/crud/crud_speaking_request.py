# app/crud/crud_speaking_request.py
from typing import List, Optional, Sequence

from sqlalchemy import case
from sqlalchemy.orm import Session, joinedload

from .base import CRUDBase
from app.models._utils import utcnow
from app.models.event import Event
from app.models.speaking_request import SpeakingRequest, RequestStatus
from app.schemas.realtime import ChangeType
from app.schemas.speaking_request import SpeakingRequestCreate
from app.services.change_feed import publish_change, row_to_dict


class CRUDSpeakingRequest(CRUDBase[SpeakingRequest, SpeakingRequestCreate, SpeakingRequestCreate]):
    publishes_changes = True

    def create_for_event(
        self,
        db: Session,
        *,
        obj_in: SpeakingRequestCreate,
        event_id: str,
        attendee_id: str | None = None,
        status: RequestStatus = RequestStatus.pending,
    ) -> SpeakingRequest:
        db_obj = self.model(
            **obj_in.model_dump(),
            event_id=event_id,
            attendee_id=attendee_id,
            status=status.value,
        )
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        self.publish_insert(db_obj)
        return db_obj

    def get_multi_by_event(self, db: Session, *, event_id: str) -> List[SpeakingRequest]:
        """All requests of an event, oldest first."""
        return (
            db.query(self.model)
            .filter(self.model.event_id == event_id)
            .order_by(self.model.created_at.asc())
            .all()
        )

    def get_pending_ids_by_creation(self, db: Session, *, event_id: str) -> List[str]:
        rows = (
            db.query(self.model.id)
            .filter(
                self.model.event_id == event_id,
                self.model.status == RequestStatus.pending.value,
            )
            .order_by(self.model.created_at.asc())
            .all()
        )
        return [row.id for row in rows]

    def get_queue(self, db: Session, *, event_id: str) -> List[SpeakingRequest]:
        """
        Pending requests in display order: moderator-ranked rows first by
        queue_position, then unranked rows by creation time.
        """
        unranked_last = case((self.model.queue_position.is_(None), 1), else_=0)
        return (
            db.query(self.model)
            .filter(
                self.model.event_id == event_id,
                self.model.status == RequestStatus.pending.value,
            )
            .order_by(
                unranked_last,
                self.model.queue_position.asc(),
                self.model.created_at.asc(),
            )
            .all()
        )

    def get_approved(self, db: Session, *, event_id: str) -> Optional[SpeakingRequest]:
        return (
            db.query(self.model)
            .filter(
                self.model.event_id == event_id,
                self.model.status == RequestStatus.approved.value,
            )
            .order_by(self.model.updated_at.desc())
            .first()
        )

    def get_multi_by_attendee(
        self, db: Session, *, attendee_id: str
    ) -> List[SpeakingRequest]:
        """Requests of a registered attendee, newest first."""
        return (
            db.query(self.model)
            .filter(self.model.attendee_id == attendee_id)
            .order_by(self.model.created_at.desc())
            .all()
        )

    def get_for_review(
        self, db: Session, *, moderator_id: str
    ) -> List[SpeakingRequest]:
        """Every request across the moderator's events, newest first."""
        return (
            db.query(self.model)
            .join(Event, Event.id == self.model.event_id)
            .options(joinedload(self.model.attendee), joinedload(self.model.event))
            .filter(Event.moderator_id == moderator_id)
            .order_by(self.model.created_at.desc())
            .all()
        )

    def transition(
        self,
        db: Session,
        *,
        request_id: str,
        from_status: RequestStatus,
        to_status: RequestStatus,
        commit: bool = True,
    ) -> Optional[SpeakingRequest]:
        """
        Moves a request from one status to another with a conditional UPDATE.

        Returns None when the row does not exist or is no longer in
        ``from_status``. With ``commit=False`` the write stays in the open
        transaction; the caller commits and then calls ``publish_transition``.
        """
        matched = (
            db.query(self.model)
            .filter(
                self.model.id == request_id,
                self.model.status == from_status.value,
            )
            .update(
                {"status": to_status.value, "updated_at": utcnow()},
                synchronize_session=False,
            )
        )
        if not matched:
            return None

        db_obj = self.get(db, id=request_id)
        db.refresh(db_obj)
        if commit:
            db.commit()
            db.refresh(db_obj)
            self.publish_transition(db_obj, from_status)
        return db_obj

    def publish_transition(
        self, db_obj: SpeakingRequest, from_status: RequestStatus
    ) -> None:
        new_data = row_to_dict(db_obj)
        old_data = {**new_data, "status": from_status.value}
        publish_change(self.table, ChangeType.UPDATE, new=new_data, old=old_data)

    def set_queue_positions(
        self, db: Session, *, ordered: Sequence[SpeakingRequest]
    ) -> List[SpeakingRequest]:
        """Persists 1-based positions for the given pending requests."""
        changed = []
        for position, db_obj in enumerate(ordered, start=1):
            if db_obj.queue_position != position:
                changed.append((db_obj, row_to_dict(db_obj)))
                db_obj.queue_position = position
                db.add(db_obj)
        db.commit()
        for db_obj, old_data in changed:
            db.refresh(db_obj)
            self.publish_update(db_obj, old_data)
        return list(ordered)


speaking_request = CRUDSpeakingRequest(SpeakingRequest)
