# app/crud/crud_event.py
import logging
from typing import Optional

from sqlalchemy.orm import Session

from .base import CRUDBase
from app.core.config import settings
from app.models.event import Event
from app.schemas.event import EventCreate, EventUpdate
from app.services.change_feed import row_to_dict
from app.utils.codes import generate_event_code

logger = logging.getLogger(__name__)


class CRUDEvent(CRUDBase[Event, EventCreate, EventUpdate]):
    publishes_changes = True

    def get_by_code(self, db: Session, *, event_code: str) -> Optional[Event]:
        return db.query(self.model).filter(self.model.event_code == event_code).first()

    def get_active_by_code(self, db: Session, *, event_code: str) -> Optional[Event]:
        return (
            db.query(self.model)
            .filter(self.model.event_code == event_code, self.model.is_active.is_(True))
            .first()
        )

    def get_latest_active_for_moderator(
        self, db: Session, *, moderator_id: str
    ) -> Optional[Event]:
        return (
            db.query(self.model)
            .filter(
                self.model.moderator_id == moderator_id,
                self.model.is_active.is_(True),
            )
            .order_by(self.model.created_at.desc())
            .first()
        )

    def create_with_moderator(
        self, db: Session, *, obj_in: EventCreate, moderator_id: str
    ) -> Event:
        """
        Creates an event with a fresh join code.
        """
        while True:
            event_code = generate_event_code(settings.EVENT_CODE_LENGTH)
            if not self.get_by_code(db, event_code=event_code):
                break
            logger.debug(f"Event code collision on {event_code}, retrying")

        db_obj = self.model(
            **obj_in.model_dump(), event_code=event_code, moderator_id=moderator_id
        )
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        self.publish_insert(db_obj)
        logger.info(f"Created event {db_obj.id} ({event_code}) for moderator {moderator_id}")
        return db_obj

    def set_accepting_requests(
        self, db: Session, *, db_obj: Event, accepting: bool
    ) -> Event:
        return self.update(db, db_obj=db_obj, obj_in={"accepting_requests": accepting})

    def deactivate(self, db: Session, *, db_obj: Event) -> Event:
        """
        Marks the event inactive. Already-inactive events are returned untouched
        and nothing is published.
        """
        old_data = row_to_dict(db_obj)
        matched = (
            db.query(self.model)
            .filter(self.model.id == db_obj.id, self.model.is_active.is_(True))
            .update({"is_active": False}, synchronize_session=False)
        )
        if not matched:
            db.rollback()
            db.refresh(db_obj)
            return db_obj

        db.commit()
        db.refresh(db_obj)
        self.publish_update(db_obj, old_data)
        logger.info(f"Event {db_obj.id} ended")
        return db_obj


event = CRUDEvent(Event)
