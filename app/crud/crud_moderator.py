# app/crud/crud_moderator.py
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .base import CRUDBase
from app.core.exceptions import DuplicateRecordError
from app.core.security import get_password_hash, verify_password
from app.models._utils import utcnow
from app.models.moderator import Moderator, ModeratorSession
from app.schemas.moderator import (
    ModeratorCreate,
    ModeratorSessionCreate,
    ModeratorSessionUpdate,
)

logger = logging.getLogger(__name__)


class CRUDModerator(CRUDBase[Moderator, ModeratorCreate, ModeratorCreate]):
    def get_by_email(self, db: Session, *, email: str) -> Optional[Moderator]:
        return db.query(self.model).filter(self.model.email == email.lower()).first()

    def create(self, db: Session, *, obj_in: ModeratorCreate) -> Moderator:
        db_obj = self.model(
            name=obj_in.name.strip(),
            email=obj_in.email.lower(),
            hashed_password=get_password_hash(obj_in.password),
        )
        db.add(db_obj)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise DuplicateRecordError("Email already exists") from e
        db.refresh(db_obj)
        return db_obj

    def authenticate(
        self, db: Session, *, email: str, password: str
    ) -> Optional[Moderator]:
        """Returns the moderator only when both the email and password match."""
        moderator = self.get_by_email(db, email=email)
        if not moderator:
            return None
        if not verify_password(password, moderator.hashed_password):
            return None
        return moderator


class CRUDModeratorSession(
    CRUDBase[ModeratorSession, ModeratorSessionCreate, ModeratorSessionUpdate]
):
    def create_for_moderator(self, db: Session, *, moderator_id: str) -> ModeratorSession:
        return self.create(db, obj_in=ModeratorSessionCreate(moderator_id=moderator_id))

    def get_active(self, db: Session, *, session_id: str) -> Optional[ModeratorSession]:
        return (
            db.query(self.model)
            .filter(self.model.id == session_id, self.model.ended_at.is_(None))
            .first()
        )

    def set_current_event(
        self, db: Session, *, db_obj: ModeratorSession, event_id: str | None
    ) -> ModeratorSession:
        return self.update(db, db_obj=db_obj, obj_in={"current_event_id": event_id})

    def end(self, db: Session, *, db_obj: ModeratorSession) -> ModeratorSession:
        if db_obj.ended_at is not None:
            return db_obj
        logger.info(f"Ending moderator session {db_obj.id}")
        return self.update(
            db, db_obj=db_obj, obj_in={"ended_at": utcnow(), "current_event_id": None}
        )


moderator = CRUDModerator(Moderator)
moderator_session = CRUDModeratorSession(ModeratorSession)
