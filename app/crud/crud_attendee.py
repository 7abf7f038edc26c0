# app/crud/crud_attendee.py
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .base import CRUDBase
from app.core.exceptions import DuplicateRecordError
from app.models.attendee import Attendee
from app.schemas.attendee import AttendeeCreate
from app.utils.codes import generate_attendee_code, generate_verification_token

logger = logging.getLogger(__name__)


class CRUDAttendee(CRUDBase[Attendee, AttendeeCreate, AttendeeCreate]):
    def get_by_email(self, db: Session, *, email: str) -> Optional[Attendee]:
        return db.query(self.model).filter(self.model.email == email.lower()).first()

    def get_by_code(self, db: Session, *, attendee_code: str) -> Optional[Attendee]:
        return (
            db.query(self.model)
            .filter(self.model.attendee_code == attendee_code)
            .first()
        )

    def create_unverified(self, db: Session, *, obj_in: AttendeeCreate) -> Attendee:
        """
        Registers an attendee with a new attendee code and verification token.
        Raises DuplicateRecordError when the email is already registered.
        """
        if self.get_by_email(db, email=obj_in.email):
            raise DuplicateRecordError("Email already registered")

        while True:
            attendee_code = generate_attendee_code()
            if not self.get_by_code(db, attendee_code=attendee_code):
                break

        db_obj = self.model(
            name=obj_in.name,
            email=obj_in.email.lower(),
            attendee_code=attendee_code,
            verification_token=generate_verification_token(),
            is_verified=False,
        )
        db.add(db_obj)
        try:
            db.commit()
        except IntegrityError as e:
            # lost a race with a concurrent registration for the same email
            db.rollback()
            raise DuplicateRecordError("Email already registered") from e
        db.refresh(db_obj)
        return db_obj

    def verify_email(
        self, db: Session, *, token: str, attendee_code: str
    ) -> Optional[Attendee]:
        """
        Marks the attendee verified when the token and code belong to the same
        unverified row. Returns None otherwise.
        """
        matched = (
            db.query(self.model)
            .filter(
                self.model.verification_token == token,
                self.model.attendee_code == attendee_code,
                self.model.is_verified.is_(False),
            )
            .update({"is_verified": True}, synchronize_session=False)
        )
        if not matched:
            db.rollback()
            return None
        db.commit()
        attendee = self.get_by_code(db, attendee_code=attendee_code)
        db.refresh(attendee)
        return attendee

    def get_verified_by_code(
        self, db: Session, *, attendee_code: str
    ) -> Optional[Attendee]:
        return (
            db.query(self.model)
            .filter(
                self.model.attendee_code == attendee_code,
                self.model.is_verified.is_(True),
            )
            .first()
        )


attendee = CRUDAttendee(Attendee)
