import pytest

from app.core.exceptions import DuplicateRecordError
from app.core.security import verify_password
from app.crud import crud_attendee, crud_moderator
from app.schemas.attendee import AttendeeCreate
from app.schemas.moderator import ModeratorCreate

from tests.utils.auth import TEST_PASSWORD, create_moderator


def test_moderator_password_is_hashed(db_session):
    moderator = create_moderator(db_session, email="Chair@Example.com")
    assert moderator.email == "chair@example.com"
    assert moderator.hashed_password != TEST_PASSWORD
    assert verify_password(TEST_PASSWORD, moderator.hashed_password)


def test_duplicate_moderator_email(db_session, moderator):
    with pytest.raises(DuplicateRecordError, match="Email already exists"):
        crud_moderator.moderator.create(
            db_session,
            obj_in=ModeratorCreate(name="Other", email=moderator.email, password="x"),
        )


def test_authenticate(db_session, moderator):
    authenticate = crud_moderator.moderator.authenticate
    assert authenticate(db_session, email=moderator.email, password=TEST_PASSWORD).id == moderator.id
    assert authenticate(db_session, email=moderator.email, password="wrong") is None
    assert authenticate(db_session, email="nobody@example.com", password=TEST_PASSWORD) is None


def test_moderator_session_lifecycle(db_session, moderator):
    sessions = crud_moderator.moderator_session
    moderator_session = sessions.create_for_moderator(db_session, moderator_id=moderator.id)
    assert moderator_session.id.startswith("mss_")
    assert sessions.get_active(db_session, session_id=moderator_session.id)

    sessions.end(db_session, db_obj=moderator_session)

    assert moderator_session.ended_at is not None
    assert sessions.get_active(db_session, session_id=moderator_session.id) is None


def test_attendee_registration_and_verification(db_session):
    attendees = crud_attendee.attendee
    attendee = attendees.create_unverified(
        db_session, obj_in=AttendeeCreate(name="Grace", email="grace@example.com")
    )
    assert attendee.is_verified is False
    assert attendees.get_verified_by_code(db_session, attendee_code=attendee.attendee_code) is None

    assert attendees.verify_email(db_session, token="wrong", attendee_code=attendee.attendee_code) is None

    verified = attendees.verify_email(
        db_session, token=attendee.verification_token, attendee_code=attendee.attendee_code
    )
    assert verified.is_verified is True
    assert attendees.get_verified_by_code(db_session, attendee_code=attendee.attendee_code).id == attendee.id

    # a used link does not verify again
    assert attendees.verify_email(
        db_session, token=attendee.verification_token, attendee_code=attendee.attendee_code
    ) is None


def test_duplicate_attendee_email(db_session):
    attendees = crud_attendee.attendee
    attendees.create_unverified(db_session, obj_in=AttendeeCreate(name="Grace", email="grace@example.com"))
    with pytest.raises(DuplicateRecordError, match="Email already registered"):
        attendees.create_unverified(
            db_session, obj_in=AttendeeCreate(name="Grace Again", email="grace@example.com")
        )
