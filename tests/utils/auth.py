from sqlalchemy.orm import Session

from app.core.security import create_access_token
from app.crud import crud_moderator
from app.models.attendee import Attendee
from app.models.moderator import Moderator
from app.schemas.moderator import ModeratorCreate

TEST_PASSWORD = "correct horse battery"


def create_moderator(
    db: Session, email: str = "mod@example.com", name: str = "Morgan Moderator"
) -> Moderator:
    return crud_moderator.moderator.create(
        db, obj_in=ModeratorCreate(name=name, email=email, password=TEST_PASSWORD)
    )


def get_moderator_authentication_headers(db: Session, moderator: Moderator) -> dict[str, str]:
    """
    Opens a moderator session and returns headers carrying its token.
    """
    moderator_session = crud_moderator.moderator_session.create_for_moderator(
        db, moderator_id=moderator.id
    )
    token = create_access_token(
        data={"sub": moderator.id, "role": "moderator", "sid": moderator_session.id}
    )
    return {"Authorization": f"Bearer {token}"}


def get_attendee_authentication_headers(attendee: Attendee) -> dict[str, str]:
    token = create_access_token(data={"sub": attendee.id, "role": "attendee"})
    return {"Authorization": f"Bearer {token}"}
