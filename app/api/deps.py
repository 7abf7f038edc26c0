# app/api/deps.py
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from app.core.security import decode_access_token
from app.crud import crud_attendee, crud_event, crud_moderator
from app.db.session import get_db
from app.models.attendee import Attendee
from app.models.event import Event
from app.models.moderator import ModeratorSession
from app.schemas.token import TokenPayload

# The `tokenUrl` is only used by the OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/moderators/login")

credentials_exception = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


def get_token_payload(token: str = Depends(oauth2_scheme)) -> TokenPayload:
    try:
        payload = decode_access_token(token)
        token_data = TokenPayload(**payload)
    except (JWTError, ValueError):
        # Catches any error from jose or Pydantic validation
        raise credentials_exception
    return token_data


def moderator_session_for_payload(db: Session, payload: TokenPayload) -> ModeratorSession:
    """The live session behind a moderator token; ended sessions are refused."""
    if payload.role != "moderator" or not payload.session_id:
        raise credentials_exception
    moderator_session = crud_moderator.moderator_session.get_active(
        db, session_id=payload.session_id
    )
    if not moderator_session or moderator_session.moderator_id != payload.sub:
        raise credentials_exception
    return moderator_session


def moderator_session_for_token(db: Session, token: str) -> ModeratorSession:
    """Same check for callers that cannot send headers, such as WebSockets."""
    return moderator_session_for_payload(db, get_token_payload(token))


def get_current_moderator_session(
    payload: TokenPayload = Depends(get_token_payload),
    db: Session = Depends(get_db),
) -> ModeratorSession:
    return moderator_session_for_payload(db, payload)


def get_current_attendee(
    payload: TokenPayload = Depends(get_token_payload),
    db: Session = Depends(get_db),
) -> Attendee:
    if payload.role != "attendee":
        raise credentials_exception
    attendee = crud_attendee.attendee.get(db, id=payload.sub)
    if not attendee or not attendee.is_verified:
        raise credentials_exception
    return attendee


def get_moderator_event(
    event_id: str,
    moderator_session: ModeratorSession = Depends(get_current_moderator_session),
    db: Session = Depends(get_db),
) -> Event:
    """An event owned by the calling moderator, else 404."""
    event = crud_event.event.get(db, id=event_id)
    if not event or event.moderator_id != moderator_session.moderator_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Event not found"
        )
    return event
