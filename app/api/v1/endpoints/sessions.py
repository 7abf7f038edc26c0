# app/api/v1/endpoints/sessions.py
"""
The attendee's live view of an event: no account needed, just the event code.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, WebSocket, status
from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from app.api.v1.endpoints.realtime import close_quietly, forward_changes
from app.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from app.db.session import get_db, get_session_factory
from app.schemas.realtime import ChangeEvent
from app.schemas.session import SessionSnapshot
from app.schemas.speaking_request import SpeakingRequestCreate
from app.services import change_feed
from app.services.attendee_session import AttendeeSession
from app.utils.codes import normalise_event_code

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Attendee Sessions"])


def _resume(db: Session, event_code: str, request_id: Optional[str] = None) -> AttendeeSession:
    try:
        return AttendeeSession.resume(
            db, event_code=normalise_event_code(event_code), request_id=request_id
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/{event_code}", response_model=SessionSnapshot)
def get_session(
    event_code: str,
    request_id: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """
    Current view of the event. Pass the id of a request submitted earlier
    to pick up where the attendee left off.
    """
    return _resume(db, event_code, request_id).snapshot()


@router.post(
    "/{event_code}/requests",
    response_model=SessionSnapshot,
    status_code=status.HTTP_201_CREATED,
)
def submit_request(
    event_code: str,
    request_in: SpeakingRequestCreate,
    db: Session = Depends(get_db),
):
    """Joins the queue with a name and a question."""
    session = _resume(db, event_code)
    if session.is_ended:
        raise HTTPException(
            status_code=status.HTTP_410_GONE, detail="This event has ended"
        )
    try:
        session.start_request()
        session.submit(
            db, attendee_name=request_in.attendee_name, question=request_in.question
        )
    except InvalidTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValidationFailedError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        )
    return session.snapshot()


def _resume_detached(
    session_factory, event_code: str, request_id: Optional[str]
) -> AttendeeSession:
    """Resumes with a short-lived DB session; the live view keeps only pydantic state."""
    with session_factory() as db:
        return AttendeeSession.resume(
            db, event_code=normalise_event_code(event_code), request_id=request_id
        )


@router.websocket("/{event_code}/ws")
async def session_updates(
    websocket: WebSocket,
    event_code: str,
    request_id: Optional[str] = None,
    session_factory=Depends(get_session_factory),
):
    """
    Pushes a snapshot on connect and after every change the feed drives.
    The socket closes once the event ends.
    """
    try:
        session = await asyncio.to_thread(
            _resume_detached, session_factory, event_code, request_id
        )
    except NotFoundError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    await websocket.send_json(session.snapshot().model_dump(mode="json"))
    if session.is_ended:
        await close_quietly(websocket)
        return

    async def apply(change: ChangeEvent) -> bool:
        if session.handle_change(change):
            await websocket.send_json(session.snapshot().model_dump(mode="json"))
        return not session.is_ended

    event_id = session.event.id
    changes = change_feed.subscribe_many(
        ("events", change_feed.RowFilter("id", event_id), None),
        ("speaking_requests", change_feed.RowFilter("event_id", event_id), None),
    )
    try:
        gone = await forward_changes(websocket, changes, apply)
    except RedisError as e:
        logger.error(f"Session feed for event {event_id} failed: {e}")
        await close_quietly(websocket, status.WS_1011_INTERNAL_ERROR)
        return
    if not gone:
        await close_quietly(websocket)
