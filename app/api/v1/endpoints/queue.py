# app/api/v1/endpoints/queue.py
import asyncio
import logging
from typing import Any, Callable, List

from fastapi import APIRouter, Depends, HTTPException, WebSocket, status
from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from app.api import deps
from app.api.v1.endpoints.realtime import close_quietly, forward_changes
from app.core.exceptions import ConflictError, NotFoundError, ValidationFailedError
from app.crud import crud_event, crud_speaking_request
from app.db.session import get_db, get_session_factory
from app.models.event import Event
from app.models.moderator import ModeratorSession
from app.schemas.realtime import ChangeEvent
from app.schemas.speaking_request import QueueReorder, QueueSnapshot, ReviewRequest
from app.services import change_feed
from app.services.queue_manager import QueueManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Queue"])


def _load_manager(db: Session, event: Event) -> QueueManager:
    manager = QueueManager(db, event)
    manager.load()
    return manager


def _manager_for_request(
    db: Session, request_id: str, moderator_session: ModeratorSession
) -> QueueManager:
    """The queue a request belongs to, provided the moderator owns its event."""
    db_request = crud_speaking_request.speaking_request.get(db, id=request_id)
    if db_request:
        event = crud_event.event.get(db, id=db_request.event_id)
        if event and event.moderator_id == moderator_session.moderator_id:
            return _load_manager(db, event)
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND, detail="Speaking request not found"
    )


@router.get("/events/{event_id}/queue", response_model=QueueSnapshot)
def get_queue(
    event: Event = Depends(deps.get_moderator_event),
    db: Session = Depends(get_db),
):
    """Pending requests in queue order plus the current speaker."""
    return _load_manager(db, event).snapshot()


@router.post("/events/{event_id}/queue/end-turn", response_model=QueueSnapshot)
def end_turn(
    event: Event = Depends(deps.get_moderator_event),
    db: Session = Depends(get_db),
):
    manager = _load_manager(db, event)
    manager.end_turn()
    return manager.snapshot()


@router.put("/events/{event_id}/queue/order", response_model=QueueSnapshot)
def reorder_queue(
    reorder_in: QueueReorder,
    event: Event = Depends(deps.get_moderator_event),
    db: Session = Depends(get_db),
):
    """Moves one pending request; the new order is stored."""
    manager = _load_manager(db, event)
    try:
        manager.reorder(reorder_in.source_index, reorder_in.dest_index)
    except ValidationFailedError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        )
    return manager.snapshot()


def _act_on_request(
    db: Session,
    request_id: str,
    moderator_session: ModeratorSession,
    action: Callable[[QueueManager, str], Any],
) -> QueueSnapshot:
    manager = _manager_for_request(db, request_id, moderator_session)
    try:
        action(manager, request_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return manager.snapshot()


@router.post("/requests/{request_id}/approve", response_model=QueueSnapshot)
def approve_request(
    request_id: str,
    db: Session = Depends(get_db),
    moderator_session: ModeratorSession = Depends(deps.get_current_moderator_session),
):
    """Gives the floor to a pending request, completing the current speaker."""
    return _act_on_request(db, request_id, moderator_session, QueueManager.approve)


@router.post("/requests/{request_id}/dismiss", response_model=QueueSnapshot)
def dismiss_request(
    request_id: str,
    db: Session = Depends(get_db),
    moderator_session: ModeratorSession = Depends(deps.get_current_moderator_session),
):
    return _act_on_request(db, request_id, moderator_session, QueueManager.dismiss)


@router.post("/requests/{request_id}/reject", response_model=QueueSnapshot)
def reject_request(
    request_id: str,
    db: Session = Depends(get_db),
    moderator_session: ModeratorSession = Depends(deps.get_current_moderator_session),
):
    return _act_on_request(db, request_id, moderator_session, QueueManager.reject)


@router.get("/moderator/requests", response_model=List[ReviewRequest])
def list_requests_for_review(
    db: Session = Depends(get_db),
    moderator_session: ModeratorSession = Depends(deps.get_current_moderator_session),
):
    """Every request across the moderator's events, newest first."""
    rows = crud_speaking_request.speaking_request.get_for_review(
        db, moderator_id=moderator_session.moderator_id
    )
    return [
        ReviewRequest.model_validate(
            {
                **change_feed.row_to_dict(row),
                "event_title": row.event.title,
                "attendee_email": row.attendee.email if row.attendee else None,
            }
        )
        for row in rows
    ]


def _authorise_queue_socket(session_factory, token: str, event_id: str) -> bool:
    with session_factory() as db:
        try:
            moderator_session = deps.moderator_session_for_token(db, token)
        except HTTPException:
            return False
        event = crud_event.event.get(db, id=event_id)
        return event is not None and event.moderator_id == moderator_session.moderator_id


def _load_queue_snapshot(session_factory, event_id: str) -> QueueSnapshot:
    with session_factory() as db:
        event = crud_event.event.get(db, id=event_id)
        return QueueManager(db, event).load()


@router.websocket("/events/{event_id}/queue/ws")
async def queue_updates(
    websocket: WebSocket,
    event_id: str,
    token: str,
    session_factory=Depends(get_session_factory),
):
    """
    Sends the queue snapshot on connect and again after every burst of
    changes to the event's requests. Moderators pass their bearer token as
    ``?token=``.
    """
    if not await asyncio.to_thread(_authorise_queue_socket, session_factory, token, event_id):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    snapshot = await asyncio.to_thread(_load_queue_snapshot, session_factory, event_id)
    await websocket.send_json(snapshot.model_dump(mode="json"))

    async def reload(changes: List[ChangeEvent]) -> bool:
        snapshot = await asyncio.to_thread(_load_queue_snapshot, session_factory, event_id)
        await websocket.send_json(snapshot.model_dump(mode="json"))
        return True

    changes = change_feed.batched(
        change_feed.subscribe(
            "speaking_requests", change_feed.RowFilter("event_id", event_id)
        )
    )
    try:
        gone = await forward_changes(websocket, changes, reload)
    except RedisError as e:
        logger.error(f"Queue feed for event {event_id} failed: {e}")
        await close_quietly(websocket, status.WS_1011_INTERNAL_ERROR)
        return
    if not gone:
        await close_quietly(websocket)
