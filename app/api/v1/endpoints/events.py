# app/api/v1/endpoints/events.py
import logging
from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    Query,
    Request,
    Response,
    UploadFile,
    status,
)
from sqlalchemy.orm import Session

from app.api import deps
from app.core.config import settings
from app.core.limiter import limiter
from app.crud import crud_event, crud_moderator
from app.db.session import get_db
from app.models.event import Event
from app.models.moderator import ModeratorSession
from app.schemas.event import (
    AcceptingRequestsUpdate,
    Event as EventSchema,
    EventCreate,
    EventWithJoinUrl,
    PublicEvent,
)
from app.services.queue_manager import QueueManager, resolve_current_event
from app.utils.codes import build_join_url, extract_event_code, normalise_event_code
from app.utils.qr import decode_qr, encode_qr_png

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Events"])

event_not_found = HTTPException(
    status_code=status.HTTP_404_NOT_FOUND, detail="Event not found"
)


def _with_join_url(event: Event) -> EventWithJoinUrl:
    data = EventSchema.model_validate(event).model_dump()
    return EventWithJoinUrl(
        **data, join_url=build_join_url(settings.APP_BASE_URL, event.event_code)
    )


def _resolve_join_code(db: Session, code: str) -> Event:
    """A typed or scanned code must be a full-length code of an active event."""
    code = normalise_event_code(code)
    if len(code) != settings.EVENT_CODE_LENGTH:
        raise event_not_found
    event = crud_event.event.get_active_by_code(db, event_code=code)
    if not event:
        raise event_not_found
    return event


@router.post(
    "/events", response_model=EventWithJoinUrl, status_code=status.HTTP_201_CREATED
)
def create_event(
    event_in: EventCreate,
    db: Session = Depends(get_db),
    moderator_session: ModeratorSession = Depends(deps.get_current_moderator_session),
):
    """Creates an event for the moderator and makes it their current event."""
    event = crud_event.event.create_with_moderator(
        db, obj_in=event_in, moderator_id=moderator_session.moderator_id
    )
    crud_moderator.moderator_session.set_current_event(
        db, db_obj=moderator_session, event_id=event.id
    )
    return _with_join_url(event)


@router.get("/events/current", response_model=EventWithJoinUrl)
def get_current_event(
    db: Session = Depends(get_db),
    moderator_session: ModeratorSession = Depends(deps.get_current_moderator_session),
):
    event = resolve_current_event(db, moderator_session)
    if event is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No active event"
        )
    return _with_join_url(event)


@router.get("/events/join/{event_code}", response_model=PublicEvent)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def join_event(request: Request, event_code: str, db: Session = Depends(get_db)):
    """Looks up an active event by the code an attendee typed."""
    return _resolve_join_code(db, event_code)


@router.post("/events/join/scan", response_model=PublicEvent)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def join_event_by_scan(
    request: Request,
    image: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    """Decodes an uploaded QR image and joins the event it points to."""
    contents = image.file.read()
    try:
        scanned = decode_qr(contents)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid image format"
        )
    if not scanned:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="No QR code found in image",
        )
    logger.info(f"Join QR scanned: {scanned}")
    return _resolve_join_code(db, extract_event_code(scanned))


@router.get("/events/{event_id}", response_model=EventWithJoinUrl)
def get_event(event: Event = Depends(deps.get_moderator_event)):
    return _with_join_url(event)


@router.get("/events/{event_id}/qr.png")
def get_event_qr(
    event: Event = Depends(deps.get_moderator_event),
    size: Optional[int] = Query(None, ge=64, le=2048),
):
    """The join QR code as a PNG; it encodes the attendee join URL."""
    try:
        png = encode_qr_png(
            build_join_url(settings.APP_BASE_URL, event.event_code), size=size
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        )
    return Response(content=png, media_type="image/png")


@router.patch("/events/{event_id}/accepting-requests", response_model=EventWithJoinUrl)
def update_accepting_requests(
    update_in: AcceptingRequestsUpdate,
    event: Event = Depends(deps.get_moderator_event),
    db: Session = Depends(get_db),
):
    manager = QueueManager(db, event)
    return _with_join_url(manager.toggle_accepting_requests(update_in.accepting_requests))


@router.post("/events/{event_id}/end", response_model=EventWithJoinUrl)
def end_event(
    event: Event = Depends(deps.get_moderator_event),
    db: Session = Depends(get_db),
    moderator_session: ModeratorSession = Depends(deps.get_current_moderator_session),
):
    """Ends the event. Ending an event that already ended changes nothing."""
    manager = QueueManager(db, event)
    return _with_join_url(manager.end_session(moderator_session))
