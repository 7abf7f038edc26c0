# app/api/v1/endpoints/attendees.py
import logging
from typing import List
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.api import deps
from app.core.config import settings
from app.core.email import send_verification_email
from app.core.exceptions import ConflictError, DuplicateRecordError
from app.core.limiter import limiter
from app.core.security import create_access_token
from app.crud import crud_attendee, crud_event, crud_speaking_request
from app.db.session import get_db
from app.models.attendee import Attendee
from app.schemas.attendee import (
    Attendee as AttendeeSchema,
    AttendeeCreate,
    AttendeeLoginResponse,
    RegistrationResponse,
    VerifyEmailRequest,
    VerifyIdRequest,
)
from app.schemas.speaking_request import (
    DashboardRequestCreate,
    SpeakingRequest as SpeakingRequestSchema,
    SpeakingRequestCreate,
)
from app.services.queue_manager import QueueManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/attendees", tags=["Attendees"])


def build_verification_link(token: str, attendee_code: str) -> str:
    query = urlencode({"token": token, "id": attendee_code})
    return f"{settings.APP_BASE_URL.rstrip('/')}/verify-email?{query}"


@router.post(
    "/register",
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def register_attendee(
    request: Request,
    attendee_in: AttendeeCreate,
    db: Session = Depends(get_db),
):
    """
    Registers an attendee and emails them their attendee ID with a
    verification link. A failed email does not undo the registration.
    """
    try:
        attendee = crud_attendee.attendee.create_unverified(db, obj_in=attendee_in)
    except DuplicateRecordError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    result = send_verification_email(
        to_email=attendee.email,
        name=attendee.name,
        attendee_id=attendee.attendee_code,
        verification_link=build_verification_link(
            attendee.verification_token, attendee.attendee_code
        ),
    )
    if result["success"]:
        message = "Registration successful! Please check your email to verify your account."
    else:
        logger.warning(f"Attendee {attendee.id} registered but the email was not sent")
        message = (
            "Registration successful, but the verification email could not be sent. "
            "Please contact support."
        )
    return {
        "attendee_code": attendee.attendee_code,
        "email_sent": result["success"],
        "message": message,
    }


@router.post("/verify-email", response_model=AttendeeSchema)
def verify_email(verify_in: VerifyEmailRequest, db: Session = Depends(get_db)):
    attendee = crud_attendee.attendee.verify_email(
        db, token=verify_in.token, attendee_code=verify_in.attendee_code
    )
    if not attendee:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired verification link",
        )
    logger.info(f"Attendee {attendee.id} verified their email")
    return attendee


@router.post("/verify-id", response_model=AttendeeLoginResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def verify_attendee_id(
    request: Request,
    verify_in: VerifyIdRequest,
    db: Session = Depends(get_db),
):
    """Signs a verified attendee in with the ID from their email."""
    attendee = crud_attendee.attendee.get_verified_by_code(
        db, attendee_code=verify_in.attendee_code
    )
    if not attendee:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid ID")
    access_token = create_access_token(data={"sub": attendee.id, "role": "attendee"})
    return {"access_token": access_token, "token_type": "bearer", "attendee": attendee}


@router.get("/me/requests", response_model=List[SpeakingRequestSchema])
def list_my_requests(
    db: Session = Depends(get_db),
    attendee: Attendee = Depends(deps.get_current_attendee),
):
    return crud_speaking_request.speaking_request.get_multi_by_attendee(
        db, attendee_id=attendee.id
    )


@router.post(
    "/me/requests",
    response_model=SpeakingRequestSchema,
    status_code=status.HTTP_201_CREATED,
)
def submit_dashboard_request(
    request_in: DashboardRequestCreate,
    db: Session = Depends(get_db),
    attendee: Attendee = Depends(deps.get_current_attendee),
):
    """
    Submits a question to an event by code. With DASHBOARD_AUTO_APPROVE set
    the request goes straight to the floor through the normal approve path.
    """
    event = crud_event.event.get_active_by_code(db, event_code=request_in.event_code)
    if not event:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    if not event.accepting_requests:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This event is not accepting requests",
        )

    db_request = crud_speaking_request.speaking_request.create_for_event(
        db,
        obj_in=SpeakingRequestCreate(
            attendee_name=attendee.name, question=request_in.question
        ),
        event_id=event.id,
        attendee_id=attendee.id,
    )
    if settings.DASHBOARD_AUTO_APPROVE:
        manager = QueueManager(db, event)
        manager.load()
        try:
            db_request = manager.approve(db_request.id)
        except ConflictError as e:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return db_request
