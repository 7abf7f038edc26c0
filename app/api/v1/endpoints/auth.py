# app/api/v1/endpoints/auth.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api import deps
from app.core.config import settings
from app.core.exceptions import DuplicateRecordError
from app.core.limiter import limiter
from app.core.security import create_access_token
from app.crud import crud_moderator
from app.db.session import get_db
from app.models.moderator import ModeratorSession
from app.schemas.moderator import (
    LoginResponse,
    Moderator as ModeratorSchema,
    ModeratorCreate,
    ModeratorLogin,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth/moderators", tags=["Moderator Auth"])


@router.post(
    "/register", response_model=ModeratorSchema, status_code=status.HTTP_201_CREATED
)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def register_moderator(
    request: Request,
    moderator_in: ModeratorCreate,
    db: Session = Depends(get_db),
):
    """Creates a moderator account."""
    try:
        return crud_moderator.moderator.create(db, obj_in=moderator_in)
    except DuplicateRecordError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except SQLAlchemyError:
        logger.error("Moderator registration failed", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Registration failed",
        )


@router.post("/login", response_model=LoginResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def login_moderator(
    request: Request,
    credentials: ModeratorLogin,
    db: Session = Depends(get_db),
):
    """
    Checks the credentials and opens a moderator session. The returned token
    names the session, so logging out invalidates it.
    """
    moderator = crud_moderator.moderator.authenticate(
        db, email=credentials.email, password=credentials.password
    )
    if not moderator:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    moderator_session = crud_moderator.moderator_session.create_for_moderator(
        db, moderator_id=moderator.id
    )
    access_token = create_access_token(
        data={"sub": moderator.id, "role": "moderator", "sid": moderator_session.id}
    )
    logger.info(f"Moderator {moderator.id} logged in (session {moderator_session.id})")
    return {"access_token": access_token, "token_type": "bearer", "moderator": moderator}


@router.get("/me", response_model=ModeratorSchema)
def read_current_moderator(
    moderator_session: ModeratorSession = Depends(deps.get_current_moderator_session),
):
    return moderator_session.moderator


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout_moderator(
    moderator_session: ModeratorSession = Depends(deps.get_current_moderator_session),
    db: Session = Depends(get_db),
):
    crud_moderator.moderator_session.end(db, db_obj=moderator_session)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
