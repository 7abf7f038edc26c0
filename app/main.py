# app/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api.v1.api import api_router
from app.core.config import settings
from app.core.limiter import limiter
from app.core.logging import setup_logging

logger = logging.getLogger(__name__)


# Runs once when the application starts up.
@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(f"Speaker queue service starting (ENV={settings.ENV})")
    yield
    logger.info("Speaker queue service shutting down")


app = FastAPI(
    title="Speaker Queue Service",
    version="1.0.0",
    description="""
        **Digital speaker queue for live events**

        ## Features

        * **Events**: Moderators create an event and share its join code or QR code
        * **Queue**: Attendees ask to speak; moderators approve, dismiss, reorder and end turns
        * **Live updates**: Every change is pushed over WebSockets from a Redis change feed
        * **Registration**: Attendees can register, verify their email and track their questions

        ## Authentication

        Moderator and registered-attendee endpoints require a JWT via the
        `Authorization: Bearer <token>` header. Joining an event and asking to
        speak only needs the event code.
        """,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

origins = settings.get_cors_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    # browsers refuse credentials with a wildcard origin
    allow_credentials="*" not in origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def read_root():
    return {"status": "Speaker Queue Service is running"}
