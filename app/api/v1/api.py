# app/api/v1/api.py

from fastapi import APIRouter
from app.api.v1.endpoints import (
    attendees,
    auth,
    events,
    functions,
    queue,
    realtime,
    sessions,
)

# This is the main router for the v1 API.
api_router = APIRouter()

api_router.include_router(auth.router)
api_router.include_router(events.router)
api_router.include_router(queue.router)
api_router.include_router(sessions.router)
api_router.include_router(attendees.router)
api_router.include_router(realtime.router)
api_router.include_router(functions.router)
