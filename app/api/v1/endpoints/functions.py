# app/api/v1/endpoints/functions.py
"""
Outbound HTTP functions callable by the frontend directly.
"""

import logging

from fastapi import APIRouter, Response, status
from fastapi.responses import JSONResponse

from app.core.email import send_verification_email
from app.schemas.email import VerificationEmailRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions", tags=["Functions"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


@router.options("/send-verification-email")
def send_verification_email_preflight():
    return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)


@router.post("/send-verification-email")
def send_verification_email_function(payload: VerificationEmailRequest):
    """Sends the registration email with the attendee ID and verify link."""
    result = send_verification_email(
        to_email=payload.email,
        name=payload.name,
        attendee_id=payload.attendeeId,
        verification_link=payload.verificationLink,
    )
    if not result["success"]:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": result["error"]},
            headers=CORS_HEADERS,
        )
    return JSONResponse(content={"success": True}, headers=CORS_HEADERS)
