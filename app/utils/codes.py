# app/utils/codes.py
import secrets
import string
from datetime import datetime, timezone
from urllib.parse import urlparse

EVENT_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_event_code(length: int = 6) -> str:
    """Random join code an attendee can type, e.g. K7Q2ZD."""
    return "".join(secrets.choice(EVENT_CODE_ALPHABET) for _ in range(length))


def generate_attendee_code() -> str:
    """Attendee ID printed in the verification email, e.g. EVT2025-482913."""
    year = datetime.now(timezone.utc).year
    digits = "".join(secrets.choice(string.digits) for _ in range(6))
    return f"EVT{year}-{digits}"


def generate_verification_token() -> str:
    return secrets.token_urlsafe(24)


def normalise_event_code(code: str) -> str:
    return code.strip().upper()


def extract_event_code(scanned: str) -> str:
    """
    Event code from a scanned QR payload: either the bare code or a join URL
    ending in /session/<code>.
    """
    text = scanned.strip()
    if "://" in text:
        text = urlparse(text).path
    if "/" in text:
        text = text.rstrip("/").rsplit("/", 1)[-1]
    return normalise_event_code(text)


def build_join_url(base_url: str, event_code: str) -> str:
    return f"{base_url.rstrip('/')}/session/{event_code}"
