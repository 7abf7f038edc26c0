# app/schemas/email.py
from pydantic import BaseModel, EmailStr


class VerificationEmailRequest(BaseModel):
    name: str
    email: EmailStr
    attendeeId: str
    verificationLink: str
