# app/schemas/attendee.py
from pydantic import BaseModel, EmailStr, Field, field_validator


class AttendeeCreate(BaseModel):
    name: str
    email: EmailStr

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class Attendee(BaseModel):
    id: str
    name: str
    email: EmailStr
    attendee_code: str
    is_verified: bool

    model_config = {"from_attributes": True}


class RegistrationResponse(BaseModel):
    attendee_code: str
    email_sent: bool
    message: str


class VerifyEmailRequest(BaseModel):
    token: str = Field(..., min_length=1)
    attendee_code: str = Field(..., min_length=1, alias="id")

    model_config = {"populate_by_name": True}


class VerifyIdRequest(BaseModel):
    attendee_code: str

    @field_validator("attendee_code")
    @classmethod
    def code_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Attendee ID is required")
        return v


class AttendeeLoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    attendee: Attendee
