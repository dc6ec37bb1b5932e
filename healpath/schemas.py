"""
Request/response contracts for the REST API.

Bodies travel as camelCase JSON; the models accept both camelCase and
snake_case and always validate at the boundary.
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from healpath.config import MIN_PASSWORD_LENGTH
from healpath.errors import ValidationError

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")

AppointmentStatus = Literal["upcoming", "completed", "cancelled"]
Frequency = Literal["once_daily", "twice_daily", "thrice_daily", "weekly", "as_needed"]
Mood = Literal["great", "good", "okay", "bad", "terrible"]
FollowUpType = Literal["scan", "doctor_visit", "lab_test", "other"]
FollowUpStatus = Literal["pending", "completed", "cancelled"]


class Contract(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


def parse_contract(model, data: Any):
    """Validate *data* against *model*, raising ValidationError with per-field messages."""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(errors=field_errors(exc))


def field_errors(exc: pydantic.ValidationError) -> List[Dict[str, str]]:
    return [
        {
            "field": ".".join(str(part) for part in err["loc"]) or "body",
            "message": err["msg"],
        }
        for err in exc.errors()
    ]


def _normalize_email(value: str) -> str:
    value = value.strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Valid email is required")
    return value


# ── Auth ─────────────────────────────────────────────────────────────

class RegisterRequest(Contract):
    name: str = Field(min_length=1, max_length=100)
    email: str
    phone: Optional[str] = None
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    role: Literal["patient", "caregiver"] = "patient"
    language: str = "en"

    normalize_email = field_validator("email")(_normalize_email)

    @field_validator("password")
    @classmethod
    def fits_bcrypt(cls, value: str) -> str:
        if len(value.encode("utf-8")) > 72:
            raise ValueError("Password must be at most 72 bytes")
        return value


class LoginRequest(Contract):
    email: str
    password: str = Field(min_length=1)

    normalize_email = field_validator("email")(_normalize_email)


class RefreshRequest(Contract):
    refresh_token: Optional[str] = None


class ProfileUpdate(Contract):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = None
    language: Optional[str] = None


class PushTokenUpdate(Contract):
    expo_push_token: Optional[str] = None


class LinkRequest(Contract):
    access_code: str = Field(min_length=1)

    @field_validator("access_code")
    @classmethod
    def upper_code(cls, value: str) -> str:
        return value.upper()


# ── Appointments ─────────────────────────────────────────────────────

class AppointmentCreate(Contract):
    doctor_name: str = Field(min_length=1)
    department: str = Field(min_length=1)
    date: datetime
    location: str = Field(min_length=1)
    notes: Optional[str] = None
    status: AppointmentStatus = "upcoming"


class AppointmentUpdate(Contract):
    doctor_name: Optional[str] = Field(default=None, min_length=1)
    department: Optional[str] = Field(default=None, min_length=1)
    date: Optional[datetime] = None
    location: Optional[str] = Field(default=None, min_length=1)
    notes: Optional[str] = None
    status: Optional[AppointmentStatus] = None
    reminder_sent: Optional[bool] = None


# ── Medications ──────────────────────────────────────────────────────

class MedicationCreate(Contract):
    name: str = Field(min_length=1)
    dosage: str = Field(min_length=1)
    frequency: Frequency
    times: List[str] = Field(default_factory=list)
    instructions: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    active: bool = True


class MedicationUpdate(Contract):
    name: Optional[str] = Field(default=None, min_length=1)
    dosage: Optional[str] = Field(default=None, min_length=1)
    frequency: Optional[Frequency] = None
    times: Optional[List[str]] = None
    instructions: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    active: Optional[bool] = None


class TakenEntry(Contract):
    date: Optional[datetime] = None
    time: str = Field(min_length=1)
    taken: bool = True


# ── Symptoms ─────────────────────────────────────────────────────────

class SymptomLogCreate(Contract):
    client_id: Optional[str] = Field(default=None, max_length=64)
    date: Optional[datetime] = None
    mood: Mood
    pain_level: int = Field(ge=0, le=10)
    symptoms: List[str] = Field(default_factory=list)
    notes: Optional[str] = None


class BulkSymptomRequest(Contract):
    # Items are validated one by one so a bad entry is reported, not fatal.
    logs: List[Dict[str, Any]]


# ── Follow-ups ───────────────────────────────────────────────────────

class FollowUpCreate(Contract):
    title: str = Field(min_length=1)
    scheduled_date: datetime
    type: FollowUpType
    notes: Optional[str] = None
    location: Optional[str] = None
    status: FollowUpStatus = "pending"


class FollowUpUpdate(Contract):
    title: Optional[str] = Field(default=None, min_length=1)
    scheduled_date: Optional[datetime] = None
    type: Optional[FollowUpType] = None
    notes: Optional[str] = None
    location: Optional[str] = None
    status: Optional[FollowUpStatus] = None


# ── Notifications ────────────────────────────────────────────────────

class NotificationRequest(Contract):
    user_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    body: str = Field(min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)


class ReminderRequest(Contract):
    type: Literal["appointment", "medication", "followup"]
    title: Optional[str] = None
    body: Optional[str] = None


# ── Client-side response contracts ───────────────────────────────────

class TokenPairPayload(Contract):
    access_token: str
    refresh_token: str
    access_expires_at: Optional[str] = None
    refresh_expires_at: Optional[str] = None


class AuthPayload(TokenPairPayload):
    user: Dict[str, Any]
