"""
Domain dataclasses used across the application.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

ROLES = ("patient", "caregiver", "admin")


@dataclass
class Identity:
    """An account row, as the server sees it."""
    id: str
    name: str
    email: str
    role: str                          # "patient", "caregiver" or "admin"
    password_hash: str = ""
    phone: Optional[str] = None
    language: str = "en"
    linked_patient_id: Optional[str] = None  # caregivers only
    access_code: Optional[str] = None        # patients only
    expo_push_token: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_public_dict(self) -> Dict[str, Any]:
        """Client-facing view: never includes the password hash or refresh token."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "language": self.language,
            "linkedPatientId": self.linked_patient_id,
            "accessCode": self.access_code,
            "expoPushToken": self.expo_push_token,
            "isActive": self.is_active,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


@dataclass
class TokenPair:
    """An access/refresh token pair and their expiry instants (UTC)."""
    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime

    def to_dict(self) -> Dict[str, str]:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "accessExpiresAt": _iso(self.access_expires_at),
            "refreshExpiresAt": _iso(self.refresh_expires_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenPair":
        return cls(
            access_token=data["accessToken"],
            refresh_token=data["refreshToken"],
            access_expires_at=_parse_iso(data.get("accessExpiresAt")),
            refresh_expires_at=_parse_iso(data.get("refreshExpiresAt")),
        )


@dataclass(frozen=True)
class AccessScope:
    """The single patient-data partition an authenticated identity may touch."""
    identity_id: str
    role: str
    patient_id: str


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _parse_iso(value: Optional[str]) -> datetime:
    if not value:
        return datetime.fromtimestamp(0, tz=timezone.utc)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
