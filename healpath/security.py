"""
Password hashing, JWT token pairs and caregiver access codes.
"""

import secrets
import string
import uuid
from datetime import timedelta
from typing import Any, Dict, Optional

import bcrypt
import jwt

from healpath.config import (
    ACCESS_CODE_LENGTH,
    ACCESS_TOKEN_EXPIRY_MINUTES,
    ACCESS_TOKEN_SECRET,
    BCRYPT_ROUNDS,
    JWT_ALGORITHM,
    REFRESH_TOKEN_EXPIRY_DAYS,
    REFRESH_TOKEN_SECRET,
)
from healpath.errors import TokenExpired, TokenInvalid
from healpath.models import TokenPair, utcnow

ACCESS_CODE_ALPHABET = string.ascii_uppercase + string.digits


# ── Passwords ────────────────────────────────────────────────────────

def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Salted bcrypt hash with a fixed cost factor."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Check a plaintext password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash, or a password bcrypt refuses to process.
        return False


# ── Access codes ─────────────────────────────────────────────────────

def generate_access_code(length: int = ACCESS_CODE_LENGTH) -> str:
    """Random uppercase alphanumeric code a caregiver redeems to link to a patient."""
    return "".join(secrets.choice(ACCESS_CODE_ALPHABET) for _ in range(length))


def is_valid_access_code(code: Optional[str], length: int = ACCESS_CODE_LENGTH) -> bool:
    return bool(code) and len(code) == length and all(c in ACCESS_CODE_ALPHABET for c in code)


# ── Tokens ───────────────────────────────────────────────────────────

class TokenIssuer:
    """Mints and verifies access/refresh JWTs.

    Access and refresh tokens are signed with distinct secrets and carry a
    ``type`` claim, so neither kind can stand in for the other. Each token gets a
    random ``jti`` so two pairs minted within the same second never collide.
    """

    def __init__(
        self,
        access_secret: str = ACCESS_TOKEN_SECRET,
        refresh_secret: str = REFRESH_TOKEN_SECRET,
        access_ttl: timedelta = timedelta(minutes=ACCESS_TOKEN_EXPIRY_MINUTES),
        refresh_ttl: timedelta = timedelta(days=REFRESH_TOKEN_EXPIRY_DAYS),
        algorithm: str = JWT_ALGORITHM,
    ):
        if access_secret == refresh_secret:
            raise ValueError("Access and refresh tokens must use distinct secrets")
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.algorithm = algorithm

    def issue(self, user_id: str) -> TokenPair:
        now = utcnow()
        access_expires_at = now + self.access_ttl
        refresh_expires_at = now + self.refresh_ttl
        return TokenPair(
            access_token=self._encode(user_id, "access", now, access_expires_at, self.access_secret),
            refresh_token=self._encode(user_id, "refresh", now, refresh_expires_at, self.refresh_secret),
            access_expires_at=access_expires_at,
            refresh_expires_at=refresh_expires_at,
        )

    def verify_access(self, token: str) -> Dict[str, Any]:
        return self._decode(token, "access", self.access_secret)

    def verify_refresh(self, token: str) -> Dict[str, Any]:
        return self._decode(token, "refresh", self.refresh_secret)

    def _encode(self, user_id, token_type, issued_at, expires_at, secret) -> str:
        payload = {
            "id": user_id,
            "type": token_type,
            "jti": uuid.uuid4().hex,
            "iat": issued_at,
            "exp": expires_at,
        }
        return jwt.encode(payload, secret, algorithm=self.algorithm)

    def _decode(self, token: str, token_type: str, secret: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(token, secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise TokenExpired(f"{token_type.capitalize()} token expired")
        except jwt.InvalidTokenError:
            raise TokenInvalid(f"Invalid {token_type} token")

        if payload.get("type") != token_type or not payload.get("id"):
            raise TokenInvalid(f"Invalid {token_type} token")
        return payload
