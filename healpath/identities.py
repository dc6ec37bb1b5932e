"""
Identity persistence: account rows, stored refresh tokens, access codes and links.
"""

import uuid
from typing import Callable, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from healpath.config import ACCESS_CODE_MAX_ATTEMPTS
from healpath.database import users
from healpath.errors import ValidationError
from healpath.models import Identity, utcnow
from healpath.security import generate_access_code

_IDENTITY_COLUMNS = [c for c in users.c if c.name != "refresh_token"]


def _to_identity(row) -> Identity:
    return Identity(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        role=row["role"],
        password_hash=row["password_hash"],
        phone=row["phone"],
        language=row["language"],
        linked_patient_id=row["linked_patient_id"],
        access_code=row["access_code"],
        expo_push_token=row["expo_push_token"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _fetch_one(engine: Engine, clause) -> Optional[Identity]:
    with engine.connect() as conn:
        row = conn.execute(select(*_IDENTITY_COLUMNS).where(clause)).mappings().first()
    return _to_identity(row) if row else None


def get_identity(engine: Engine, user_id: str) -> Optional[Identity]:
    return _fetch_one(engine, users.c.id == user_id)


def find_by_email(engine: Engine, email: str) -> Optional[Identity]:
    return _fetch_one(engine, users.c.email == email.strip().lower())


def find_patient_by_access_code(engine: Engine, code: str) -> Optional[Identity]:
    return _fetch_one(engine, (users.c.access_code == code) & (users.c.role == "patient"))


def create_identity(
    engine: Engine,
    *,
    name: str,
    email: str,
    password_hash: str,
    role: str,
    phone: Optional[str] = None,
    language: str = "en",
) -> Identity:
    """Insert a new account row; a duplicate email surfaces as ValidationError."""
    now = utcnow()
    user_id = uuid.uuid4().hex
    try:
        with engine.begin() as conn:
            conn.execute(
                insert(users).values(
                    id=user_id,
                    name=name,
                    email=email.strip().lower(),
                    phone=phone,
                    password_hash=password_hash,
                    role=role,
                    language=language,
                    is_active=True,
                    created_at=now,
                    updated_at=now,
                )
            )
    except IntegrityError:
        raise ValidationError(
            "Email already registered",
            errors=[{"field": "email", "message": "Email already registered"}],
        )
    return get_identity(engine, user_id)


# ── Refresh tokens ───────────────────────────────────────────────────

def get_refresh_token(engine: Engine, user_id: str) -> Optional[str]:
    with engine.connect() as conn:
        return conn.execute(
            select(users.c.refresh_token).where(users.c.id == user_id)
        ).scalar_one_or_none()


def store_refresh_token(engine: Engine, user_id: str, token: str) -> None:
    """Overwrite the stored refresh token; the previous one stops being valid."""
    with engine.begin() as conn:
        conn.execute(
            update(users)
            .where(users.c.id == user_id)
            .values(refresh_token=token, updated_at=utcnow())
        )


def rotate_refresh_token(engine: Engine, user_id: str, expected: str, new_token: str) -> bool:
    """Replace *expected* with *new_token* only if *expected* is still the stored token."""
    with engine.begin() as conn:
        result = conn.execute(
            update(users)
            .where((users.c.id == user_id) & (users.c.refresh_token == expected))
            .values(refresh_token=new_token, updated_at=utcnow())
        )
        return result.rowcount == 1


# ── Access codes / caregiver links ───────────────────────────────────

def assign_access_code(
    engine: Engine,
    user_id: str,
    generate: Callable[[], str] = generate_access_code,
    max_attempts: int = ACCESS_CODE_MAX_ATTEMPTS,
) -> str:
    """Give a patient a fresh access code, regenerating on unique-constraint collisions."""
    for _ in range(max_attempts):
        code = generate()
        try:
            with engine.begin() as conn:
                conn.execute(
                    update(users)
                    .where(users.c.id == user_id)
                    .values(access_code=code, updated_at=utcnow())
                )
            return code
        except IntegrityError:
            print("[auth] Access code collision, regenerating")
    raise RuntimeError(f"Could not generate a unique access code after {max_attempts} attempts")


def set_linked_patient(engine: Engine, caregiver_id: str, patient_id: str) -> None:
    with engine.begin() as conn:
        conn.execute(
            update(users)
            .where(users.c.id == caregiver_id)
            .values(linked_patient_id=patient_id, updated_at=utcnow())
        )


def update_identity(engine: Engine, user_id: str, **values) -> Optional[Identity]:
    """Apply a partial update to profile fields and return the fresh row."""
    if values:
        values["updated_at"] = utcnow()
        with engine.begin() as conn:
            conn.execute(update(users).where(users.c.id == user_id).values(**values))
    return get_identity(engine, user_id)
