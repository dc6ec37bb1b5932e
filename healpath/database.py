"""
Database engine initialisation and table definitions.
"""

import sys
from typing import Optional

from sqlalchemy import (
    JSON, Boolean, Column, DateTime, ForeignKey, Integer, MetaData, String, Table, Text,
    UniqueConstraint, create_engine, text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from healpath.config import DB_URI

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(100), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("phone", String(50)),
    Column("password_hash", String(255), nullable=False),
    Column("role", String(20), nullable=False),
    Column("linked_patient_id", String(32), ForeignKey("users.id")),
    Column("access_code", String(12), unique=True),
    Column("language", String(10), nullable=False, default="en"),
    Column("expo_push_token", String(255)),
    Column("refresh_token", Text),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True)),
    Column("updated_at", DateTime(timezone=True)),
)

appointments = Table(
    "appointments",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("patient_id", String(32), ForeignKey("users.id"), nullable=False, index=True),
    Column("doctor_name", String(200), nullable=False),
    Column("department", String(200), nullable=False),
    Column("date", DateTime(timezone=True), nullable=False),
    Column("location", String(200), nullable=False),
    Column("status", String(20), nullable=False, default="upcoming"),
    Column("notes", Text),
    Column("reminder_sent", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True)),
    Column("updated_at", DateTime(timezone=True)),
)

medications = Table(
    "medications",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("patient_id", String(32), ForeignKey("users.id"), nullable=False, index=True),
    Column("name", String(200), nullable=False),
    Column("dosage", String(100), nullable=False),
    Column("frequency", String(20), nullable=False),
    Column("times", JSON, nullable=False),
    Column("active", Boolean, nullable=False, default=True),
    Column("start_date", DateTime(timezone=True)),
    Column("end_date", DateTime(timezone=True)),
    Column("instructions", Text),
    Column("taken_log", JSON, nullable=False),
    Column("created_at", DateTime(timezone=True)),
    Column("updated_at", DateTime(timezone=True)),
)

symptom_logs = Table(
    "symptom_logs",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("patient_id", String(32), ForeignKey("users.id"), nullable=False, index=True),
    Column("client_id", String(64)),
    Column("date", DateTime(timezone=True), nullable=False),
    Column("mood", String(20), nullable=False),
    Column("pain_level", Integer, nullable=False),
    Column("symptoms", JSON, nullable=False),
    Column("notes", Text),
    Column("synced", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True)),
    Column("updated_at", DateTime(timezone=True)),
    UniqueConstraint("patient_id", "client_id", name="uq_symptom_logs_client"),
)

follow_ups = Table(
    "follow_ups",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("patient_id", String(32), ForeignKey("users.id"), nullable=False, index=True),
    Column("title", String(200), nullable=False),
    Column("scheduled_date", DateTime(timezone=True), nullable=False),
    Column("type", String(20), nullable=False),
    Column("status", String(20), nullable=False, default="pending"),
    Column("notes", Text),
    Column("location", String(200)),
    Column("created_at", DateTime(timezone=True)),
    Column("updated_at", DateTime(timezone=True)),
)


def init_engine(db_uri: Optional[str] = None) -> Engine:
    """Create a SQLAlchemy engine, create missing tables and verify the connection."""
    db_uri = db_uri or DB_URI
    kwargs = {}
    if db_uri.startswith("sqlite") and ":memory:" in db_uri:
        # One shared connection, otherwise every checkout sees an empty database.
        kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    engine = create_engine(db_uri, echo=False, future=True, **kwargs)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        metadata.create_all(engine)
    except Exception as e:
        print("ERROR: could not connect to DB:", e, file=sys.stderr)
        sys.exit(1)
    print("[init] Connected to DB.")
    return engine


def check_connection(engine: Engine) -> bool:
    """Return True when the database answers a trivial query."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
