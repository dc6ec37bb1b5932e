"""
Patient-partitioned record storage: appointments, medications, symptom logs, follow-ups.

Every query takes the caller's effective patient id and filters on it; that
filter is the only authorization boundary for record data.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic.alias_generators import to_camel
from sqlalchemy import Table, delete, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from healpath import database
from healpath.config import DEFAULT_SYMPTOM_LIMIT
from healpath.errors import NotFoundError, ValidationError
from healpath.models import utcnow
from healpath.schemas import SymptomLogCreate, parse_contract


def _db_value(value: Any) -> Any:
    """Store datetimes as naive UTC, which every backend round-trips the same way."""
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _json_value(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    return value


def serialize_row(row) -> Dict[str, Any]:
    """Turn a result mapping into the camelCase JSON shape of the API."""
    return {to_camel(key): _json_value(value) for key, value in row.items()}


class RecordRepository:
    """CRUD over one record table, always scoped to a single patient."""
    table: Table = None
    label = "Record"

    def __init__(self, engine: Engine):
        self.engine = engine

    def _select(self, patient_id: str):
        return select(self.table).where(self.table.c.patient_id == patient_id)

    def _fetch_all(self, query) -> List[Dict[str, Any]]:
        with self.engine.connect() as conn:
            rows = conn.execute(query).mappings().all()
        return [serialize_row(r) for r in rows]

    def get(self, patient_id: str, record_id: str) -> Dict[str, Any]:
        query = self._select(patient_id).where(self.table.c.id == record_id)
        with self.engine.connect() as conn:
            row = conn.execute(query).mappings().first()
        if row is None:
            raise NotFoundError(f"{self.label} not found")
        return serialize_row(row)

    def create(self, patient_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
        now = utcnow()
        record_id = uuid.uuid4().hex
        row = {k: _db_value(v) for k, v in values.items()}
        row.update(id=record_id, patient_id=patient_id, created_at=_db_value(now), updated_at=_db_value(now))
        with self.engine.begin() as conn:
            conn.execute(insert(self.table).values(**row))
        return self.get(patient_id, record_id)

    def update(self, patient_id: str, record_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
        row = {k: _db_value(v) for k, v in values.items()}
        row["updated_at"] = _db_value(utcnow())
        with self.engine.begin() as conn:
            result = conn.execute(
                update(self.table)
                .where((self.table.c.id == record_id) & (self.table.c.patient_id == patient_id))
                .values(**row)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"{self.label} not found")
        return self.get(patient_id, record_id)

    def delete(self, patient_id: str, record_id: str) -> None:
        with self.engine.begin() as conn:
            result = conn.execute(
                delete(self.table)
                .where((self.table.c.id == record_id) & (self.table.c.patient_id == patient_id))
            )
            if result.rowcount == 0:
                raise NotFoundError(f"{self.label} not found")


class AppointmentRepository(RecordRepository):
    table = database.appointments
    label = "Appointment"

    def list(self, patient_id: str, status: Optional[str] = None, sort: str = "asc") -> List[Dict[str, Any]]:
        query = self._select(patient_id)
        if status:
            query = query.where(self.table.c.status == status)
        order = self.table.c.date.desc() if sort == "desc" else self.table.c.date.asc()
        return self._fetch_all(query.order_by(order))

    def create(self, patient_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
        values.setdefault("reminder_sent", False)
        return super().create(patient_id, values)


class MedicationRepository(RecordRepository):
    table = database.medications
    label = "Medication"

    def list(self, patient_id: str, active: Optional[bool] = None) -> List[Dict[str, Any]]:
        query = self._select(patient_id)
        if active is not None:
            query = query.where(self.table.c.active == active)
        return self._fetch_all(query.order_by(self.table.c.created_at.desc()))

    def create(self, patient_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
        if values.get("start_date") is None:
            values["start_date"] = utcnow()
        values.setdefault("taken_log", [])
        return super().create(patient_id, values)

    def append_taken(self, patient_id: str, record_id: str, entry: Dict[str, Any]) -> Dict[str, Any]:
        """Append one entry to the medication's taken log."""
        log_entry = {
            "date": _json_value(entry.get("date") or utcnow()),
            "time": entry["time"],
            "taken": entry.get("taken", True),
        }
        query = self._select(patient_id).where(self.table.c.id == record_id)
        with self.engine.begin() as conn:
            row = conn.execute(query).mappings().first()
            if row is None:
                raise NotFoundError(f"{self.label} not found")
            conn.execute(
                update(self.table)
                .where(self.table.c.id == record_id)
                .values(taken_log=list(row["taken_log"] or []) + [log_entry], updated_at=_db_value(utcnow()))
            )
        return self.get(patient_id, record_id)


class SymptomLogRepository(RecordRepository):
    table = database.symptom_logs
    label = "Symptom log"

    def list(
        self,
        patient_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query = self._select(patient_id)
        if start is not None:
            query = query.where(self.table.c.date >= _db_value(start))
        if end is not None:
            query = query.where(self.table.c.date <= _db_value(end))
        query = query.order_by(self.table.c.date.desc()).limit(limit or DEFAULT_SYMPTOM_LIMIT)
        return self._fetch_all(query)

    def find_by_client_id(self, patient_id: str, client_id: str) -> Optional[Dict[str, Any]]:
        query = self._select(patient_id).where(self.table.c.client_id == client_id)
        rows = self._fetch_all(query)
        return rows[0] if rows else None

    def create_log(self, patient_id: str, values: Dict[str, Any], synced: bool = True) -> Tuple[Dict[str, Any], bool]:
        """Create a log, returning ``(log, created)``.

        A log whose ``client_id`` already exists for this patient is not created
        again; the stored one comes back with ``created=False``.
        """
        client_id = values.get("client_id")
        if client_id:
            existing = self.find_by_client_id(patient_id, client_id)
            if existing is not None:
                return existing, False

        values = dict(values)
        if values.get("date") is None:
            values["date"] = utcnow()
        values["synced"] = synced
        try:
            return self.create(patient_id, values), True
        except IntegrityError:
            # Lost a race against an identical submission.
            existing = self.find_by_client_id(patient_id, client_id) if client_id else None
            if existing is None:
                raise
            return existing, False

    def bulk_create(self, patient_id: str, items: List[Any]) -> List[Dict[str, Any]]:
        """Create queued offline logs one by one and report a result per item."""
        results = []
        for index, raw in enumerate(items):
            client_id = (raw.get("clientId") or raw.get("client_id")) if isinstance(raw, dict) else None
            try:
                payload = parse_contract(SymptomLogCreate, raw)
            except ValidationError as exc:
                results.append({"index": index, "clientId": client_id, "status": "rejected", "errors": exc.errors})
                continue
            log, created = self.create_log(patient_id, payload.model_dump(exclude_none=True), synced=True)
            results.append({
                "index": index,
                "clientId": payload.client_id,
                "status": "created" if created else "duplicate",
                "log": log,
            })
        return results


class FollowUpRepository(RecordRepository):
    table = database.follow_ups
    label = "Follow-up"

    def list(self, patient_id: str, status: Optional[str] = None, type_: Optional[str] = None) -> List[Dict[str, Any]]:
        query = self._select(patient_id)
        if status:
            query = query.where(self.table.c.status == status)
        if type_:
            query = query.where(self.table.c.type == type_)
        return self._fetch_all(query.order_by(self.table.c.scheduled_date.asc()))
