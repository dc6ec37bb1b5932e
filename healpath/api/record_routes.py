"""
Flask route handlers for patient records. Every route runs behind ``scope_required``.
"""

from datetime import datetime
from typing import Optional

from flask import request

from healpath.api.auth import scope_required
from healpath.api.routes import json_body, ok
from healpath.errors import ValidationError
from healpath.records import (
    AppointmentRepository,
    FollowUpRepository,
    MedicationRepository,
    SymptomLogRepository,
)
from healpath.schemas import (
    AppointmentCreate,
    AppointmentUpdate,
    BulkSymptomRequest,
    FollowUpCreate,
    FollowUpUpdate,
    MedicationCreate,
    MedicationUpdate,
    SymptomLogCreate,
    TakenEntry,
    parse_contract,
)


def _query_datetime(name: str) -> Optional[datetime]:
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(errors=[{"field": name, "message": "Valid ISO 8601 date is required"}])


def _query_int(name: str) -> Optional[int]:
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return max(1, int(raw))
    except ValueError:
        raise ValidationError(errors=[{"field": name, "message": "Must be an integer"}])


def register_record_routes(app, engine):
    """Register appointment, medication, symptom and follow-up routes on *app*."""
    appointments = AppointmentRepository(engine)
    medications = MedicationRepository(engine)
    symptoms = SymptomLogRepository(engine)
    followups = FollowUpRepository(engine)

    # ── Appointments ─────────────────────────────────────────────────

    @app.route("/api/appointments", methods=["GET"])
    @scope_required
    def list_appointments():
        items = appointments.list(
            request.scope.patient_id,
            status=request.args.get("status"),
            sort=request.args.get("sort", "asc"),
        )
        return ok(items, count=len(items))

    @app.route("/api/appointments", methods=["POST"])
    @scope_required
    def create_appointment():
        payload = parse_contract(AppointmentCreate, json_body())
        return ok(appointments.create(request.scope.patient_id, payload.model_dump()), 201)

    @app.route("/api/appointments/<record_id>", methods=["GET"])
    @scope_required
    def get_appointment(record_id):
        return ok(appointments.get(request.scope.patient_id, record_id))

    @app.route("/api/appointments/<record_id>", methods=["PUT"])
    @scope_required
    def update_appointment(record_id):
        payload = parse_contract(AppointmentUpdate, json_body())
        return ok(appointments.update(request.scope.patient_id, record_id, payload.model_dump(exclude_none=True)))

    @app.route("/api/appointments/<record_id>", methods=["DELETE"])
    @scope_required
    def delete_appointment(record_id):
        appointments.delete(request.scope.patient_id, record_id)
        return ok(message="Appointment deleted")

    # ── Medications ──────────────────────────────────────────────────

    @app.route("/api/medications", methods=["GET"])
    @scope_required
    def list_medications():
        active = request.args.get("active")
        items = medications.list(
            request.scope.patient_id,
            active=None if active is None else active == "true",
        )
        return ok(items, count=len(items))

    @app.route("/api/medications", methods=["POST"])
    @scope_required
    def create_medication():
        payload = parse_contract(MedicationCreate, json_body())
        return ok(medications.create(request.scope.patient_id, payload.model_dump()), 201)

    @app.route("/api/medications/<record_id>", methods=["PUT"])
    @scope_required
    def update_medication(record_id):
        payload = parse_contract(MedicationUpdate, json_body())
        return ok(medications.update(request.scope.patient_id, record_id, payload.model_dump(exclude_none=True)))

    @app.route("/api/medications/<record_id>", methods=["DELETE"])
    @scope_required
    def delete_medication(record_id):
        medications.delete(request.scope.patient_id, record_id)
        return ok(message="Medication deleted")

    @app.route("/api/medications/<record_id>/taken", methods=["POST"])
    @scope_required
    def mark_taken(record_id):
        payload = parse_contract(TakenEntry, json_body())
        return ok(medications.append_taken(request.scope.patient_id, record_id, payload.model_dump()))

    # ── Symptoms ─────────────────────────────────────────────────────

    @app.route("/api/symptoms", methods=["GET"])
    @scope_required
    def list_symptoms():
        items = symptoms.list(
            request.scope.patient_id,
            start=_query_datetime("startDate"),
            end=_query_datetime("endDate"),
            limit=_query_int("limit"),
        )
        return ok(items, count=len(items))

    @app.route("/api/symptoms", methods=["POST"])
    @scope_required
    def create_symptom_log():
        payload = parse_contract(SymptomLogCreate, json_body())
        log, created = symptoms.create_log(request.scope.patient_id, payload.model_dump(exclude_none=True))
        return ok(log, 201 if created else 200)

    @app.route("/api/symptoms/bulk", methods=["POST"])
    @scope_required
    def bulk_sync_symptoms():
        payload = parse_contract(BulkSymptomRequest, json_body())
        results = symptoms.bulk_create(request.scope.patient_id, payload.logs)
        return ok({"results": results}, count=sum(1 for r in results if r["status"] == "created"))

    # ── Follow-ups ───────────────────────────────────────────────────

    @app.route("/api/followups", methods=["GET"])
    @scope_required
    def list_followups():
        items = followups.list(
            request.scope.patient_id,
            status=request.args.get("status"),
            type_=request.args.get("type"),
        )
        return ok(items, count=len(items))

    @app.route("/api/followups", methods=["POST"])
    @scope_required
    def create_followup():
        payload = parse_contract(FollowUpCreate, json_body())
        return ok(followups.create(request.scope.patient_id, payload.model_dump()), 201)

    @app.route("/api/followups/<record_id>", methods=["PUT"])
    @scope_required
    def update_followup(record_id):
        payload = parse_contract(FollowUpUpdate, json_body())
        return ok(followups.update(request.scope.patient_id, record_id, payload.model_dump(exclude_none=True)))

    @app.route("/api/followups/<record_id>", methods=["DELETE"])
    @scope_required
    def delete_followup(record_id):
        followups.delete(request.scope.patient_id, record_id)
        return ok(message="Follow-up deleted")
