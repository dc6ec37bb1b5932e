"""
Flask route handlers for authentication, caregiver linking, notifications and health.
"""

import sys
import traceback
from datetime import datetime, timezone
from typing import Any

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from healpath import __version__, caregiver, identities
from healpath.api.auth import get_gateway, roles_required, scope_required, token_required
from healpath.config import is_production
from healpath.database import check_connection
from healpath.errors import HealPathError, NotFoundError, ValidationError
from healpath.gateway import auth_response
from healpath.notifications import is_expo_push_token
from healpath.schemas import (
    LinkRequest,
    LoginRequest,
    NotificationRequest,
    ProfileUpdate,
    PushTokenUpdate,
    RefreshRequest,
    RegisterRequest,
    ReminderRequest,
    parse_contract,
)


def ok(data: Any = None, status: int = 200, **extra):
    body = {"success": True, "data": data}
    body.update(extra)
    return jsonify(body), status


def json_body() -> Any:
    return request.get_json(silent=True)


def register_routes(app, engine, push_sender):
    """Register auth, caregiver, notification and health routes on the Flask *app*."""

    # ── Health / info ────────────────────────────────────────────────

    @app.route("/", methods=["GET"])
    def index():
        return jsonify({
            "service": "HealPath API",
            "version": __version__,
            "status": "running",
            "docs": "/api/health",
        })

    @app.route("/api/health", methods=["GET"])
    def health():
        database_ok = check_connection(engine)
        return jsonify({
            "status": "healthy" if database_ok else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": "connected" if database_ok else "disconnected",
            "environment": "production" if is_production() else "development",
        }), 200 if database_ok else 503

    # ── Auth ─────────────────────────────────────────────────────────

    @app.route("/api/auth/register", methods=["POST"])
    def register():
        payload = parse_contract(RegisterRequest, json_body())
        identity, pair = get_gateway().register(
            name=payload.name,
            email=payload.email,
            password=payload.password,
            role=payload.role,
            phone=payload.phone,
            language=payload.language,
        )
        return ok(auth_response(identity, pair), 201)

    @app.route("/api/auth/login", methods=["POST"])
    def login():
        payload = parse_contract(LoginRequest, json_body())
        identity, pair = get_gateway().login(payload.email, payload.password)
        return ok(auth_response(identity, pair))

    @app.route("/api/auth/refresh", methods=["POST"])
    def refresh():
        payload = parse_contract(RefreshRequest, json_body() or {})
        pair = get_gateway().refresh(payload.refresh_token)
        return ok(pair.to_dict())

    @app.route("/api/auth/me", methods=["GET"])
    @token_required
    def me():
        return ok(get_gateway().get_profile(request.identity).to_public_dict())

    @app.route("/api/auth/profile", methods=["PUT"])
    @token_required
    def update_profile():
        payload = parse_contract(ProfileUpdate, json_body())
        identity = get_gateway().update_profile(
            request.identity, name=payload.name, phone=payload.phone, language=payload.language,
        )
        return ok(identity.to_public_dict())

    @app.route("/api/auth/push-token", methods=["PUT"])
    @token_required
    def update_push_token():
        payload = parse_contract(PushTokenUpdate, json_body())
        get_gateway().update_push_token(request.identity, payload.expo_push_token)
        return ok(message="Push token updated")

    # ── Caregiver ────────────────────────────────────────────────────

    @app.route("/api/caregiver/link", methods=["POST"])
    @token_required
    def link_caregiver():
        payload = parse_contract(LinkRequest, json_body())
        linked = caregiver.link_caregiver(engine, request.identity, payload.access_code)
        return ok(linked, message=f"Successfully linked to patient: {linked['patientName']}")

    @app.route("/api/caregiver/patient", methods=["GET"])
    @token_required
    def linked_patient():
        return ok(caregiver.get_linked_patient(engine, request.identity))

    @app.route("/api/caregiver/access-code", methods=["GET"])
    @token_required
    def access_code():
        return ok({"accessCode": caregiver.get_access_code(engine, request.identity)})

    # ── Notifications ────────────────────────────────────────────────

    def _deliverable_token(user_id: str) -> str:
        target = identities.get_identity(engine, user_id)
        if target is None or not target.expo_push_token:
            raise NotFoundError("User not found or no push token registered")
        if not is_expo_push_token(target.expo_push_token):
            raise ValidationError("Invalid Expo push token")
        return target.expo_push_token

    @app.route("/api/notifications/send", methods=["POST"])
    @roles_required("admin")
    def send_notification():
        payload = parse_contract(NotificationRequest, json_body())
        token = _deliverable_token(payload.user_id)
        tickets = push_sender.send(token, payload.title, payload.body, payload.data)
        return ok({"tickets": tickets})

    @app.route("/api/notifications/reminder", methods=["POST"])
    @scope_required
    def send_reminder():
        payload = parse_contract(ReminderRequest, json_body())
        token = _deliverable_token(request.scope.patient_id)
        tickets = push_sender.send(
            token,
            payload.title or f"{payload.type.capitalize()} Reminder",
            payload.body or f"You have an upcoming {payload.type}",
            {"type": payload.type},
        )
        return ok({"tickets": tickets})

    # ── Error handlers ───────────────────────────────────────────────

    @app.errorhandler(HealPathError)
    def app_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"success": False, "error": "Endpoint not found", "code": "NOT_FOUND"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"success": False, "error": "Method not allowed", "code": "METHOD_NOT_ALLOWED"}), 405

    @app.errorhandler(Exception)
    def internal_error(e):
        if isinstance(e, HTTPException):
            return jsonify({"success": False, "error": e.description, "code": e.name.upper().replace(" ", "_")}), e.code
        print(f"[ERROR] {request.method} {request.path}: {e}", file=sys.stderr)
        traceback.print_exc()
        message = "Internal server error" if is_production() else str(e)
        return jsonify({"success": False, "error": message, "code": "INTERNAL_ERROR"}), 500
