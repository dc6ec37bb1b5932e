"""
Flask application factory and server entry-point.
"""

import sys
import traceback

from flask import Flask
from flask_cors import CORS

from healpath.config import (
    ACCESS_TOKEN_EXPIRY_MINUTES,
    API_HOST,
    API_PORT,
    REFRESH_TOKEN_EXPIRY_DAYS,
    get_env,
    is_production,
)
from healpath.database import init_engine
from healpath.gateway import AuthGateway
from healpath.notifications import ExpoPushSender
from healpath.api.record_routes import register_record_routes
from healpath.api.routes import register_routes


def create_app(engine=None, gateway=None, push_sender=None):
    """Build and return a fully configured Flask application.

    Collaborators default to the configured ones; tests pass their own.
    """
    app = Flask(__name__)
    CORS(app)

    # ── Initialise shared resources ──────────────────────────────────
    try:
        if engine is None:
            print("[init] Initializing database connection...")
            engine = init_engine()
        if gateway is None:
            gateway = AuthGateway(engine)
        if push_sender is None:
            push_sender = ExpoPushSender()
    except Exception as e:
        print(f"[FATAL] Failed to initialize: {e}", file=sys.stderr)
        traceback.print_exc()
        sys.exit(1)

    app.config["AUTH_GATEWAY"] = gateway

    # ── Register routes ──────────────────────────────────────────────
    register_routes(app, engine, push_sender)
    register_record_routes(app, engine)

    return app


def main():
    """Run the development server."""
    print("=" * 60)
    print("HealPath – REST API Server")
    print("=" * 60)

    if is_production():
        # No fallback secrets outside development.
        get_env("JWT_SECRET")
        get_env("JWT_REFRESH_SECRET")

    app = create_app()
    debug = not is_production()

    print(f"\n[server] Starting Flask API on {API_HOST}:{API_PORT}")
    print(f"[server] Debug mode: {debug}")
    print(f"[server] Access token expiry: {ACCESS_TOKEN_EXPIRY_MINUTES} minutes")
    print(f"[server] Refresh token expiry: {REFRESH_TOKEN_EXPIRY_DAYS} days")
    print("\nAPI Endpoints:")
    print(f"  - POST http://{API_HOST}:{API_PORT}/api/auth/register")
    print(f"  - POST http://{API_HOST}:{API_PORT}/api/auth/login")
    print(f"  - POST http://{API_HOST}:{API_PORT}/api/auth/refresh")
    print(f"  - GET  http://{API_HOST}:{API_PORT}/api/appointments")
    print(f"  - GET  http://{API_HOST}:{API_PORT}/api/medications")
    print(f"  - POST http://{API_HOST}:{API_PORT}/api/symptoms/bulk")
    print(f"  - POST http://{API_HOST}:{API_PORT}/api/caregiver/link")
    print(f"  - GET  http://{API_HOST}:{API_PORT}/api/health")
    print("\n" + "=" * 60)

    app.run(host=API_HOST, port=API_PORT, debug=debug, threaded=True)


if __name__ == "__main__":
    main()
