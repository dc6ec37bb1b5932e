"""
Bearer authentication and access-scope decorators for the Flask API.
"""

from functools import wraps
from typing import Optional

from flask import current_app, request

from healpath.errors import TokenInvalid
from healpath.gateway import AuthGateway
from healpath.rbac import require_role, resolve_access_scope


def get_gateway() -> AuthGateway:
    return current_app.config["AUTH_GATEWAY"]


def bearer_token() -> Optional[str]:
    """Return the token from ``Authorization: Bearer <token>``, or None when absent."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    parts = auth_header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        raise TokenInvalid("Invalid authorization header format")
    return parts[1]


def token_required(f):
    """Decorator that protects endpoints with JWT authentication."""
    @wraps(f)
    def decorated(*args, **kwargs):
        # Attach the identity to the request context
        request.identity = get_gateway().authenticate(bearer_token())
        return f(*args, **kwargs)

    return decorated


def scope_required(f):
    """Authenticate, then resolve the one patient partition the caller may touch.

    Runs before every record operation; handlers read ``request.scope.patient_id``.
    """
    @wraps(f)
    @token_required
    def decorated(*args, **kwargs):
        request.scope = resolve_access_scope(request.identity)
        return f(*args, **kwargs)

    return decorated


def roles_required(*roles: str):
    """Authenticate and require one of *roles*."""
    def decorator(f):
        @wraps(f)
        @token_required
        def decorated(*args, **kwargs):
            require_role(request.identity, *roles)
            return f(*args, **kwargs)

        return decorated

    return decorator
