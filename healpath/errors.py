"""
Error taxonomy shared by the API server and the client library.

Every error carries an HTTP status and a stable ``code`` so the server can
render it and the client can rebuild the same typed error from the response.
"""

from typing import Any, Dict, List, Optional


class HealPathError(Exception):
    """Base class for all application errors."""
    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message, "code": self.code}


# ── Validation ───────────────────────────────────────────────────────

class ValidationError(HealPathError):
    """Field-level, client-correctable input error."""
    status_code = 400
    code = "VALIDATION_FAILED"
    default_message = "Validation failed"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["errors"] = self.errors
        return body


# ── Authentication ───────────────────────────────────────────────────

class AuthError(HealPathError):
    status_code = 401
    code = "NOT_AUTHORIZED"
    default_message = "Not authorized"


class InvalidCredentials(AuthError):
    code = "INVALID_CREDENTIALS"
    default_message = "Invalid credentials"


class MissingToken(AuthError):
    status_code = 400
    code = "MISSING_TOKEN"
    default_message = "Token required"


class TokenExpired(AuthError):
    code = "TOKEN_EXPIRED"
    default_message = "Token expired"


class TokenInvalid(AuthError):
    code = "TOKEN_INVALID"
    default_message = "Invalid token"


class SessionExpired(AuthError):
    """Raised on the client when the refresh cycle cannot recover the session."""
    code = "SESSION_EXPIRED"
    default_message = "Session expired, please login again"


# ── Access scope ─────────────────────────────────────────────────────

class AccessError(HealPathError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Forbidden"


class NotLinked(AccessError):
    code = "NOT_LINKED"
    default_message = "Caregiver not linked to any patient"


class Forbidden(AccessError):
    code = "FORBIDDEN"


# ── Lookup / transport ───────────────────────────────────────────────

class NotFoundError(HealPathError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found"


class NetworkError(HealPathError):
    """Transient transport failure, only ever raised on the client."""
    status_code = 0
    code = "NETWORK_ERROR"
    default_message = "Network unavailable"


_ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (
        ValidationError, AuthError, InvalidCredentials, MissingToken, TokenExpired,
        TokenInvalid, SessionExpired, NotLinked, Forbidden, NotFoundError,
    )
}


def error_from_response(status_code: int, body: Any) -> HealPathError:
    """Rebuild the typed error described by an API error envelope."""
    if not isinstance(body, dict):
        body = {}
    message = body.get("error") or body.get("message")
    cls = _ERRORS_BY_CODE.get(body.get("code"))

    if cls is None:
        if status_code == 400:
            cls = ValidationError
        elif status_code == 401:
            cls = AuthError
        elif status_code == 403:
            cls = AccessError
        elif status_code == 404:
            cls = NotFoundError
        else:
            return HealPathError(message, status_code=status_code)

    if cls is ValidationError:
        return ValidationError(message, errors=body.get("errors"))
    return cls(message)
