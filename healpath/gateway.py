"""
AuthGateway: registration, login, token rotation and identity profile updates.
"""

from typing import Any, Dict, Optional, Tuple

from sqlalchemy.engine import Engine

from healpath import identities
from healpath.config import BCRYPT_ROUNDS
from healpath.errors import InvalidCredentials, MissingToken, TokenInvalid, ValidationError
from healpath.models import Identity, TokenPair
from healpath.security import TokenIssuer, hash_password, verify_password


class AuthGateway:
    """Issues, validates and rotates token pairs for identities stored in *engine*.

    Exactly one refresh token is valid per identity: every pair issued overwrites
    the stored refresh token, and ``refresh`` only accepts the token currently
    stored. This is single-active-session semantics; logging in on a second
    device ends the first device's session at its next refresh.
    """

    def __init__(
        self,
        engine: Engine,
        issuer: Optional[TokenIssuer] = None,
        bcrypt_rounds: int = BCRYPT_ROUNDS,
    ):
        self.engine = engine
        self.issuer = issuer or TokenIssuer()
        self.bcrypt_rounds = bcrypt_rounds
        self._dummy_hash: Optional[str] = None

    # ── Sessions ─────────────────────────────────────────────────────

    def register(
        self,
        name: str,
        email: str,
        password: str,
        role: str = "patient",
        phone: Optional[str] = None,
        language: str = "en",
    ) -> Tuple[Identity, TokenPair]:
        if role not in ("patient", "caregiver"):
            raise ValidationError(errors=[{"field": "role", "message": "Role must be patient or caregiver"}])
        if identities.find_by_email(self.engine, email) is not None:
            raise ValidationError(
                "Email already registered",
                errors=[{"field": "email", "message": "Email already registered"}],
            )

        identity = identities.create_identity(
            self.engine,
            name=name,
            email=email,
            password_hash=hash_password(password, rounds=self.bcrypt_rounds),
            role=role,
            phone=phone,
            language=language,
        )
        if identity.role == "patient":
            try:
                identity.access_code = identities.assign_access_code(self.engine, identity.id)
            except RuntimeError as e:
                # caregiver.get_access_code generates it on first request.
                print(f"[auth] WARNING: {e}; deferring access code for {identity.id}")

        print(f"[auth] Registered {identity.role} {identity.id}")
        return identity, self._issue(identity)

    def login(self, email: str, password: str) -> Tuple[Identity, TokenPair]:
        identity = identities.find_by_email(self.engine, email)
        if identity is None:
            # Same work as a real check, so response timing does not reveal unknown emails.
            verify_password(password, self._get_dummy_hash())
            raise InvalidCredentials()
        if not verify_password(password, identity.password_hash) or not identity.is_active:
            raise InvalidCredentials()
        return identity, self._issue(identity)

    def refresh(self, refresh_token: Optional[str]) -> TokenPair:
        """Exchange the currently stored refresh token for a new pair."""
        if not refresh_token:
            raise MissingToken("Refresh token required")

        payload = self.issuer.verify_refresh(refresh_token)
        identity = identities.get_identity(self.engine, payload["id"])
        if identity is None or not identity.is_active:
            raise TokenInvalid("Invalid refresh token")

        pair = self.issuer.issue(identity.id)
        if not identities.rotate_refresh_token(self.engine, identity.id, refresh_token, pair.refresh_token):
            # Rotated out already, or a concurrent refresh won the swap.
            raise TokenInvalid("Invalid refresh token")
        return pair

    def authenticate(self, access_token: Optional[str]) -> Identity:
        """Resolve a bearer access token to an active identity."""
        if not access_token:
            raise MissingToken("Not authorized, no token", status_code=401)
        payload = self.issuer.verify_access(access_token)
        identity = identities.get_identity(self.engine, payload["id"])
        if identity is None or not identity.is_active:
            raise TokenInvalid("User not found or deactivated")
        return identity

    # ── Profile ──────────────────────────────────────────────────────

    def get_profile(self, identity: Identity) -> Identity:
        return identities.get_identity(self.engine, identity.id)

    def update_profile(self, identity: Identity, **changes: Any) -> Identity:
        allowed = {k: v for k, v in changes.items() if k in ("name", "phone", "language") and v is not None}
        return identities.update_identity(self.engine, identity.id, **allowed)

    def update_push_token(self, identity: Identity, expo_push_token: Optional[str]) -> None:
        identities.update_identity(self.engine, identity.id, expo_push_token=expo_push_token)

    # ── Internals ────────────────────────────────────────────────────

    def _issue(self, identity: Identity) -> TokenPair:
        pair = self.issuer.issue(identity.id)
        identities.store_refresh_token(self.engine, identity.id, pair.refresh_token)
        return pair

    def _get_dummy_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = hash_password("not-a-real-password", rounds=self.bcrypt_rounds)
        return self._dummy_hash


def auth_response(identity: Identity, pair: TokenPair) -> Dict[str, Any]:
    """Body of the register/login responses: public identity plus the token pair."""
    return {"user": identity.to_public_dict(), **pair.to_dict()}
