"""
Session context: login/register/logout, hydration and profile updates.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from healpath.client.events import Observable
from healpath.client.pipeline import RequestPipeline
from healpath.client.vault import TokenVault
from healpath.errors import HealPathError
from healpath.models import TokenPair
from healpath.schemas import AuthPayload


@dataclass
class Session:
    identity: Optional[Dict[str, Any]] = None
    is_authenticated: bool = False
    is_loading: bool = True
    error: Optional[str] = None


class SessionContext(Observable):
    """Owns the client ``Session`` and is the only other writer of the TokenVault.

    Passed by reference to whatever needs authentication state; there is no
    module-level instance.
    """

    def __init__(self, vault: TokenVault, pipeline: RequestPipeline):
        super().__init__()
        self.vault = vault
        self.pipeline = pipeline
        self.session = Session()
        pipeline.on_session_expired(self._expired)

    @property
    def identity(self) -> Optional[Dict[str, Any]]:
        return self.session.identity

    async def hydrate(self) -> Session:
        """Restore the session persisted by a previous run."""
        identity = await self.vault.get_identity()
        pair = await self.vault.get()
        if identity and pair:
            self._set(identity=identity, is_authenticated=True, is_loading=False, error=None)
        else:
            self._set(identity=None, is_authenticated=False, is_loading=False)
        return self.session

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        return await self._authenticate("/auth/login", {"email": email, "password": password})

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        role: str = "patient",
        phone: Optional[str] = None,
        language: str = "en",
    ) -> Dict[str, Any]:
        body = {"name": name, "email": email, "password": password, "role": role, "language": language}
        if phone:
            body["phone"] = phone
        return await self._authenticate("/auth/register", body)

    async def logout(self) -> None:
        await self.vault.clear()
        self._set(identity=None, is_authenticated=False, is_loading=False, error=None)

    async def reload_identity(self) -> Dict[str, Any]:
        """Fetch ``/auth/me`` and refresh the cached identity."""
        identity = (await self.pipeline.get("/auth/me"))["data"]
        await self.vault.set_identity(identity)
        self._set(identity=identity)
        return identity

    async def update_profile(self, **changes: Any) -> Dict[str, Any]:
        try:
            identity = (await self.pipeline.put("/auth/profile", changes))["data"]
        except HealPathError as e:
            self._set(error=e.message)
            raise
        await self.vault.set_identity(identity)
        self._set(identity=identity, error=None)
        return identity

    async def update_push_token(self, expo_push_token: str) -> None:
        await self.pipeline.put("/auth/push-token", {"expoPushToken": expo_push_token})

    # ── Internals ────────────────────────────────────────────────────

    async def _authenticate(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        self._set(is_loading=True, error=None)
        try:
            envelope = await self.pipeline.post(path, body, authenticated=False)
            payload = AuthPayload.model_validate(envelope["data"])
        except HealPathError as e:
            self._set(is_loading=False, error=e.message)
            raise

        await self.vault.set(TokenPair.from_dict(payload.model_dump(by_alias=True)))
        await self.vault.set_identity(payload.user)
        self._set(identity=payload.user, is_authenticated=True, is_loading=False)
        return payload.user

    def _expired(self) -> None:
        self._set(identity=None, is_authenticated=False, is_loading=False, error="Session expired")

    def _set(self, **changes: Any) -> None:
        for key, value in changes.items():
            setattr(self.session, key, value)
        self._notify()
