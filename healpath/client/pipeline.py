"""
RequestPipeline: bearer-authenticated API calls with one transparent refresh per call.
"""

import asyncio
import inspect
from typing import Any, Callable, Dict, List, Optional

import httpx

from healpath.client.vault import TokenVault
from healpath.config import API_BASE_URL, REQUEST_TIMEOUT_SECONDS
from healpath.errors import NetworkError, SessionExpired, error_from_response
from healpath.models import TokenPair
from healpath.schemas import TokenPairPayload


class RequestPipeline:
    """Wraps an ``httpx.AsyncClient`` around the HealPath API.

    Every authenticated call carries the vault's access token. A 401 triggers
    exactly one refresh-and-retry cycle for that call:

    - concurrent refreshes for the same identity share a single in-flight
      request (single-flight);
    - if another call already refreshed, the newer access token is reused;
    - the new pair is persisted before the call is re-issued;
    - if the refresh fails for any reason the vault is cleared, expiry
      listeners run, and the call fails with ``SessionExpired``.

    Any other failure passes through as the typed error of the response.
    """

    def __init__(
        self,
        vault: TokenVault,
        base_url: str = API_BASE_URL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.vault = vault
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )
        self._refreshes: Dict[str, asyncio.Task] = {}
        self._expiry_listeners: List[Callable] = []

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RequestPipeline":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def on_session_expired(self, listener: Callable) -> None:
        """Register a callback (plain or async) run after an unrecoverable refresh failure."""
        self._expiry_listeners.append(listener)

    # ── Calls ────────────────────────────────────────────────────────

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None, authenticated: bool = True) -> Any:
        return await self.request("POST", path, json=json, authenticated=authenticated)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> Any:
        """Send one call and return the decoded response envelope."""
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        if not authenticated:
            return self._unwrap(await self._send(method, path, json, params, None))

        pair = await self.vault.get()
        sent_token = pair.access_token if pair else None
        response = await self._send(method, path, json, params, sent_token)

        if response.status_code == 401:
            # One retry only; a second 401 is returned to the caller as is.
            fresh_token = await self._renew_access_token(sent_token)
            response = await self._send(method, path, json, params, fresh_token)

        return self._unwrap(response)

    # ── Refresh ──────────────────────────────────────────────────────

    async def _renew_access_token(self, sent_token: Optional[str]) -> str:
        current = await self.vault.get()
        if current is not None and sent_token and current.access_token != sent_token:
            return current.access_token

        identity = await self.vault.get_identity()
        key = (identity or {}).get("id") or (current.refresh_token if current else "")

        task = self._refreshes.get(key)
        if task is None:
            task = asyncio.ensure_future(self._refresh(current))
            self._refreshes[key] = task

            def _forget(done, key=key):
                if self._refreshes.get(key) is done:
                    del self._refreshes[key]

            task.add_done_callback(_forget)

        # Shielded: one caller giving up must not cancel the shared refresh.
        pair = await asyncio.shield(task)
        return pair.access_token

    async def _refresh(self, current: Optional[TokenPair]) -> TokenPair:
        if current is None:
            await self._expire()
            raise SessionExpired()

        try:
            response = await self._send(
                "POST", "/auth/refresh", {"refreshToken": current.refresh_token}, None, None,
            )
        except NetworkError:
            await self._expire()
            raise SessionExpired("Session expired: could not reach the server to refresh")

        if response.status_code != 200:
            await self._expire()
            raise SessionExpired()

        try:
            payload = TokenPairPayload.model_validate(response.json()["data"])
        except (ValueError, KeyError, TypeError):
            await self._expire()
            raise SessionExpired("Session expired: malformed refresh response")

        pair = TokenPair.from_dict(payload.model_dump(by_alias=True))
        await self.vault.set(pair)
        return pair

    async def _expire(self) -> None:
        await self.vault.clear()
        print("[auth] Session expired, tokens cleared")
        for listener in list(self._expiry_listeners):
            result = listener()
            if inspect.isawaitable(result):
                await result

    # ── Transport ────────────────────────────────────────────────────

    async def _send(self, method, path, json, params, token) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            return await self._client.request(method, path, json=json, params=params, headers=headers)
        except httpx.TransportError as e:
            raise NetworkError(f"Network unavailable: {e}")

    @staticmethod
    def _unwrap(response: httpx.Response) -> Any:
        try:
            body = response.json()
        except ValueError:
            body = None
        if response.is_success:
            return body
        raise error_from_response(response.status_code, body)
