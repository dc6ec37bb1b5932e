"""
TokenVault: the persisted access/refresh token pair and cached identity.
"""

import asyncio
from typing import Any, Dict, Optional

from healpath.models import TokenPair

ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"
ACCESS_EXPIRES_KEY = "accessExpiresAt"
REFRESH_EXPIRES_KEY = "refreshExpiresAt"
USER_KEY = "user"


class TokenVault:
    """Pure storage for the current token pair; never inspects token contents.

    Reads and writes are serialised so nobody observes a half-written pair.
    Only the request pipeline and the session context write to it.
    """

    def __init__(self, store):
        self.store = store
        self._lock = asyncio.Lock()

    async def get(self) -> Optional[TokenPair]:
        async with self._lock:
            access = await self.store.get(ACCESS_TOKEN_KEY)
            refresh = await self.store.get(REFRESH_TOKEN_KEY)
            if not access or not refresh:
                return None
            return TokenPair.from_dict({
                "accessToken": access,
                "refreshToken": refresh,
                "accessExpiresAt": await self.store.get(ACCESS_EXPIRES_KEY),
                "refreshExpiresAt": await self.store.get(REFRESH_EXPIRES_KEY),
            })

    async def set(self, pair: TokenPair) -> None:
        data = pair.to_dict()
        async with self._lock:
            await self.store.set(ACCESS_TOKEN_KEY, data["accessToken"])
            await self.store.set(REFRESH_TOKEN_KEY, data["refreshToken"])
            await self.store.set(ACCESS_EXPIRES_KEY, data["accessExpiresAt"])
            await self.store.set(REFRESH_EXPIRES_KEY, data["refreshExpiresAt"])

    async def clear(self) -> None:
        async with self._lock:
            for key in (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, ACCESS_EXPIRES_KEY, REFRESH_EXPIRES_KEY, USER_KEY):
                await self.store.remove(key)

    async def get_identity(self) -> Optional[Dict[str, Any]]:
        async with self._lock:
            return await self.store.get(USER_KEY)

    async def set_identity(self, identity: Dict[str, Any]) -> None:
        async with self._lock:
            await self.store.set(USER_KEY, identity)
