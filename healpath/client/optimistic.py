"""
OptimisticStore: a locally cached record collection kept in step with the API.
"""

import asyncio
import contextlib
import copy
from typing import Any, AsyncIterator, Dict, List, Optional

from healpath.client.events import Observable
from healpath.client.pipeline import RequestPipeline
from healpath.errors import HealPathError, NotFoundError


class _EntityLock:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.holders = 0


class OptimisticStore(Observable):
    """Collection of records for one resource (``/appointments``, ``/medications``).

    ``mutate`` and ``remove`` apply locally first and roll back the touched
    entity if the call does not succeed, including when the calling task is
    cancelled. Rollback restores only that entity, so concurrent changes to
    other ids survive. Operations on the same id run one after another.

    ``create`` is fail-closed: nothing is added until the server answers.

    The durable cache only ever receives a copy of server-confirmed state.
    """

    resource: str = ""
    cache_key: str = ""

    def __init__(self, pipeline: RequestPipeline, store):
        super().__init__()
        self.pipeline = pipeline
        self.store = store
        self.items: List[Dict[str, Any]] = []
        self.is_loading = False
        self.error: Optional[str] = None
        self._locks: Dict[str, _EntityLock] = {}

    def find(self, record_id: str) -> Optional[Dict[str, Any]]:
        index = self._index(record_id)
        return None if index is None else self.items[index]

    async def load_cached(self) -> List[Dict[str, Any]]:
        cached = await self.store.get(self.cache_key)
        if cached:
            self.items = list(cached)
            self._notify()
        return self.items

    async def fetch(self, **params: Any) -> List[Dict[str, Any]]:
        """Replace the collection with the server's and cache it.

        On failure the current items stay, ``error`` is set and the error is re-raised.
        """
        self.is_loading = True
        self.error = None
        self._notify()
        try:
            envelope = await self.pipeline.get(self.resource, params=params)
        except HealPathError as e:
            self.is_loading = False
            self.error = e.message
            self._notify()
            raise

        self.items = list(envelope["data"])
        self.is_loading = False
        await self._persist()
        self._notify()
        return self.items

    async def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            envelope = await self.pipeline.post(self.resource, data)
        except HealPathError as e:
            self.error = e.message
            self._notify()
            raise

        record = envelope["data"]
        self.items.append(record)
        self.error = None
        await self._persist()
        self._notify()
        return record

    async def mutate(self, record_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        async with self._locked(record_id):
            index = self._require(record_id)
            snapshot = copy.deepcopy(self.items[index])
            self.items[index] = {**self.items[index], **patch}
            self._notify()

            try:
                await self.pipeline.put(f"{self.resource}/{record_id}", patch)
            except HealPathError as e:
                self._restore(record_id, snapshot, index)
                self.error = e.message
                self._notify()
                raise
            except BaseException:
                self._restore(record_id, snapshot, index)
                self._notify()
                raise

            self.error = None
            await self._persist()
            return self.items[self._index(record_id)]

    async def remove(self, record_id: str) -> None:
        async with self._locked(record_id):
            index = self._require(record_id)
            snapshot = self.items.pop(index)
            self._notify()

            try:
                await self.pipeline.delete(f"{self.resource}/{record_id}")
            except HealPathError as e:
                self._restore(record_id, snapshot, index)
                self.error = e.message
                self._notify()
                raise
            except BaseException:
                self._restore(record_id, snapshot, index)
                self._notify()
                raise

            self.error = None
            await self._persist()

    # ── Internals ────────────────────────────────────────────────────

    @contextlib.asynccontextmanager
    async def _locked(self, record_id: str) -> AsyncIterator[None]:
        """Hold the per-id lock; the entry is dropped once nobody holds or awaits it."""
        entry = self._locks.get(record_id)
        if entry is None:
            entry = self._locks[record_id] = _EntityLock()
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                del self._locks[record_id]

    def _index(self, record_id: str) -> Optional[int]:
        for index, item in enumerate(self.items):
            if item.get("id") == record_id:
                return index
        return None

    def _require(self, record_id: str) -> int:
        index = self._index(record_id)
        if index is None:
            raise NotFoundError(f"No cached record with id {record_id!r}")
        return index

    def _restore(self, record_id: str, snapshot: Dict[str, Any], index: int) -> None:
        current = self._index(record_id)
        if current is not None:
            self.items[current] = snapshot
        else:
            # The collection may have shifted while the call was in flight.
            self.items.insert(min(index, len(self.items)), snapshot)

    async def _persist(self) -> None:
        await self.store.set(self.cache_key, copy.deepcopy(self.items))
