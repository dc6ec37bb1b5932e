"""
Symptom logging that survives being offline.

``SymptomStore.create_log`` tries the server first and falls back to a durable
queue; ``sync`` drains the queue through the bulk endpoint. Each queued entry
carries a client-generated ``clientId`` so a retried upload is recognised by
the server as a duplicate instead of being stored twice.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from healpath.client.events import Observable
from healpath.client.pipeline import RequestPipeline
from healpath.errors import HealPathError, NetworkError
from healpath.models import utcnow

QUEUE_KEY = "offline_symptom_logs"


@dataclass
class OfflineMutation:
    client_id: str
    payload: Dict[str, Any]
    queued_at: str
    local_only: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clientId": self.client_id,
            "payload": self.payload,
            "queuedAt": self.queued_at,
            "localOnly": self.local_only,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OfflineMutation":
        return cls(
            client_id=data["clientId"],
            payload=data["payload"],
            queued_at=data["queuedAt"],
            local_only=data.get("localOnly", True),
        )


@dataclass
class Persisted:
    log: Dict[str, Any]


@dataclass
class QueuedLocally:
    mutation: OfflineMutation


SymptomResult = Union[Persisted, QueuedLocally]


@dataclass
class SyncResult:
    created: List[str] = field(default_factory=list)
    duplicates: List[str] = field(default_factory=list)
    rejected: List[Dict[str, Any]] = field(default_factory=list)
    remaining: int = 0

    @property
    def synced(self) -> int:
        return len(self.created) + len(self.duplicates)


def _is_retryable(error: HealPathError) -> bool:
    return isinstance(error, NetworkError) or error.status_code >= 500


class OfflineQueue:
    """Durable FIFO of symptom logs not yet acknowledged by the server."""

    def __init__(self, store, key: str = QUEUE_KEY):
        self.store = store
        self.key = key
        self._lock = asyncio.Lock()

    async def items(self) -> List[OfflineMutation]:
        async with self._lock:
            return [OfflineMutation.from_dict(d) for d in await self.store.get(self.key, [])]

    async def append(self, mutation: OfflineMutation) -> None:
        async with self._lock:
            queued = list(await self.store.get(self.key, []))
            queued.append(mutation.to_dict())
            await self.store.set(self.key, queued)

    async def discard(self, client_ids) -> int:
        """Drop the given entries and return how many remain.

        Entries appended after the caller read the queue are untouched.
        """
        client_ids = set(client_ids)
        async with self._lock:
            queued = [d for d in await self.store.get(self.key, []) if d["clientId"] not in client_ids]
            await self.store.set(self.key, queued)
            return len(queued)

    async def count(self) -> int:
        async with self._lock:
            return len(await self.store.get(self.key, []))


class SymptomStore(Observable):
    resource = "/symptoms"

    def __init__(self, pipeline: RequestPipeline, store, queue: Optional[OfflineQueue] = None):
        super().__init__()
        self.pipeline = pipeline
        self.queue = queue or OfflineQueue(store)
        self.items: List[Dict[str, Any]] = []
        self.error: Optional[str] = None
        self._sync_lock = asyncio.Lock()

    async def fetch(
        self,
        start: Optional[str] = None,
        end: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        params = {"startDate": start, "endDate": end, "limit": limit}
        try:
            envelope = await self.pipeline.get(self.resource, params=params)
        except HealPathError as e:
            self.error = e.message
            self._notify()
            raise
        self.items = list(envelope["data"])
        self.error = None
        self._notify()
        return self.items

    async def create_log(self, data: Dict[str, Any]) -> SymptomResult:
        payload = dict(data)
        payload.setdefault("clientId", uuid.uuid4().hex)
        payload.setdefault("date", utcnow().isoformat())

        try:
            envelope = await self.pipeline.post(self.resource, payload)
        except HealPathError as e:
            if not _is_retryable(e):
                raise
            mutation = OfflineMutation(
                client_id=payload["clientId"],
                payload=payload,
                queued_at=utcnow().isoformat(),
            )
            await self.queue.append(mutation)
            print(f"[sync] Server unreachable, queued symptom log {mutation.client_id}")
            self._notify()
            return QueuedLocally(mutation)

        log = envelope["data"]
        self.items.insert(0, log)
        self._notify()
        return Persisted(log)

    async def sync(self) -> SyncResult:
        """Upload the queue; only entries the server acknowledged leave it."""
        async with self._sync_lock:
            pending = await self.queue.items()
            if not pending:
                return SyncResult()

            envelope = await self.pipeline.post(
                f"{self.resource}/bulk",
                {"logs": [m.payload for m in pending]},
            )

            result = SyncResult()
            settled = []
            for item in envelope["data"]["results"]:
                client_id = item.get("clientId")
                if client_id is None and 0 <= item.get("index", -1) < len(pending):
                    client_id = pending[item["index"]].client_id
                if client_id is None:
                    continue

                if item["status"] == "created":
                    result.created.append(client_id)
                    self.items.insert(0, item["log"])
                elif item["status"] == "duplicate":
                    result.duplicates.append(client_id)
                elif item["status"] == "rejected":
                    result.rejected.append({"clientId": client_id, "errors": item.get("errors") or []})
                else:
                    continue
                settled.append(client_id)

            result.remaining = await self.queue.discard(settled)
            print(
                f"[sync] Synced {result.synced} symptom log(s), "
                f"{len(result.rejected)} rejected, {result.remaining} remaining"
            )
            self._notify()
            return result
