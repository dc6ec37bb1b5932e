"""
Tests for offline symptom logging: durability tiers, the queue and bulk sync.
"""

import asyncio

import pytest

from healpath.client.offline import (
    OfflineMutation,
    OfflineQueue,
    Persisted,
    QueuedLocally,
    SymptomStore,
)
from healpath.client.storage import JsonFileStore, MemoryStore
from healpath.errors import AccessError, HealPathError, NetworkError, SessionExpired, ValidationError

LOG = {"mood": "bad", "painLevel": 6, "symptoms": ["nausea"]}


# ── Helpers / Fakes ──────────────────────────────────────────────────

class FakePipeline:
    """Answers ``POST /symptoms`` and ``POST /symptoms/bulk`` from configurable behaviour."""
    def __init__(self, create_error=None, bulk=None, bulk_error=None):
        self.create_error = create_error
        self.bulk = bulk
        self.bulk_error = bulk_error
        self.bulk_gate = None
        self.posts = []

    async def get(self, path, params=None):
        self.posts.append(("GET", path, params))
        return {"success": True, "data": [{"id": "s1"}]}

    async def post(self, path, json=None, authenticated=True):
        self.posts.append(("POST", path, json))
        if path == "/symptoms":
            if self.create_error:
                raise self.create_error
            return {"success": True, "data": {"id": "srv-1", **json}}
        if self.bulk_gate is not None:
            await self.bulk_gate.wait()
        if self.bulk_error:
            raise self.bulk_error
        if self.bulk is not None:
            return {"success": True, "data": {"results": self.bulk(json["logs"])}}
        return {"success": True, "data": {"results": [
            {"index": i, "clientId": log["clientId"], "status": "created", "log": {"id": f"srv-{i}", **log}}
            for i, log in enumerate(json["logs"])
        ]}}


async def queued_store(count=2, pipeline=None):
    offline = FakePipeline(create_error=NetworkError())
    store = MemoryStore()
    symptoms = SymptomStore(offline, store)
    for _ in range(count):
        await symptoms.create_log(dict(LOG))
    symptoms.pipeline = pipeline or FakePipeline()
    return symptoms


# ── create_log ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_online_create_is_persisted():
    pipeline = FakePipeline()
    symptoms = SymptomStore(pipeline, MemoryStore())
    result = await symptoms.create_log(dict(LOG))

    assert isinstance(result, Persisted)
    assert result.log["id"] == "srv-1"
    sent = pipeline.posts[0][2]
    assert sent["clientId"] and sent["date"]
    assert await symptoms.queue.count() == 0
    assert symptoms.items[0]["id"] == "srv-1"


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [NetworkError(), HealPathError("Bad gateway", status_code=502)])
async def test_network_and_server_failures_queue_locally(error):
    symptoms = SymptomStore(FakePipeline(create_error=error), MemoryStore())
    result = await symptoms.create_log(dict(LOG))

    assert isinstance(result, QueuedLocally)
    assert result.mutation.local_only is True
    assert result.mutation.payload["painLevel"] == 6
    queued = await symptoms.queue.items()
    assert [m.client_id for m in queued] == [result.mutation.client_id]


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    ValidationError("Validation failed"),
    SessionExpired(),
    AccessError("Caregiver not linked to any patient"),
])
async def test_client_errors_are_not_queued(error):
    symptoms = SymptomStore(FakePipeline(create_error=error), MemoryStore())
    with pytest.raises(type(error)):
        await symptoms.create_log(dict(LOG))
    assert await symptoms.queue.count() == 0


@pytest.mark.asyncio
async def test_queue_is_durable(tmp_path):
    path = str(tmp_path / "state.json")
    symptoms = SymptomStore(FakePipeline(create_error=NetworkError()), JsonFileStore(path))
    result = await symptoms.create_log(dict(LOG))

    reopened = OfflineQueue(JsonFileStore(path))
    assert [m.client_id for m in await reopened.items()] == [result.mutation.client_id]


def test_offline_mutation_roundtrip():
    mutation = OfflineMutation(client_id="c1", payload={"mood": "ok"}, queued_at="2026-10-19T00:00:00+00:00")
    assert OfflineMutation.from_dict(mutation.to_dict()) == mutation


# ── sync ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_sync_empty_queue_makes_no_call():
    pipeline = FakePipeline()
    symptoms = SymptomStore(pipeline, MemoryStore())
    result = await symptoms.sync()
    assert result.synced == 0
    assert pipeline.posts == []


@pytest.mark.asyncio
async def test_sync_drains_acknowledged_entries():
    symptoms = await queued_store(2)
    result = await symptoms.sync()
    assert len(result.created) == 2
    assert result.remaining == 0
    assert await symptoms.queue.count() == 0
    assert len(symptoms.items) == 2


@pytest.mark.asyncio
async def test_sync_keeps_unacknowledged_entries():
    def partial(logs):
        first, second, third = logs
        return [
            {"index": 0, "clientId": first["clientId"], "status": "created", "log": {"id": "x"}},
            {"index": 1, "clientId": second["clientId"], "status": "duplicate", "log": {"id": "y"}},
            {"index": 2, "clientId": third["clientId"], "status": "rejected",
             "errors": [{"field": "mood", "message": "bad"}]},
        ]

    symptoms = await queued_store(4, FakePipeline(bulk=lambda logs: partial(logs[:3])))
    fourth = (await symptoms.queue.items())[3].client_id

    result = await symptoms.sync()
    assert len(result.created) == 1
    assert len(result.duplicates) == 1
    assert result.rejected[0]["errors"] == [{"field": "mood", "message": "bad"}]
    assert result.remaining == 1
    assert [m.client_id for m in await symptoms.queue.items()] == [fourth]


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [NetworkError(), HealPathError("Internal server error", status_code=500)])
async def test_sync_failure_leaves_queue_intact(error):
    symptoms = await queued_store(3, FakePipeline(bulk_error=error))
    with pytest.raises(HealPathError):
        await symptoms.sync()
    assert await symptoms.queue.count() == 3


@pytest.mark.asyncio
async def test_items_queued_during_sync_are_kept():
    pipeline = FakePipeline()
    symptoms = await queued_store(2, pipeline)
    pipeline.bulk_gate = asyncio.Event()

    syncing = asyncio.create_task(symptoms.sync())
    await asyncio.sleep(0.01)
    late = OfflineMutation(client_id="late", payload={**LOG, "clientId": "late"}, queued_at="now")
    await symptoms.queue.append(late)
    pipeline.bulk_gate.set()
    result = await syncing

    assert result.remaining == 1
    assert [m.client_id for m in await symptoms.queue.items()] == ["late"]


@pytest.mark.asyncio
async def test_concurrent_syncs_are_serialized():
    pipeline = FakePipeline()
    symptoms = await queued_store(2, pipeline)
    pipeline.bulk_gate = asyncio.Event()

    first = asyncio.create_task(symptoms.sync())
    second = asyncio.create_task(symptoms.sync())
    await asyncio.sleep(0.01)
    pipeline.bulk_gate.set()
    results = await asyncio.gather(first, second)

    assert sum(len(r.created) for r in results) == 2
    assert sum(1 for p in pipeline.posts if p[1] == "/symptoms/bulk") == 1


@pytest.mark.asyncio
async def test_fetch_passes_filters():
    pipeline = FakePipeline()
    symptoms = SymptomStore(pipeline, MemoryStore())
    await symptoms.fetch(start="2026-10-01", limit=5)
    assert pipeline.posts[0] == ("GET", "/symptoms", {"startDate": "2026-10-01", "endDate": None, "limit": 5})
