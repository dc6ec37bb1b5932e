"""
Tests for the optimistic appointment and medication stores.
"""

import asyncio

import pytest

from healpath.client.storage import JsonFileStore, MemoryStore
from healpath.client.stores import AppointmentStore, MedicationStore
from healpath.errors import NetworkError, NotFoundError, ValidationError


# ── Helpers / Fakes ──────────────────────────────────────────────────

class FakePipeline:
    """Records calls and answers from a script of results or exceptions."""
    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []
        self.gates = {}

    async def _answer(self, method, path, body=None, params=None):
        self.calls.append((method, path, body, params))
        gate = self.gates.get((method, path))
        if gate is not None:
            await gate.wait()
        result = self.responses.get((method, path), {"success": True, "data": body})
        if isinstance(result, Exception):
            raise result
        return result

    async def get(self, path, params=None):
        return await self._answer("GET", path, params=params)

    async def post(self, path, json=None, authenticated=True):
        return await self._answer("POST", path, json)

    async def put(self, path, json=None):
        return await self._answer("PUT", path, json)

    async def delete(self, path):
        return await self._answer("DELETE", path)


APPOINTMENTS = [
    {"id": "a1", "doctorName": "Dr. Grey", "status": "upcoming"},
    {"id": "a2", "doctorName": "Dr. House", "status": "upcoming"},
    {"id": "a3", "doctorName": "Dr. Who", "status": "upcoming"},
]


async def loaded_store(pipeline, store=None):
    pipeline.responses.setdefault(("GET", "/appointments"), {"success": True, "data": [dict(a) for a in APPOINTMENTS]})
    appointments = AppointmentStore(pipeline, store or MemoryStore())
    await appointments.fetch()
    return appointments


# ── fetch / cache ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_fetch_replaces_items_and_caches():
    pipeline = FakePipeline()
    store = MemoryStore()
    appointments = await loaded_store(pipeline, store)

    assert [a["id"] for a in appointments.items] == ["a1", "a2", "a3"]
    assert pipeline.calls[0] == ("GET", "/appointments", None, {"status": None, "sort": "asc"})
    assert await store.get("cached_appointments") == appointments.items
    assert appointments.is_loading is False


@pytest.mark.asyncio
async def test_fetch_failure_keeps_items_and_records_error():
    pipeline = FakePipeline()
    appointments = await loaded_store(pipeline)
    pipeline.responses[("GET", "/appointments")] = NetworkError()

    with pytest.raises(NetworkError):
        await appointments.fetch()
    assert len(appointments.items) == 3
    assert appointments.error == "Network unavailable"
    assert appointments.is_loading is False


@pytest.mark.asyncio
async def test_load_cached():
    store = MemoryStore({"cached_medications": [{"id": "m1", "name": "Ibuprofen"}]})
    medications = MedicationStore(FakePipeline(), store)
    assert [m["id"] for m in await medications.load_cached()] == ["m1"]


@pytest.mark.asyncio
async def test_medication_fetch_defaults_to_active():
    pipeline = FakePipeline({("GET", "/medications"): {"success": True, "data": []}})
    await MedicationStore(pipeline, MemoryStore()).fetch()
    assert pipeline.calls[0][3] == {"active": "true"}


# ── create ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_appends_server_record_only():
    pipeline = FakePipeline({("POST", "/appointments"): {"success": True, "data": {"id": "a9", "doctorName": "Dr. New"}}})
    appointments = await loaded_store(pipeline)
    record = await appointments.create({"doctorName": "Dr. New"})
    assert record["id"] == "a9"
    assert appointments.items[-1]["id"] == "a9"


@pytest.mark.asyncio
async def test_create_is_fail_closed():
    pipeline = FakePipeline({("POST", "/appointments"): ValidationError("Validation failed")})
    appointments = await loaded_store(pipeline)
    with pytest.raises(ValidationError):
        await appointments.create({"doctorName": ""})
    assert len(appointments.items) == 3
    assert appointments.error == "Validation failed"


# ── mutate / remove ──────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_mutate_applies_locally_and_keeps_on_success():
    pipeline = FakePipeline()
    appointments = await loaded_store(pipeline)
    seen = []
    appointments.subscribe(lambda s: seen.append(s.find("a2")["status"]))

    await appointments.mutate("a2", {"status": "completed"})
    assert appointments.find("a2")["status"] == "completed"
    assert seen[0] == "completed"
    assert pipeline.calls[-1] == ("PUT", "/appointments/a2", {"status": "completed"}, None)


@pytest.mark.asyncio
async def test_failed_mutation_restores_snapshot():
    pipeline = FakePipeline({("PUT", "/appointments/a2"): NotFoundError("Appointment not found")})
    appointments = await loaded_store(pipeline)
    before = [dict(a) for a in appointments.items]
    states = []
    appointments.subscribe(lambda s: states.append(s.find("a2")["status"]))

    with pytest.raises(NotFoundError):
        await appointments.mutate("a2", {"status": "cancelled"})

    assert appointments.items == before
    assert appointments.error == "Appointment not found"
    # Optimistic value was visible, then rolled back.
    assert states == ["cancelled", "upcoming"]


@pytest.mark.asyncio
async def test_rollback_preserves_concurrent_change_to_other_entity():
    pipeline = FakePipeline({("PUT", "/appointments/a1"): NetworkError()})
    appointments = await loaded_store(pipeline)
    gate = pipeline.gates[("PUT", "/appointments/a1")] = asyncio.Event()

    failing = asyncio.create_task(appointments.mutate("a1", {"status": "cancelled"}))
    await asyncio.sleep(0)
    await appointments.mutate("a3", {"status": "completed"})
    gate.set()
    with pytest.raises(NetworkError):
        await failing

    assert appointments.find("a1")["status"] == "upcoming"
    assert appointments.find("a3")["status"] == "completed"


@pytest.mark.asyncio
async def test_same_entity_mutations_are_serialized():
    pipeline = FakePipeline()
    appointments = await loaded_store(pipeline)
    gate = pipeline.gates[("PUT", "/appointments/a1")] = asyncio.Event()

    first = asyncio.create_task(appointments.mutate("a1", {"status": "completed"}))
    second = asyncio.create_task(appointments.mutate("a1", {"notes": "bring scans"}))
    await asyncio.sleep(0.01)
    # The second mutation waits for the first to settle before touching state.
    assert "notes" not in appointments.find("a1")
    assert sum(1 for c in pipeline.calls if c[0] == "PUT") == 1

    gate.set()
    await asyncio.gather(first, second)
    assert appointments.find("a1") == {
        "id": "a1", "doctorName": "Dr. Grey", "status": "completed", "notes": "bring scans",
    }


@pytest.mark.asyncio
async def test_failed_remove_restores_entity_at_its_index():
    pipeline = FakePipeline({("DELETE", "/appointments/a2"): NetworkError()})
    appointments = await loaded_store(pipeline)
    with pytest.raises(NetworkError):
        await appointments.remove("a2")
    assert [a["id"] for a in appointments.items] == ["a1", "a2", "a3"]


@pytest.mark.asyncio
async def test_remove_success():
    pipeline = FakePipeline()
    store = MemoryStore()
    appointments = await loaded_store(pipeline, store)
    await appointments.remove("a1")
    assert [a["id"] for a in appointments.items] == ["a2", "a3"]
    assert [a["id"] for a in await store.get("cached_appointments")] == ["a2", "a3"]


@pytest.mark.asyncio
async def test_mutate_unknown_id():
    appointments = await loaded_store(FakePipeline())
    with pytest.raises(NotFoundError, match="nope"):
        await appointments.mutate("nope", {"status": "completed"})


@pytest.mark.asyncio
async def test_cancelled_mutation_restores_snapshot():
    pipeline = FakePipeline()
    appointments = await loaded_store(pipeline)
    pipeline.gates[("PUT", "/appointments/a1")] = asyncio.Event()

    task = asyncio.create_task(appointments.mutate("a1", {"status": "cancelled"}))
    await asyncio.sleep(0)
    assert appointments.find("a1")["status"] == "cancelled"

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert appointments.find("a1")["status"] == "upcoming"


@pytest.mark.asyncio
async def test_unexpected_error_during_remove_restores_entity():
    pipeline = FakePipeline({("DELETE", "/appointments/a2"): TypeError("bad response")})
    appointments = await loaded_store(pipeline)
    with pytest.raises(TypeError):
        await appointments.remove("a2")
    assert [a["id"] for a in appointments.items] == ["a1", "a2", "a3"]


@pytest.mark.asyncio
async def test_entity_locks_are_released():
    pipeline = FakePipeline({("PUT", "/appointments/a2"): NetworkError()})
    appointments = await loaded_store(pipeline)
    await appointments.mutate("a1", {"status": "completed"})
    with pytest.raises(NetworkError):
        await appointments.mutate("a2", {"status": "completed"})
    await asyncio.gather(
        appointments.mutate("a3", {"status": "completed"}),
        appointments.mutate("a3", {"notes": "fasting"}),
    )
    assert appointments._locks == {}


# ── durable cache ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_cache_holds_only_confirmed_state():
    pipeline = FakePipeline()
    store = MemoryStore()
    appointments = await loaded_store(pipeline, store)
    pipeline.gates[("PUT", "/appointments/a1")] = asyncio.Event()

    task = asyncio.create_task(appointments.mutate("a1", {"status": "cancelled"}))
    await asyncio.sleep(0)
    cached = await store.get("cached_appointments")
    assert cached[0]["status"] == "upcoming"

    pipeline.gates[("PUT", "/appointments/a1")].set()
    await task
    cached = await store.get("cached_appointments")
    assert cached[0]["status"] == "cancelled"


@pytest.mark.asyncio
async def test_rejected_mutation_never_reaches_disk(tmp_path):
    path = str(tmp_path / "state.json")
    pipeline = FakePipeline({("PUT", "/appointments/a1"): NetworkError()})
    store = JsonFileStore(path)
    appointments = await loaded_store(pipeline, store)
    gate = pipeline.gates[("PUT", "/appointments/a1")] = asyncio.Event()

    task = asyncio.create_task(appointments.mutate("a1", {"status": "cancelled"}))
    await asyncio.sleep(0)
    # An unrelated write rewrites the whole file while the change is in flight.
    await store.set("accessToken", "new")
    gate.set()
    with pytest.raises(NetworkError):
        await task

    assert appointments.find("a1")["status"] == "upcoming"
    reopened = AppointmentStore(FakePipeline(), JsonFileStore(path))
    await reopened.load_cached()
    assert reopened.find("a1")["status"] == "upcoming"
    assert [a["id"] for a in reopened.items] == ["a1", "a2", "a3"]


# ── subscriptions ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_detached_listener_receives_nothing():
    pipeline = FakePipeline({("PUT", "/appointments/a1"): NetworkError()})
    appointments = await loaded_store(pipeline)
    gate = pipeline.gates[("PUT", "/appointments/a1")] = asyncio.Event()
    received = []
    subscription = appointments.subscribe(lambda s: received.append(s.error))

    task = asyncio.create_task(appointments.mutate("a1", {"status": "cancelled"}))
    await asyncio.sleep(0)
    subscription.detach()
    received.clear()
    gate.set()
    with pytest.raises(NetworkError):
        await task

    assert received == []
    assert appointments.find("a1")["status"] == "upcoming"


# ── medications ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_mark_taken_replaces_entity_with_server_copy():
    server_copy = {"id": "m1", "name": "Ibuprofen", "takenLog": [{"time": "08:00", "taken": True}]}
    pipeline = FakePipeline({
        ("GET", "/medications"): {"success": True, "data": [{"id": "m1", "name": "Ibuprofen", "takenLog": []}]},
        ("POST", "/medications/m1/taken"): {"success": True, "data": server_copy},
    })
    medications = MedicationStore(pipeline, MemoryStore())
    await medications.fetch()

    record = await medications.mark_taken("m1", "08:00")
    assert record == server_copy
    assert medications.find("m1") == server_copy
    assert pipeline.calls[-1][2] == {"time": "08:00", "taken": True}


@pytest.mark.asyncio
async def test_mark_taken_is_fail_closed():
    pipeline = FakePipeline({
        ("GET", "/medications"): {"success": True, "data": [{"id": "m1", "takenLog": []}]},
        ("POST", "/medications/m1/taken"): NetworkError(),
    })
    medications = MedicationStore(pipeline, MemoryStore())
    await medications.fetch()
    with pytest.raises(NetworkError):
        await medications.mark_taken("m1", "08:00")
    assert medications.find("m1")["takenLog"] == []
