"""
Durable key-value stores backing the client's persisted state.
"""

import asyncio
import copy
import json
import os
from typing import Any, Dict, Optional


class MemoryStore:
    """Process-local store; state lives as long as the instance.

    Values are copied in and out, so callers never share a reference with it.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    async def get(self, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self._data.get(key, default))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """Keeps every key in one JSON file, rewritten atomically on each change.

    Values must be JSON-serialisable. File I/O runs in a worker thread so the
    event loop is never blocked on disk.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = asyncio.Lock()
        self._data: Optional[Dict[str, Any]] = None

    async def get(self, key: str, default: Any = None) -> Any:
        async with self._lock:
            data = await self._load()
            return copy.deepcopy(data.get(key, default))

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            data = await self._load()
            data[key] = copy.deepcopy(value)
            await asyncio.to_thread(self._write, dict(data))

    async def remove(self, key: str) -> None:
        async with self._lock:
            data = await self._load()
            if key in data:
                del data[key]
                await asyncio.to_thread(self._write, dict(data))

    async def _load(self) -> Dict[str, Any]:
        if self._data is None:
            self._data = await asyncio.to_thread(self._read)
        return self._data

    def _read(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as fh:
            return json.load(fh)

    def _write(self, data: Dict[str, Any]) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as fh:
            json.dump(data, fh)
        os.replace(tmp_path, self.path)
