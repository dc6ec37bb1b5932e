"""
Concrete optimistic stores for appointments and medications.
"""

from typing import Any, Dict, List, Optional

from healpath.client.optimistic import OptimisticStore
from healpath.errors import HealPathError


class AppointmentStore(OptimisticStore):
    resource = "/appointments"
    cache_key = "cached_appointments"

    async def fetch(self, status: Optional[str] = None, sort: str = "asc") -> List[Dict[str, Any]]:
        return await super().fetch(status=status, sort=sort)


class MedicationStore(OptimisticStore):
    resource = "/medications"
    cache_key = "cached_medications"

    async def fetch(self, active: Optional[bool] = True) -> List[Dict[str, Any]]:
        return await super().fetch(active=None if active is None else str(active).lower())

    async def mark_taken(
        self,
        record_id: str,
        time: str,
        date: Optional[str] = None,
        taken: bool = True,
    ) -> Dict[str, Any]:
        """Record a dose. Local state changes only once the server has the entry."""
        body = {"time": time, "taken": taken}
        if date:
            body["date"] = date

        async with self._locked(record_id):
            try:
                envelope = await self.pipeline.post(f"{self.resource}/{record_id}/taken", body)
            except HealPathError as e:
                self.error = e.message
                self._notify()
                raise

            record = envelope["data"]
            index = self._index(record_id)
            if index is None:
                self.items.append(record)
            else:
                self.items[index] = record
            self.error = None
            await self._persist()
            self._notify()
            return record
