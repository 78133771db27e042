from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from models.errors import OwnershipViolation, PersistenceFailure, SimulationError, UnknownOption
from models.simulation import PersistedSimulation, SimulationStore
from services.provider_client import ProviderClient
from tools.serializer import SimulationSerializer

logger = logging.getLogger(__name__)

TABLE_PATH = "/rest/v1/simulations"


class SupabaseSimulationStore(SimulationStore):
    """
    ``simulations`` table through Supabase's PostgREST endpoint.

    Every storage-level error comes out as PersistenceFailure.
    """

    def __init__(self, client: ProviderClient, serializer: Optional[SimulationSerializer] = None) -> None:
        self.client = client
        self.serializer = serializer or SimulationSerializer()

    async def save(self, record: PersistedSimulation) -> str:
        row = self.serializer.to_row(record)
        try:
            payload = await self.client.post(
                TABLE_PATH,
                json=row,
                headers={"Prefer": "return=representation"},
            )
        except SimulationError as exc:
            raise PersistenceFailure() from exc

        rows = payload if isinstance(payload, list) else [payload] if payload else []
        if not rows or rows[0].get("id") is None:
            raise PersistenceFailure("The storage did not confirm the save. Please try again.")
        saved_id = str(rows[0]["id"])
        logger.info("Saved simulation %s for %s", saved_id, record.owner_id)
        return saved_id

    async def list(self, owner_id: str) -> List[PersistedSimulation]:
        try:
            rows = await self.client.get(
                TABLE_PATH,
                params={"select": "*", "user_id": f"eq.{owner_id}", "order": "created_at.desc"},
            )
        except SimulationError as exc:
            raise PersistenceFailure("Saved simulations could not be loaded.") from exc

        records: List[PersistedSimulation] = []
        for row in rows or []:
            try:
                records.append(self.serializer.from_row(row))
            except (SimulationError, ValueError) as exc:
                logger.warning("Skipping unreadable simulation row %s: %s", row.get("id"), exc)
        return records

    async def delete(self, simulation_id: str, owner_id: str) -> None:
        try:
            rows = await self.client.delete(
                TABLE_PATH,
                params={"id": f"eq.{simulation_id}", "user_id": f"eq.{owner_id}"},
                headers={"Prefer": "return=representation"},
            )
        except SimulationError as exc:
            raise PersistenceFailure("The simulation could not be deleted.") from exc
        if not rows:
            # Filtered by owner, so an empty answer is either a missing or a foreign record
            raise UnknownOption(f"Simulation {simulation_id} was not found.")
        logger.info("Deleted simulation %s", simulation_id)


class InMemorySimulationStore(SimulationStore):
    """Process-local store with the same contract, for tests and local runs."""

    def __init__(self) -> None:
        self._records: Dict[str, PersistedSimulation] = {}

    async def save(self, record: PersistedSimulation) -> str:
        stored = record.model_copy(deep=True)
        stored.id = stored.id or uuid.uuid4().hex
        stored.created_at = stored.created_at or datetime.now(timezone.utc)
        self._records[stored.id] = stored
        return stored.id

    async def list(self, owner_id: str) -> List[PersistedSimulation]:
        # insertion order breaks created_at ties
        owned = [r for r in reversed(list(self._records.values())) if r.owner_id == owner_id]
        return sorted(owned, key=lambda r: r.created_at, reverse=True)

    async def delete(self, simulation_id: str, owner_id: str) -> None:
        record = self._records.get(simulation_id)
        if record is None:
            raise UnknownOption(f"Simulation {simulation_id} was not found.")
        if record.owner_id != owner_id:
            raise OwnershipViolation()
        del self._records[simulation_id]
