from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, validator

from models.common import to_decimal
from models.flights import FlightOption
from models.hotels import HotelOption
from models.state import CostBreakdown
from models.tours import TourOption


class PersistedSimulation(BaseModel):
    """
    Durable record of a saved simulation.

    Snapshots are plain JSON-ready dicts so the storage backend never needs
    to know about the canonical models.
    """
    id: Optional[str] = None
    owner_id: str
    created_at: Optional[datetime] = None
    destination: str
    start_date: date
    end_date: date
    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)
    selected_flight: Optional[Dict[str, Any]] = None
    selected_hotel: Optional[Dict[str, Any]] = None
    selected_tours: List[Dict[str, Any]] = Field(default_factory=list)
    total_cost: Decimal = Decimal("0.00")

    @validator("total_cost", pre=True)
    def coerce_total(cls, v: Any) -> Decimal:
        return to_decimal(v)

    @validator("total_cost")
    def non_negative_total(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("total_cost must be non-negative")
        return v


class SimulationView(BaseModel):
    """A saved (or in-flight) simulation rebuilt for redisplay."""

    id: Optional[str] = None
    destination: str
    start_date: date
    end_date: date
    adults: int = 1
    children: int = 0
    flight: Optional[FlightOption] = None
    hotel: Optional[HotelOption] = None
    tours: List[TourOption] = Field(default_factory=list)
    cost: CostBreakdown

    @property
    def has_flight(self) -> bool:
        return self.flight is not None

    @property
    def has_hotel(self) -> bool:
        return self.hotel is not None


# ---------------------------------------------------------------------------
# Storage Interface
# ---------------------------------------------------------------------------


class SimulationStore(ABC):
    """Durable storage for saved simulations. Raises PersistenceFailure."""

    @abstractmethod
    async def save(self, record: PersistedSimulation) -> str:
        raise NotImplementedError

    @abstractmethod
    async def list(self, owner_id: str) -> List[PersistedSimulation]:
        """Records owned by ``owner_id``, newest first."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, simulation_id: str, owner_id: str) -> None:
        raise NotImplementedError
