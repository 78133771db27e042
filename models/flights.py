from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, validator

from models.common import NOT_AVAILABLE, Money, PartySize


# ---------------------------------------------------------------------------
# Core Models
# ---------------------------------------------------------------------------


class FlightSegment(BaseModel):
    """One leg of a flight. Every field is always populated."""

    airline_name: str = NOT_AVAILABLE
    flight_number: str = NOT_AVAILABLE
    departure_airport: str = NOT_AVAILABLE
    arrival_airport: str = NOT_AVAILABLE
    departure_time: str = NOT_AVAILABLE
    arrival_time: str = NOT_AVAILABLE
    duration_label: str = NOT_AVAILABLE

    @classmethod
    def placeholder(cls) -> "FlightSegment":
        return cls()


class FlightOption(BaseModel):
    """
    Canonical flight, whichever provider shape it came from.

    ``segments`` is never empty: a provider item without segment data gets a
    single placeholder segment so rendering and cost math never dereference a
    missing value.
    """

    id: str
    segments: List[FlightSegment] = Field(default_factory=lambda: [FlightSegment.placeholder()])
    price: Money

    @validator("segments")
    def at_least_one_segment(cls, v: List[FlightSegment]) -> List[FlightSegment]:
        return v or [FlightSegment.placeholder()]

    @property
    def stops(self) -> int:
        return max(len(self.segments) - 1, 0)

    @property
    def first_segment(self) -> FlightSegment:
        return self.segments[0]


class FlightSearchRequest(BaseModel):
    """
    Inputs to a flight provider. Codes are IATA airport codes already resolved
    from the city display names (see tools/airports.py).
    """
    origin_code: str
    destination_code: str
    departure_date: date
    return_date: Optional[date] = None
    party: PartySize = Field(default_factory=PartySize)
    currency: str = "BRL"


# ---------------------------------------------------------------------------
# Provider Interface
# ---------------------------------------------------------------------------


class FlightProvider(ABC):
    """
    Abstract base class for a flight data provider.

    Implementations live in services/ and return the provider payload as-is;
    tools/flights.py turns it into FlightOption objects.
    """

    name: str

    def __init__(self, name: Optional[str] = None) -> None:
        if name:
            self.name = name

    @abstractmethod
    async def search_flights(self, request: FlightSearchRequest) -> Optional[Dict[str, Any]]:
        """
        Perform a flight search and return the raw payload (or None when the
        provider answered with nothing at all).

        Implementations raise the errors in models.errors for transport-level
        failures (auth, rate limit, unavailable).
        """
        raise NotImplementedError
