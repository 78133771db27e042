from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, validator

from models.common import Money, PartySize

MAX_AMENITIES = 5


# ---------------------------------------------------------------------------
# Core Models
# ---------------------------------------------------------------------------


class HotelOption(BaseModel):
    """
    Canonical hotel. Price is per night; the stay total is computed by the
    cost aggregator from the trip dates.
    """
    id: str
    name: str
    rating_score: Decimal = Decimal("0")
    price_per_night: Money
    address: str = ""
    description: str = ""
    amenities: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)

    @validator("rating_score")
    def clamp_rating(cls, v: Decimal) -> Decimal:
        return min(max(v, Decimal("0")), Decimal("5"))

    @validator("amenities")
    def cap_amenities(cls, v: List[str]) -> List[str]:
        return v[:MAX_AMENITIES]


class HotelSearchRequest(BaseModel):
    city_name: str
    checkin_date: date
    checkout_date: date
    party: PartySize = Field(default_factory=PartySize)
    currency: str = "BRL"


# ---------------------------------------------------------------------------
# Provider Interface
# ---------------------------------------------------------------------------


class HotelProvider(ABC):
    """
    Abstract base class for a hotel data provider.

    Implementations live in services/ and return the provider payload as-is;
    tools/hotels.py turns it into HotelOption objects.
    """

    name: str

    def __init__(self, name: Optional[str] = None) -> None:
        if name:
            self.name = name

    @abstractmethod
    async def search_hotels(self, request: HotelSearchRequest) -> Optional[Dict[str, Any]]:
        raise NotImplementedError
