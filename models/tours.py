from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from models.common import Money


class GeoPlace(BaseModel):
    """A populated place as returned by the geographic provider."""

    geoname_id: int
    name: str
    admin_name: str = ""
    country_name: str = ""
    lat: float
    lng: float
    population: int = 0
    iata: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"{self.name}, {self.admin_name}" if self.admin_name else self.name


class TourCategory(str, Enum):
    HISTORICAL = "Historical"
    CULTURAL = "Cultural"
    NATURE = "Nature"
    ADVENTURE = "Adventure"
    GASTRONOMIC = "Gastronomic"


class TourOption(BaseModel):
    """
    A tour generated from a place.

    ``synthetic`` marks price and rating as placeholders rather than a real,
    bookable offer.
    """
    id: str
    name: str
    description: str
    price_per_person: Money
    rating_score: Decimal
    duration_label: str
    category: TourCategory
    included_items: List[str] = Field(default_factory=list)
    meeting_point: str
    photo_url: Optional[str] = None
    booking_type: str = "Instant confirmation"
    synthetic: bool = True


class PointOfInterest(BaseModel):
    """A place-search hit (restaurant, museum, park, ...)."""

    id: str
    name: str
    category: str = ""
    rating: float = 0.0
    user_ratings_total: int = 0
    vicinity: str = ""
    lat: float = 0.0
    lng: float = 0.0


# ---------------------------------------------------------------------------
# Provider Interface
# ---------------------------------------------------------------------------


class PlacesProvider(ABC):
    """
    Geographic lookups feeding the origin/destination pickers and tour
    generation.
    """

    @abstractmethod
    async def geocode_city(self, query: str) -> List[Dict[str, Any]]:
        """Raw candidate places for a free-text city query."""
        raise NotImplementedError

    @abstractmethod
    async def find_nearby_places(
        self, lat: float, lng: float, radius_km: int, max_count: int
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError


class PointsOfInterestProvider(ABC):
    """Category search around a point (restaurants, museums, parks, ...)."""

    @abstractmethod
    async def search_places(
        self, lat: float, lng: float, category: str, radius_m: int
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError
