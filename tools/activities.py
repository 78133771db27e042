"""
Tour generation.

Tours are not read from a tour provider: each one is derived from a populated
place near the destination. Name and meeting point come from the place name;
price, rating, duration and category come from a PricingStrategy, which today
is a random placeholder and can be swapped for a real pricing provider.
"""
from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional
from urllib.parse import quote

from models.common import Money
from models.errors import NoResultsFound, NormalizationFailure
from models.tours import GeoPlace, PointOfInterest, TourCategory, TourOption

logger = logging.getLogger(__name__)

MAX_TOURS = 20

TOUR_DURATIONS = ("2-3 hours", "4-5 hours", "Full day")

INCLUDED_ITEMS = (
    "Bilingual professional guide",
    "Air-conditioned transport",
    "Attraction tickets",
    "Mineral water",
    "Travel insurance",
)


def parse_place(raw: Any) -> GeoPlace:
    """GeoNames record (coordinates as strings) -> GeoPlace."""
    if not isinstance(raw, Mapping):
        raise NormalizationFailure(f"place is not an object: {type(raw).__name__}")
    try:
        return GeoPlace(
            geoname_id=int(raw["geonameId"]),
            name=str(raw.get("name") or raw.get("toponymName") or "").strip() or str(raw["geonameId"]),
            admin_name=str(raw.get("adminName1") or ""),
            country_name=str(raw.get("countryName") or ""),
            lat=float(raw["lat"]),
            lng=float(raw["lng"]),
            population=int(raw.get("population") or 0),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise NormalizationFailure(f"unreadable place: {exc}") from exc


# ---------------------------------------------------------------------------
# Pricing strategies
# ---------------------------------------------------------------------------


class PricingStrategy(ABC):
    """Decides the commercial fields of a generated tour."""

    # True when prices are placeholders rather than bookable offers
    synthetic: bool = True

    @abstractmethod
    def price_for(self, place: GeoPlace) -> Money:
        raise NotImplementedError

    @abstractmethod
    def rating_for(self, place: GeoPlace) -> Decimal:
        raise NotImplementedError

    @abstractmethod
    def duration_for(self, place: GeoPlace) -> str:
        raise NotImplementedError

    @abstractmethod
    def category_for(self, place: GeoPlace) -> TourCategory:
        raise NotImplementedError


class RandomPlaceholderPricing(PricingStrategy):
    """
    Uniform draws: whole-unit price in [50, 300], rating in [3.0, 5.0],
    duration and category from fixed sets. Pass a seeded ``rng`` for
    reproducible tours.
    """

    MIN_PRICE = 50
    MAX_PRICE = 300
    MIN_RATING = 3.0
    MAX_RATING = 5.0

    def __init__(self, currency: str = "BRL", rng: Optional[random.Random] = None) -> None:
        self.currency = currency
        self.rng = rng or random.Random()

    def price_for(self, place: GeoPlace) -> Money:
        return Money(amount=self.rng.randint(self.MIN_PRICE, self.MAX_PRICE), currency=self.currency)

    def rating_for(self, place: GeoPlace) -> Decimal:
        value = self.rng.uniform(self.MIN_RATING, self.MAX_RATING)
        return Decimal(str(round(value, 1)))

    def duration_for(self, place: GeoPlace) -> str:
        return self.rng.choice(TOUR_DURATIONS)

    def category_for(self, place: GeoPlace) -> TourCategory:
        return self.rng.choice(list(TourCategory))


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def generate_tour(place: GeoPlace, pricing: PricingStrategy) -> TourOption:
    region = place.admin_name or place.country_name or place.name
    return TourOption(
        id=str(place.geoname_id),
        name=f"Tour in {place.name}",
        description=(
            f"Explore {place.name}, one of the main attractions of the {region} region. "
            "Discover the local culture, history and natural beauty of this charming city."
        ),
        price_per_person=pricing.price_for(place),
        rating_score=pricing.rating_for(place),
        duration_label=pricing.duration_for(place),
        category=pricing.category_for(place),
        included_items=list(INCLUDED_ITEMS),
        meeting_point=f"{place.name} city centre",
        photo_url=f"https://source.unsplash.com/800x600/?{quote(place.name + ' brazil')}",
        synthetic=pricing.synthetic,
    )


def parse_places(raw_places: Iterable[Any]) -> List[GeoPlace]:
    """Parse a raw place list, dropping (and logging) unreadable entries."""
    places: List[GeoPlace] = []
    for index, raw in enumerate(raw_places or []):
        try:
            places.append(parse_place(raw))
        except NormalizationFailure as exc:
            logger.warning("Dropping place %d: %s", index, exc.user_message)
    return places


def generate_tours(
    nearby: Iterable[GeoPlace],
    pricing: PricingStrategy,
    main_place: Optional[GeoPlace] = None,
    limit: int = MAX_TOURS,
) -> List[TourOption]:
    """
    One tour for the main place (when given), then one per nearby place,
    skipping places already covered. Raises NoResultsFound when no tour could
    be generated.
    """
    candidates: List[GeoPlace] = [main_place] if main_place is not None else []
    candidates.extend(nearby)

    tours: List[TourOption] = []
    seen = set()
    for place in candidates:
        if place.geoname_id in seen:
            continue
        seen.add(place.geoname_id)
        tours.append(generate_tour(place, pricing))
        if len(tours) >= limit:
            break

    if not tours:
        raise NoResultsFound("No tours were found near this destination.", slot="tours")
    return tours


def parse_points_of_interest(raw_places: Iterable[Any], category: str = "") -> List[PointOfInterest]:
    """Nearby-search results -> PointOfInterest, unreadable entries dropped."""
    points: List[PointOfInterest] = []
    for raw in raw_places or []:
        if not isinstance(raw, Mapping) or not raw.get("name"):
            logger.warning("Dropping unreadable point of interest")
            continue
        location = (raw.get("geometry") or {}).get("location") or {}
        types = raw.get("types") or []
        points.append(
            PointOfInterest(
                id=str(raw.get("place_id") or ""),
                name=str(raw["name"]),
                category=str(types[0]) if types else category,
                rating=float(raw.get("rating") or 0),
                user_ratings_total=int(raw.get("user_ratings_total") or 0),
                vicinity=str(raw.get("vicinity") or ""),
                lat=float(location.get("lat") or 0),
                lng=float(location.get("lng") or 0),
            )
        )
    return points
