import asyncio
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest

from app.settings import Settings
from graph.session import SimulationSession
from models.common import Money
from models.errors import PersistenceFailure
from models.flights import FlightProvider, FlightSearchRequest
from models.hotels import HotelProvider, HotelSearchRequest
from models.simulation import PersistedSimulation, SimulationStore
from models.state import PlaceRef
from models.tours import GeoPlace, PlacesProvider, TourCategory
from services.simulation_store import InMemorySimulationStore
from tools.activities import PricingStrategy

START = date(2025, 6, 1)
END = date(2025, 6, 4)


def flight_leg(airline: str, number: str, origin: str, destination: str, minutes: int) -> Dict[str, Any]:
    return {
        "airline": airline,
        "flight_number": number,
        "departure_airport": {"id": origin, "name": origin, "time": "2025-06-01 08:00"},
        "arrival_airport": {"id": destination, "name": destination, "time": "2025-06-01 09:05"},
        "duration": minutes,
    }


def flights_payload(destination: str = "GIG") -> Dict[str, Any]:
    return {
        "best_flights": [
            {
                "departure_token": f"tok-{destination}-1",
                "price": 450,
                "flights": [flight_leg("LATAM", "LA 3001", "GRU", destination, 65)],
            }
        ],
        "other_flights": [
            {
                "departure_token": f"tok-{destination}-2",
                "price": 380.5,
                "flights": [
                    flight_leg("GOL", "G3 1010", "GRU", "BSB", 95),
                    flight_leg("GOL", "G3 1422", "BSB", destination, 110),
                ],
            }
        ],
    }


def hotel_property(hotel_id: str, name: str, amount: Any = 300, score: Any = 4.5) -> Dict[str, Any]:
    return {
        "id": hotel_id,
        "name": name,
        "reviews": {"score": score},
        "price": {"lead": {"amount": amount, "currencyInfo": {"code": "BRL"}}},
        "location": {"address": {"addressLine": "Av. Atlântica, 1702"}},
        "summary": {"location": "Copacabana"},
        "amenities": [{"name": "Wi-Fi"}, {"name": "Pool"}],
        "propertyGallery": {"images": [{"image": {"url": f"https://img.example/{hotel_id}.jpg"}}]},
    }


def hotels_payload(*properties: Dict[str, Any]) -> Dict[str, Any]:
    if not properties:
        properties = (hotel_property("h1", "Copacabana Palace"), hotel_property("h2", "Ipanema Inn", 210))
    return {"data": {"propertySearch": {"properties": list(properties)}}}


def geo_record(geoname_id: int, name: str, lat: str, lng: str, population: int = 100000, admin: str = "Rio de Janeiro"):
    return {
        "geonameId": geoname_id,
        "name": name,
        "adminName1": admin,
        "countryName": "Brazil",
        "lat": lat,
        "lng": lng,
        "population": population,
    }


RIO = geo_record(3451190, "Rio de Janeiro", "-22.90642", "-43.18223", 6023699)
NITEROI = geo_record(3456160, "Niterói", "-22.88333", "-43.10361", 513584)
CAXIAS = geo_record(3464305, "Duque de Caxias", "-22.78556", "-43.31167", 818329)


class FakeFlightProvider(FlightProvider):
    name = "fake_flights"

    def __init__(self, payloads: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None) -> None:
        super().__init__()
        self.payloads = payloads if payloads is not None else {"GIG": flights_payload("GIG")}
        self.error = error
        self.requests: List[FlightSearchRequest] = []

    async def search_flights(self, request: FlightSearchRequest):
        self.requests.append(request)
        if self.error:
            raise self.error
        return self.payloads.get(request.destination_code)


class GatedFlightProvider(FakeFlightProvider):
    """The first call blocks until ``release`` is set; later calls answer at once."""

    def __init__(self, payloads: Dict[str, Any]) -> None:
        super().__init__(payloads)
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def search_flights(self, request: FlightSearchRequest):
        first = not self.requests
        self.requests.append(request)
        if first:
            self.started.set()
            await self.release.wait()
        return self.payloads.get(request.destination_code)


class FakeHotelProvider(HotelProvider):
    name = "fake_hotels"

    def __init__(self, payload: Any = None, error: Optional[Exception] = None) -> None:
        super().__init__()
        self.payload = payload if payload is not None else hotels_payload()
        self.error = error
        self.requests: List[HotelSearchRequest] = []

    async def search_hotels(self, request: HotelSearchRequest):
        self.requests.append(request)
        if self.error:
            raise self.error
        return self.payload


class FakePlacesProvider(PlacesProvider):
    def __init__(self, geocoded=None, nearby=None) -> None:
        self.geocoded = geocoded if geocoded is not None else [RIO]
        self.nearby = nearby if nearby is not None else [RIO, NITEROI, CAXIAS]
        self.geocode_calls: List[str] = []
        self.nearby_calls: List[tuple] = []

    async def geocode_city(self, query: str):
        self.geocode_calls.append(query)
        return list(self.geocoded)

    async def find_nearby_places(self, lat, lng, radius_km, max_count):
        self.nearby_calls.append((lat, lng, radius_km, max_count))
        return list(self.nearby)


class GatedPlacesProvider(FakePlacesProvider):
    """The first nearby lookup blocks until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def find_nearby_places(self, lat, lng, radius_km, max_count):
        first = not self.nearby_calls
        result = await super().find_nearby_places(lat, lng, radius_km, max_count)
        if first:
            self.started.set()
            await self.release.wait()
        return result


class FixedPricing(PricingStrategy):
    PRICES = {"Rio de Janeiro": 120, "Niterói": 80, "Duque de Caxias": 150}

    def price_for(self, place: GeoPlace) -> Money:
        return Money(amount=self.PRICES.get(place.name, 100), currency="BRL")

    def rating_for(self, place: GeoPlace) -> Decimal:
        return Decimal("4.5")

    def duration_for(self, place: GeoPlace) -> str:
        return "4-5 hours"

    def category_for(self, place: GeoPlace) -> TourCategory:
        return TourCategory.CULTURAL


class FailingStore(SimulationStore):
    async def save(self, record: PersistedSimulation) -> str:
        raise PersistenceFailure()

    async def list(self, owner_id: str):
        raise PersistenceFailure()

    async def delete(self, simulation_id: str, owner_id: str) -> None:
        raise PersistenceFailure()


@pytest.fixture
def config():
    return Settings()


@pytest.fixture
def origin():
    return PlaceRef(name="São Paulo", admin_name="SP")


@pytest.fixture
def destination():
    return PlaceRef(name="Rio de Janeiro", admin_name="RJ")


@pytest.fixture
def store():
    return InMemorySimulationStore()


@pytest.fixture
def make_session(config, store):
    def factory(**overrides) -> SimulationSession:
        kwargs = dict(
            flight_provider=FakeFlightProvider(),
            hotel_provider=FakeHotelProvider(),
            places_provider=FakePlacesProvider(),
            store=store,
            pricing=FixedPricing(),
            config=config,
        )
        owner_id = overrides.pop("owner_id", "user-1")
        kwargs.update(overrides)
        return SimulationSession(owner_id, **kwargs)

    return factory
