import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.logs import configure_logging
from app.settings import Settings, settings
from graph.session import SimulationSession, search_cities
from graph.state_store import SessionRegistry
from models.common import PartySize
from models.errors import (
    AuthenticationFailure,
    IncompleteSelection,
    InvalidDateRange,
    InvalidSearchParameters,
    InvalidTransition,
    NoResultsFound,
    NormalizationFailure,
    OwnershipViolation,
    PersistenceFailure,
    ProviderUnavailable,
    RateLimited,
    SimulationError,
    UnknownOption,
)
from models.flights import FlightProvider
from models.hotels import HotelProvider
from models.simulation import SimulationStore
from models.state import PlaceRef, SelectionPhase
from models.tours import PlacesProvider, PointsOfInterestProvider
from services.geonames import GeoNamesPlacesProvider
from services.google_places import GooglePlacesProvider
from services.provider_client import ProviderClient
from services.rapidapi_hotels import RapidApiHotelProvider
from services.serpapi_flights import SerpApiFlightProvider
from services.simulation_store import SupabaseSimulationStore
from tools.activities import PricingStrategy
from tools.serializer import SimulationSerializer

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


class Services:
    """Providers, storage and live sessions shared by every request."""

    def __init__(
        self,
        flights: FlightProvider,
        hotels: HotelProvider,
        places: PlacesProvider,
        store: SimulationStore,
        poi: Optional[PointsOfInterestProvider] = None,
        pricing: Optional[PricingStrategy] = None,
        config: Settings = settings,
        clients: Optional[List[ProviderClient]] = None,
    ) -> None:
        self.flights = flights
        self.hotels = hotels
        self.places = places
        self.store = store
        self.poi = poi
        self.pricing = pricing
        self.config = config
        self.serializer = SimulationSerializer(currency=config.display_currency)
        self.registry = SessionRegistry(self.new_session, max_idle_seconds=config.session_idle_seconds)
        self._clients = clients or []

    def new_session(self, owner_id: str) -> SimulationSession:
        return SimulationSession(
            owner_id,
            flight_provider=self.flights,
            hotel_provider=self.hotels,
            places_provider=self.places,
            store=self.store,
            poi_provider=self.poi,
            pricing=self.pricing,
            serializer=self.serializer,
            config=self.config,
        )

    async def close(self) -> None:
        for client in self._clients:
            await client.close()


def build_services(config: Settings = settings) -> Services:
    timeout = config.provider_timeout_seconds
    supabase = ProviderClient(
        config.supabase_url,
        name="supabase",
        headers={
            "apikey": config.supabase_anon_key,
            "Authorization": f"Bearer {config.supabase_anon_key}",
        },
        timeout=timeout,
    )
    rapidapi = ProviderClient(
        f"https://{config.rapidapi_hotels_host}",
        name="hotels4",
        headers={"X-RapidAPI-Host": config.rapidapi_hotels_host, "X-RapidAPI-Key": config.rapidapi_key},
        timeout=timeout,
    )
    geonames = ProviderClient("https://secure.geonames.org", name="geonames", timeout=timeout)
    google = ProviderClient("https://maps.googleapis.com", name="google_places", timeout=timeout)
    currency = config.display_currency

    return Services(
        flights=SerpApiFlightProvider(supabase, function_path=config.flights_function_path, currency=currency),
        hotels=RapidApiHotelProvider(rapidapi, currency=currency),
        places=GeoNamesPlacesProvider(
            geonames,
            username=config.geonames_username,
            country=config.geonames_country,
            max_rows=config.geocode_max_rows,
        ),
        store=SupabaseSimulationStore(supabase, SimulationSerializer(currency=currency)),
        poi=GooglePlacesProvider(google, api_key=config.google_maps_api_key) if config.google_maps_api_key else None,
        config=config,
        clients=[supabase, rapidapi, geonames, google],
    )


# Singleton wired from settings; tests override get_services
SERVICES = build_services()


def get_services() -> Services:
    return SERVICES


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await SERVICES.close()


app = FastAPI(title="Trip Simulation API", version="0.1.0", lifespan=lifespan)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

# Checked in order; subclasses before their bases
STATUS_BY_ERROR = (
    (OwnershipViolation, 403),
    (InvalidSearchParameters, 400),
    (InvalidDateRange, 400),
    (InvalidTransition, 409),
    (IncompleteSelection, 409),
    (UnknownOption, 404),
    (NoResultsFound, 404),
    (RateLimited, 503),
    (ProviderUnavailable, 502),
    (AuthenticationFailure, 502),
    (NormalizationFailure, 502),
    (PersistenceFailure, 500),
)


def status_for(exc: SimulationError) -> int:
    for error_cls, status in STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return status
    return 500


@app.exception_handler(SimulationError)
async def simulation_error_handler(request: Request, exc: SimulationError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.user_message)
    return JSONResponse(
        status_code=status,
        content={"error": type(exc).__name__, "detail": exc.user_message},
    )


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class SearchRequest(BaseModel):
    origin: Optional[PlaceRef] = None
    destination: Optional[PlaceRef] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)


class OptionRequest(BaseModel):
    id: str


class DatesRequest(BaseModel):
    start_date: date
    end_date: date


def _session(services: Services, session_id: str, owner_id: str) -> SimulationSession:
    return services.registry.get(session_id, owner_id)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/cities")
async def cities(q: str = "", services: Services = Depends(get_services)):
    found = await search_cities(services.places, q, services.config.geocode_min_population)
    return {"data": [c.model_dump() | {"display_name": c.display_name} for c in found]}


@app.post("/sessions", status_code=201)
def create_session(
    x_user_id: str = Header(...),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    return services.registry.create(x_user_id).to_dict()


@app.get("/sessions/{session_id}")
def get_session(session_id: str, x_user_id: str = Header(...), services: Services = Depends(get_services)):
    return _session(services, session_id, x_user_id).to_dict()


@app.delete("/sessions/{session_id}", status_code=204)
def discard_session(session_id: str, x_user_id: str = Header(...), services: Services = Depends(get_services)):
    services.registry.drop(session_id, x_user_id)


@app.post("/sessions/{session_id}/search")
async def search(
    session_id: str,
    req: SearchRequest,
    x_user_id: str = Header(...),
    services: Services = Depends(get_services),
):
    session = _session(services, session_id, x_user_id)
    await session.search(
        req.origin,
        req.destination,
        req.start_date,
        req.end_date,
        PartySize(adults=req.adults, children=req.children),
    )
    return session.to_dict()


@app.post("/sessions/{session_id}/flight")
def select_flight(
    session_id: str,
    req: OptionRequest,
    x_user_id: str = Header(...),
    services: Services = Depends(get_services),
):
    session = _session(services, session_id, x_user_id)
    session.select_flight(req.id)
    return session.to_dict()


@app.post("/sessions/{session_id}/hotel")
def select_hotel(
    session_id: str,
    req: OptionRequest,
    x_user_id: str = Header(...),
    services: Services = Depends(get_services),
):
    session = _session(services, session_id, x_user_id)
    session.select_hotel(req.id)
    return session.to_dict()


@app.post("/sessions/{session_id}/dates")
def change_dates(
    session_id: str,
    req: DatesRequest,
    x_user_id: str = Header(...),
    services: Services = Depends(get_services),
):
    session = _session(services, session_id, x_user_id)
    session.change_dates(req.start_date, req.end_date)
    return session.to_dict()


@app.post("/sessions/{session_id}/tours")
async def advance_to_tours(session_id: str, x_user_id: str = Header(...), services: Services = Depends(get_services)):
    session = _session(services, session_id, x_user_id)
    await session.advance_to_tours()
    return session.to_dict()


@app.post("/sessions/{session_id}/tours/{tour_id}/toggle")
def toggle_tour(
    session_id: str,
    tour_id: str,
    x_user_id: str = Header(...),
    services: Services = Depends(get_services),
):
    session = _session(services, session_id, x_user_id)
    session.toggle_tour(tour_id)
    return session.to_dict()


@app.post("/sessions/{session_id}/back")
def go_back(session_id: str, x_user_id: str = Header(...), services: Services = Depends(get_services)):
    session = _session(services, session_id, x_user_id)
    if session.phase is SelectionPhase.SUMMARIZING:
        session.back_to_tours()
    else:
        session.back_to_selecting()
    return session.to_dict()


@app.post("/sessions/{session_id}/summary")
def summary(session_id: str, x_user_id: str = Header(...), services: Services = Depends(get_services)):
    session = _session(services, session_id, x_user_id)
    session.advance_to_summary()
    return session.to_dict()


@app.post("/sessions/{session_id}/save", status_code=201)
async def save(session_id: str, x_user_id: str = Header(...), services: Services = Depends(get_services)):
    session = _session(services, session_id, x_user_id)
    simulation_id = await session.save()
    return {"id": simulation_id, "session": session.to_dict()}


@app.get("/sessions/{session_id}/places")
async def places(
    session_id: str,
    category: str = "tourist_attraction",
    radius: int = 5000,
    x_user_id: str = Header(...),
    services: Services = Depends(get_services),
):
    session = _session(services, session_id, x_user_id)
    found = await session.points_of_interest(category, radius)
    return {"data": [p.model_dump() for p in found]}


@app.get("/simulations")
async def list_simulations(x_user_id: str = Header(...), services: Services = Depends(get_services)):
    records = await services.store.list(x_user_id)
    return {"data": [services.serializer.to_view(r).model_dump(mode="json") for r in records]}


@app.delete("/simulations/{simulation_id}", status_code=204)
async def delete_simulation(
    simulation_id: str,
    x_user_id: str = Header(...),
    services: Services = Depends(get_services),
):
    await services.store.delete(simulation_id, x_user_id)
