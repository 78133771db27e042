"""
Session-scoped controller for one trip simulation.

Owns the TripSelection and walks it through the phases:

    empty -> searching -> selecting <-> touring_selection <-> summarizing -> persisted

Provider calls are awaited here; selection mutations are synchronous. Every
search slot (flights, hotels, tours) carries a generation token so a slow
earlier response can never overwrite a newer one, and results are only
committed while the session is still in the phase that asked for them.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import date
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Optional

from app.settings import Settings, settings as default_settings
from graph.policies import (
    require_flight_and_hotel,
    require_phase,
    validate_search_params,
)
from models.common import PartySize
from models.errors import (
    InvalidDateRange,
    NoResultsFound,
    PersistenceFailure,
    ProviderUnavailable,
    SimulationError,
    UnknownOption,
)
from models.flights import FlightOption, FlightProvider, FlightSearchRequest
from models.hotels import HotelOption, HotelProvider, HotelSearchRequest
from models.simulation import PersistedSimulation, SimulationStore
from models.state import (
    CostBreakdown,
    PlaceRef,
    SearchOutcome,
    SearchStatus,
    SelectionPhase,
    TripSelection,
)
from models.tours import GeoPlace, PlacesProvider, PointOfInterest, PointsOfInterestProvider, TourOption
from tools.activities import (
    PricingStrategy,
    RandomPlaceholderPricing,
    generate_tours,
    parse_places,
    parse_points_of_interest,
)
from tools.airports import rank_city_candidates, resolve_airport
from tools.budget import compute_cost, count_nights
from tools.flights import normalize_flights
from tools.hotels import normalize_hotels
from tools.serializer import SimulationSerializer

logger = logging.getLogger(__name__)

P = SelectionPhase

SLOTS = ("flights", "hotels", "tours")


def _failed(exc: SimulationError) -> SearchOutcome:
    if isinstance(exc, NoResultsFound):
        return SearchOutcome(status=SearchStatus.NO_RESULTS, message=exc.user_message)
    return SearchOutcome(
        status=SearchStatus.FAILED,
        message=exc.user_message,
        error=type(exc).__name__,
    )


MIN_QUERY_LENGTH = 2


async def search_cities(
    places_provider: PlacesProvider,
    query: str,
    min_population: int = 15000,
) -> List[GeoPlace]:
    """Origin/destination picker candidates: populated cities, largest first."""
    if len((query or "").strip()) < MIN_QUERY_LENGTH:
        return []
    return rank_city_candidates(await places_provider.geocode_city(query.strip()), min_population)


class SimulationSession:
    def __init__(
        self,
        owner_id: str,
        flight_provider: FlightProvider,
        hotel_provider: HotelProvider,
        places_provider: PlacesProvider,
        store: SimulationStore,
        poi_provider: Optional[PointsOfInterestProvider] = None,
        pricing: Optional[PricingStrategy] = None,
        serializer: Optional[SimulationSerializer] = None,
        config: Optional[Settings] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex
        self.owner_id = owner_id
        self.config = config or default_settings
        self.currency = self.config.display_currency

        self.flight_provider = flight_provider
        self.hotel_provider = hotel_provider
        self.places_provider = places_provider
        self.poi_provider = poi_provider
        self.store = store
        self.pricing = pricing or RandomPlaceholderPricing(currency=self.currency)
        self.serializer = serializer or SimulationSerializer(currency=self.currency)

        self.phase: SelectionPhase = P.EMPTY
        self.selection: Optional[TripSelection] = None
        self.cost: Optional[CostBreakdown] = None
        self.last_error: Optional[SimulationError] = None
        self.saved_record: Optional[PersistedSimulation] = None

        self.flights = SearchOutcome()
        self.hotels = SearchOutcome()
        self.tours = SearchOutcome()
        self.nearby_places: List[GeoPlace] = []

        self._generations: Dict[str, int] = {slot: 0 for slot in SLOTS}

    # ------------------------------------------------------------------
    # Generation tokens
    # ------------------------------------------------------------------

    def _next_generation(self, slot: str) -> int:
        self._generations[slot] += 1
        return self._generations[slot]

    def _is_current(self, slot: str, token: int, phases: FrozenSet[SelectionPhase]) -> bool:
        if self._generations[slot] != token:
            logger.info("Discarding stale %s result (generation %d, current %d)", slot, token, self._generations[slot])
            return False
        if self.phase not in phases:
            logger.info("Discarding %s result: session moved on to %s", slot, self.phase.value)
            return False
        return True

    async def _run_slot(self, slot: str, call: Callable[[], Awaitable[List[Any]]]) -> SearchOutcome:
        try:
            items = await call()
        except SimulationError as exc:
            if not isinstance(exc, NoResultsFound):
                logger.warning("%s search failed: %s", slot, exc.user_message)
            return _failed(exc)
        except Exception:  # noqa: BLE001
            logger.exception("%s search crashed", slot)
            return _failed(ProviderUnavailable(slot=slot))
        return SearchOutcome(status=SearchStatus.OK, items=items)

    # ------------------------------------------------------------------
    # Empty / Searching -> Selecting
    # ------------------------------------------------------------------

    async def search(
        self,
        origin: PlaceRef,
        destination: PlaceRef,
        start_date: date,
        end_date: date,
        party: Optional[PartySize] = None,
    ) -> None:
        """
        Start a new trip and search flights and hotels together.

        Validation errors are raised before anything changes. Provider errors
        are recorded per slot; the session reaches Selecting once both slots
        have answered, whatever they answered.
        """
        require_phase("search", self.phase)
        party = party or PartySize()
        validate_search_params(origin, destination, start_date, end_date, party)

        self.selection = TripSelection(
            origin=origin,
            destination=destination,
            start_date=start_date,
            end_date=end_date,
            party=party,
        )
        self.phase = P.SEARCHING
        self.last_error = None
        self.flights = SearchOutcome(status=SearchStatus.LOADING)
        self.hotels = SearchOutcome(status=SearchStatus.LOADING)
        self.tours = SearchOutcome()
        self.nearby_places = []
        self._next_generation("tours")
        self._recompute()

        flight_token = self._next_generation("flights")
        hotel_token = self._next_generation("hotels")
        searching = frozenset({P.SEARCHING})

        async def flights() -> None:
            outcome = await self._run_slot("flights", lambda: self._search_flights(origin, destination, start_date, party))
            if self._is_current("flights", flight_token, searching):
                self.flights = outcome

        async def hotels() -> None:
            outcome = await self._run_slot("hotels", lambda: self._search_hotels(destination, start_date, end_date, party))
            if self._is_current("hotels", hotel_token, searching):
                self.hotels = outcome

        await asyncio.gather(flights(), hotels())

        if (
            self.phase is P.SEARCHING
            and self._generations["flights"] == flight_token
            and self._generations["hotels"] == hotel_token
        ):
            self.phase = P.SELECTING

    async def _search_flights(
        self, origin: PlaceRef, destination: PlaceRef, start_date: date, party: PartySize
    ) -> List[FlightOption]:
        request = FlightSearchRequest(
            origin_code=origin.iata or resolve_airport(origin.name),
            destination_code=destination.iata or resolve_airport(destination.name),
            departure_date=start_date,
            party=party,
            currency=self.currency,
        )
        payload = await self.flight_provider.search_flights(request)
        return normalize_flights(payload, self.currency, self.config.max_flight_results)

    async def _search_hotels(
        self, destination: PlaceRef, start_date: date, end_date: date, party: PartySize
    ) -> List[HotelOption]:
        request = HotelSearchRequest(
            city_name=destination.name,
            checkin_date=start_date,
            checkout_date=end_date,
            party=party,
            currency=self.currency,
        )
        payload = await self.hotel_provider.search_hotels(request)
        return normalize_hotels(
            payload,
            self.currency,
            self.config.max_hotel_results,
            self.config.hotel_placeholder_image,
        )

    # ------------------------------------------------------------------
    # Selecting
    # ------------------------------------------------------------------

    def select_flight(self, flight_id: str) -> Optional[CostBreakdown]:
        require_phase("select_flight", self.phase)
        flight = next((f for f in self.flights.items if f.id == flight_id), None)
        if flight is None:
            raise UnknownOption(f"Flight {flight_id!r} is not in the current results.", slot="flights")
        self.selection.chosen_flight = flight
        return self._recompute()

    def select_hotel(self, hotel_id: str) -> Optional[CostBreakdown]:
        require_phase("select_hotel", self.phase)
        hotel = next((h for h in self.hotels.items if h.id == hotel_id), None)
        if hotel is None:
            raise UnknownOption(f"Hotel {hotel_id!r} is not in the current results.", slot="hotels")
        self.selection.chosen_hotel = hotel
        return self._recompute()

    def change_dates(self, start_date: date, end_date: date) -> Optional[CostBreakdown]:
        """New dates for the stay. Raises InvalidDateRange without changing anything."""
        require_phase("change_dates", self.phase)
        count_nights(start_date, end_date)
        self.selection.start_date = start_date
        self.selection.end_date = end_date
        return self._recompute()

    async def advance_to_tours(self) -> None:
        """
        Selecting -> TouringSelection. Raises IncompleteSelection (state
        untouched) unless both a flight and a hotel are chosen. Tours are
        loaded the first time the step is reached for this trip.
        """
        require_phase("advance_to_tours", self.phase)
        require_flight_and_hotel(self.selection)
        self.phase = P.TOURING
        if self.tours.status in (SearchStatus.NOT_SEARCHED, SearchStatus.FAILED):
            await self.load_tours()

    # ------------------------------------------------------------------
    # TouringSelection
    # ------------------------------------------------------------------

    async def load_tours(self) -> None:
        require_phase("load_tours", self.phase)
        token = self._next_generation("tours")
        self.tours = SearchOutcome(status=SearchStatus.LOADING)
        destination = self.selection.destination
        places: List[GeoPlace] = []

        async def generate() -> List[TourOption]:
            main_place, nearby = await self._find_tour_places(destination)
            places.extend(nearby)
            return generate_tours(nearby, self.pricing, main_place=main_place, limit=self.config.max_nearby_places)

        outcome = await self._run_slot("tours", generate)
        if self._is_current("tours", token, frozenset({P.TOURING})):
            self.tours = outcome
            self.nearby_places = places
        elif self._generations["tours"] == token:
            # user left the step mid-load; the next visit loads again
            self.tours = SearchOutcome()

    async def _find_tour_places(self, destination: PlaceRef):
        main_place: Optional[GeoPlace] = None
        if destination.has_coordinates:
            lat, lng = destination.lat, destination.lng
        else:
            candidates = parse_places(await self.places_provider.geocode_city(destination.name))
            if not candidates:
                raise NoResultsFound(f"Destination not found: {destination.name}.", slot="tours")
            main_place = candidates[0]
            lat, lng = main_place.lat, main_place.lng

        raw_nearby = await self.places_provider.find_nearby_places(
            lat, lng, self.config.nearby_radius_km, self.config.max_nearby_places
        )
        return main_place, parse_places(raw_nearby)

    def toggle_tour(self, tour_id: str) -> Optional[CostBreakdown]:
        """Add the tour if absent, remove it if present, and reprice."""
        require_phase("toggle_tour", self.phase)
        tour = next((t for t in self.tours.items if t.id == tour_id), None)
        if tour is None:
            tour = self.selection.chosen_tours.get(tour_id)
        if tour is None:
            raise UnknownOption(f"Tour {tour_id!r} is not available.", slot="tours")
        self.selection.toggle_tour(tour)
        return self._recompute()

    def back_to_selecting(self) -> None:
        """Chosen tours are kept when the user goes back to change flight or hotel."""
        require_phase("back_to_selecting", self.phase)
        self.phase = P.SELECTING

    def advance_to_summary(self) -> CostBreakdown:
        require_phase("advance_to_summary", self.phase)
        require_flight_and_hotel(self.selection)
        cost = compute_cost(self.selection, self.currency)
        self.cost = cost
        self.phase = P.SUMMARIZING
        return cost

    # ------------------------------------------------------------------
    # Summarizing -> Persisted
    # ------------------------------------------------------------------

    def back_to_tours(self) -> None:
        require_phase("back_to_tours", self.phase)
        self.phase = P.TOURING

    async def save(self) -> str:
        """
        Persist the selection. On PersistenceFailure the session stays on the
        summary with its cost intact and the error recorded for a retry.
        """
        require_phase("save", self.phase)
        record = self.serializer.to_record(self.selection, self.owner_id)
        try:
            record.id = await self.store.save(record)
        except PersistenceFailure as exc:
            logger.error("Saving simulation for %s failed: %s", self.owner_id, exc.user_message)
            self.last_error = exc
            raise

        self.saved_record = record
        self.last_error = None
        self.selection = None
        self.phase = P.PERSISTED
        return record.id

    def discard(self) -> None:
        """Leave the flow without saving. In-flight results will be ignored."""
        for slot in SLOTS:
            self._next_generation(slot)
        self.phase = P.EMPTY
        self.selection = None
        self.cost = None
        self.last_error = None
        self.flights = SearchOutcome()
        self.hotels = SearchOutcome()
        self.tours = SearchOutcome()
        self.nearby_places = []

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _recompute(self) -> Optional[CostBreakdown]:
        if self.selection is None:
            self.cost = None
            return None
        try:
            self.cost = compute_cost(self.selection, self.currency)
        except InvalidDateRange as exc:
            self.cost = None
            self.last_error = exc
        return self.cost

    async def points_of_interest(self, category: str, radius_m: int = 5000) -> List[PointOfInterest]:
        """Category search around the destination (needs its coordinates)."""
        if self.poi_provider is None or self.selection is None:
            return []
        destination = self.selection.destination
        if not destination.has_coordinates:
            return []
        raw = await self.poi_provider.search_places(destination.lat, destination.lng, category, radius_m)
        return parse_points_of_interest(raw, category)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "phase": self.phase.value,
            "selection": self.selection.model_dump(mode="json") if self.selection else None,
            "flights": self.flights.model_dump(mode="json"),
            "hotels": self.hotels.model_dump(mode="json"),
            "tours": self.tours.model_dump(mode="json"),
            "nearby_places": [p.model_dump(mode="json") for p in self.nearby_places],
            "cost": self.cost.model_dump(mode="json") if self.cost else None,
            "saved_id": self.saved_record.id if self.saved_record else None,
            "error": (
                {"error": type(self.last_error).__name__, "detail": self.last_error.user_message}
                if self.last_error
                else None
            ),
        }
