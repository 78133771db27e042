from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from models.common import PartySize
from models.flights import FlightOption
from models.hotels import HotelOption
from models.tours import TourOption


class SelectionPhase(str, Enum):
    EMPTY = "empty"
    SEARCHING = "searching"
    SELECTING = "selecting"
    TOURING = "touring_selection"
    SUMMARIZING = "summarizing"
    PERSISTED = "persisted"


class SearchStatus(str, Enum):
    NOT_SEARCHED = "not_searched"
    LOADING = "loading"
    OK = "ok"
    NO_RESULTS = "no_results"
    FAILED = "failed"


class SearchOutcome(BaseModel):
    """
    Result of one search slot (flights, hotels or tours).

    An empty list with NO_RESULTS is a valid answer and renders differently
    from FAILED, which carries the provider's error.
    """
    status: SearchStatus = SearchStatus.NOT_SEARCHED
    items: List[Any] = Field(default_factory=list)
    message: Optional[str] = None
    error: Optional[str] = None  # error class name for FAILED


class PlaceRef(BaseModel):
    """A place picked by the user: what they saw plus what providers need."""

    name: str
    admin_name: str = ""
    place_id: Optional[Union[int, str]] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    iata: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"{self.name}, {self.admin_name}" if self.admin_name else self.name

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None


class CostBreakdown(BaseModel):
    """Itemized trip cost; every subtotal is exposed for the summary screen."""

    flight: Decimal = Decimal("0.00")
    hotel_per_night: Decimal = Decimal("0.00")
    nights: int = 0
    hotel: Decimal = Decimal("0.00")
    tours: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")
    currency: str = "BRL"


class TripSelection(BaseModel):
    """
    The in-progress choices of one simulation, owned by a SimulationSession.

    Chosen tours are keyed by id: selecting the same tour twice removes it.
    """
    origin: PlaceRef
    destination: PlaceRef
    start_date: date
    end_date: date
    party: PartySize = Field(default_factory=PartySize)

    chosen_flight: Optional[FlightOption] = None
    chosen_hotel: Optional[HotelOption] = None
    chosen_tours: Dict[str, TourOption] = Field(default_factory=dict)

    def toggle_tour(self, tour: TourOption) -> bool:
        """Flip membership of ``tour``. Returns True when it is now selected."""
        if tour.id in self.chosen_tours:
            del self.chosen_tours[tour.id]
            return False
        self.chosen_tours[tour.id] = tour
        return True

    @property
    def tours(self) -> List[TourOption]:
        return list(self.chosen_tours.values())

    @property
    def tour_ids(self) -> List[str]:
        return list(self.chosen_tours.keys())
