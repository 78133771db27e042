from datetime import date
from typing import Dict, FrozenSet, List, Optional

from models.common import PartySize
from models.errors import IncompleteSelection, InvalidSearchParameters, InvalidTransition
from models.state import PlaceRef, SelectionPhase, TripSelection
from tools.budget import count_nights

P = SelectionPhase

# Phases in which each session action may run
ALLOWED_PHASES: Dict[str, FrozenSet[SelectionPhase]] = {
    "search": frozenset({P.EMPTY, P.SEARCHING, P.SELECTING, P.TOURING}),
    "select_flight": frozenset({P.SELECTING}),
    "select_hotel": frozenset({P.SELECTING}),
    "change_dates": frozenset({P.SELECTING, P.TOURING}),
    "advance_to_tours": frozenset({P.SELECTING}),
    "load_tours": frozenset({P.TOURING}),
    "toggle_tour": frozenset({P.TOURING}),
    "back_to_selecting": frozenset({P.TOURING}),
    "advance_to_summary": frozenset({P.TOURING}),
    "back_to_tours": frozenset({P.SUMMARIZING}),
    "save": frozenset({P.SUMMARIZING}),
}


def require_phase(action: str, phase: SelectionPhase) -> None:
    if phase not in ALLOWED_PHASES[action]:
        raise InvalidTransition(f"Cannot {action.replace('_', ' ')} while {phase.value}.")


def validate_search_params(
    origin: Optional[PlaceRef],
    destination: Optional[PlaceRef],
    start_date: Optional[date],
    end_date: Optional[date],
    party: Optional[PartySize],
) -> int:
    """
    Guard for leaving Empty. Returns the number of nights.

    Raises InvalidSearchParameters for missing fields and InvalidDateRange
    when the return date is not after the departure date.
    """
    missing: List[str] = []
    if origin is None or not origin.name.strip():
        missing.append("origin")
    if destination is None or not destination.name.strip():
        missing.append("destination")
    if start_date is None:
        missing.append("start date")
    if end_date is None:
        missing.append("end date")
    if party is None:
        missing.append("party size")
    if missing:
        raise InvalidSearchParameters("Please fill in: " + ", ".join(missing) + ".")
    return count_nights(start_date, end_date)


def missing_choices(selection: Optional[TripSelection]) -> List[str]:
    if selection is None:
        return ["flight", "hotel"]
    missing = []
    if selection.chosen_flight is None:
        missing.append("flight")
    if selection.chosen_hotel is None:
        missing.append("hotel")
    return missing


def require_flight_and_hotel(selection: Optional[TripSelection]) -> None:
    """Guard for Selecting -> TouringSelection."""
    missing = missing_choices(selection)
    if missing:
        raise IncompleteSelection("Please select a " + " and a ".join(missing) + ".")
