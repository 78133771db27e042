"""
Simulation serializer.

Maps a TripSelection (or a loose selection mapping) to the durable
PersistedSimulation record and back to a SimulationView for redisplay.

Selection mappings come in two key conventions: the snake_case one the
storage schema uses (``selected_flight``, ``start_date``) and a camelCase one
(``selectedFlight``, ``startDate``). FieldNamingAdapter is the only place that
knows about both.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from models.common import Money, NOT_AVAILABLE, parse_amount
from models.errors import InvalidDateRange, InvalidSearchParameters, NormalizationFailure
from models.flights import FlightOption
from models.hotels import HotelOption
from models.simulation import PersistedSimulation, SimulationView
from models.state import CostBreakdown, TripSelection
from models.tours import TourCategory, TourOption
from tools.budget import aggregate_cost
from tools.flights import normalize_flight
from tools.hotels import DEFAULT_HOTEL_IMAGE

logger = logging.getLogger(__name__)

# Canonical field -> keys to try, in order of preference
FIELD_ALIASES: Dict[str, Sequence[str]] = {
    "id": ("id",),
    "owner_id": ("user_id", "owner_id", "ownerId", "userId"),
    "created_at": ("created_at", "createdAt"),
    "destination": ("destination",),
    "start_date": ("start_date", "startDate"),
    "end_date": ("end_date", "endDate"),
    "adults": ("adults",),
    "children": ("children",),
    "selected_flight": ("selected_flight", "selectedFlight"),
    "selected_hotel": ("selected_hotel", "selectedHotel"),
    "selected_tours": ("selected_tours", "selected_activities", "selectedTours"),
    "total_cost": ("total_cost", "totalCost"),
}


class FieldNamingAdapter:
    """Reads a logical field from a mapping in either naming convention."""

    def __init__(self, aliases: Optional[Mapping[str, Sequence[str]]] = None) -> None:
        self.aliases = dict(aliases or FIELD_ALIASES)

    def get(self, raw: Mapping[str, Any], field: str, default: Any = None) -> Any:
        for key in self.aliases.get(field, (field,)):
            value = raw.get(key)
            if value is not None:
                return value
        return default

    def canonical(self, raw: Mapping[str, Any]) -> Dict[str, Any]:
        return {field: self.get(raw, field) for field in self.aliases}


# ---------------------------------------------------------------------------
# Snapshots (entity -> JSON-ready dict)
# ---------------------------------------------------------------------------


def _money_json(money: Money) -> Dict[str, Any]:
    return {"amount": float(money.amount), "currency": money.currency}


def flight_snapshot(flight: FlightOption) -> Dict[str, Any]:
    return {
        "id": flight.id,
        "price": _money_json(flight.price),
        "segments": [segment.model_dump() for segment in flight.segments],
    }


def hotel_snapshot(hotel: HotelOption) -> Dict[str, Any]:
    return {
        "id": hotel.id,
        "name": hotel.name,
        "rating": float(hotel.rating_score),
        "price": _money_json(hotel.price_per_night),
        "address": hotel.address,
        "description": hotel.description,
        "amenities": list(hotel.amenities),
        "images": list(hotel.images),
    }


def tour_snapshot(tour: TourOption) -> Dict[str, Any]:
    return {
        "id": tour.id,
        "name": tour.name,
        "description": tour.description,
        "price": _money_json(tour.price_per_person),
        "rating": float(tour.rating_score),
        "duration": tour.duration_label,
        "category": tour.category.value,
        "included": list(tour.included_items),
        "meeting_point": tour.meeting_point,
        "photo": tour.photo_url,
        "booking_type": tour.booking_type,
        "synthetic": tour.synthetic,
    }


# ---------------------------------------------------------------------------
# Snapshot readers (dict -> entity), tolerant of older shapes
# ---------------------------------------------------------------------------


def _money_from(raw: Any, currency: str) -> Money:
    if isinstance(raw, Mapping):
        return Money(amount=parse_amount(raw.get("amount")), currency=raw.get("currency") or currency)
    return Money(amount=parse_amount(raw), currency=currency)


def flight_from_snapshot(raw: Any, currency: str = "BRL") -> Optional[FlightOption]:
    """
    A flat ``{"airline", "price"}`` record becomes a single-segment flight;
    anything unreadable becomes None.
    """
    if not raw:
        return None
    try:
        return normalize_flight(raw, currency)
    except NormalizationFailure as exc:
        logger.warning("Unreadable flight snapshot: %s", exc.user_message)
        return None


def hotel_from_snapshot(raw: Any, currency: str = "BRL") -> Optional[HotelOption]:
    if not isinstance(raw, Mapping) or not raw:
        return None
    images = raw.get("images") or ([raw["image"]] if raw.get("image") else [DEFAULT_HOTEL_IMAGE])
    try:
        return HotelOption(
            id=str(raw.get("id") or NOT_AVAILABLE),
            name=str(raw.get("name") or NOT_AVAILABLE),
            rating_score=parse_amount(raw.get("rating", raw.get("rating_score"))),
            price_per_night=_money_from(raw.get("price", raw.get("price_per_night")), currency),
            address=str(raw.get("address") or ""),
            description=str(raw.get("description") or ""),
            amenities=[str(a) for a in raw.get("amenities") or []],
            images=[str(i) for i in images],
        )
    except (TypeError, ValueError) as exc:
        logger.warning("Unreadable hotel snapshot: %s", exc)
        return None


def _category(raw: Any) -> TourCategory:
    try:
        return TourCategory(raw)
    except ValueError:
        return TourCategory.CULTURAL


def tour_from_snapshot(raw: Any, currency: str = "BRL") -> Optional[TourOption]:
    if not isinstance(raw, Mapping) or raw.get("id") is None:
        return None
    try:
        return TourOption(
            id=str(raw["id"]),
            name=str(raw.get("name") or NOT_AVAILABLE),
            description=str(raw.get("description") or ""),
            price_per_person=_money_from(raw.get("price", raw.get("price_per_person")), currency),
            rating_score=parse_amount(raw.get("rating", raw.get("rating_score"))),
            duration_label=str(raw.get("duration") or raw.get("duration_label") or NOT_AVAILABLE),
            category=_category(raw.get("category")),
            included_items=[str(i) for i in raw.get("included") or raw.get("included_items") or []],
            meeting_point=str(raw.get("meeting_point") or NOT_AVAILABLE),
            photo_url=raw.get("photo") or raw.get("photo_url"),
            booking_type=str(raw.get("booking_type") or "Instant confirmation"),
            synthetic=bool(raw.get("synthetic", True)),
        )
    except (TypeError, ValueError) as exc:
        logger.warning("Unreadable tour snapshot: %s", exc)
        return None


def tours_from_snapshot(raw: Any, currency: str = "BRL") -> List[TourOption]:
    tours: List[TourOption] = []
    seen = set()
    for item in raw or []:
        tour = tour_from_snapshot(item, currency)
        if tour is not None and tour.id not in seen:
            seen.add(tour.id)
            tours.append(tour)
    return tours


def parse_date(value: Any, field: str) -> date:
    """Accepts dates, datetimes, 'YYYY-MM-DD' and full ISO timestamps."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and len(value) >= 10:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            pass
    raise InvalidSearchParameters(f"Invalid or missing {field.replace('_', ' ')}: {value!r}")


# ---------------------------------------------------------------------------
# Serializer
# ---------------------------------------------------------------------------


class SimulationSerializer:
    """
    TripSelection <-> PersistedSimulation <-> SimulationView.

    The persisted total is always re-derived from the persisted line items,
    never taken from the caller.
    """

    def __init__(self, currency: str = "BRL", adapter: Optional[FieldNamingAdapter] = None) -> None:
        self.currency = currency
        self.adapter = adapter or FieldNamingAdapter()

    # -- save path ---------------------------------------------------------

    def to_record(
        self,
        selection: TripSelection,
        owner_id: str,
        record_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> PersistedSimulation:
        """Raises InvalidDateRange when the dates cannot be priced."""
        cost = aggregate_cost(
            selection.start_date,
            selection.end_date,
            flight=selection.chosen_flight,
            hotel=selection.chosen_hotel,
            tours=selection.tours,
            currency=self.currency,
        )
        return PersistedSimulation(
            id=record_id,
            owner_id=owner_id,
            created_at=created_at,
            destination=selection.destination.display_name,
            start_date=selection.start_date,
            end_date=selection.end_date,
            adults=selection.party.adults,
            children=selection.party.children,
            selected_flight=flight_snapshot(selection.chosen_flight) if selection.chosen_flight else None,
            selected_hotel=hotel_snapshot(selection.chosen_hotel) if selection.chosen_hotel else None,
            selected_tours=[tour_snapshot(t) for t in selection.tours],
            total_cost=cost.total,
        )

    def record_from_mapping(self, raw: Mapping[str, Any], owner_id: Optional[str] = None) -> PersistedSimulation:
        """
        Build a record from a selection mapping in either naming convention.

        Entities are re-read and re-snapshotted so the stored record always
        uses one shape; any total in ``raw`` is ignored.
        """
        get = self.adapter.get
        start_date = parse_date(get(raw, "start_date"), "start_date")
        end_date = parse_date(get(raw, "end_date"), "end_date")
        flight = flight_from_snapshot(get(raw, "selected_flight"), self.currency)
        hotel = hotel_from_snapshot(get(raw, "selected_hotel"), self.currency)
        tours = tours_from_snapshot(get(raw, "selected_tours"), self.currency)
        cost = aggregate_cost(start_date, end_date, flight, hotel, tours, self.currency)

        owner = owner_id or get(raw, "owner_id")
        if not owner:
            raise InvalidSearchParameters("A simulation needs an owner.")
        destination = get(raw, "destination")
        if not destination:
            raise InvalidSearchParameters("A simulation needs a destination.")

        return PersistedSimulation(
            id=get(raw, "id"),
            owner_id=str(owner),
            created_at=get(raw, "created_at"),
            destination=str(destination),
            start_date=start_date,
            end_date=end_date,
            adults=int(get(raw, "adults", 1)),
            children=int(get(raw, "children", 0)),
            selected_flight=flight_snapshot(flight) if flight else None,
            selected_hotel=hotel_snapshot(hotel) if hotel else None,
            selected_tours=[tour_snapshot(t) for t in tours],
            total_cost=cost.total,
        )

    # -- load path ---------------------------------------------------------

    def to_view(self, record: PersistedSimulation) -> SimulationView:
        """Rebuild a record for display. Missing parts show as 'none selected'."""
        flight = flight_from_snapshot(record.selected_flight, self.currency)
        hotel = hotel_from_snapshot(record.selected_hotel, self.currency)
        tours = tours_from_snapshot(record.selected_tours, self.currency)
        try:
            cost = aggregate_cost(record.start_date, record.end_date, flight, hotel, tours, self.currency)
        except InvalidDateRange:
            logger.warning("Simulation %s has an invalid date range; showing stored total", record.id)
            cost = CostBreakdown(
                flight=flight.price.amount if flight else Decimal("0.00"),
                tours=sum((t.price_per_person.amount for t in tours), Decimal("0.00")),
                total=record.total_cost,
                currency=self.currency,
            )
        return SimulationView(
            id=record.id,
            destination=record.destination,
            start_date=record.start_date,
            end_date=record.end_date,
            adults=record.adults,
            children=record.children,
            flight=flight,
            hotel=hotel,
            tours=tours,
            cost=cost,
        )

    def view_from_mapping(self, raw: Mapping[str, Any], owner_id: Optional[str] = None) -> SimulationView:
        return self.to_view(self.record_from_mapping(raw, owner_id))

    # -- storage rows ------------------------------------------------------

    def to_row(self, record: PersistedSimulation) -> Dict[str, Any]:
        """Column layout of the ``simulations`` table."""
        row: Dict[str, Any] = {
            "user_id": record.owner_id,
            "destination": record.destination,
            "start_date": record.start_date.isoformat(),
            "end_date": record.end_date.isoformat(),
            "adults": record.adults,
            "children": record.children,
            "selected_flight": record.selected_flight,
            "selected_hotel": record.selected_hotel,
            "selected_activities": record.selected_tours,
            "total_cost": float(record.total_cost),
        }
        if record.id:
            row["id"] = record.id
        if record.created_at:
            row["created_at"] = record.created_at.isoformat()
        return row

    def from_row(self, row: Mapping[str, Any]) -> PersistedSimulation:
        """A stored row as-is (stored total kept); either convention accepted."""
        get = self.adapter.get
        return PersistedSimulation(
            id=str(get(row, "id")) if get(row, "id") is not None else None,
            owner_id=str(get(row, "owner_id")),
            created_at=get(row, "created_at"),
            destination=str(get(row, "destination", "")),
            start_date=parse_date(get(row, "start_date"), "start_date"),
            end_date=parse_date(get(row, "end_date"), "end_date"),
            adults=int(get(row, "adults", 1)),
            children=int(get(row, "children", 0)),
            selected_flight=get(row, "selected_flight"),
            selected_hotel=get(row, "selected_hotel"),
            selected_tours=list(get(row, "selected_tours", []) or []),
            total_cost=get(row, "total_cost", 0),
        )
