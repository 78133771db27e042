"""
Trip cost helpers
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from models.errors import InvalidDateRange
from models.flights import FlightOption
from models.hotels import HotelOption
from models.state import CostBreakdown, TripSelection
from models.tours import TourOption

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def count_nights(start_date: date, end_date: date) -> int:
    """Whole days between the dates. Raises InvalidDateRange unless end > start."""
    if start_date is None or end_date is None:
        raise InvalidDateRange("Both travel dates are required.")
    nights = (end_date - start_date).days
    if nights <= 0:
        raise InvalidDateRange(
            f"The return date ({end_date.isoformat()}) must be after the departure date "
            f"({start_date.isoformat()})."
        )
    return nights


def _check_currency(label: str, currency: str, expected: str) -> None:
    if currency != expected:
        logger.warning("%s priced in %s, summed as %s", label, currency, expected)


def aggregate_cost(
    start_date: date,
    end_date: date,
    flight: Optional[FlightOption] = None,
    hotel: Optional[HotelOption] = None,
    tours: Iterable[TourOption] = (),
    currency: str = "BRL",
) -> CostBreakdown:
    """
    total = flight price + hotel nightly price x nights + sum of tour prices

    Absent components count as zero. Tours count their per-person price once.
    """
    nights = count_nights(start_date, end_date)

    flight_cost = ZERO
    if flight is not None:
        _check_currency("flight", flight.price.currency, currency)
        flight_cost = flight.price.amount

    per_night = ZERO
    if hotel is not None:
        _check_currency("hotel", hotel.price_per_night.currency, currency)
        per_night = hotel.price_per_night.amount
    hotel_cost = per_night * nights

    tours_cost = ZERO
    for tour in tours:
        _check_currency("tour", tour.price_per_person.currency, currency)
        tours_cost += tour.price_per_person.amount

    return CostBreakdown(
        flight=flight_cost,
        hotel_per_night=per_night,
        nights=nights,
        hotel=hotel_cost,
        tours=tours_cost,
        total=flight_cost + hotel_cost + tours_cost,
        currency=currency,
    )


def compute_cost(selection: TripSelection, currency: str = "BRL") -> CostBreakdown:
    """Cost of the current selection. Raises InvalidDateRange."""
    return aggregate_cost(
        selection.start_date,
        selection.end_date,
        flight=selection.chosen_flight,
        hotel=selection.chosen_hotel,
        tours=selection.tours,
        currency=currency,
    )
