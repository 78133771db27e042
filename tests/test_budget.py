from datetime import date
from decimal import Decimal

import pytest

from conftest import END, START
from models.common import Money
from models.errors import InvalidDateRange
from models.flights import FlightOption
from models.hotels import HotelOption
from models.state import PlaceRef, TripSelection
from models.tours import TourCategory, TourOption
from tools.budget import aggregate_cost, compute_cost, count_nights


def flight(amount) -> FlightOption:
    return FlightOption(id="F1", price=Money(amount=amount, currency="BRL"))


def hotel(amount) -> HotelOption:
    return HotelOption(id="H1", name="Hotel", price_per_night=Money(amount=amount, currency="BRL"))


def tour(tour_id: str, amount) -> TourOption:
    return TourOption(
        id=tour_id,
        name=f"Tour {tour_id}",
        description="",
        price_per_person=Money(amount=amount, currency="BRL"),
        rating_score=Decimal("4.0"),
        duration_label="2-3 hours",
        category=TourCategory.NATURE,
        meeting_point="Centre",
    )


def test_count_nights():
    assert count_nights(START, END) == 3


@pytest.mark.parametrize("end", [START, date(2025, 5, 30)])
def test_non_positive_nights_is_invalid(end):
    with pytest.raises(InvalidDateRange):
        count_nights(START, end)


def test_itemized_total():
    cost = aggregate_cost(START, END, flight(450), hotel(300), [tour("a", 120), tour("b", 80)])

    assert cost.flight == Decimal("450.00")
    assert cost.hotel_per_night == Decimal("300.00")
    assert cost.nights == 3
    assert cost.hotel == Decimal("900.00")
    assert cost.tours == Decimal("200.00")
    assert cost.total == Decimal("1550.00")


def test_absent_components_count_as_zero():
    cost = aggregate_cost(START, END, flight=flight(450))
    assert cost.hotel == Decimal("0.00")
    assert cost.tours == Decimal("0.00")
    assert cost.total == Decimal("450.00")


def test_decimal_sums_are_exact():
    cost = aggregate_cost(START, END, tours=[tour("a", 0.1), tour("b", 0.2)])
    assert cost.tours == Decimal("0.30")


def test_invalid_dates_raise_instead_of_pricing():
    with pytest.raises(InvalidDateRange):
        aggregate_cost(END, START, flight(450), hotel(300))


def test_toggle_round_trip_restores_cost():
    selection = TripSelection(
        origin=PlaceRef(name="São Paulo"),
        destination=PlaceRef(name="Rio de Janeiro"),
        start_date=START,
        end_date=END,
        chosen_flight=flight(450),
        chosen_hotel=hotel(300),
    )
    before = compute_cost(selection)

    assert selection.toggle_tour(tour("a", 120)) is True
    assert compute_cost(selection).total == Decimal("1470.00")
    assert selection.toggle_tour(tour("a", 120)) is False
    assert compute_cost(selection) == before
