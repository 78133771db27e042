import random
from decimal import Decimal

import pytest

from conftest import CAXIAS, NITEROI, RIO, FixedPricing
from models.errors import AirportNotFound, NoResultsFound
from models.tours import TourCategory
from tools.activities import (
    TOUR_DURATIONS,
    RandomPlaceholderPricing,
    generate_tour,
    generate_tours,
    parse_place,
    parse_places,
    parse_points_of_interest,
)
from tools.airports import city_name, lookup_airport, rank_city_candidates, resolve_airport


def test_parse_place_reads_string_coordinates():
    place = parse_place(RIO)
    assert place.geoname_id == 3451190
    assert place.lat == pytest.approx(-22.90642)
    assert place.display_name == "Rio de Janeiro, Rio de Janeiro"


def test_parse_places_drops_unreadable_entries():
    places = parse_places([RIO, {"name": "no id"}, "junk", NITEROI])
    assert [p.name for p in places] == ["Rio de Janeiro", "Niterói"]


def test_generated_tour_fields_come_from_place():
    tour = generate_tour(parse_place(NITEROI), FixedPricing())

    assert tour.id == "3456160"
    assert tour.name == "Tour in Niterói"
    assert "Niterói" in tour.meeting_point
    assert "Rio de Janeiro" in tour.description
    assert tour.price_per_person.amount == Decimal("80.00")
    assert tour.synthetic is True
    assert len(tour.included_items) == 5


def test_random_pricing_stays_in_range():
    pricing = RandomPlaceholderPricing(rng=random.Random(7))
    place = parse_place(RIO)
    for _ in range(50):
        tour = generate_tour(place, pricing)
        assert Decimal("50") <= tour.price_per_person.amount <= Decimal("300")
        assert Decimal("3.0") <= tour.rating_score <= Decimal("5.0")
        assert tour.duration_label in TOUR_DURATIONS
        assert tour.category in set(TourCategory)


def test_seeded_pricing_is_reproducible():
    place = parse_place(CAXIAS)
    first = generate_tour(place, RandomPlaceholderPricing(rng=random.Random(42)))
    second = generate_tour(place, RandomPlaceholderPricing(rng=random.Random(42)))
    assert first == second


def test_main_place_comes_first_and_is_not_repeated():
    main = parse_place(RIO)
    nearby = parse_places([RIO, NITEROI, CAXIAS])
    tours = generate_tours(nearby, FixedPricing(), main_place=main)
    assert [t.id for t in tours] == ["3451190", "3456160", "3464305"]


def test_tours_are_capped():
    nearby = parse_places([dict(NITEROI, geonameId=i) for i in range(30)])
    assert len(generate_tours(nearby, FixedPricing(), limit=20)) == 20


def test_no_places_is_no_results():
    with pytest.raises(NoResultsFound) as exc_info:
        generate_tours([], FixedPricing())
    assert exc_info.value.slot == "tours"


def test_parse_points_of_interest():
    raw = [
        {
            "place_id": "abc",
            "name": "Museu do Amanhã",
            "types": ["museum", "point_of_interest"],
            "rating": 4.7,
            "user_ratings_total": 51234,
            "vicinity": "Praça Mauá, 1",
            "geometry": {"location": {"lat": -22.894, "lng": -43.179}},
        },
        {"place_id": "nameless"},
    ]
    points = parse_points_of_interest(raw, "museum")
    assert len(points) == 1
    assert points[0].category == "museum"
    assert points[0].user_ratings_total == 51234


def test_city_name_splits_on_first_comma():
    assert city_name("Rio de Janeiro, RJ") == "Rio de Janeiro"
    assert city_name("  Salvador ") == "Salvador"


def test_airport_lookup():
    assert lookup_airport("São Paulo, SP") == "GRU"
    assert resolve_airport("Rio de Janeiro, Rio de Janeiro") == "GIG"
    assert lookup_airport("Campinas") is None


def test_unknown_city_raises_airport_not_found():
    with pytest.raises(AirportNotFound):
        resolve_airport("Campinas, SP")


def test_rank_city_candidates():
    small = dict(NITEROI, geonameId=1, name="Vila Pequena", population=900)
    cities = rank_city_candidates([NITEROI, small, RIO])

    assert [c.name for c in cities] == ["Rio de Janeiro", "Niterói"]
    assert cities[0].iata == "GIG"
    assert cities[1].iata is None
