import asyncio
import json
from datetime import datetime, timezone

import httpx
import pytest

from conftest import END, START, NITEROI, RIO, hotels_payload
from models.common import PartySize
from models.errors import (
    AuthenticationFailure,
    InvalidSearchParameters,
    NoResultsFound,
    OwnershipViolation,
    PersistenceFailure,
    ProviderUnavailable,
    RateLimited,
    UnknownOption,
)
from models.flights import FlightSearchRequest
from models.hotels import HotelSearchRequest
from models.simulation import PersistedSimulation
from services.geonames import GeoNamesPlacesProvider
from services.google_places import GooglePlacesProvider
from services.provider_client import ProviderClient
from services.rapidapi_hotels import RapidApiHotelProvider
from services.serpapi_flights import SerpApiFlightProvider
from services.simulation_store import InMemorySimulationStore, SupabaseSimulationStore


def run(coro):
    return asyncio.run(coro)


def client_for(handler, name="test") -> ProviderClient:
    return ProviderClient("https://provider.test", name=name, transport=httpx.MockTransport(handler))


def record(owner_id="user-1", **overrides) -> PersistedSimulation:
    data = dict(
        owner_id=owner_id,
        destination="Rio de Janeiro, RJ",
        start_date=START,
        end_date=END,
        adults=2,
        total_cost="1550.00",
    )
    data.update(overrides)
    return PersistedSimulation(**data)


@pytest.mark.parametrize(
    "status,error",
    [
        (401, AuthenticationFailure),
        (403, AuthenticationFailure),
        (429, RateLimited),
        (400, InvalidSearchParameters),
        (500, ProviderUnavailable),
        (503, ProviderUnavailable),
    ],
)
def test_status_codes_map_to_errors(status, error):
    client = client_for(lambda request: httpx.Response(status, json={"message": "nope"}))
    with pytest.raises(error):
        run(client.get("/anything"))


def test_transport_error_is_provider_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderUnavailable):
        run(client_for(handler).get("/anything"))


def test_non_json_body_is_provider_unavailable():
    client = client_for(lambda request: httpx.Response(200, text="<html>oops</html>"))
    with pytest.raises(ProviderUnavailable):
        run(client.get("/anything"))


def test_flight_provider_posts_search_body():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"best_flights": []})

    provider = SerpApiFlightProvider(client_for(handler))
    request = FlightSearchRequest(
        origin_code="GRU",
        destination_code="GIG",
        departure_date=START,
        party=PartySize(adults=2, children=1),
    )
    payload = run(provider.search_flights(request))

    assert payload == {"best_flights": []}
    assert seen["path"] == "/functions/v1/search-flights"
    assert seen["body"]["departure_id"] == "GRU"
    assert seen["body"]["arrival_id"] == "GIG"
    assert seen["body"]["outbound_date"] == "2025-06-01"
    assert seen["body"]["flight_type"] == "one_way"
    assert seen["body"]["adults"] == 2


def test_hotel_provider_resolves_region_then_lists():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        if request.url.path == "/locations/v3/search":
            assert request.url.params["q"] == "Rio de Janeiro"
            return httpx.Response(200, json={"sr": [{"gaiaId": "2402"}]})
        body = json.loads(request.content)
        assert body["destination"] == {"regionId": "2402"}
        assert body["checkInDate"] == {"day": 1, "month": 6, "year": 2025}
        assert body["rooms"][0]["children"] == [{"age": 7}]
        assert body["filters"] == {"price": {"min": 100, "max": 5000}}
        return httpx.Response(200, json=hotels_payload())

    provider = RapidApiHotelProvider(client_for(handler))
    request = HotelSearchRequest(
        city_name="Rio de Janeiro",
        checkin_date=START,
        checkout_date=END,
        party=PartySize(adults=2, children=1),
    )
    payload = run(provider.search_hotels(request))

    assert calls == ["/locations/v3/search", "/properties/v2/list"]
    assert len(payload["data"]["propertySearch"]["properties"]) == 2


def test_hotel_provider_unknown_city_is_no_results():
    provider = RapidApiHotelProvider(client_for(lambda request: httpx.Response(200, json={"sr": []})))
    request = HotelSearchRequest(city_name="Atlantis", checkin_date=START, checkout_date=END)
    with pytest.raises(NoResultsFound):
        run(provider.search_hotels(request))


def test_geonames_search_and_nearby():
    def handler(request):
        if request.url.path == "/searchJSON":
            assert request.url.params["q"] == "Rio de Janeiro"
            assert request.url.params["country"] == "BR"
            return httpx.Response(200, json={"geonames": [RIO]})
        assert request.url.params["radius"] == "30"
        return httpx.Response(200, json={"geonames": [RIO, NITEROI]})

    provider = GeoNamesPlacesProvider(client_for(handler), username="demo")

    assert run(provider.geocode_city("Rio de Janeiro, RJ")) == [RIO]
    assert len(run(provider.find_nearby_places(-22.9, -43.2, 30, 20))) == 2


def test_geonames_status_body_is_an_error():
    body = {"status": {"message": "user account not enabled to use the free webservice", "value": 10}}
    provider = GeoNamesPlacesProvider(client_for(lambda request: httpx.Response(200, json=body)), username="x")
    with pytest.raises(AuthenticationFailure):
        run(provider.geocode_city("Rio"))


def test_google_places_statuses():
    provider = GooglePlacesProvider(
        client_for(lambda request: httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []})),
        api_key="k",
    )
    assert run(provider.search_places(-22.9, -43.2, "museum", 5000)) == []

    provider = GooglePlacesProvider(
        client_for(lambda request: httpx.Response(200, json={"status": "OVER_QUERY_LIMIT"})),
        api_key="k",
    )
    with pytest.raises(RateLimited):
        run(provider.search_places(-22.9, -43.2, "museum", 5000))


def test_supabase_store_save_returns_id():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        seen["prefer"] = request.headers.get("Prefer")
        return httpx.Response(201, json=[dict(seen["body"], id=42)])

    store = SupabaseSimulationStore(client_for(handler))
    saved_id = run(store.save(record()))

    assert saved_id == "42"
    assert seen["body"]["user_id"] == "user-1"
    assert seen["body"]["total_cost"] == 1550.0
    assert "selected_activities" in seen["body"]
    assert seen["prefer"] == "return=representation"


def test_supabase_store_failure_is_persistence_failure():
    store = SupabaseSimulationStore(client_for(lambda request: httpx.Response(500, json={})))
    with pytest.raises(PersistenceFailure):
        run(store.save(record()))


def test_supabase_store_lists_owner_rows():
    rows = [
        {
            "id": 7,
            "user_id": "user-1",
            "created_at": "2025-05-20T10:00:00+00:00",
            "destination": "Rio de Janeiro, RJ",
            "start_date": "2025-06-01",
            "end_date": "2025-06-04",
            "adults": 1,
            "children": 0,
            "selected_flight": {"airline": "LATAM", "price": 450},
            "selected_hotel": None,
            "selected_activities": [{"id": "t1", "price": 120}],
            "total_cost": 570,
        },
        {"id": 8, "user_id": "user-1", "start_date": "garbage"},
    ]

    def handler(request):
        assert request.url.params["user_id"] == "eq.user-1"
        assert request.url.params["order"] == "created_at.desc"
        return httpx.Response(200, json=rows)

    records = run(SupabaseSimulationStore(client_for(handler)).list("user-1"))

    assert [r.id for r in records] == ["7"]
    assert records[0].selected_tours == [{"id": "t1", "price": 120}]


def test_supabase_store_delete_filters_by_owner():
    def handler(request):
        assert request.method == "DELETE"
        assert request.url.params["user_id"] == "eq.user-2"
        return httpx.Response(200, json=[])

    with pytest.raises(UnknownOption):
        run(SupabaseSimulationStore(client_for(handler)).delete("7", "user-2"))


def test_in_memory_store_lists_newest_first_and_guards_owner():
    store = InMemorySimulationStore()
    older = run(store.save(record(created_at=datetime(2025, 5, 1, tzinfo=timezone.utc))))
    newer = run(store.save(record(created_at=datetime(2025, 5, 2, tzinfo=timezone.utc))))
    run(store.save(record(owner_id="user-2")))

    assert [r.id for r in run(store.list("user-1"))] == [newer, older]

    with pytest.raises(OwnershipViolation):
        run(store.delete(older, "user-2"))
    run(store.delete(older, "user-1"))
    assert [r.id for r in run(store.list("user-1"))] == [newer]
