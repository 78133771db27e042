from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Optional

from models.errors import NoResultsFound
from models.hotels import HotelProvider, HotelSearchRequest
from services.provider_client import ProviderClient

logger = logging.getLogger(__name__)

# Age sent for every child in the room request
CHILD_AGE = 7


def _date_parts(value: date) -> Dict[str, int]:
    return {"day": value.day, "month": value.month, "year": value.year}


class RapidApiHotelProvider(HotelProvider):
    """
    HotelProvider backed by the hotels4 RapidAPI.

    Two calls per search: ``locations/v3/search`` resolves the city name to a
    region id, then ``properties/v2/list`` lists properties in that region,
    cheapest first.
    """

    LOCALE = "pt_BR"
    SITE_ID = 300000001
    RESULTS_SIZE = 10
    PRICE_MIN = 100
    PRICE_MAX = 5000

    def __init__(self, client: ProviderClient, currency: str = "BRL") -> None:
        super().__init__(name="rapidapi_hotels")
        self.client = client
        self.currency = currency

    async def resolve_region(self, city_name: str) -> str:
        payload = await self.client.get(
            "/locations/v3/search",
            params={"q": city_name, "locale": self.LOCALE, "langid": "1046", "siteid": str(self.SITE_ID)},
        )
        regions = (payload or {}).get("sr") or []
        region_id = regions[0].get("gaiaId") if regions and isinstance(regions[0], dict) else None
        if not region_id:
            raise NoResultsFound(f"Destination not found: {city_name}.", slot="hotels")
        return str(region_id)

    def build_body(self, region_id: str, request: HotelSearchRequest) -> Dict[str, Any]:
        return {
            "currency": request.currency or self.currency,
            "eapid": 1,
            "locale": self.LOCALE,
            "siteId": self.SITE_ID,
            "destination": {"regionId": region_id},
            "checkInDate": _date_parts(request.checkin_date),
            "checkOutDate": _date_parts(request.checkout_date),
            "rooms": [
                {
                    "adults": request.party.adults,
                    "children": [{"age": CHILD_AGE} for _ in range(request.party.children)],
                }
            ],
            "resultsStartingIndex": 0,
            "resultsSize": self.RESULTS_SIZE,
            "sort": "PRICE_LOW_TO_HIGH",
            "filters": {"price": {"min": self.PRICE_MIN, "max": self.PRICE_MAX}},
        }

    async def search_hotels(self, request: HotelSearchRequest) -> Optional[Dict[str, Any]]:
        region_id = await self.resolve_region(request.city_name)
        logger.info("Searching hotels in %s (region %s)", request.city_name, region_id)
        return await self.client.post("/properties/v2/list", json=self.build_body(region_id, request))
