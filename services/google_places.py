from __future__ import annotations

from typing import Any, Dict, List

from models.errors import AuthenticationFailure, ProviderUnavailable, RateLimited
from models.tours import PointsOfInterestProvider
from services.provider_client import ProviderClient

CATEGORIES = ("restaurant", "tourist_attraction", "museum", "park")


class GooglePlacesProvider(PointsOfInterestProvider):
    """Nearby Search of the Google Places web service."""

    def __init__(self, client: ProviderClient, api_key: str) -> None:
        self.client = client
        self.api_key = api_key

    async def search_places(
        self, lat: float, lng: float, category: str, radius_m: int
    ) -> List[Dict[str, Any]]:
        payload = await self.client.get(
            "/maps/api/place/nearbysearch/json",
            params={
                "location": f"{lat},{lng}",
                "radius": radius_m,
                "type": category,
                "key": self.api_key,
            },
        ) or {}

        status = payload.get("status", "OK")
        if status in ("OK", "ZERO_RESULTS"):
            return list(payload.get("results") or [])
        if status == "REQUEST_DENIED":
            raise AuthenticationFailure()
        if status == "OVER_QUERY_LIMIT":
            raise RateLimited()
        raise ProviderUnavailable(payload.get("error_message") or f"Places search failed: {status}.")
