from __future__ import annotations

import logging
from typing import Any, Dict, List

from models.errors import AuthenticationFailure, ProviderUnavailable
from models.tours import PlacesProvider
from services.provider_client import ProviderClient

logger = logging.getLogger(__name__)

# GeoNames reports quota and credential problems with HTTP 200 and a status body
_AUTH_CODES = {10}
_QUOTA_CODES = {18, 19, 20}


class GeoNamesPlacesProvider(PlacesProvider):
    """PlacesProvider backed by the GeoNames JSON web services."""

    def __init__(
        self,
        client: ProviderClient,
        username: str,
        country: str = "BR",
        max_rows: int = 10,
    ) -> None:
        self.client = client
        self.username = username
        self.country = country
        self.max_rows = max_rows

    def _places(self, payload: Any) -> List[Dict[str, Any]]:
        payload = payload or {}
        status = payload.get("status")
        if isinstance(status, dict) and status.get("message"):
            code = status.get("value")
            logger.warning("GeoNames error %s: %s", code, status["message"])
            if code in _AUTH_CODES:
                raise AuthenticationFailure()
            if code in _QUOTA_CODES:
                raise ProviderUnavailable("The places service is over its quota. Please try again later.")
            raise ProviderUnavailable(str(status["message"]))
        return list(payload.get("geonames") or [])

    async def geocode_city(self, query: str) -> List[Dict[str, Any]]:
        payload = await self.client.get(
            "/searchJSON",
            params={
                "q": query.split(",")[0].strip(),
                "country": self.country,
                "maxRows": self.max_rows,
                "featureClass": "P",
                "orderby": "population",
                "cities": "cities15000",
                "style": "FULL",
                "username": self.username,
            },
        )
        return self._places(payload)

    async def find_nearby_places(
        self, lat: float, lng: float, radius_km: int, max_count: int
    ) -> List[Dict[str, Any]]:
        payload = await self.client.get(
            "/findNearbyPlaceNameJSON",
            params={
                "lat": lat,
                "lng": lng,
                "radius": radius_km,
                "maxRows": max_count,
                "cities": "cities1000",
                "style": "FULL",
                "username": self.username,
            },
        )
        return self._places(payload)
