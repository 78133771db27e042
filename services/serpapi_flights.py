from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from models.flights import FlightProvider, FlightSearchRequest
from services.provider_client import ProviderClient

logger = logging.getLogger(__name__)


class SerpApiFlightProvider(FlightProvider):
    """
    FlightProvider backed by the ``search-flights`` function, which proxies
    SerpApi's google_flights engine and returns its payload untouched
    (``best_flights`` / ``other_flights``).
    """

    def __init__(
        self,
        client: ProviderClient,
        function_path: str = "/functions/v1/search-flights",
        currency: str = "BRL",
    ) -> None:
        super().__init__(name="serpapi_flights")
        self.client = client
        self.function_path = function_path
        self.currency = currency

    def build_body(self, request: FlightSearchRequest) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "engine": "google_flights",
            "departure_id": request.origin_code,
            "arrival_id": request.destination_code,
            "outbound_date": request.departure_date.isoformat(),
            "adults": request.party.adults,
            "children": request.party.children,
            "currency": request.currency or self.currency,
        }
        if request.return_date:
            body["flight_type"] = "round_trip"
            body["return_date"] = request.return_date.isoformat()
        else:
            body["flight_type"] = "one_way"
        return body

    async def search_flights(self, request: FlightSearchRequest) -> Optional[Dict[str, Any]]:
        logger.info(
            "Searching flights %s -> %s on %s",
            request.origin_code,
            request.destination_code,
            request.departure_date.isoformat(),
        )
        return await self.client.post(self.function_path, json=self.build_body(request))
