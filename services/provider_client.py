import logging
from typing import Any, Dict, Optional

import httpx

from models.errors import (
    AuthenticationFailure,
    InvalidSearchParameters,
    ProviderUnavailable,
    RateLimited,
    SimulationError,
)

logger = logging.getLogger(__name__)


def error_for_status(status_code: int, provider: str, detail: str = "") -> SimulationError:
    """Map an HTTP status from a provider onto the engine's error taxonomy."""
    if status_code in (401, 403):
        return AuthenticationFailure()
    if status_code == 429:
        return RateLimited()
    if status_code in (400, 422):
        return InvalidSearchParameters(detail or None)
    return ProviderUnavailable(f"{provider} answered with HTTP {status_code}. Please try again later.")


class ProviderClient:
    """
    Thin async wrapper around one provider's HTTP API.

    - One httpx.AsyncClient reused for all calls
    - Default headers (API keys, bearer tokens) attached to every request
    - Transport and status errors turned into SimulationError subclasses
    """

    def __init__(
        self,
        base_url: str,
        name: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.name = name
        self.base_url = base_url
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers=headers or {},
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Perform a request and return the decoded JSON body (None for an
        empty body).
        """
        try:
            resp = await self._http.request(method, path, params=params, json=json, headers=headers)
        except httpx.RequestError as exc:
            logger.warning("[%s] %s %s failed: %r", self.name, method, path, exc)
            raise ProviderUnavailable(f"{self.name} could not be reached. Please try again later.") from exc

        if resp.status_code >= 400:
            snippet = (resp.text or "")[:500].replace("\n", " ")
            logger.warning("[%s] %s %s -> HTTP %d: %s", self.name, method, path, resp.status_code, snippet)
            raise error_for_status(resp.status_code, self.name)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            logger.warning("[%s] %s %s returned a non-JSON body", self.name, method, path)
            raise ProviderUnavailable(f"{self.name} returned an unreadable answer.") from exc

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None, **kwargs: Any) -> Any:
        return await self.request("GET", path, params=params, **kwargs)

    async def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("POST", path, json=json, **kwargs)

    async def delete(self, path: str, params: Optional[Dict[str, Any]] = None, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, params=params, **kwargs)
