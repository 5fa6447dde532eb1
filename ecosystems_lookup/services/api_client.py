"""
Async client for the packages.ecosyste.ms REST API.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from ecosystems_lookup import __version__
from ecosystems_lookup.core.errors import api_error, api_timeout, api_unavailable, invalid_response
from ecosystems_lookup.domain.models import API_BASE_URL

logger = logging.getLogger(__name__)

USER_AGENT = f"ecosystems-mcp/{__version__}"
DEFAULT_TIMEOUT = 30.0


class EcosystemsClient:
    """
    Issues GET requests against the aggregation API.

    Each call gets its own deadline; when it expires the in-flight request is
    cancelled and an API_TIMEOUT error is raised. Non-2xx responses become
    API_ERROR, connection failures API_UNAVAILABLE.
    """

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def build_url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def fetch(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        GET ``path`` and return the decoded JSON body.

        Args:
            path: API path relative to the base URL (leading '/' optional).
            params: Query parameters; None and '' values are dropped.
            timeout: Bound in seconds for this call (defaults to the client's).
        """
        bound = timeout if timeout is not None else self.timeout
        query = {k: v for k, v in (params or {}).items() if v is not None and v != ""}
        url = self.build_url(path)
        request_url = str(httpx.URL(url, params=query))

        headers = {
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }

        logger.debug(f"GET {request_url} (timeout={bound}s)")
        try:
            async with httpx.AsyncClient(
                headers=headers,
                timeout=bound,
                transport=self._transport,
            ) as client:
                response = await asyncio.wait_for(client.get(url, params=query), timeout=bound)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"API request timed out after {bound}s: {request_url}")
            raise api_timeout(request_url, bound)
        except httpx.TransportError as e:
            logger.warning(f"API unavailable for {request_url}: {e}")
            raise api_unavailable(request_url, str(e) or type(e).__name__) from e

        if not response.is_success:
            logger.warning(f"API error {response.status_code} for {request_url}")
            raise api_error(response.status_code, response.reason_phrase, request_url)

        try:
            return response.json()
        except ValueError as e:
            logger.warning(f"API returned a non-JSON body for {request_url}: {e}")
            raise invalid_response(response.status_code, request_url) from e
