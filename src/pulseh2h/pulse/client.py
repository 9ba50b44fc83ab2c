"""
SC2 Pulse HTTP client.

A thin async wrapper around the Pulse REST API. The ingestion pipeline only
needs one call from it - fetch the recent matches of a character - and only
depends on the MatchClient protocol, so tests can hand in a fake.

Key features:
- Async context manager for proper resource cleanup
- Retry with exponential backoff on 429, 5xx and transport errors
- Raw JSON out; validation happens in pulse.models
"""

import asyncio
import logging
import random
from typing import Any, Optional, Protocol

import httpx

from pulseh2h.config import settings
from pulseh2h.exceptions import UpstreamError
from pulseh2h.matches import CUSTOM_MATCH_TYPE

logger = logging.getLogger(__name__)

CHARACTER_MATCHES_ENDPOINT = "character-matches"

# Status codes worth another attempt
RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class MatchClient(Protocol):
    """Anything that can return raw match entries for a character."""

    async def fetch_character_matches(
        self,
        character_id: str,
        *,
        match_type: str = CUSTOM_MATCH_TYPE,
        limit: int = 50,
    ) -> Any: ...


class PulseClient:
    """
    Async client for the SC2 Pulse API.

    Usage:
        async with PulseClient() as client:
            payload = await client.fetch_character_matches("315071")
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        base_delay: float = 1.0,
        http: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API root. Defaults to settings.pulse_base_url
            timeout: Per-request timeout in seconds
            max_attempts: Attempts per request (default from settings)
            base_delay: Initial backoff delay, doubled each retry
            http: Pre-built httpx client (tests use a MockTransport)
        """
        self.base_url = base_url or settings.pulse_base_url
        self.timeout = timeout if timeout is not None else settings.pulse_timeout_seconds
        self.max_attempts = max_attempts or settings.pulse_max_retries
        self.base_delay = base_delay
        self._http = http
        self._owns_http = http is None

    def open(self) -> "PulseClient":
        """Create the underlying httpx client if there is none yet."""
        if self._http is None:
            self._http = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
            self._owns_http = True
        return self

    async def __aenter__(self) -> "PulseClient":
        return self.open()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def fetch_character_matches(
        self,
        character_id: str,
        *,
        match_type: str = CUSTOM_MATCH_TYPE,
        limit: int = 50,
    ) -> Any:
        """
        Fetch recent matches for one character.

        Args:
            character_id: Pulse character id
            match_type: Pulse match type filter (CUSTOM for H2H discovery)
            limit: Maximum number of matches to return

        Returns:
            Decoded JSON body (a list, or a {"result": [...]} page)

        Raises:
            UpstreamError: if the request still fails after all retries
        """
        params = {"characterId": character_id, "type": match_type, "limit": str(limit)}
        return await self.get_json(CHARACTER_MATCHES_ENDPOINT, params)

    async def get_json(self, endpoint: str, params: dict[str, Any]) -> Any:
        if self._http is None:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        async def _request() -> Any:
            response = await self._http.get(endpoint, params=params)
            response.raise_for_status()
            return response.json()

        return await self.with_retry(_request, description=f"GET {endpoint}")

    async def with_retry(self, coro_func, description: str = "Request") -> Any:
        """
        Execute an async request with exponential backoff retry.

        Pass a callable that creates a fresh coroutine; a coroutine can only
        be awaited once.

        Raises:
            UpstreamError: once attempts are exhausted or the error is not retryable
        """
        last_error: Optional[Exception] = None
        status_code: Optional[int] = None

        for attempt in range(self.max_attempts):
            try:
                return await coro_func()
            except httpx.HTTPStatusError as e:
                last_error = e
                status_code = e.response.status_code
                if status_code not in RETRYABLE_STATUS:
                    break
            except httpx.TransportError as e:
                last_error = e
                status_code = None

            if attempt < self.max_attempts - 1:
                delay = self.base_delay * (2 ** attempt)
                # Jitter to avoid synchronized retries
                delay += random.uniform(0, 1)
                logger.warning(
                    "[Retry %d/%d] %s failed: %s. Retrying in %.1fs",
                    attempt + 1, self.max_attempts, description, last_error, delay,
                )
                await asyncio.sleep(delay)

        raise UpstreamError(f"{description} failed: {last_error}", status_code=status_code)
