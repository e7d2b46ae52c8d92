"""Resilient HTTP transport for the remote generation endpoint.

:class:`ResilientTransport` issues a JSON POST and classifies the outcome:

- **429** — retried after ``backoff`` ms while budget remains; the backoff
  doubles every retry.  Once the budget is spent :class:`RateLimited` is
  raised.
- **401** — :class:`Unauthorized`, raised immediately without retrying.
- **other non-2xx** — :class:`RequestFailed` with ``error.message`` from the
  response body when the server supplied one.
- **no response** (``httpx.TransportError``: connection refused, DNS, read
  timeout, ...) — retried with the same doubling backoff; once the budget is
  spent :class:`TransportFailure` is raised from the underlying error.

Retries re-send the identical request.  Every retry decision is logged, and
logging never influences control flow.

Usage
-----
::

    async with httpx.AsyncClient(timeout=120) as http:
        transport = ResilientTransport(http)
        body = await transport.send(url, {"contents": [...]})
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx

from pictureme.core.errors import RateLimited, RequestFailed, TransportFailure, Unauthorized

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

DEFAULT_MAX_RETRIES = 5
DEFAULT_INITIAL_BACKOFF_MS = 1000


def _server_message(response: httpx.Response) -> str | None:
    """Extract ``error.message`` from a JSON error body, if there is one."""
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        return str(message) if message else None
    return None


class ResilientTransport:
    """JSON POST with backoff retries on rate limiting and network failure.

    Attributes:
        _client: Shared ``httpx.AsyncClient``; owned by the caller.
        _sleep: Awaitable delay primitive taking seconds.
        retries_used: Retries consumed by the most recent :meth:`send`.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        params: dict[str, str] | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialise the transport.

        Args:
            client: HTTP client used for every request.
            params: Query parameters added to every request (e.g. the API key).
            sleep: Delay primitive; tests inject a recorder instead of
                ``asyncio.sleep``.
        """
        self._client = client
        self._params = dict(params or {})
        self._sleep = sleep
        self.retries_used = 0

    async def send(
        self,
        url: str,
        json_body: dict,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_backoff_ms: int = DEFAULT_INITIAL_BACKOFF_MS,
    ) -> dict:
        """POST ``json_body`` to ``url`` and return the parsed JSON response.

        Args:
            url: Endpoint URL.
            json_body: Request body, serialised as JSON.
            max_retries: Retry budget shared by 429 and network failures.
            initial_backoff_ms: First delay; doubled after every retry.

        Returns:
            Parsed JSON body of the first successful response.

        Raises:
            Unauthorized: On HTTP 401.
            RateLimited: On HTTP 429 with no retries left.
            RequestFailed: On any other non-success status.
            TransportFailure: On network failure with no retries left.
        """
        retries_left = max_retries
        backoff_ms = initial_backoff_ms
        self.retries_used = 0

        while True:
            try:
                response = await self._client.post(url, json=json_body, params=self._params)
            except httpx.TransportError as e:
                if retries_left > 0:
                    logger.warning(
                        f"Request failed ({type(e).__name__}: {e}). "
                        f"Retrying in {backoff_ms / 1000}s ({retries_left} retries left)..."
                    )
                    await self._sleep(backoff_ms / 1000)
                    retries_left -= 1
                    self.retries_used += 1
                    backoff_ms *= 2
                    continue
                logger.error(f"Request failed after {max_retries} retries: {e}")
                raise TransportFailure(f"Request failed: {e}") from e

            if response.is_success:
                return response.json()

            message = _server_message(response)
            logger.error(f"API error {response.status_code}: {message or response.text[:300]}")

            if response.status_code == 429:
                if retries_left > 0:
                    logger.warning(
                        f"Rate limited. Retrying in {backoff_ms / 1000}s "
                        f"({retries_left} retries left)..."
                    )
                    await self._sleep(backoff_ms / 1000)
                    retries_left -= 1
                    self.retries_used += 1
                    backoff_ms *= 2
                    continue
                raise RateLimited(429, message)

            if response.status_code == 401:
                raise Unauthorized(
                    "API request failed with status 401: Unauthorized. "
                    "Please ensure your API key is valid."
                )

            raise RequestFailed(response.status_code, message)
