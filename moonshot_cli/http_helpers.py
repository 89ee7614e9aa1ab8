#!/usr/bin/env python3
"""
HTTP Helpers — Rate Limiting and JSON Requests for the Gateways
================================================================

Shared by pendle_client.py and tvl_client.py:

  • RateLimiter        token bucket; callers await acquire() before a request
  • get_json/post_json one request → decoded JSON, DataSourceError on failure
  • unwrap_proxy_payload  {success, data | error} envelope → data

Timeouts belong to the httpx client passed in; the helpers never retry.
"""

import asyncio
import logging
import time
from typing import Any, Optional

import httpx

from moonshot_cli.errors import DataSourceError

logger = logging.getLogger(__name__)


class RateLimiter:
    """Token-bucket rate limiter to respect upstream API limits.

    Keeps at most `max_requests` acquisitions inside any rolling window
    of `period_seconds`.
    """

    def __init__(self, max_requests: int, period_seconds: float):
        self._max = max_requests
        self._period = period_seconds
        self._timestamps: list[float] = []
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until a request slot is available."""
        async with self._lock:
            now = time.monotonic()
            # Purge timestamps outside the current window
            self._timestamps = [t for t in self._timestamps if now - t < self._period]
            if len(self._timestamps) >= self._max:
                # Wait until the oldest request expires
                sleep_time = self._period - (now - self._timestamps[0])
                if sleep_time > 0:
                    await asyncio.sleep(sleep_time)
            self._timestamps.append(time.monotonic())


def _decode(source: str, response: httpx.Response) -> Any:
    if response.status_code == 429:
        raise DataSourceError(source, "rate limit reached (HTTP 429)")
    if response.status_code != 200:
        raise DataSourceError(source, f"HTTP {response.status_code}")
    try:
        return response.json()
    except ValueError:
        raise DataSourceError(source, "response is not valid JSON") from None


async def get_json(
    client: httpx.AsyncClient,
    source: str,
    url: str,
    params: Optional[dict] = None,
    limiter: Optional[RateLimiter] = None,
) -> Any:
    """GET a URL and return its JSON body."""
    if limiter is not None:
        await limiter.acquire()
    try:
        response = await client.get(url, params=params)
    except httpx.TimeoutException:
        raise DataSourceError(source, "request timed out") from None
    except httpx.HTTPError as exc:
        raise DataSourceError(source, f"request failed ({type(exc).__name__})") from None
    return _decode(source, response)


async def post_json(
    client: httpx.AsyncClient,
    source: str,
    url: str,
    payload: dict,
    limiter: Optional[RateLimiter] = None,
) -> Any:
    """POST a JSON payload and return the JSON body."""
    if limiter is not None:
        await limiter.acquire()
    try:
        response = await client.post(url, json=payload)
    except httpx.TimeoutException:
        raise DataSourceError(source, "request timed out") from None
    except httpx.HTTPError as exc:
        raise DataSourceError(source, f"request failed ({type(exc).__name__})") from None
    return _decode(source, response)


def unwrap_proxy_payload(source: str, payload: Any) -> dict:
    """Return `data` from a {success, data} proxy envelope.

    A falsy success flag (or a missing envelope) becomes a DataSourceError
    carrying the upstream error message.
    """
    if not isinstance(payload, dict):
        raise DataSourceError(source, "unexpected response shape")
    if not payload.get("success"):
        raise DataSourceError(source, str(payload.get("error") or "upstream reported failure"))
    data = payload.get("data")
    if not isinstance(data, dict):
        raise DataSourceError(source, "response has no data")
    return data
