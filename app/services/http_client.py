"""
Shared HTTP helpers with bounded timeouts for Shopify and internal workflow calls.
GETs retry on throttling/5xx and connection errors; POSTs are single-attempt (non-idempotent).
"""
import asyncio
import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_RETRIES = 2
RETRY_BACKOFF_BASE = 1.0  # seconds
RETRY_STATUSES = (429, 502, 503, 504)


async def _sleep_backoff(attempt: int, retry_after: Optional[str] = None) -> None:
    if attempt <= 0:
        return
    delay = RETRY_BACKOFF_BASE * (2 ** (attempt - 1))
    if retry_after:
        try:
            delay = max(delay, float(retry_after))
        except ValueError:
            pass
    await asyncio.sleep(min(delay, 10.0))


async def get_with_retry(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: Optional[dict] = None,
    headers: Optional[dict] = None,
    max_retries: int = DEFAULT_RETRIES,
) -> httpx.Response:
    """
    GET through client, retrying RETRY_STATUSES and connect/read timeouts up to max_retries times.
    The last response is returned as-is (caller checks status); the last network error is raised.
    """
    for attempt in range(max_retries + 1):
        try:
            resp = await client.get(url, params=params, headers=headers)
        except (httpx.ConnectError, httpx.ReadTimeout, httpx.ConnectTimeout) as e:
            if attempt >= max_retries:
                raise
            logger.warning("HTTP GET %s attempt %s failed: %s", url, attempt + 1, e)
            await _sleep_backoff(attempt + 1)
            continue
        if attempt < max_retries and resp.status_code in RETRY_STATUSES:
            logger.warning("HTTP GET %s -> %s, retrying", url, resp.status_code)
            await _sleep_backoff(attempt + 1, resp.headers.get("retry-after"))
            continue
        return resp
    raise RuntimeError("unreachable")


async def post_no_retry(
    url: str,
    *,
    json: Optional[dict] = None,
    headers: Optional[dict] = None,
    timeout: float = DEFAULT_TIMEOUT,
    client: Optional[httpx.AsyncClient] = None,
    **kwargs: Any,
) -> httpx.Response:
    """POST with no retries. Uses client when given, otherwise a one-off client with timeout."""
    if client is not None:
        return await client.post(url, json=json or {}, headers=headers or {}, timeout=timeout, **kwargs)
    async with httpx.AsyncClient(timeout=timeout) as one_off:
        return await one_off.post(url, json=json or {}, headers=headers or {}, **kwargs)
