"""
Shopify Admin API client - authenticated, paginated reads for batch sync and GraphQL for delivery settings.
Never expose access_token to frontend or logs.
Pagination uses since_id continuation (ids ascend), capped at 250 per page.
"""
import logging
from typing import Any, Optional

import httpx

from app.config import settings
from app.exceptions import UpstreamFetchError
from app.services.http_client import DEFAULT_RETRIES, get_with_retry, post_no_retry

logger = logging.getLogger(__name__)

MAX_PAGE_LIMIT = 250


def _log_shopify_response(method: str, url: str, status: int, body_preview: str = "") -> None:
    """Log every Shopify API call for debugging. No sensitive data."""
    if status >= 400:
        logger.warning("Shopify API %s %s -> %s %s", method, url, status, body_preview[:200] if body_preview else "")
    else:
        logger.info("Shopify API %s %s -> %s", method, url, status)


def normalize_shop_domain(shop_domain: str) -> str:
    """'acme' -> 'acme.myshopify.com'; custom domains are kept as-is (lowercased)."""
    shop = (shop_domain or "").lower().strip()
    if shop and not shop.endswith(".myshopify.com") and "." not in shop:
        shop = f"{shop}.myshopify.com"
    return shop


def _base_url(shop_domain: str, api_version: str) -> str:
    return f"https://{normalize_shop_domain(shop_domain)}/admin/api/{api_version}"


def _headers(access_token: str) -> dict:
    return {
        "X-Shopify-Access-Token": access_token,
        "Content-Type": "application/json",
    }


class ShopifyClient:
    """Per-brand Admin API client. transport lets tests substitute httpx.MockTransport."""

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        *,
        api_version: Optional[str] = None,
        page_limit: Optional[int] = None,
        timeout: Optional[float] = None,
        max_retries: int = DEFAULT_RETRIES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.shop_domain = normalize_shop_domain(shop_domain)
        self.access_token = access_token
        self.api_version = api_version or settings.SHOPIFY_API_VERSION
        self.page_limit = min(page_limit or settings.SHOPIFY_PAGE_LIMIT, MAX_PAGE_LIMIT)
        self.timeout = timeout or settings.SHOPIFY_HTTP_TIMEOUT
        self.max_retries = max_retries
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def fetch_orders(self) -> list[dict]:
        """All orders (any status), every page."""
        return await self._fetch_all("orders", {"status": "any"})

    async def fetch_products(self) -> list[dict]:
        """All products, every page."""
        return await self._fetch_all("products", {})

    async def _fetch_all(self, resource: str, extra_params: dict) -> list[dict]:
        """
        GET /{resource}.json?limit=N&since_id=... (starting at 0, so pages are id-ascending) until a short page.
        Any transport error or non-2xx raises UpstreamFetchError; nothing partial is returned.
        """
        url = f"{_base_url(self.shop_domain, self.api_version)}/{resource}.json"
        headers = _headers(self.access_token)
        records: list[dict] = []
        since_id = 0
        page = 0
        async with self._client() as client:
            while True:
                page += 1
                params: dict[str, Any] = {"limit": self.page_limit, "since_id": since_id, **extra_params}
                try:
                    response = await get_with_retry(client, url, params=params, headers=headers, max_retries=self.max_retries)
                except httpx.HTTPError as e:
                    logger.warning("Shopify %s fetch failed for %s: %s", resource, self.shop_domain, e)
                    raise UpstreamFetchError(f"Shopify {resource} request failed: {e}") from e
                _log_shopify_response("GET", url, response.status_code, response.text[:300] if response.text else "")
                if response.status_code >= 400:
                    raise UpstreamFetchError(
                        f"Shopify {resource} request rejected with {response.status_code}",
                        status_code=response.status_code,
                    )
                try:
                    batch = response.json().get(resource) or []
                except ValueError as e:
                    raise UpstreamFetchError(f"Shopify {resource} returned invalid JSON") from e

                records.extend(batch)
                logger.info("Shopify %s page %s: got %s (total so far: %s)", resource, page, len(batch), len(records))
                if len(batch) < self.page_limit:
                    break
                ids = [int(r["id"]) for r in batch if isinstance(r, dict) and r.get("id") is not None]
                next_since = max(ids) if ids else None
                if next_since is None or next_since <= since_id:
                    break
                since_id = next_since
        logger.info("Shopify %s: got %s record(s) across %s page(s)", resource, len(records), page)
        return records

    async def graphql(self, query: str, variables: Optional[dict] = None) -> dict:
        """POST a GraphQL Admin query; returns the data object. Transport, HTTP and GraphQL errors raise UpstreamFetchError."""
        url = f"{_base_url(self.shop_domain, self.api_version)}/graphql.json"
        body: dict[str, Any] = {"query": query}
        if variables:
            body["variables"] = variables
        try:
            async with self._client() as client:
                response = await post_no_retry(
                    url, json=body, headers=_headers(self.access_token), timeout=self.timeout, client=client
                )
        except httpx.HTTPError as e:
            raise UpstreamFetchError(f"Shopify GraphQL request failed: {e}") from e
        _log_shopify_response("POST", url, response.status_code, response.text[:300] if response.text else "")
        if response.status_code >= 400:
            raise UpstreamFetchError(
                f"Shopify GraphQL rejected with {response.status_code}", status_code=response.status_code
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamFetchError("Shopify GraphQL returned invalid JSON") from e
        if payload.get("errors"):
            messages = ", ".join(str(err.get("message", err)) if isinstance(err, dict) else str(err) for err in payload["errors"])
            raise UpstreamFetchError(f"GraphQL errors: {messages}")
        return payload.get("data") or {}
