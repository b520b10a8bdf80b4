"""
Best-effort workflows triggered after a new order is mirrored (shipping-zone sync).
Runs as a detached background task after the webhook response; every failure is logged and
swallowed so the already-committed reconciliation is never affected.
"""
import logging
from typing import Callable, Optional

import httpx
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import SideEffectFailure
from app.models import Brand
from app.services.credentials import get_brand_access_token
from app.services.http_client import post_no_retry

logger = logging.getLogger(__name__)


class SideEffectDispatcher:
    """
    Opens its own session through session_factory: the request session is closed by the time
    background tasks run.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        shipping_sync_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session_factory = session_factory
        self.shipping_sync_url = shipping_sync_url or settings.SHIPPING_SYNC_URL
        self.timeout = timeout or settings.SIDE_EFFECT_TIMEOUT
        self.transport = transport

    async def dispatch(self, brand_id: str, event: dict) -> None:
        """Trigger the shipping-zone sync for brand_id. Never raises."""
        try:
            await self._sync_shipping(brand_id, event)
        except Exception as e:
            logger.warning("Side effect for brand %s (order %s) failed: %s", brand_id, event.get("id"), e)

    async def _sync_shipping(self, brand_id: str, event: dict) -> None:
        db = self.session_factory()
        try:
            brand = db.query(Brand).filter(Brand.id == brand_id).first()
            if brand is None:
                logger.info("Side effect: brand %s no longer exists; skipping shipping sync", brand_id)
                return
            access_token = get_brand_access_token(brand)
            shop = brand.shopify_domain
        finally:
            db.close()

        if not access_token or not shop:
            logger.info("Side effect: brand %s has no Shopify credential; skipping shipping sync", brand_id)
            return

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await post_no_retry(
                self.shipping_sync_url,
                json={"brandId": brand_id, "accessToken": access_token, "shop": shop},
                timeout=self.timeout,
                client=client,
            )
        if response.status_code >= 400:
            raise SideEffectFailure(
                f"Shipping sync returned {response.status_code}",
                {"brand_id": brand_id, "order_id": event.get("id")},
            )
        logger.info("Side effect: shipping sync triggered for brand %s after order %s", brand_id, event.get("id"))
