"""
Shopify order webhook receiver. Public (no JWT); authenticated by HMAC over the raw body.
Order: verify signature -> parse -> resolve brand -> provenance filter -> reconcile -> (new order) side effect.
"""
import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_side_effect_dispatcher
from app.exceptions import (
    AuthenticationFailure,
    FinancialIntegrityError,
    PersistenceError,
    ProvenanceMismatch,
    RoutingFailure,
)
from app.services.shopify_webhook_handler import (
    authenticate_webhook,
    ensure_storefront_order,
    finish_webhook_event,
    process_order_webhook,
    record_webhook_event,
    require_brand,
)
from app.services.side_effects import SideEffectDispatcher

logger = logging.getLogger(__name__)
router = APIRouter()

# Same set the batch sync counts as a malformed record
MALFORMED_PAYLOAD_ERRORS = (ValueError, TypeError, AttributeError)


def _unauthorized() -> HTTPException:
    """Identical for every auth failure so callers cannot tell which part was wrong."""
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.post("/orders")
async def shopify_order_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    dispatcher: SideEffectDispatcher = Depends(get_side_effect_dispatcher),
):
    """
    Public endpoint for Shopify order webhooks (orders/create, orders/updated, orders/paid, ...).
    200 on success or provenance skip; 401 bad/missing signature or shop header; 404 unknown shop;
    400 malformed order; 500 when the order cannot be persisted.
    """
    raw_body = await request.body()
    hmac_header = request.headers.get("X-Shopify-Hmac-Sha256")
    topic = request.headers.get("X-Shopify-Topic") or "orders/unknown"
    shop_domain = (request.headers.get("X-Shopify-Shop-Domain") or "").strip().lower()

    try:
        brand = authenticate_webhook(db, shop_domain, hmac_header, raw_body)
    except AuthenticationFailure as e:
        logger.warning("Shopify webhook: %s (shop=%s topic=%s)", e.message, shop_domain, topic)
        raise _unauthorized()

    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("Shopify webhook: invalid JSON from shop=%s: %s", shop_domain, e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON")

    try:
        brand = require_brand(brand, shop_domain)
    except RoutingFailure as e:
        logger.warning("Shopify webhook: %s", e.message)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Brand not found")
    brand_id = brand.id

    event_id = record_webhook_event(db, shop_domain, topic, payload)

    try:
        ensure_storefront_order(payload)
    except ProvenanceMismatch:
        logger.info("Shopify webhook: skipping non-storefront order %s for brand %s", payload.get("id"), brand_id)
        finish_webhook_event(db, event_id)
        return {"ok": True, "skipped": True}

    try:
        result = process_order_webhook(db, brand, payload)
    except FinancialIntegrityError as e:
        logger.error("Financial integrity error: brand=%s order %s: %s", brand_id, payload.get("id"), e)
        finish_webhook_event(db, event_id, error=str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Order could not be processed")
    except PersistenceError as e:
        finish_webhook_event(db, event_id, error=str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Order could not be processed")
    except MALFORMED_PAYLOAD_ERRORS as e:
        logger.warning("Shopify webhook: malformed order from shop=%s: %s", shop_domain, e)
        finish_webhook_event(db, event_id, error=str(e) or type(e).__name__)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid order payload")

    finish_webhook_event(db, event_id)

    if result.created:
        # Runs after the response is sent; failures are swallowed inside dispatch
        background_tasks.add_task(dispatcher.dispatch, brand_id, {"id": payload.get("id"), "topic": topic})

    return {"ok": True, "outcome": result.outcome.value}
