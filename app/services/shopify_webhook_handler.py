"""
Shopify order webhook: HMAC verification, storefront provenance filter, and reconciliation.
The controller owns HTTP status mapping; this module owns the rules.
"""
import base64
import hmac
import hashlib
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import AuthenticationFailure, ProvenanceMismatch, RoutingFailure
from app.models import Brand, WebhookEvent
from app.services.credentials import get_brand_webhook_secrets
from app.services.commission import resolve_commission_rate
from app.services.reconciliation import ReconcileResult, ReconciliationEngine
from app.services.shopify_mapping import external_id, order_candidate

logger = logging.getLogger(__name__)

# Fields checked by substring for the storefront marker; source_name must match exactly
PROVENANCE_SUBSTRING_FIELDS = ("referring_site", "source_url", "source_identifier")


def verify_webhook_hmac(body: bytes, hmac_header: Optional[str], secret: Optional[str]) -> bool:
    """
    Verify X-Shopify-Hmac-Sha256: base64(HMAC-SHA256(raw_body, secret)) == header.
    Must be given the untouched request bytes, never a re-serialized payload.
    """
    if not secret or not hmac_header or not body:
        return False
    try:
        computed = hmac.new(
            secret.encode("utf-8"),
            body,
            hashlib.sha256,
        ).digest()
        computed_b64 = base64.b64encode(computed).decode("utf-8")
        return hmac.compare_digest(computed_b64.encode("utf-8"), hmac_header.strip().encode("utf-8"))
    except (TypeError, ValueError, UnicodeError) as e:
        logger.warning("Webhook HMAC verify error: %s", e)
        return False


def is_storefront_order(payload: dict, marker: Optional[str] = None) -> bool:
    """
    True when the order came through the ShopScope storefront flow. Heuristic: source_name equals the
    marker, or the marker appears in referring_site / source_url / source_identifier.
    """
    marker = (marker or settings.STOREFRONT_SOURCE_MARKER).lower()
    if not marker or not isinstance(payload, dict):
        return False
    if str(payload.get("source_name") or "").strip().lower() == marker:
        return True
    return any(marker in str(payload.get(f) or "").lower() for f in PROVENANCE_SUBSTRING_FIELDS)


def find_brand_by_shop(db: Session, shop_domain: str) -> Optional[Brand]:
    return db.query(Brand).filter(Brand.shopify_domain == shop_domain).first()


def authenticate_webhook(db: Session, shop_domain: str, hmac_header: Optional[str], body: bytes) -> Optional[Brand]:
    """
    Check the signature against every candidate secret for shop_domain. Returns the brand, or None when
    the shop is unknown but the body verified against the app-level secret. Raises AuthenticationFailure.
    """
    if not hmac_header or not shop_domain:
        raise AuthenticationFailure("Missing HMAC or shop domain header", {"shop": shop_domain})
    brand = find_brand_by_shop(db, shop_domain)
    candidates = get_brand_webhook_secrets(brand)
    if not candidates:
        raise AuthenticationFailure("No webhook secret available", {"shop": shop_domain})
    if not any(verify_webhook_hmac(body, hmac_header, s) for s in candidates):
        raise AuthenticationFailure("HMAC verification failed", {"shop": shop_domain})
    return brand


def require_brand(brand: Optional[Brand], shop_domain: str) -> Brand:
    if brand is None:
        raise RoutingFailure(f"No brand connected to shop {shop_domain}", {"shop": shop_domain})
    return brand


def ensure_storefront_order(payload: dict, marker: Optional[str] = None) -> None:
    """Raises ProvenanceMismatch for orders placed outside the storefront flow."""
    if not is_storefront_order(payload, marker):
        raise ProvenanceMismatch("Order did not come through the storefront", {"order_id": payload.get("id")})


def process_order_webhook(db: Session, brand: Brand, payload: dict) -> ReconcileResult:
    """
    Reconcile one order payload for brand. Raises ValueError for a payload without id or with bad
    money, TypeError/AttributeError for wrongly shaped fields, FinancialIntegrityError, or PersistenceError.
    """
    rate = resolve_commission_rate(brand)
    order_id = external_id(payload)
    candidate = order_candidate(payload, rate)
    return ReconciliationEngine(db).reconcile_order(brand.id, order_id, candidate)


def record_webhook_event(db: Session, shop_domain: str, topic: str, payload: dict) -> Optional[str]:
    """Persist an audit row for an authenticated webhook. Audit failure never blocks processing."""
    summary = None
    oid = payload.get("id") if isinstance(payload, dict) else None
    if oid is not None:
        summary = f"id={oid}"
    event = WebhookEvent(source="shopify", shop_domain=shop_domain, topic=topic or "orders/unknown", payload_summary=summary)
    try:
        db.add(event)
        db.commit()
        return event.id
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Webhook event audit insert failed for shop=%s: %s", shop_domain, e)
        return None


def finish_webhook_event(db: Session, event_id: Optional[str], error: Optional[str] = None) -> None:
    if not event_id:
        return
    try:
        event = db.query(WebhookEvent).filter(WebhookEvent.id == event_id).first()
        if event:
            event.processed_at = datetime.now(timezone.utc)
            event.error = error[:500] if error else None
            db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Webhook event %s update failed: %s", event_id, e)
