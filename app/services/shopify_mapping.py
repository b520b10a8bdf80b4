"""
Transform Shopify order/product payloads into local column values.
Shared by the order webhook and batch sync so both reconcile identical candidates.
Vendor blobs (line items, addresses, images) are carried through unmodified.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from app.services.commission import derive, to_money
from app.services.status_mapper import map_payment_status

logger = logging.getLogger(__name__)


def external_id(payload: dict) -> str:
    """Shopify numeric id as string. Raises ValueError when absent."""
    raw = payload.get("id") if isinstance(payload, dict) else None
    if raw is None or str(raw).strip() == "":
        raise ValueError("Shopify payload has no id")
    return str(raw).strip()


def _parse_ts(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparseable Shopify timestamp %r", value)
        return None


def _clean(value: Any, limit: int = 255) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text[:limit] if text else None


def _customer_name(payload: dict) -> Optional[str]:
    """Customer first + last name, else billing address name."""
    for source in (payload.get("customer") or {}, payload.get("billing_address") or {}):
        first = (source.get("first_name") or "").strip()
        last = (source.get("last_name") or "").strip()
        if first or last:
            return f"{first} {last}".strip()[:255]
    return None


def _tracking(payload: dict) -> tuple[Optional[str], Optional[str]]:
    fulfillments = payload.get("fulfillments") or []
    if not fulfillments or not isinstance(fulfillments[0], dict):
        return None, None
    first = fulfillments[0]
    number = _clean(first.get("tracking_number"))
    carrier = _clean(first.get("tracking_company") or first.get("carrier_identifier"))
    return number, carrier


def _shipping_cost(payload: dict) -> Optional[Decimal]:
    lines = payload.get("shipping_lines") or []
    if not lines:
        return None
    return sum((to_money(line.get("price")) for line in lines if isinstance(line, dict)), Decimal("0.00"))


def order_candidate(payload: dict, commission_rate: Decimal) -> dict:
    """
    Local ExternalOrder values for a Shopify order payload (identity and local timestamps excluded).
    Raises ValueError on unparseable money, FinancialIntegrityError on impossible figures.
    """
    total = to_money(payload.get("total_price"))
    earnings = derive(total, commission_rate)
    financial = _clean(payload.get("financial_status"), 64)
    fulfillment = _clean(payload.get("fulfillment_status"), 64)
    tracking_number, carrier = _tracking(payload)
    customer = payload.get("customer") or {}

    return {
        "order_number": _clean(payload.get("order_number") or payload.get("name"), 64),
        "currency": _clean(payload.get("currency"), 8),
        "total_amount": total,
        "commission_amount": earnings.commission_amount,
        "brand_earnings": earnings.brand_earnings,
        "financial_status": financial,
        "fulfillment_status": fulfillment,
        "payment_status": map_payment_status(financial),
        "customer_email": _clean(customer.get("email") or payload.get("email")),
        "customer_name": _customer_name(payload),
        "line_items": payload.get("line_items") or [],
        "shipping_address": payload.get("shipping_address") or {},
        "billing_address": payload.get("billing_address") or {},
        "tracking_number": tracking_number,
        "carrier": carrier,
        "shipping_cost": _shipping_cost(payload),
        "vendor_metadata": {
            "shopify_created_at": payload.get("created_at"),
            "shopify_updated_at": payload.get("updated_at"),
            "shopify_cancelled_at": payload.get("cancelled_at"),
            "shopify_processed_at": payload.get("processed_at"),
            "shopify_tags": payload.get("tags"),
            "shopify_note": payload.get("note"),
            "source_name": payload.get("source_name"),
            "referring_site": payload.get("referring_site"),
            "source_url": payload.get("source_url"),
            "source_identifier": payload.get("source_identifier"),
        },
        "created_at": _parse_ts(payload.get("created_at")),
    }


def _tags(raw: Any) -> list[str]:
    """Shopify REST sends "a, b, c"; GraphQL sends a list. Unique, first-seen order."""
    items = raw.split(",") if isinstance(raw, str) else list(raw or [])
    tags: list[str] = []
    for item in items:
        tag = str(item).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def product_candidate(payload: dict) -> dict:
    """Local ExternalProduct values for a Shopify product payload (identity and local timestamps excluded)."""
    variants = [v for v in (payload.get("variants") or []) if isinstance(v, dict)]
    first = variants[0] if variants else {}
    variant_price = to_money(first.get("price"))
    compare_at = to_money(first.get("compare_at_price")) if first.get("compare_at_price") else None
    if compare_at is not None and compare_at > variant_price:
        price, sale_price = compare_at, variant_price
    else:
        price, sale_price = variant_price, None

    return {
        "title": _clean(payload.get("title")) or "Untitled",
        "description": payload.get("body_html"),
        "category": _clean(payload.get("product_type")),
        "status": _clean(payload.get("status"), 32),
        "tags": _tags(payload.get("tags")),
        "price": price,
        "sale_price": sale_price,
        "inventory_count": sum(int(v.get("inventory_quantity") or 0) for v in variants),
        "images": payload.get("images") or [],
        "vendor_metadata": {
            "handle": payload.get("handle"),
            "vendor": payload.get("vendor"),
            "variants": variants,
            "shopify_created_at": payload.get("created_at"),
            "shopify_updated_at": payload.get("updated_at"),
        },
    }
