"""
Shipping-zone sync: mirror a brand's Shopify delivery profiles into shipping_zones / shipping_rates.
Invoked through POST /api/shopify/sync-shipping (by the dashboard, and by SideEffectDispatcher after a new order).
Zones and rates are upserted on their Shopify ids; a failing zone is logged and skipped.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import Brand, ShippingRate, ShippingZone
from app.services.commission import to_money
from app.services.reconciliation import upsert_row
from app.services.shopify_service import ShopifyClient

logger = logging.getLogger(__name__)

DELIVERY_PROFILES_QUERY = """
query {
  deliveryProfiles(first: 10) {
    edges {
      node {
        id
        name
        default
        profileLocationGroups {
          locationGroup { id }
          locationGroupZones(first: 10) {
            edges {
              node {
                zone {
                  id
                  name
                  countries {
                    code { countryCode restOfWorld }
                    provinces { name code }
                  }
                }
                methodDefinitions(first: 10) {
                  edges {
                    node {
                      id
                      active
                      name
                      description
                      rateProvider {
                        ... on DeliveryRateDefinition {
                          price { amount currencyCode }
                        }
                      }
                      methodConditions {
                        field
                        operator
                        conditionCriteria {
                          __typename
                          ... on MoneyV2 { amount currencyCode }
                          ... on Weight { unit value }
                        }
                      }
                    }
                  }
                }
              }
            }
          }
        }
      }
    }
  }
}
"""


def _edges(connection: Optional[dict]) -> list[dict]:
    return [e.get("node") for e in ((connection or {}).get("edges") or []) if isinstance(e, dict) and e.get("node")]


def _decimal(value) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return to_money(value)
    except ValueError:
        return None


def rate_from_method(method: dict) -> dict:
    """
    Price and thresholds for one delivery method definition.
    Free-shipping rules: name contains "free"; "standard" with min order >= 100; "international" with min weight >= 20.
    """
    price = _decimal(((method.get("rateProvider") or {}).get("price") or {}).get("amount")) or Decimal("0.00")
    min_order: Optional[Decimal] = None
    max_order: Optional[Decimal] = None
    min_weight: Optional[Decimal] = None

    for condition in method.get("methodConditions") or []:
        criteria = condition.get("conditionCriteria") or {}
        operator = condition.get("operator")
        if condition.get("field") == "TOTAL_PRICE" and criteria.get("__typename") == "MoneyV2":
            if operator == "GREATER_THAN_OR_EQUAL_TO":
                min_order = _decimal(criteria.get("amount"))
            elif operator == "LESS_THAN_OR_EQUAL_TO":
                max_order = _decimal(criteria.get("amount"))
        elif condition.get("field") == "WEIGHT" and criteria.get("__typename") == "Weight":
            if operator == "GREATER_THAN_OR_EQUAL_TO":
                min_weight = _decimal(criteria.get("value"))

    name = (method.get("name") or "").lower()
    if (
        "free" in name
        or (min_order is not None and min_order >= 100 and "standard" in name)
        or (min_weight is not None and min_weight >= 20 and "international" in name)
    ):
        price = Decimal("0.00")

    return {
        "name": method.get("name") or "Shipping Rate",
        "price": price,
        "min_order_amount": min_order,
        "max_order_amount": max_order,
        "conditions": method.get("methodConditions") or [],
    }


def _zone_values(zone: dict) -> dict:
    countries = zone.get("countries") or []
    return {
        "name": zone.get("name") or "Unknown Zone",
        "countries": [c["code"]["countryCode"] for c in countries if (c.get("code") or {}).get("countryCode")],
        "provinces": [p["code"] for c in countries for p in (c.get("provinces") or []) if p.get("code")],
    }


async def sync_shipping_zones(db: Session, brand: Brand, client: ShopifyClient) -> dict:
    """Fetch delivery profiles and upsert zones/rates for brand. UpstreamFetchError propagates."""
    brand_id = brand.id
    data = await client.graphql(DELIVERY_PROFILES_QUERY)
    profiles = _edges(data.get("deliveryProfiles"))
    logger.info("Shipping sync brand=%s: %s delivery profile(s)", brand_id, len(profiles))

    zones_synced = 0
    rates_synced = 0
    failed = 0
    for profile in profiles:
        for group in profile.get("profileLocationGroups") or []:
            for zone_node in _edges(group.get("locationGroupZones")):
                zone = zone_node.get("zone")
                if not zone or not zone.get("id"):
                    logger.warning("Shipping sync brand=%s: skipping zone without id in profile %s", brand_id, profile.get("id"))
                    continue
                now = datetime.now(timezone.utc)
                try:
                    zone_id, _ = upsert_row(
                        db,
                        ShippingZone,
                        ("brand_id", "shopify_zone_id"),
                        dict(_zone_values(zone), brand_id=brand_id, shopify_zone_id=zone["id"], updated_at=now),
                    )
                    zone_rates = 0
                    for method in _edges(zone_node.get("methodDefinitions")):
                        if not method.get("active") or not method.get("id"):
                            continue
                        upsert_row(
                            db,
                            ShippingRate,
                            ("zone_id", "shopify_rate_id"),
                            dict(rate_from_method(method), zone_id=zone_id, shopify_rate_id=method["id"], updated_at=now),
                        )
                        zone_rates += 1
                    db.commit()
                except SQLAlchemyError as e:
                    db.rollback()
                    failed += 1
                    logger.error("Shipping sync brand=%s: zone %s failed: %s", brand_id, zone.get("id"), e)
                    continue
                zones_synced += 1
                rates_synced += zone_rates

    logger.info("Shipping sync brand=%s: zones=%s rates=%s failed=%s", brand_id, zones_synced, rates_synced, failed)
    return {"zones": zones_synced, "rates": rates_synced, "failed": failed}
