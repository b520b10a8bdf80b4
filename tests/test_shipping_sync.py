"""
Shipping zone / rate sync tests
"""
from decimal import Decimal

import pytest

from app.models import ShippingRate, ShippingZone
from app.services.shipping_sync import rate_from_method, sync_shipping_zones
from tests.conftest import FakeShopifyClient


def _method(method_id, name, amount="5.00", active=True, conditions=None):
    return {
        "id": method_id,
        "active": active,
        "name": name,
        "rateProvider": {"price": {"amount": amount, "currencyCode": "USD"}},
        "methodConditions": conditions or [],
    }


def _min_order(amount):
    return {
        "field": "TOTAL_PRICE",
        "operator": "GREATER_THAN_OR_EQUAL_TO",
        "conditionCriteria": {"__typename": "MoneyV2", "amount": amount, "currencyCode": "USD"},
    }


def _profiles(methods):
    zone = {
        "zone": {
            "id": "gid://shopify/DeliveryZone/1",
            "name": "Domestic",
            "countries": [{"code": {"countryCode": "US"}, "provinces": [{"name": "Oregon", "code": "OR"}]}],
        },
        "methodDefinitions": {"edges": [{"node": m} for m in methods]},
    }
    return {
        "deliveryProfiles": {"edges": [{"node": {
            "id": "gid://shopify/DeliveryProfile/1",
            "name": "General",
            "profileLocationGroups": [{"locationGroupZones": {"edges": [{"node": zone}]}}],
        }}]}
    }


class TestRateFromMethod:
    """Price, thresholds and free-shipping rules"""

    def test_flat_rate(self):
        rate = rate_from_method(_method("m1", "Express", "12.50"))
        assert rate["price"] == Decimal("12.50")
        assert rate["min_order_amount"] is None

    def test_free_in_name(self):
        assert rate_from_method(_method("m1", "Free Shipping", "9.00"))["price"] == Decimal("0.00")

    def test_standard_over_hundred_is_free(self):
        rate = rate_from_method(_method("m1", "Standard", "5.00", conditions=[_min_order("100.00")]))
        assert rate["price"] == Decimal("0.00")
        assert rate["min_order_amount"] == Decimal("100.00")

    def test_standard_under_hundred_keeps_price(self):
        rate = rate_from_method(_method("m1", "Standard", "5.00", conditions=[_min_order("50.00")]))
        assert rate["price"] == Decimal("5.00")

    def test_international_heavy_is_free(self):
        weight = {
            "field": "WEIGHT",
            "operator": "GREATER_THAN_OR_EQUAL_TO",
            "conditionCriteria": {"__typename": "Weight", "unit": "KILOGRAMS", "value": 20},
        }
        assert rate_from_method(_method("m1", "International", "30.00", conditions=[weight]))["price"] == Decimal("0.00")


class TestSyncShippingZones:
    @pytest.mark.asyncio
    async def test_zones_and_active_rates_upserted(self, db_session, brand):
        methods = [_method("m1", "Standard"), _method("m2", "Express", "15.00"), _method("m3", "Old", active=False)]
        client = FakeShopifyClient(graphql_data=_profiles(methods))
        result = await sync_shipping_zones(db_session, brand, client)
        assert result == {"zones": 1, "rates": 2, "failed": 0}
        zone = db_session.query(ShippingZone).one()
        assert zone.countries == ["US"]
        assert zone.provinces == ["OR"]
        assert db_session.query(ShippingRate).count() == 2

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, db_session, brand):
        client = FakeShopifyClient(graphql_data=_profiles([_method("m1", "Standard")]))
        await sync_shipping_zones(db_session, brand, client)
        client.graphql_data = _profiles([_method("m1", "Standard", "7.00")])
        await sync_shipping_zones(db_session, brand, client)
        assert db_session.query(ShippingZone).count() == 1
        rate = db_session.query(ShippingRate).one()
        db_session.refresh(rate)
        assert rate.price == Decimal("7.00")

    @pytest.mark.asyncio
    async def test_no_profiles(self, db_session, brand):
        result = await sync_shipping_zones(db_session, brand, FakeShopifyClient(graphql_data={}))
        assert result == {"zones": 0, "rates": 0, "failed": 0}
