"""
Batch sync orchestration tests
"""
from decimal import Decimal

import pytest

from app.exceptions import UpstreamFetchError
from app.models import ExternalOrder, ExternalProduct
from app.services.sync_engine import ReconciliationBatch, SyncEngine
from tests.conftest import ACCESS_TOKEN, FakeShopifyClient, order_payload


def _orders(n, bad=()):
    return [order_payload(order_id=i, total="lots" if i in bad else f"{i * 10}.00") for i in range(1, n + 1)]


class TestSyncOrders:
    """Full pull then per-record reconciliation"""

    @pytest.mark.asyncio
    async def test_all_new_orders_created(self, db_session, brand):
        fake = FakeShopifyClient(orders=_orders(3))
        batch = await SyncEngine(db_session, client_factory=fake).sync_orders(brand, ACCESS_TOKEN)
        assert (batch.created, batch.updated, batch.failed, batch.total_processed) == (3, 0, 0, 3)
        assert fake.shop_domain == "acme.myshopify.com"
        assert fake.access_token == ACCESS_TOKEN
        order = db_session.query(ExternalOrder).filter(ExternalOrder.external_order_id == "2").one()
        assert order.commission_amount == Decimal("2.00")
        assert order.brand_earnings == Decimal("18.00")

    @pytest.mark.asyncio
    async def test_rerun_updates(self, db_session, brand):
        fake = FakeShopifyClient(orders=_orders(3))
        await SyncEngine(db_session, client_factory=fake).sync_orders(brand, ACCESS_TOKEN)
        batch = await SyncEngine(db_session, client_factory=fake).sync_orders(brand, ACCESS_TOKEN)
        assert (batch.created, batch.updated, batch.failed) == (0, 3, 0)
        assert db_session.query(ExternalOrder).count() == 3

    @pytest.mark.asyncio
    async def test_failed_record_does_not_stop_batch(self, db_session, brand):
        fake = FakeShopifyClient(orders=_orders(10, bad={5}))
        batch = await SyncEngine(db_session, client_factory=fake).sync_orders(brand, ACCESS_TOKEN)
        assert batch.failed == 1
        assert batch.created == 9
        assert batch.total_processed == 10
        assert batch.failed_ids == ["5"]
        assert db_session.query(ExternalOrder).count() == 9

    @pytest.mark.asyncio
    async def test_out_of_range_total_counted_as_failed(self, db_session, brand):
        orders = _orders(10)
        orders[4]["total_price"] = "1e30"
        batch = await SyncEngine(db_session, client_factory=FakeShopifyClient(orders=orders)).sync_orders(brand, ACCESS_TOKEN)
        assert (batch.created, batch.failed, batch.total_processed) == (9, 1, 10)
        assert batch.failed_ids == ["5"]

    @pytest.mark.asyncio
    async def test_integrity_failure_counted(self, db_session, brand):
        orders = [order_payload(order_id=1), order_payload(order_id=2, total="-3.00")]
        batch = await SyncEngine(db_session, client_factory=FakeShopifyClient(orders=orders)).sync_orders(brand, ACCESS_TOKEN)
        assert (batch.created, batch.failed, batch.total_processed) == (1, 1, 2)
        assert batch.failed_ids == ["2"]

    @pytest.mark.asyncio
    async def test_payload_without_id_counted_as_failed(self, db_session, brand):
        orders = [order_payload(order_id=None)]
        batch = await SyncEngine(db_session, client_factory=FakeShopifyClient(orders=orders)).sync_orders(brand, ACCESS_TOKEN)
        assert (batch.failed, batch.total_processed) == (1, 1)

    @pytest.mark.asyncio
    async def test_upstream_failure_aborts_before_any_write(self, db_session, brand):
        fake = FakeShopifyClient(orders=_orders(3), fetch_error=UpstreamFetchError("401", status_code=401))
        with pytest.raises(UpstreamFetchError):
            await SyncEngine(db_session, client_factory=fake).sync_orders(brand, ACCESS_TOKEN)
        assert db_session.query(ExternalOrder).count() == 0

    @pytest.mark.asyncio
    async def test_empty_shop(self, db_session, brand):
        batch = await SyncEngine(db_session, client_factory=FakeShopifyClient()).sync_orders(brand, ACCESS_TOKEN)
        assert batch.to_dict() == {"created": 0, "updated": 0, "failed": 0, "totalProcessed": 0, "failedIds": []}


class TestSyncProducts:
    @pytest.mark.asyncio
    async def test_products_reconciled(self, db_session, brand):
        products = [
            {"id": 11, "title": "Tee", "variants": [{"price": "20.00", "inventory_quantity": 5}]},
            {"id": 12, "title": "Cap", "variants": [{"price": "15.00", "compare_at_price": "25.00"}]},
        ]
        fake = FakeShopifyClient(products=products)
        batch = await SyncEngine(db_session, client_factory=fake).sync_products(brand, ACCESS_TOKEN)
        assert (batch.created, batch.failed, batch.total_processed) == (2, 0, 2)
        cap = db_session.query(ExternalProduct).filter(ExternalProduct.external_product_id == "12").one()
        assert cap.price == Decimal("25.00")
        assert cap.sale_price == Decimal("15.00")

    @pytest.mark.asyncio
    async def test_bad_price_counted_as_failed(self, db_session, brand):
        products = [{"id": 11, "title": "Tee", "variants": [{"price": "free"}]}]
        batch = await SyncEngine(db_session, client_factory=FakeShopifyClient(products=products)).sync_products(brand, ACCESS_TOKEN)
        assert (batch.failed, batch.failed_ids) == (1, ["11"])


class TestReconciliationBatch:
    def test_to_dict_wire_names(self):
        batch = ReconciliationBatch(created=1, updated=2, failed=1, total_processed=4, failed_ids=["9"])
        assert batch.to_dict() == {"created": 1, "updated": 2, "failed": 1, "totalProcessed": 4, "failedIds": ["9"]}
