"""
Batch sync engine: full pull of a brand's Shopify orders/products, reconciled record by record.
Fetch is all-or-nothing (UpstreamFetchError aborts before any write); reconciliation failures are
isolated per record and reported in the ReconciliationBatch counts.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.exceptions import FinancialIntegrityError, PersistenceError
from app.models import Brand
from app.services.commission import resolve_commission_rate
from app.services.reconciliation import ReconcileResult, ReconciliationEngine
from app.services.shopify_mapping import external_id, order_candidate, product_candidate
from app.services.shopify_service import ShopifyClient

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationBatch:
    """Outcome counts for one sync run. Returned to the caller, never persisted."""
    created: int = 0
    updated: int = 0
    failed: int = 0
    total_processed: int = 0
    failed_ids: list[str] = field(default_factory=list)

    def record(self, result: ReconcileResult) -> None:
        if result.created:
            self.created += 1
        else:
            self.updated += 1

    def to_dict(self) -> dict:
        return {
            "created": self.created,
            "updated": self.updated,
            "failed": self.failed,
            "totalProcessed": self.total_processed,
            "failedIds": list(self.failed_ids),
        }


ClientFactory = Callable[[str, str], ShopifyClient]


class SyncEngine:
    """Pull-and-reconcile for one brand. Collaborators are injected for substitution in tests."""

    def __init__(
        self,
        db: Session,
        client_factory: Optional[ClientFactory] = None,
        reconciler: Optional[ReconciliationEngine] = None,
    ):
        self.db = db
        self.client_factory = client_factory or ShopifyClient
        self.reconciler = reconciler or ReconciliationEngine(db)

    async def sync_orders(self, brand: Brand, access_token: str) -> ReconciliationBatch:
        """Fetch every order for the brand's shop and reconcile each one."""
        brand_id = brand.id
        client = self.client_factory(brand.shopify_domain, access_token)
        orders = await client.fetch_orders()
        logger.info("Order sync brand=%s: fetched %s order(s)", brand_id, len(orders))
        rate = resolve_commission_rate(brand)

        def reconcile(payload: dict) -> ReconcileResult:
            return self.reconciler.reconcile_order(brand_id, external_id(payload), order_candidate(payload, rate))

        return self._reconcile_all(brand_id, "order", orders, reconcile)

    async def sync_products(self, brand: Brand, access_token: str) -> ReconciliationBatch:
        """Fetch every product for the brand's shop and reconcile each one."""
        brand_id = brand.id
        client = self.client_factory(brand.shopify_domain, access_token)
        products = await client.fetch_products()
        logger.info("Product sync brand=%s: fetched %s product(s)", brand_id, len(products))

        def reconcile(payload: dict) -> ReconcileResult:
            return self.reconciler.reconcile_product(brand_id, external_id(payload), product_candidate(payload))

        return self._reconcile_all(brand_id, "product", products, reconcile)

    def _reconcile_all(
        self,
        brand_id: str,
        entity: str,
        payloads: list[dict],
        reconcile: Callable[[dict], ReconcileResult],
    ) -> ReconciliationBatch:
        batch = ReconciliationBatch()
        for payload in payloads:
            batch.total_processed += 1
            ext_id = str(payload.get("id")) if isinstance(payload, dict) else "?"
            try:
                batch.record(reconcile(payload))
            except FinancialIntegrityError as e:
                batch.failed += 1
                batch.failed_ids.append(ext_id)
                logger.error("Financial integrity error: brand=%s %s %s: %s", brand_id, entity, ext_id, e)
            except PersistenceError as e:
                batch.failed += 1
                batch.failed_ids.append(ext_id)
                logger.error("Sync %s %s failed for brand %s: %s", entity, ext_id, brand_id, e)
            except (ValueError, TypeError, AttributeError) as e:
                batch.failed += 1
                batch.failed_ids.append(ext_id)
                logger.warning("Sync %s %s skipped for brand %s: malformed payload: %s", entity, ext_id, brand_id, e)
        logger.info(
            "%s sync brand=%s: created=%s updated=%s failed=%s total=%s",
            entity.capitalize(), brand_id, batch.created, batch.updated, batch.failed, batch.total_processed,
        )
        return batch
