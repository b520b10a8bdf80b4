"""
Error taxonomy for webhook ingestion and Shopify sync.
Controllers translate these into HTTP status codes; services raise them.
"""
from typing import Optional


class ReconciliationError(Exception):
    """Base class for all reconciliation-core errors."""

    def __init__(self, message: str, context: Optional[dict] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)


class AuthenticationFailure(ReconciliationError):
    """Missing or invalid webhook signature. Never carries detail back to the caller."""


class RoutingFailure(ReconciliationError):
    """Routing header (shop domain) resolves to no known brand."""


class ProvenanceMismatch(ReconciliationError):
    """Event did not originate from the storefront flow; accepted as a no-op."""


class PersistenceError(ReconciliationError):
    """Store unavailable or write rejected. Carries the (entity, brand, external id) key."""

    def __init__(self, entity: str, brand_id: str, external_id: str, cause: Optional[Exception] = None):
        self.entity = entity
        self.brand_id = brand_id
        self.external_id = external_id
        self.cause = cause
        super().__init__(
            f"Failed to persist {entity} {external_id} for brand {brand_id}: {cause}",
            {"entity": entity, "brand_id": brand_id, "external_id": external_id},
        )


class UpstreamFetchError(ReconciliationError):
    """Shopify unreachable or credential rejected. Aborts a batch before any record is processed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message, {"status_code": status_code})


class SideEffectFailure(ReconciliationError):
    """Dependent workflow failed. Swallowed at the dispatcher boundary."""


class FinancialIntegrityError(ReconciliationError):
    """Derived money figures are impossible (negative earnings, commission above total, bad rate)."""
