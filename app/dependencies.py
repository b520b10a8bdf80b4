"""
FastAPI dependencies for outbound collaborators. Override via app.dependency_overrides in tests.
"""
from app.database import SessionLocal
from app.services.shopify_service import ShopifyClient
from app.services.side_effects import SideEffectDispatcher


def get_side_effect_dispatcher() -> SideEffectDispatcher:
    return SideEffectDispatcher(SessionLocal)


def get_shopify_client_factory():
    """Callable (shop_domain, access_token) -> ShopifyClient."""
    return ShopifyClient
