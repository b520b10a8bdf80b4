"""
Shopify batch sync routes: orders, products, and shipping zones.
Order/product sync returns the full ReconciliationBatch counts so operators can spot partial failure.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_shopify_client_factory
from app.exceptions import UpstreamFetchError
from app.http.requests.schemas import ShippingSyncRequest, ShippingSyncResponse, SyncRequest, SyncResponse
from app.models import Brand
from app.services.credentials import get_brand_access_token
from app.services.shipping_sync import sync_shipping_zones
from app.services.sync_engine import SyncEngine

logger = logging.getLogger(__name__)
router = APIRouter()


def _resolve_brand(db: Session, body: SyncRequest) -> Brand:
    """Brand by brandId, else by shop domain. 400 when neither is given, 404 when not found."""
    if not body.brand_id and not body.shop:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing shop or brandId")
    brand: Optional[Brand]
    if body.brand_id:
        brand = db.query(Brand).filter(Brand.id == body.brand_id).first()
    else:
        brand = db.query(Brand).filter(Brand.shopify_domain == body.shop).first()
    if not brand:
        logger.warning("Sync: brand not found (brandId=%s shop=%s)", body.brand_id, body.shop)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Brand not found for this shop")
    if not brand.shopify_domain:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Brand has no Shopify store connected")
    return brand


def _access_token(brand: Brand, body: SyncRequest) -> str:
    token = (body.access_token or "").strip() or get_brand_access_token(brand)
    if not token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing accessToken")
    return token


def _upstream_error(e: UpstreamFetchError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Shopify fetch failed: {e.message}")


@router.post("/sync-orders", response_model=SyncResponse)
async def sync_orders(
    body: SyncRequest,
    db: Session = Depends(get_db),
    client_factory=Depends(get_shopify_client_factory),
):
    """Pull every order for the brand's shop and reconcile it locally."""
    brand = _resolve_brand(db, body)
    token = _access_token(brand, body)
    logger.info("Order sync requested for brand %s (%s)", brand.id, brand.shopify_domain)
    try:
        batch = await SyncEngine(db, client_factory=client_factory).sync_orders(brand, token)
    except UpstreamFetchError as e:
        logger.warning("Order sync aborted for brand %s: %s", brand.id, e)
        raise _upstream_error(e)
    return {
        "success": True,
        "message": f"Successfully synced {batch.total_processed} orders",
        "sync_result": batch.to_dict(),
    }


@router.post("/sync-products", response_model=SyncResponse)
async def sync_products(
    body: SyncRequest,
    db: Session = Depends(get_db),
    client_factory=Depends(get_shopify_client_factory),
):
    """Pull every product for the brand's shop and reconcile it locally."""
    brand = _resolve_brand(db, body)
    token = _access_token(brand, body)
    logger.info("Product sync requested for brand %s (%s)", brand.id, brand.shopify_domain)
    try:
        batch = await SyncEngine(db, client_factory=client_factory).sync_products(brand, token)
    except UpstreamFetchError as e:
        logger.warning("Product sync aborted for brand %s: %s", brand.id, e)
        raise _upstream_error(e)
    return {
        "success": True,
        "message": f"Successfully synced {batch.total_processed} products",
        "sync_result": batch.to_dict(),
    }


@router.post("/sync-shipping", response_model=ShippingSyncResponse)
async def sync_shipping(
    body: ShippingSyncRequest,
    db: Session = Depends(get_db),
    client_factory=Depends(get_shopify_client_factory),
):
    """Mirror delivery profiles into shipping zones/rates. Also called by the new-order side effect."""
    brand = db.query(Brand).filter(Brand.id == body.brand_id).first()
    if not brand:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Brand not found in database")
    if not brand.shopify_domain or brand.shopify_domain != body.shop:
        logger.warning("Shipping sync: shop %s does not belong to brand %s", body.shop, body.brand_id)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Shop does not match brand")
    client = client_factory(brand.shopify_domain, body.access_token)
    try:
        result = await sync_shipping_zones(db, brand, client)
    except UpstreamFetchError as e:
        logger.warning("Shipping sync failed for brand %s: %s", body.brand_id, e)
        raise _upstream_error(e)
    return {
        "success": True,
        "message": "Shipping zones and rates synced successfully",
        **result,
    }
