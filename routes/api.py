"""
Central API route registration. All HTTP controllers are mounted here with /api prefix.
"""
import logging
from fastapi import FastAPI

from app.http.controllers import shopify, webhooks

logger = logging.getLogger(__name__)


def register_routes(app: FastAPI, settings) -> None:
    """Register all API routers. Call from main.py after creating the FastAPI app."""
    app.include_router(webhooks.router, prefix=f"{settings.API_PREFIX}/webhooks", tags=["webhooks"])
    app.include_router(shopify.router, prefix=f"{settings.API_PREFIX}/shopify", tags=["shopify"])
    logger.debug("Registered routes: webhooks, shopify")
