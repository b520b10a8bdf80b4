"""
SQLAlchemy models for brands and the Shopify records mirrored for them.
All model and enum definitions live here for simplicity and to avoid circular imports.
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Numeric, Text, Enum as SQLEnum, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
import enum
import uuid


def _new_id() -> str:
    return str(uuid.uuid4())


# Enums
class PaymentStatus(str, enum.Enum):
    """Canonical payment status. Derived from Shopify financial_status by status_mapper."""
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class ReconcileOutcome(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"


# Models
class Brand(Base):
    __tablename__ = "brands"

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    shopify_domain = Column("shopify_domain", String, unique=True, nullable=True, index=True)
    # Fraction of the order total (0.10 = 10%); NULL means not configured
    commission_rate = Column("commission_rate", Numeric(5, 4), nullable=True)
    shopify_access_token = Column("shopify_access_token", String, nullable=True)  # Encrypted
    shopify_webhook_secret = Column("shopify_webhook_secret", String, nullable=True)  # Encrypted
    created_at = Column("created_at", DateTime, server_default=func.now())
    updated_at = Column("updated_at", DateTime, server_default=func.now(), onupdate=func.now())

    orders = relationship("ExternalOrder", back_populates="brand")
    products = relationship("ExternalProduct", back_populates="brand")
    shipping_zones = relationship("ShippingZone", back_populates="brand")


class ExternalOrder(Base):
    __tablename__ = "external_orders"

    id = Column(String, primary_key=True, default=_new_id)
    brand_id = Column("brand_id", String, ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True)
    external_order_id = Column("external_order_id", String, nullable=False)
    order_number = Column("order_number", String, nullable=True)
    currency = Column(String(8), nullable=True)
    total_amount = Column("total_amount", Numeric(12, 2), nullable=False)
    commission_amount = Column("commission_amount", Numeric(12, 2), nullable=False)
    brand_earnings = Column("brand_earnings", Numeric(12, 2), nullable=False)
    financial_status = Column("financial_status", String, nullable=True)
    fulfillment_status = Column("fulfillment_status", String, nullable=True)
    payment_status = Column(
        "payment_status",
        SQLEnum(PaymentStatus, name="payment_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    customer_email = Column("customer_email", String, nullable=True)
    customer_name = Column("customer_name", String, nullable=True)
    line_items = Column("line_items", JSON, nullable=True)
    shipping_address = Column("shipping_address", JSON, nullable=True)
    billing_address = Column("billing_address", JSON, nullable=True)
    tracking_number = Column("tracking_number", String, nullable=True)
    carrier = Column(String, nullable=True)
    shipping_cost = Column("shipping_cost", Numeric(12, 2), nullable=True)
    vendor_metadata = Column("vendor_metadata", JSON, nullable=True)
    # Source timestamp (Shopify created_at), not local receipt time
    created_at = Column("created_at", DateTime(timezone=True), nullable=True)
    received_at = Column("received_at", DateTime(timezone=True), nullable=False)
    updated_at = Column("updated_at", DateTime(timezone=True), nullable=False)

    brand = relationship("Brand", back_populates="orders")

    __table_args__ = (
        UniqueConstraint("brand_id", "external_order_id", name="external_orders_brand_order_unique"),
    )


class ExternalProduct(Base):
    __tablename__ = "external_products"

    id = Column(String, primary_key=True, default=_new_id)
    brand_id = Column("brand_id", String, ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True)
    external_product_id = Column("external_product_id", String, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=True)
    status = Column(String, nullable=True)
    tags = Column(JSON, nullable=True)
    price = Column("price", Numeric(12, 2), nullable=False)
    sale_price = Column("sale_price", Numeric(12, 2), nullable=True)
    inventory_count = Column("inventory_count", Integer, nullable=False, default=0)
    images = Column(JSON, nullable=True)
    vendor_metadata = Column("vendor_metadata", JSON, nullable=True)
    last_sync_at = Column("last_sync_at", DateTime(timezone=True), nullable=False)
    received_at = Column("received_at", DateTime(timezone=True), nullable=False)
    updated_at = Column("updated_at", DateTime(timezone=True), nullable=False)

    brand = relationship("Brand", back_populates="products")

    __table_args__ = (
        UniqueConstraint("brand_id", "external_product_id", name="external_products_brand_product_unique"),
    )


class ShippingZone(Base):
    __tablename__ = "shipping_zones"

    id = Column(String, primary_key=True, default=_new_id)
    brand_id = Column("brand_id", String, ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True)
    shopify_zone_id = Column("shopify_zone_id", String, nullable=False)
    name = Column(String, nullable=False)
    countries = Column(JSON, nullable=True)
    provinces = Column(JSON, nullable=True)
    updated_at = Column("updated_at", DateTime(timezone=True), nullable=False)

    brand = relationship("Brand", back_populates="shipping_zones")
    rates = relationship("ShippingRate", back_populates="zone", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("brand_id", "shopify_zone_id", name="shipping_zones_brand_zone_unique"),
    )


class ShippingRate(Base):
    __tablename__ = "shipping_rates"

    id = Column(String, primary_key=True, default=_new_id)
    zone_id = Column("zone_id", String, ForeignKey("shipping_zones.id", ondelete="CASCADE"), nullable=False, index=True)
    shopify_rate_id = Column("shopify_rate_id", String, nullable=False)
    name = Column(String, nullable=False)
    price = Column("price", Numeric(12, 2), nullable=False)
    min_order_amount = Column("min_order_amount", Numeric(12, 2), nullable=True)
    max_order_amount = Column("max_order_amount", Numeric(12, 2), nullable=True)
    conditions = Column(JSON, nullable=True)
    updated_at = Column("updated_at", DateTime(timezone=True), nullable=False)

    zone = relationship("ShippingZone", back_populates="rates")

    __table_args__ = (
        UniqueConstraint("zone_id", "shopify_rate_id", name="shipping_rates_zone_rate_unique"),
    )


class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    id = Column(String, primary_key=True, default=_new_id)
    source = Column(String, nullable=False, index=True)
    shop_domain = Column("shop_domain", String, nullable=True, index=True)
    topic = Column(String, nullable=False, index=True)
    payload_summary = Column("payload_summary", String, nullable=True)
    processed_at = Column("processed_at", DateTime(timezone=True), nullable=True)
    error = Column(String, nullable=True)
    created_at = Column("created_at", DateTime, server_default=func.now(), index=True)
