"""Initial schema: brands, mirrored Shopify orders/products, shipping zones/rates, webhook events.

Revision ID: initial_schema
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa


revision = "initial_schema"
down_revision = None
branch_labels = None
depends_on = None

PAYMENT_STATUS = sa.Enum("pending", "paid", "refunded", "partially_refunded", name="payment_status")


def upgrade() -> None:
    op.create_table(
        "brands",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("shopify_domain", sa.String(), nullable=True),
        sa.Column("commission_rate", sa.Numeric(5, 4), nullable=True),
        sa.Column("shopify_access_token", sa.String(), nullable=True),
        sa.Column("shopify_webhook_secret", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("shopify_domain"),
    )
    op.create_index("ix_brands_shopify_domain", "brands", ["shopify_domain"])

    op.create_table(
        "external_orders",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("brand_id", sa.String(), sa.ForeignKey("brands.id", ondelete="CASCADE"), nullable=False),
        sa.Column("external_order_id", sa.String(), nullable=False),
        sa.Column("order_number", sa.String(), nullable=True),
        sa.Column("currency", sa.String(8), nullable=True),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("commission_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("brand_earnings", sa.Numeric(12, 2), nullable=False),
        sa.Column("financial_status", sa.String(), nullable=True),
        sa.Column("fulfillment_status", sa.String(), nullable=True),
        sa.Column("payment_status", PAYMENT_STATUS, nullable=False),
        sa.Column("customer_email", sa.String(), nullable=True),
        sa.Column("customer_name", sa.String(), nullable=True),
        sa.Column("line_items", sa.JSON(), nullable=True),
        sa.Column("shipping_address", sa.JSON(), nullable=True),
        sa.Column("billing_address", sa.JSON(), nullable=True),
        sa.Column("tracking_number", sa.String(), nullable=True),
        sa.Column("carrier", sa.String(), nullable=True),
        sa.Column("shipping_cost", sa.Numeric(12, 2), nullable=True),
        sa.Column("vendor_metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("brand_id", "external_order_id", name="external_orders_brand_order_unique"),
    )
    op.create_index("ix_external_orders_brand_id", "external_orders", ["brand_id"])

    op.create_table(
        "external_products",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("brand_id", sa.String(), sa.ForeignKey("brands.id", ondelete="CASCADE"), nullable=False),
        sa.Column("external_product_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("sale_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("inventory_count", sa.Integer(), nullable=False),
        sa.Column("images", sa.JSON(), nullable=True),
        sa.Column("vendor_metadata", sa.JSON(), nullable=True),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("brand_id", "external_product_id", name="external_products_brand_product_unique"),
    )
    op.create_index("ix_external_products_brand_id", "external_products", ["brand_id"])

    op.create_table(
        "shipping_zones",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("brand_id", sa.String(), sa.ForeignKey("brands.id", ondelete="CASCADE"), nullable=False),
        sa.Column("shopify_zone_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("countries", sa.JSON(), nullable=True),
        sa.Column("provinces", sa.JSON(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("brand_id", "shopify_zone_id", name="shipping_zones_brand_zone_unique"),
    )
    op.create_index("ix_shipping_zones_brand_id", "shipping_zones", ["brand_id"])

    op.create_table(
        "shipping_rates",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("zone_id", sa.String(), sa.ForeignKey("shipping_zones.id", ondelete="CASCADE"), nullable=False),
        sa.Column("shopify_rate_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("min_order_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("max_order_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("conditions", sa.JSON(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("zone_id", "shopify_rate_id", name="shipping_rates_zone_rate_unique"),
    )
    op.create_index("ix_shipping_rates_zone_id", "shipping_rates", ["zone_id"])

    op.create_table(
        "webhook_events",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("source", sa.String(), nullable=False),
        sa.Column("shop_domain", sa.String(), nullable=True),
        sa.Column("topic", sa.String(), nullable=False),
        sa.Column("payload_summary", sa.String(), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_webhook_events_source", "webhook_events", ["source"])
    op.create_index("ix_webhook_events_shop_domain", "webhook_events", ["shop_domain"])
    op.create_index("ix_webhook_events_topic", "webhook_events", ["topic"])
    op.create_index("ix_webhook_events_created_at", "webhook_events", ["created_at"])


def downgrade() -> None:
    op.drop_table("webhook_events")
    op.drop_table("shipping_rates")
    op.drop_table("shipping_zones")
    op.drop_table("external_products")
    op.drop_table("external_orders")
    op.drop_table("brands")
    PAYMENT_STATUS.drop(op.get_bind(), checkfirst=True)
