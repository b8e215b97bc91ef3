"""
Database schema declarations

Tables are declared with SQLAlchemy Core so a fresh database can be
bootstrapped with create_tables(). Repositories query these tables with
raw SQL through psycopg2.

Author: Stockroom team
Date: 2026-10-18
"""
import logging

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from .database import engine

logger = logging.getLogger(__name__)

metadata = MetaData()


product_types = Table(
    "product_types",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(200), nullable=False, unique=True),
    Column("description", Text, nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

skus = Table(
    "skus",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("code", String(100), nullable=False, unique=True),
    Column("description", Text, nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

products = Table(
    "products",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(300), nullable=False),
    Column("description", Text, nullable=True),
    Column("barcode", String(200), nullable=True, unique=True),
    Column("price", Numeric(12, 2), nullable=False, server_default="0"),
    Column("stock_count", Integer, nullable=False, server_default="0"),
    Column("image_url", String(1000), nullable=True),
    Column("product_type_id", Integer, ForeignKey("product_types.id"), nullable=False),
    Column("sku_id", Integer, ForeignKey("skus.id"), nullable=True),
    # remote system name -> remote product id, e.g. {"shopify": "632910392"}
    Column("external_ids", JSONB, nullable=False, server_default=text("'{}'::jsonb")),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=True),
    CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
    CheckConstraint("stock_count >= 0", name="ck_products_stock_non_negative"),
)

# Serves external_ids @> '{"shopify": "..."}' lookups
Index("ix_products_external_ids", products.c.external_ids, postgresql_using="gin")

sales = Table(
    "sales",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("product_id", Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("quantity", Integer, nullable=False),
    Column("total_price", Numeric(12, 2), nullable=False),
    Column("sale_date", DateTime(timezone=True), server_default=func.now(), index=True),
    CheckConstraint("quantity > 0", name="ck_sales_quantity_positive"),
)

integration_settings = Table(
    "integration_settings",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("integration_type", String(50), nullable=False, unique=True),
    Column("is_enabled", Boolean, nullable=False, server_default=text("false")),
    Column("settings", JSONB, nullable=False, server_default=text("'{}'::jsonb")),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=True),
)

shopify_inventory_items = Table(
    "shopify_inventory_items",
    metadata,
    Column("inventory_item_id", String(50), primary_key=True),
    Column("product_id", Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("remote_product_id", String(50), nullable=False),
    Column("updated_at", DateTime(timezone=True), server_default=func.now()),
)


def create_tables():
    """Create any missing tables (development bootstrap)"""
    metadata.create_all(bind=engine)
    logger.info("Database schema ensured")
