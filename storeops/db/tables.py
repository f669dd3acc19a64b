"""Table definitions for the local store."""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    Table,
    Text,
    func,
)

metadata = MetaData()

products = Table(
    "products",
    metadata,
    Column("id", Text, primary_key=True),
    Column("title", Text, nullable=False),
    Column("vendor", Text),
    Column("created_at", DateTime),
)

variants = Table(
    "variants",
    metadata,
    Column("id", Text, primary_key=True),
    Column("product_id", Text, ForeignKey("products.id", ondelete="RESTRICT", onupdate="CASCADE"), nullable=False),
    Column("title", Text),
    Column("sku", Text),
    Column("size", Text),
    Column("color", Text),
    Column("updated_at", DateTime, nullable=False),
    Index("variants_product_id_idx", "product_id"),
)

order_lines = Table(
    "order_lines",
    metadata,
    Column("id", Text, primary_key=True),
    Column("order_id", Text, nullable=False),
    Column("created_at", DateTime, nullable=False),
    Column("product_id", Text),
    Column("variant_id", Text),
    Column("qty", Integer, nullable=False),
    Column("currency", Text, nullable=False),
    Column("net_amount", Numeric(18, 2), nullable=False),
    Index("order_lines_created_at_idx", "created_at"),
    Index("order_lines_product_id_idx", "product_id"),
    Index("order_lines_variant_id_idx", "variant_id"),
)

inventory_snapshots = Table(
    "inventory_snapshots",
    metadata,
    Column("id", Text, primary_key=True),
    Column("snapshot_date", DateTime, nullable=False),
    Column("product_id", Text, nullable=False),
    Column("variant_id", Text, nullable=False),
    Column("on_hand", Integer, nullable=False),
    Column("price", Numeric(10, 2)),
    Column("cost", Numeric(10, 2)),
    Index("inventory_snapshots_snapshot_date_idx", "snapshot_date"),
    Index("inventory_snapshots_variant_date_idx", "variant_id", "snapshot_date"),
)

ingest_cursors = Table(
    "ingest_cursors",
    metadata,
    Column("shop", Text, primary_key=True),
    Column("since_iso", Text, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)

product_attrs = Table(
    "product_attrs",
    metadata,
    Column("product_id", Text, ForeignKey("products.id", ondelete="RESTRICT", onupdate="CASCADE"), primary_key=True),
    Column("category", Text),
    Column("season", Text),
    Column("gender", Text),
    Column("lifecycle", Text),
)

bundle_defs = Table(
    "bundle_defs",
    metadata,
    Column("id", Text, primary_key=True),
    Column("shop", Text, nullable=False),
    Column("title", Text, nullable=False),
    Column("bundle_product_id", Text),
    Column("discount_type", Enum("PERCENT", "FIXED", name="discount_type")),
    Column("discount_value", Numeric(10, 2)),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    Index("bundle_defs_shop_idx", "shop"),
)

bundle_items = Table(
    "bundle_items",
    metadata,
    Column("id", Text, primary_key=True),
    Column("bundle_id", Text, ForeignKey("bundle_defs.id", ondelete="CASCADE", onupdate="CASCADE"), nullable=False),
    Column("variant_id", Text, nullable=False),
    Column("quantity", Integer, nullable=False, server_default="1"),
    Index("bundle_items_bundle_id_idx", "bundle_id"),
)

combined_parents = Table(
    "combined_parents",
    metadata,
    Column("id", Text, primary_key=True),
    Column("shop", Text, nullable=False),
    Column("parent_product_id", Text, nullable=False, unique=True),
    Column("title", Text, nullable=False),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    Index("combined_parents_shop_idx", "shop"),
)

combined_children = Table(
    "combined_children",
    metadata,
    Column("id", Text, primary_key=True),
    Column("parent_id", Text, ForeignKey("combined_parents.id", ondelete="CASCADE", onupdate="CASCADE"), nullable=False),
    Column("product_id", Text, nullable=False),
    Column("parent_option_map", JSON),
    Index("combined_children_parent_id_idx", "parent_id"),
)
