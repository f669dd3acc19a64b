"""Ingestion data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(slots=True)
class Shop:
    shop: str
    access_token: str


@dataclass(slots=True)
class ProductRecord:
    id: str
    title: str
    vendor: str | None
    created_at: datetime | None


@dataclass(slots=True)
class VariantRecord:
    id: str
    product_id: str
    title: str | None
    sku: str | None
    size: str | None
    color: str | None


@dataclass(slots=True)
class OrderLineRecord:
    id: str
    order_id: str
    created_at: datetime
    product_id: str | None
    variant_id: str | None
    qty: int
    currency: str
    net_amount: Decimal
    product: ProductRecord | None = None
    variant: VariantRecord | None = None


@dataclass(slots=True)
class SnapshotRecord:
    product: ProductRecord
    variant: VariantRecord
    on_hand: int
    price: Decimal | None
    cost: Decimal | None


@dataclass(slots=True)
class IngestResult:
    shop: str
    since_iso: str
    orders_processed: int
    lines_processed: int
    lines_inserted: int


@dataclass(slots=True)
class SnapshotResult:
    shop: str
    snapshot_date: datetime
    variants: int
    snapshots: int
