"""Ranking logic for collection products."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Sequence

RULES = ("in_stock", "sales_90d", "variants_in_stock", "alpha", "oos_last")
DEFAULT_RULES: tuple[str, ...] = RULES
CHUNK_SIZE = 250


@dataclass(slots=True)
class ProductRank:
    id: str
    title: str
    in_stock: bool
    variant_in_stock: int
    sold90: int


RULE_KEYS: dict[str, Callable[[ProductRank], Any]] = {
    "in_stock": lambda p: not p.in_stock,
    "sales_90d": lambda p: -p.sold90,
    "variants_in_stock": lambda p: -p.variant_in_stock,
    "alpha": lambda p: p.title,
    "oos_last": lambda p: not p.in_stock,
}


def normalize_rules(rules: Iterable[Any] | None) -> tuple[str, ...]:
    """Keep known rule ids in their given order; empty or invalid input means default."""
    if rules is None or isinstance(rules, (str, bytes)):
        return DEFAULT_RULES
    try:
        known = tuple(rule for rule in rules if isinstance(rule, str) and rule in RULE_KEYS)
    except TypeError:
        return DEFAULT_RULES
    return known or DEFAULT_RULES


def decorate(product: dict[str, Any], sold90: dict[str, int]) -> ProductRank:
    """Derive the ranking fields from a collection product node."""
    variants = (product.get("variants") or {}).get("edges") or []
    variant_in_stock = sum(1 for edge in variants if (edge.get("node") or {}).get("availableForSale"))
    return ProductRank(
        id=product["id"],
        title=product.get("title") or "",
        in_stock=variant_in_stock > 0,
        variant_in_stock=variant_in_stock,
        sold90=sold90.get(product["id"], 0),
    )


def rank_products(products: Sequence[ProductRank], rules: Iterable[str] | None = None) -> list[ProductRank]:
    """Order products by the rules in sequence; equal keys keep input order."""
    keys = [RULE_KEYS[rule] for rule in normalize_rules(rules)]
    return sorted(products, key=lambda p: tuple(key(p) for key in keys))


def build_moves(desired: Sequence[str], top_n: int | None = None) -> list[dict[str, str]]:
    """Positional move instructions for the first ``top_n`` ids."""
    cap = len(desired) if top_n is None else max(0, min(len(desired), top_n))
    return [{"id": product_id, "newPosition": str(position)} for position, product_id in enumerate(desired[:cap])]


def chunk_moves(moves: Sequence[dict[str, str]], size: int = CHUNK_SIZE) -> list[list[dict[str, str]]]:
    if size < 1:
        raise ValueError("chunk size must be positive")
    return [list(moves[i : i + size]) for i in range(0, len(moves), size)]
