"""Per-collection sort rules stored in the ``custom.sort_rules`` metafield."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable

from storeops.catalog.pagination import CatalogClient, check_user_errors, dig
from storeops.catalog.queries import COLLECTION_RULES, COLLECTION_RULES_SAVE
from storeops.logic.ranking import DEFAULT_RULES, RULE_KEYS, normalize_rules
from storeops.logic.validation import ValidationError, require_gid

logger = logging.getLogger(__name__)


def parse_rules_value(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return DEFAULT_RULES
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring unreadable sort_rules metafield")
        return DEFAULT_RULES
    if not isinstance(parsed, dict):
        return DEFAULT_RULES
    return normalize_rules(parsed.get("rules"))


async def load_collection_rules(client: CatalogClient, collection_id: str) -> tuple[str, ...]:
    data = await client.execute(COLLECTION_RULES, {"id": collection_id})
    return parse_rules_value(dig(data, ("collection", "metafield", "value")))


async def save_collection_rules(client: CatalogClient, collection_id: str, rules: Iterable[Any]) -> list[str]:
    require_gid(collection_id, "Collection", field="collectionId")
    rules = list(rules)
    unknown = [rule for rule in rules if not (isinstance(rule, str) and rule in RULE_KEYS)]
    if unknown:
        raise ValidationError(f"Unknown sort rules: {', '.join(map(str, unknown))}")
    value = json.dumps({"rules": rules})
    data = await client.execute(COLLECTION_RULES_SAVE, {"id": collection_id, "value": value})
    check_user_errors(data.get("collectionUpdate"))
    logger.info("Saved %s sort rules for %s", len(rules), collection_id)
    return rules
