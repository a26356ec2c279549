"""Versioned schema migrations for the persisted state document.

Each step is a pure function taking a plain dict at version N and returning a
new dict at version N + 1. Documents without ``schemaVersion`` are version 0.
"""

import copy
import logging
import math
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from larder.domain.State import AppState
from larder.utilities.constants import CURRENT_SCHEMA, LOT_SOURCE_CHECKOUT, LOT_SOURCE_MANUAL
from larder.utilities.quantities import new_id as default_new_id
from larder.utilities.quantities import safe_number

logger = logging.getLogger(__name__)

__all__ = ['MIGRATIONS', 'schema_version_of', 'migrate', 'ensure_state_shape', 'migrate_ingredient']


def _list_of_dicts(value) -> list:
    return [x for x in value if isinstance(x, dict)] if isinstance(value, list) else []


def migrate_ingredient(old: Dict[str, Any]) -> Dict[str, Any]:
    """Legacy pack fields (packAmount, packUnit/defaultUnit, packPrice) -> amount/unit/price."""
    barcode = "" if old.get("barcode") is None else str(old.get("barcode")).strip()
    if all(k in old for k in ("amount", "unit", "price")):
        return {**old, "barcode": barcode}
    return {
        "id": old.get("id"),
        "name": old.get("name") or "",
        "barcode": barcode,
        "amount": safe_number(old.get("packAmount")) or 0,
        "unit": str(old.get("defaultUnit") or old.get("packUnit") or "g"),
        "price": safe_number(old.get("packPrice")) or 0,
        "shelfLifeDays": safe_number(old.get("shelfLifeDays")) or 0,
    }


def _v0_to_v1(doc: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(doc)
    out["ingredients"] = [migrate_ingredient(i) for i in _list_of_dicts(doc.get("ingredients"))]
    return out


def _legacy_packs(item: Dict[str, Any], pack_sizes: Dict[str, float]) -> int:
    packs = safe_number(item.get("packs"))
    if packs is not None and packs > 0:
        return max(1, round(packs))
    qty = safe_number(item.get("qty", item.get("count")))
    if qty is not None and qty > 0:
        return max(1, round(qty))
    amount = safe_number(item.get("amount"))
    pack_size = pack_sizes.get(str(item.get("ingredientId") or ""))
    if amount is not None and amount > 0 and pack_size:
        return max(1, math.ceil(amount / pack_size))
    return 1


def _v1_to_v2(doc: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(doc)
    pack_sizes = {}
    for ing in _list_of_dicts(doc.get("ingredients")):
        size = safe_number(ing.get("amount"))
        if ing.get("id") and size is not None and size > 0:
            pack_sizes[str(ing["id"])] = size

    shopping = []
    for item in _list_of_dicts(doc.get("shopping")):
        row = {k: v for k, v in item.items() if k not in ("qty", "count", "amount")}
        row["packs"] = _legacy_packs(item, pack_sizes)
        shopping.append(row)
    out["shopping"] = shopping
    packs_by_ingredient = {str(s.get("ingredientId")): s["packs"] for s in shopping}

    session = doc.get("shoppingSession") if isinstance(doc.get("shoppingSession"), dict) else {}
    checked_raw = session.get("checked") if isinstance(session.get("checked"), dict) else {}
    checked = {}
    for key, value in checked_raw.items():
        if value is True:
            checked[key] = packs_by_ingredient.get(str(key), 1)
        elif value is False or value is None:
            continue
        else:
            n = safe_number(value)
            if n is not None and int(n) > 0:
                checked[key] = int(n)
    out["shoppingSession"] = {**copy.deepcopy(session), "checked": checked}

    waste = []
    for entry in _list_of_dicts(doc.get("wasteLog")):
        row = dict(entry)
        if "cost" not in row and "value" in row:
            row["cost"] = row.pop("value")
        waste.append(row)
    out["wasteLog"] = waste

    pantry = []
    for lot in _list_of_dicts(doc.get("pantry")):
        row = dict(lot)
        if row.get("source") not in (LOT_SOURCE_MANUAL, LOT_SOURCE_CHECKOUT):
            row["source"] = LOT_SOURCE_MANUAL if row.get("enteredAt") else LOT_SOURCE_CHECKOUT
        pantry.append(row)
    out["pantry"] = pantry
    return out


# version -> step upgrading a document from that version to the next
MIGRATIONS: Dict[int, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    0: _v0_to_v1,
    1: _v1_to_v2,
}


def schema_version_of(doc: Dict[str, Any]) -> int:
    v = safe_number(doc.get("schemaVersion")) if isinstance(doc, dict) else None
    return max(0, int(v)) if v is not None else 0


def migrate(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Run every step from the document's version up to CURRENT_SCHEMA."""
    current = dict(doc) if isinstance(doc, dict) else {}
    version = schema_version_of(current)
    if version > CURRENT_SCHEMA:
        logger.warning("State schema %s is newer than supported %s; loading best-effort", version, CURRENT_SCHEMA)
        return current
    while version < CURRENT_SCHEMA:
        current = MIGRATIONS[version](current)
        version += 1
        current["schemaVersion"] = version
    return current


def ensure_state_shape(doc: Any, new_id: Callable[[], str] = default_new_id,
                       now: Optional[datetime] = None) -> AppState:
    """Migrate a raw document and build a fully defaulted AppState from it."""
    migrated = migrate(doc if isinstance(doc, dict) else {})
    state = AppState.from_dict(migrated, new_id, now)
    for ing in state.ingredients:
        if not ing.id:
            ing.id = new_id()
    for recipe in state.recipes:
        if not recipe.id:
            recipe.id = new_id()
    return state
