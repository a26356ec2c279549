"""Pantry engine: lot merging, live re-pricing, FIFO/FEFO consumption and restock.

The ingredient's current pack price is the single source of truth for lot
value. A lot's ``cost``/``unit_cost`` are caches: every write path that
touches a lot re-derives them from ``Ingredient.unit_price()`` whenever that is
computable, and only falls back to stored values when it is not.
"""
from __future__ import annotations

import copy
import logging
import math
from datetime import datetime
from typing import Callable, Dict, List, Optional

from larder.domain.Ingredient import Ingredient
from larder.domain.Logs import WasteLogEntry
from larder.domain.PantryLot import PantryLot
from larder.domain.State import AppState
from larder.utilities.constants import LOT_SOURCE_MANUAL, UNIT_PIECE
from larder.utilities.quantities import (
    add_days, date_key, epsilon_for_unit, new_id as default_new_id, normalize_unit, round2, round4, safe_number,
)

logger = logging.getLogger(__name__)

__all__ = [
    "normalize_pantry", "reprice_lots_for_ingredient", "reprice_all_pantry", "lot_value",
    "consume_lots", "consume_fifo", "consume_all", "add_back_step", "pantry_available",
    "add_manual_lot", "edit_lot", "delete_lot", "waste_lot", "waste_ingredient",
    "default_consume_step", "sort_key_fifo",
]


def _ts(dt: Optional[datetime], missing: float) -> float:
    return dt.timestamp() if dt is not None else missing


def sort_key_fifo(lot: PantryLot):
    """Soonest expiry first (no expiry last), then earliest purchase."""
    return (_ts(lot.expires_at, math.inf), _ts(lot.bought_at, 0.0))


def _sort_key_newest(lot: PantryLot):
    return (_ts(lot.expires_at, -math.inf), _ts(lot.bought_at, 0.0))


def _remaining_value(lot: PantryLot, ing: Optional[Ingredient]) -> float:
    """Value still held by a lot, by priority: stored cost, paid price, pack price."""
    if lot.cost is not None:
        return lot.cost
    amount = safe_number(lot.amount) or 0.0
    pack_size = ing.pack_size() if ing else None
    if lot.price_paid is not None:
        if pack_size:
            return lot.price_paid * max(0.0, min(1.0, amount / pack_size))
        return lot.price_paid
    if ing is not None and pack_size:
        price = safe_number(ing.price)
        if price is not None:
            return price * (amount / pack_size)
    return 0.0


def lot_value(lot: PantryLot, ing: Optional[Ingredient]) -> float:
    """Current value of a lot: live price when known, otherwise the stored cost."""
    uc = ing.unit_price() if ing else None
    if uc is not None:
        return round2((lot.amount or 0.0) * uc)
    if lot.cost is not None:
        return lot.cost
    return lot.price_paid or 0.0


def _merge_key(lot: PantryLot, ing: Optional[Ingredient]) -> str:
    unit = lot.unit or (ing.unit if ing else "")
    bought_day = date_key(lot.bought_at)
    exp_day = date_key(lot.expires_at)
    # Undated lots are never merged
    if not bought_day and not exp_day:
        return f"__unique__|{lot.id}"
    return f"{lot.ingredient_id}|{unit}|{bought_day}|{exp_day}"


def normalize_pantry(state: AppState) -> None:
    """Merge identical lots, re-price them and sort by expiry. Idempotent."""
    if not state.pantry:
        return
    ing_map: Dict[str, Ingredient] = {i.id: i for i in state.ingredients}

    groups: Dict[str, PantryLot] = {}
    values: Dict[str, float] = {}
    sizes: Dict[str, int] = {}
    for lot in state.pantry:
        ing = ing_map.get(lot.ingredient_id)
        key = _merge_key(lot, ing)
        if key not in groups:
            base = copy.copy(lot)
            base.unit = lot.unit or (ing.unit if ing else "")
            base.amount = 0.0
            groups[key] = base
            values[key] = 0.0
            sizes[key] = 0
        g = groups[key]
        g.amount += safe_number(lot.amount) or 0.0
        values[key] += _remaining_value(lot, ing)
        sizes[key] += 1
        if g.step is None and lot.step is not None:
            g.step = lot.step
        if g.bought_at is None and lot.bought_at is not None:
            g.bought_at = lot.bought_at
        if g.expires_at is None and lot.expires_at is not None:
            g.expires_at = lot.expires_at
        if g.entered_at is None and lot.entered_at is not None:
            g.entered_at = lot.entered_at

    merged: List[PantryLot] = []
    for key, g in groups.items():
        g.amount = round4(g.amount)
        if sizes[key] > 1:
            g.price_paid = None
        ing = ing_map.get(g.ingredient_id)
        uc = ing.unit_price() if ing else None
        if uc is not None:
            # Live re-pricing wins over accumulated history
            g.unit_cost = uc
            g.cost = round2(g.amount * uc)
        else:
            g.cost = round2(values[key])
        merged.append(g)

    merged.sort(key=sort_key_fifo)
    if len(merged) != len(state.pantry):
        logger.debug("Pantry normalized: %s lots merged into %s", len(state.pantry), len(merged))
    state.pantry = merged


def reprice_lots_for_ingredient(state: AppState, ingredient_id: str) -> bool:
    """Recompute unit_cost/cost of every lot of one ingredient. Returns True if anything changed."""
    ing = state.ingredient(ingredient_id)
    uc = ing.unit_price() if ing else None
    if uc is None:
        return False
    changed = False
    for lot in state.pantry:
        if lot.ingredient_id != ingredient_id:
            continue
        next_cost = round2((lot.amount or 0.0) * uc)
        if lot.cost != next_cost or lot.unit_cost != uc:
            lot.unit_cost = uc
            lot.cost = next_cost
            changed = True
    return changed


def reprice_all_pantry(state: AppState) -> bool:
    changed = False
    for ingredient_id in {p.ingredient_id for p in state.pantry if p.ingredient_id}:
        if reprice_lots_for_ingredient(state, ingredient_id):
            changed = True
    return changed


def pantry_available(state: AppState, ingredient_id: str, now: datetime) -> float:
    """Stock usable for cooking: expired lots do not count."""
    return sum((p.amount or 0.0) for p in state.pantry
               if p.ingredient_id == ingredient_id and not p.is_expired(now))


def consume_lots(state: AppState, ingredient_id: str, amount, unit: str,
                 now: Optional[datetime] = None) -> float:
    """Take ``amount`` from an ingredient's lots in expiry order.

    With ``now`` only non-expired lots are used (cooking); without it every lot
    is eligible (manual inventory decrement). Need beyond available stock is
    dropped; the unmet remainder is returned. Lots left at or below the unit's
    epsilon are removed.
    """
    need = safe_number(amount) or 0.0
    if need <= 0:
        return 0.0
    ing = state.ingredient(ingredient_id)
    eps = epsilon_for_unit(unit or (ing.unit if ing else ""))
    uc = ing.unit_price() if ing else None

    lots = [p for p in state.pantry if p.ingredient_id == ingredient_id]
    if now is not None:
        lots = [p for p in lots if not p.is_expired(now)]
    lots.sort(key=sort_key_fifo)

    for lot in lots:
        if need <= 0:
            break
        cur = lot.amount or 0.0
        if cur <= eps:
            continue
        take = min(cur, need)
        lot.amount = round4(cur - take)
        if uc is not None:
            lot.unit_cost = uc
            lot.cost = round2(lot.amount * uc)
        elif lot.cost is not None and cur > 0:
            lot.cost = round2(max(0.0, lot.cost * (lot.amount / cur)))
        need -= take

    state.pantry = [p for p in state.pantry
                    if p.ingredient_id != ingredient_id or (p.amount or 0.0) > eps]
    reprice_lots_for_ingredient(state, ingredient_id)
    return max(0.0, need)


def consume_fifo(state: AppState, ingredient_id: str, amount, unit: str) -> float:
    """Inventory-view decrement: soonest expiry first across all lots."""
    return consume_lots(state, ingredient_id, amount, unit)


def consume_all(state: AppState, ingredient_id: str) -> float:
    ing = state.ingredient(ingredient_id)
    lots = state.lots_for(ingredient_id)
    unit = (ing.unit if ing else "") or (lots[0].unit if lots else "")
    total = sum((p.amount or 0.0) for p in lots)
    if total > epsilon_for_unit(unit):
        consume_lots(state, ingredient_id, total, unit)
    else:
        state.pantry = [p for p in state.pantry if p.ingredient_id != ingredient_id]
    return total


def add_back_step(state: AppState, ingredient_id: str, amount, unit: str = "") -> bool:
    """Add a correction onto the newest lot (latest expiry, then latest purchase)."""
    step = safe_number(amount) or 0.0
    if step <= 0:
        return False
    lots = state.lots_for(ingredient_id)
    if not lots:
        return False
    target = max(lots, key=_sort_key_newest)
    target.amount = round4((target.amount or 0.0) + step)
    ing = state.ingredient(ingredient_id)
    uc = ing.unit_price() if ing else None
    if uc is not None:
        target.unit_cost = uc
        target.cost = round2(target.amount * uc)
    reprice_lots_for_ingredient(state, ingredient_id)
    return True


def add_manual_lot(state: AppState, ingredient_id: str, amount, now: datetime,
                   new_id: Callable[[], str] = default_new_id,
                   expires_at: Optional[datetime] = None, default_expiry: bool = True) -> Optional[PantryLot]:
    """Enter stock by hand. Expiry defaults to the ingredient's shelf life."""
    ing = state.ingredient(ingredient_id)
    amt = safe_number(amount)
    if ing is None or amt is None or amt <= 0:
        return None
    if expires_at is None and default_expiry and ing.shelf_life_days > 0:
        expires_at = add_days(now, ing.shelf_life_days)
    pack_size = ing.pack_size()
    price = safe_number(ing.price) or 0.0
    cost = round2(amt / pack_size * price) if pack_size else 0.0
    unit_cost = price / pack_size if pack_size else cost / amt
    lot = PantryLot(
        id=new_id(), ingredient_id=ing.id, amount=round4(amt), unit=ing.unit,
        bought_at=now, entered_at=now, source=LOT_SOURCE_MANUAL, expires_at=expires_at,
        unit_cost=round(unit_cost, 6), cost=cost,
    )
    state.pantry.append(lot)
    return lot


def edit_lot(state: AppState, lot_id: str, amount, expires_at: Optional[datetime]) -> bool:
    lot = state.lot(lot_id)
    amt = safe_number(amount)
    if lot is None or amt is None or amt <= 0:
        return False
    lot.amount = round4(amt)
    lot.expires_at = expires_at
    if not reprice_lots_for_ingredient(state, lot.ingredient_id) and lot.cost is None:
        lot.cost = 0.0
    return True


def delete_lot(state: AppState, lot_id: str) -> bool:
    before = len(state.pantry)
    state.pantry = [p for p in state.pantry if p.id != lot_id]
    return len(state.pantry) != before


def waste_lot(state: AppState, lot_id: str, now: datetime,
              new_id: Callable[[], str] = default_new_id) -> Optional[WasteLogEntry]:
    """Discard a spoiled lot and record its value in the waste log."""
    lot = state.lot(lot_id)
    if lot is None:
        return None
    ing = state.ingredient(lot.ingredient_id)
    entry = WasteLogEntry(
        id=new_id(), at=now, ingredient_id=lot.ingredient_id,
        amount=round4(lot.amount), unit=(ing.unit if ing else "") or lot.unit,
        cost=round2(lot_value(lot, ing)),
    )
    state.waste_log.append(entry)
    delete_lot(state, lot_id)
    return entry


def waste_ingredient(state: AppState, ingredient_id: str, now: datetime,
                     new_id: Callable[[], str] = default_new_id) -> Optional[WasteLogEntry]:
    """Discard every lot of an ingredient as one waste-log entry."""
    lots = state.lots_for(ingredient_id)
    ing = state.ingredient(ingredient_id)
    unit = (ing.unit if ing else "") or (lots[0].unit if lots else "")
    total_amount = sum((p.amount or 0.0) for p in lots)
    total_cost = sum(lot_value(p, ing) for p in lots)
    entry = None
    if total_amount > epsilon_for_unit(unit):
        entry = WasteLogEntry(
            id=new_id(), at=now, ingredient_id=ingredient_id,
            amount=round4(total_amount), unit=unit, cost=round2(total_cost),
        )
        state.waste_log.append(entry)
    state.pantry = [p for p in state.pantry if p.ingredient_id != ingredient_id]
    return entry


def default_consume_step(ing: Optional[Ingredient], unit: str) -> float:
    """One piece, or about a tenth of the pack for weight/volume units."""
    if normalize_unit(unit) == UNIT_PIECE:
        return 1
    pack_size = ing.pack_size() if ing else None
    if pack_size:
        return max(1, round(pack_size * 0.1))
    return 1
