"""Shopping list maintenance and meal-plan reconciliation.

The shopping list holds whole packs per ingredient. Entries created or raised
by the meal plan carry ``plan_min``; manual entries never do. Reconciliation
in ``raise`` mode only ever pushes packs up, ``exact`` mode recomputes the
plan-driven part of the list and may reduce or drop entries.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from larder.domain.Plan import PlannedRecipe
from larder.domain.ShoppingList import ShoppingEntry
from larder.domain.State import AppState
from larder.logic.shopping.list_builder import compute_plan_summary, purchase_plan
from larder.utilities.quantities import new_id as default_new_id
from larder.utilities.quantities import safe_number

logger = logging.getLogger(__name__)

RECONCILE_RAISE = "raise"
RECONCILE_EXACT = "exact"

__all__ = [
    "RECONCILE_RAISE", "RECONCILE_EXACT",
    "reconcile_shopping_with_plan", "normalize_shopping", "add_needed_to_shopping",
    "change_packs", "remove_entry", "required_packs_of",
    "ensure_planned_recipes", "upsert_planned_recipe", "remove_planned_recipe",
]


def _whole_packs(value, default: int = 1) -> int:
    n = safe_number(value)
    if n is None or n <= 0:
        return default
    return max(1, round(n))


def required_packs_of(state: AppState, ingredient_id: str) -> int:
    """Packs currently on the list for an ingredient (0 when not listed)."""
    entry = state.shopping_entry(ingredient_id)
    return _whole_packs(entry.packs) if entry else 0


# --- Planned recipes ------------------------------------------------------

def ensure_planned_recipes(state: AppState, now: Optional[datetime] = None) -> None:
    """Drop entries without a recipe id and coerce portions to ints >= 1."""
    cleaned: List[PlannedRecipe] = []
    for pr in state.planned_recipes:
        if pr is None or not pr.recipe_id:
            continue
        pr.portions_wanted = _whole_packs(pr.portions_wanted)
        if pr.added_at is None:
            pr.added_at = now
        cleaned.append(pr)
    state.planned_recipes = cleaned


def upsert_planned_recipe(state: AppState, recipe_id: str, portions_wanted, now: datetime) -> Optional[PlannedRecipe]:
    ensure_planned_recipes(state, now)
    if not recipe_id:
        return None
    portions = _whole_packs(portions_wanted)
    for pr in state.planned_recipes:
        if pr.recipe_id == recipe_id:
            pr.portions_wanted = portions
            pr.added_at = now
            return pr
    pr = PlannedRecipe(recipe_id=recipe_id, portions_wanted=portions, added_at=now)
    state.planned_recipes.append(pr)
    return pr


def remove_planned_recipe(state: AppState, recipe_id: str) -> bool:
    before = len(state.planned_recipes)
    state.planned_recipes = [pr for pr in state.planned_recipes if pr.recipe_id != recipe_id]
    return len(state.planned_recipes) != before


# --- Shopping list --------------------------------------------------------

def normalize_shopping(state: AppState, new_id: Callable[[], str] = default_new_id) -> None:
    """Merge duplicate entries and keep session counters consistent with the list.

    Duplicates are merged by summing packs; ``plan_min`` becomes the max of the
    tracked values. Checked counters for unlisted ingredients are dropped and the
    rest are clamped to the entry's packs.
    """
    merged: Dict[str, ShoppingEntry] = {}
    for entry in state.shopping:
        if entry is None or not entry.ingredient_id:
            continue
        packs = _whole_packs(entry.packs)
        current = merged.get(entry.ingredient_id)
        if current is None:
            merged[entry.ingredient_id] = ShoppingEntry(
                id=entry.id or new_id(),
                ingredient_id=entry.ingredient_id,
                packs=packs,
                plan_min=max(0, round(entry.plan_min)) if entry.plan_min is not None else None,
            )
            continue
        current.packs += packs
        if entry.plan_min is not None:
            current.plan_min = max(current.plan_min or 0, round(entry.plan_min))
    if len(merged) != len(state.shopping):
        logger.debug("Shopping list normalized: %s entries merged into %s", len(state.shopping), len(merged))
    state.shopping = list(merged.values())

    checked = state.shopping_session.checked
    for key in list(checked.keys()):
        entry = merged.get(key)
        n = safe_number(checked[key])
        if entry is None or n is None or int(n) <= 0:
            del checked[key]
            continue
        checked[key] = min(entry.packs, int(n))


def add_needed_to_shopping(state: AppState, ingredient_id: str, value, unit: Optional[str] = None,
                           new_id: Callable[[], str] = default_new_id) -> Optional[int]:
    """Add to the list. With a unit, ``value`` is an amount converted to packs;
    without, ``value`` is a pack count. Returns the packs added or None.

    Manual additions never touch ``plan_min``.
    """
    ing = state.ingredient(ingredient_id)
    if ing is None:
        return None
    if isinstance(unit, str) and unit.strip():
        packs = purchase_plan(ing, value)['packs']
    else:
        n = safe_number(value)
        packs = round(n) if n is not None else 0
    if packs <= 0:
        return None

    entry = state.shopping_entry(ingredient_id)
    if entry is not None:
        entry.packs = max(1, _whole_packs(entry.packs) + packs)
    else:
        state.shopping.append(ShoppingEntry(id=new_id(), ingredient_id=ingredient_id, packs=packs))
    return packs


def change_packs(state: AppState, ingredient_id: str, delta: int,
                 new_id: Callable[[], str] = default_new_id) -> int:
    """Adjust an entry by ``delta`` packs; returns the resulting packs (0 = removed)."""
    entry = state.shopping_entry(ingredient_id)
    if entry is None:
        if delta > 0 and state.ingredient(ingredient_id) is not None:
            state.shopping.append(ShoppingEntry(id=new_id(), ingredient_id=ingredient_id, packs=1))
            return 1
        return 0

    after = _whole_packs(entry.packs) + int(delta)
    if after <= 0:
        remove_entry(state, ingredient_id)
        return 0
    entry.packs = after
    bought = state.shopping_session.checked.get(ingredient_id, 0)
    if bought > after:
        state.shopping_session.checked[ingredient_id] = after
    return after


def remove_entry(state: AppState, ingredient_id: str) -> bool:
    before = len(state.shopping)
    state.shopping = [e for e in state.shopping if e.ingredient_id != ingredient_id]
    state.shopping_session.checked.pop(ingredient_id, None)
    return len(state.shopping) != before


def reconcile_shopping_with_plan(state: AppState, now: datetime,
                                 new_id: Callable[[], str] = default_new_id,
                                 mode: str = RECONCILE_RAISE) -> Dict[str, int]:
    """Sync the shopping list with the meal plan; returns ingredientId -> required packs.

    raise: tracked entries get ``plan_min = required`` and ``packs = max(current, required)``;
    missing entries are created; no longer required ones keep their packs with ``plan_min = 0``.
    exact: tracked entries are set to exactly the required packs and those no
    longer required are removed. Manual entries are never touched in either mode.
    """
    if mode not in (RECONCILE_RAISE, RECONCILE_EXACT):
        raise ValueError(f"Unknown reconcile mode: {mode!r}")
    ensure_planned_recipes(state, now)

    summary = compute_plan_summary(state, now)
    required: Dict[str, int] = {
        ingredient_id: row['required_packs']
        for ingredient_id, row in summary.items() if row['required_packs'] > 0
    }

    for ingredient_id, rp in required.items():
        entry = state.shopping_entry(ingredient_id)
        if entry is None:
            state.shopping.append(ShoppingEntry(id=new_id(), ingredient_id=ingredient_id, packs=rp, plan_min=rp))
            continue
        current = _whole_packs(entry.packs)
        entry.plan_min = rp
        entry.packs = rp if mode == RECONCILE_EXACT else max(current, rp)

    if mode == RECONCILE_EXACT:
        kept: List[ShoppingEntry] = []
        for entry in state.shopping:
            if not entry.is_plan_tracked():
                kept.append(entry)
                continue
            rp = required.get(entry.ingredient_id, 0)
            if rp <= 0:
                state.shopping_session.checked.pop(entry.ingredient_id, None)
                continue
            entry.plan_min = rp
            entry.packs = rp
            kept.append(entry)
        if len(kept) != len(state.shopping):
            logger.info("Exact reconcile removed %s obsolete plan entries", len(state.shopping) - len(kept))
        state.shopping = kept
    else:
        for entry in state.shopping:
            if entry.is_plan_tracked() and entry.ingredient_id not in required:
                entry.plan_min = 0

    for ingredient_id, bought in list(state.shopping_session.checked.items()):
        entry = state.shopping_entry(ingredient_id)
        if entry is not None and bought > entry.packs:
            state.shopping_session.checked[ingredient_id] = entry.packs

    return required
