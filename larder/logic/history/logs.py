"""User-driven maintenance of the purchase log and the per-recipe cook history.

Logs are never pruned automatically; these are the only operations that
remove or rewrite entries. A purchase session is every entry written by one
checkout, i.e. all entries sharing the same ``at`` timestamp.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from larder.domain.Logs import PurchaseLogEntry
from larder.domain.Recipe import Recipe
from larder.domain.State import AppState
from larder.utilities.quantities import round2, round4
from larder.utilities.validators import PurchaseEditInput

logger = logging.getLogger(__name__)

__all__ = [
    "purchase_sessions", "delete_purchase_entry", "delete_purchase_session", "edit_purchase_entry",
    "delete_cook_entry", "clear_recipe_cook_history", "clear_all_cook_history",
]


def purchase_sessions(state: AppState) -> List[Dict[str, Any]]:
    """Purchase log grouped by checkout, newest first."""
    groups: Dict[Optional[datetime], List[PurchaseLogEntry]] = defaultdict(list)
    for entry in state.purchase_log:
        groups[entry.at].append(entry)

    sessions = [
        {'at': at, 'total': round2(sum(e.total for e in entries)), 'entries': entries}
        for at, entries in groups.items()
    ]
    # entries without a timestamp sort last
    sessions.sort(key=lambda s: (s['at'] is not None, s['at'] or datetime.min), reverse=True)
    return sessions


def delete_purchase_entry(state: AppState, entry_id: str) -> bool:
    before = len(state.purchase_log)
    state.purchase_log = [e for e in state.purchase_log if e.id != entry_id]
    return len(state.purchase_log) != before


def delete_purchase_session(state: AppState, at: datetime) -> bool:
    """Remove every entry of the checkout at ``at``."""
    if at is None:
        return False
    before = len(state.purchase_log)
    state.purchase_log = [e for e in state.purchase_log if e.at != at]
    removed = before - len(state.purchase_log)
    if removed:
        logger.info(f"Deleted purchase session {at.isoformat()} ({removed} entries)")
    return removed > 0


def edit_purchase_entry(state: AppState, entry_id: str, data: PurchaseEditInput) -> Optional[PurchaseLogEntry]:
    """Correct pack count and price of a logged purchase.

    The bought amount follows the pack count while the ingredient still
    exists with a pack size; otherwise the logged amount is kept.
    """
    entry = next((e for e in state.purchase_log if e.id == entry_id), None)
    if entry is None:
        return None
    entry.packs = data.packs
    entry.total = round2(data.total)
    ing = state.ingredient(entry.ingredient_id)
    if ing is not None and ing.amount > 0:
        entry.buy_amount = round4(data.packs * ing.amount)
        entry.unit = ing.unit
    return entry


def _refresh_last_cook(recipe: Recipe):
    if recipe.cook_history:
        last = recipe.cook_history[-1]
        recipe.last_cook_seconds = last.seconds
        recipe.last_cook_at = last.at
    else:
        recipe.last_cook_seconds = None
        recipe.last_cook_at = None


def delete_cook_entry(state: AppState, recipe_id: str, entry_id: str) -> bool:
    recipe = state.recipe(recipe_id)
    if recipe is None:
        return False
    before = len(recipe.cook_history)
    recipe.cook_history = [e for e in recipe.cook_history if e.id != entry_id]
    if len(recipe.cook_history) == before:
        return False
    _refresh_last_cook(recipe)
    return True


def clear_recipe_cook_history(state: AppState, recipe_id: str) -> bool:
    recipe = state.recipe(recipe_id)
    if recipe is None:
        return False
    recipe.cook_history = []
    _refresh_last_cook(recipe)
    return True


def clear_all_cook_history(state: AppState) -> bool:
    for recipe in state.recipes:
        recipe.cook_history = []
        _refresh_last_cook(recipe)
    return True
