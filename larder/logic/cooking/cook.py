"""Cooking a recipe: per-item need vs. stock, pantry consumption and cook-time history.

Recipe consumption uses only non-expired lots, soonest expiry first, and
re-prices the touched lots from the live ingredient price exactly like the
inventory path does.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from larder.domain.Recipe import CookEntry, Recipe
from larder.domain.State import AppState
from larder.logic.pantry.engine import consume_lots, pantry_available
from larder.utilities.quantities import epsilon_for_unit, round2, round4, safe_number
from larder.utilities.quantities import new_id as default_new_id

logger = logging.getLogger(__name__)

COOK_MODE_ALL = "all"
COOK_MODE_SKIP_MISSING = "skip_missing"

__all__ = [
    "COOK_MODE_ALL", "COOK_MODE_SKIP_MISSING", "CookResult",
    "consume_from_pantry", "cook_lines", "cook_recipe", "record_cook_time", "recipe_cost",
]


@dataclass
class CookResult:
    ok: bool
    reason: str = ""
    consumed: List[Dict[str, Any]] = field(default_factory=list)
    skipped: List[Dict[str, Any]] = field(default_factory=list)
    # Amount per ingredient that could not be taken from stock
    shortfall: Dict[str, float] = field(default_factory=dict)
    cook_entry: Optional[CookEntry] = None


def consume_from_pantry(state: AppState, ingredient_id: str, amount, unit: str, now: datetime) -> float:
    """Take a recipe amount from non-expired lots; returns the unmet remainder."""
    return consume_lots(state, ingredient_id, amount, unit, now=now)


def _scale(recipe: Recipe, portions):
    base = recipe.base_portions()
    wanted = safe_number(portions)
    wanted = max(1, round(wanted)) if wanted is not None and wanted > 0 else base
    return wanted, wanted / base


def cook_lines(state: AppState, recipe: Recipe, portions, now: datetime) -> List[Dict[str, Any]]:
    """Need and usable stock per recipe item, scaled to ``portions``."""
    _, multiplier = _scale(recipe, portions)

    lines: List[Dict[str, Any]] = []
    for item in recipe.items:
        ing = state.ingredient(item.ingredient_id)
        unit = item.unit or (ing.unit if ing else "")
        need = round4((safe_number(item.amount) or 0.0) * multiplier)
        have = round4(pantry_available(state, item.ingredient_id, now))
        lines.append({
            'ingredient_id': item.ingredient_id,
            'name': ing.name if ing else "",
            'unit': unit,
            'need': need,
            'have': have,
            'enough': have + epsilon_for_unit(unit) >= need,
            'multiplier': multiplier,
        })
    return lines


def record_cook_time(recipe: Recipe, seconds, now: datetime, new_id: Callable[[], str] = default_new_id,
                     portions: Optional[int] = None, multiplier: Optional[float] = None) -> CookEntry:
    """Append a cook-time entry (history capped) and refresh the last-cook fields."""
    sec = safe_number(seconds)
    entry = CookEntry(
        id=new_id(), at=now, seconds=max(0, int(sec)) if sec is not None else 0,
        portions=portions, multiplier=multiplier,
    )
    recipe.record_cook(entry)
    return entry


def cook_recipe(state: AppState, recipe_id: str, portions, now: datetime,
                new_id: Callable[[], str] = default_new_id, mode: str = COOK_MODE_ALL,
                seconds=None) -> CookResult:
    """Consume every item of a recipe from the pantry.

    ``all`` takes whatever stock exists for each item; ``skip_missing`` leaves
    items with insufficient stock untouched. A cook time is recorded when
    ``seconds`` is given and the cook timer setting is enabled.
    """
    if mode not in (COOK_MODE_ALL, COOK_MODE_SKIP_MISSING):
        raise ValueError(f"Unknown cook mode: {mode!r}")
    recipe = state.recipe(recipe_id)
    if recipe is None:
        return CookResult(ok=False, reason="unknown_recipe")

    result = CookResult(ok=True)
    lines = cook_lines(state, recipe, portions, now)
    for line in lines:
        if line['need'] <= 0:
            continue
        if mode == COOK_MODE_SKIP_MISSING and not line['enough']:
            result.skipped.append(line)
            continue
        remainder = consume_from_pantry(state, line['ingredient_id'], line['need'], line['unit'], now)
        if remainder > epsilon_for_unit(line['unit']):
            result.shortfall[line['ingredient_id']] = round4(remainder)
        result.consumed.append(line)

    if seconds is not None and state.settings.get("enableCookTimer", True):
        wanted, multiplier = _scale(recipe, portions)
        result.cook_entry = record_cook_time(
            recipe, seconds, now, new_id, portions=wanted, multiplier=round(multiplier, 4),
        )
    logger.debug("Cooked %s: %s consumed, %s skipped", recipe.name, len(result.consumed), len(result.skipped))
    return result


def recipe_cost(state: AppState, recipe: Recipe) -> float:
    """Cost of the recipe's base portions at current ingredient prices."""
    total = 0.0
    for item in recipe.items:
        ing = state.ingredient(item.ingredient_id)
        uc = ing.unit_price() if ing else None
        if uc is None:
            continue
        total += uc * (safe_number(item.amount) or 0.0)
    return round2(total)
