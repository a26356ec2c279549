"""Meal-plan requirements.

Provides needs_from_planned_recipes(state, planned) and
compute_plan_summary(state, now, planned_override=None): the per-ingredient
need of the active meal plan netted against usable pantry stock and turned
into whole packs to buy.
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from larder.domain.Ingredient import Ingredient
from larder.domain.Plan import PlannedRecipe
from larder.domain.State import AppState
from larder.logic.pantry.engine import pantry_available
from larder.utilities.quantities import round4, safe_number

__all__ = ["purchase_plan", "needs_from_planned_recipes", "compute_plan_summary"]


def purchase_plan(ing: Optional[Ingredient], needed_amount) -> Dict[str, float]:
    """Whole packs covering a needed amount: { packs, buy_amount, pack_size }.

    An unknown/zero pack size or a non-positive need yields 0 packs.
    """
    pack_size = (ing.pack_size() if ing else None) or 0.0
    need = safe_number(needed_amount) or 0.0
    if pack_size <= 0 or need <= 0:
        return {'packs': 0, 'buy_amount': 0.0, 'pack_size': pack_size}
    packs = max(1, math.ceil(need / pack_size))
    return {'packs': packs, 'buy_amount': packs * pack_size, 'pack_size': pack_size}


def needs_from_planned_recipes(state: AppState, planned: Iterable[PlannedRecipe]) -> Dict[str, float]:
    """Sum item amounts across planned recipes, each scaled by wanted/base portions.

    Planned entries whose recipe no longer exists are skipped.
    """
    totals: Dict[str, float] = {}
    for pr in planned:
        if pr is None or not pr.recipe_id:
            continue
        recipe = state.recipe(pr.recipe_id)
        if recipe is None:
            continue
        base = recipe.base_portions()
        wanted = pr.portions_wanted if pr.portions_wanted >= 1 else base
        multiplier = wanted / base
        for item in recipe.items:
            if not item.ingredient_id:
                continue
            amount = (safe_number(item.amount) or 0.0) * multiplier
            if not math.isfinite(amount) or amount <= 0:
                continue
            totals[item.ingredient_id] = totals.get(item.ingredient_id, 0.0) + amount
    return {k: round4(v) for k, v in totals.items()}


def compute_plan_summary(state: AppState, now: datetime,
                         planned_override: Optional[Iterable[PlannedRecipe]] = None) -> Dict[str, Dict[str, Any]]:
    """Per ingredient: { ingredient_id, need, have, missing, required_packs, pack_size }.

    Pure function of the state; ``planned_override`` previews a hypothetical plan.
    """
    planned = list(planned_override) if planned_override is not None else state.planned_recipes
    totals = needs_from_planned_recipes(state, planned)

    summary: Dict[str, Dict[str, Any]] = {}
    for ingredient_id, need in totals.items():
        ing = state.ingredient(ingredient_id)
        if ing is None:
            continue
        have = round4(pantry_available(state, ingredient_id, now))
        missing = round4(max(0.0, need - have))
        plan = purchase_plan(ing, missing) if missing > 0 else {'packs': 0, 'pack_size': ing.pack_size() or 0.0}
        summary[ingredient_id] = {
            'ingredient_id': ingredient_id,
            'name': ing.name,
            'unit': ing.unit,
            'need': need,
            'have': have,
            'missing': missing,
            'required_packs': max(0, int(plan['packs'])),
            'pack_size': plan['pack_size'],
        }
    return summary
