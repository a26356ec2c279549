"""Ingredient and recipe catalog edits, including cascading deletes.

Deleting an ingredient removes its lots, shopping entry, session counter and
recipe items; deleting a recipe removes it from the meal plan. Purchase and
waste logs keep their (now dangling) references as history.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from larder.domain.Ingredient import Ingredient
from larder.domain.Recipe import Recipe, RecipeItem
from larder.domain.State import AppState
from larder.logic.pantry.engine import reprice_lots_for_ingredient
from larder.utilities.quantities import clean_barcode
from larder.utilities.quantities import new_id as default_new_id
from larder.utilities.validators import IngredientInput, RecipeInput

logger = logging.getLogger(__name__)

__all__ = [
    "find_ingredient_by_barcode", "upsert_ingredient", "delete_ingredient",
    "upsert_recipe", "delete_recipe",
]


def find_ingredient_by_barcode(state: AppState, code) -> Optional[Ingredient]:
    c = clean_barcode(code)
    if not c:
        return None
    return next((i for i in state.ingredients if clean_barcode(i.barcode) == c), None)


def upsert_ingredient(state: AppState, data: IngredientInput,
                      new_id: Callable[[], str] = default_new_id) -> Ingredient:
    """Create or update an ingredient; lots are re-priced on update.

    Raises ValueError when the barcode already belongs to another ingredient.
    """
    if data.barcode:
        owner = find_ingredient_by_barcode(state, data.barcode)
        if owner is not None and owner.id != data.id:
            raise ValueError(f"Barcode {data.barcode} is already used by '{owner.name}'")

    ing = state.ingredient(data.id) if data.id else None
    if ing is None:
        ing = Ingredient(id=data.id or new_id())
        state.ingredients.append(ing)
    ing.name = data.name
    ing.amount = data.amount
    ing.unit = data.unit
    ing.price = data.price
    ing.shelf_life_days = data.shelf_life_days
    ing.barcode = data.barcode
    if reprice_lots_for_ingredient(state, ing.id):
        logger.info(f"Re-priced lots of {ing.name}")
    return ing


def delete_ingredient(state: AppState, ingredient_id: str) -> bool:
    if state.ingredient(ingredient_id) is None:
        return False
    state.ingredients = [i for i in state.ingredients if i.id != ingredient_id]
    state.pantry = [p for p in state.pantry if p.ingredient_id != ingredient_id]
    state.shopping = [e for e in state.shopping if e.ingredient_id != ingredient_id]
    state.shopping_session.checked.pop(ingredient_id, None)
    for recipe in state.recipes:
        recipe.items = [it for it in recipe.items if it.ingredient_id != ingredient_id]
    step_map = state.settings.get("pantryConsumeSteps")
    if isinstance(step_map, dict):
        step_map.pop(ingredient_id, None)
    return True


def upsert_recipe(state: AppState, data: RecipeInput, new_id: Callable[[], str] = default_new_id) -> Recipe:
    """Create or update a recipe. Items must reference existing ingredients."""
    unknown = [it.ingredient_id for it in data.items if state.ingredient(it.ingredient_id) is None]
    if unknown:
        raise ValueError(f"Unknown ingredient(s) in recipe: {', '.join(unknown)}")

    recipe = state.recipe(data.id) if data.id else None
    if recipe is None:
        recipe = Recipe(id=data.id or new_id())
        state.recipes.append(recipe)
    recipe.name = data.name
    recipe.portions = data.portions
    recipe.description = data.description
    recipe.instructions = data.instructions
    recipe.items = [
        RecipeItem(ingredient_id=it.ingredient_id, amount=it.amount,
                   unit=it.unit or state.ingredient(it.ingredient_id).unit)
        for it in data.items
    ]
    return recipe


def delete_recipe(state: AppState, recipe_id: str) -> bool:
    if state.recipe(recipe_id) is None:
        return False
    state.recipes = [r for r in state.recipes if r.id != recipe_id]
    state.planned_recipes = [pr for pr in state.planned_recipes if pr.recipe_id != recipe_id]
    return True
