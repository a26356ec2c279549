"""Demo data set: a few ingredients, lots, two recipes and some history."""
from datetime import datetime
from typing import Callable

from larder.domain.State import AppState
from larder.infra.State_Repository import post_load_repair
from larder.infra.migrations import ensure_state_shape
from larder.utilities.quantities import add_days, to_iso
from larder.utilities.quantities import new_id as default_new_id


def build_demo_state(now: datetime, new_id: Callable[[], str] = default_new_id) -> AppState:
    def day(n):
        return to_iso(add_days(now, n))

    # Written in the legacy (unversioned) shape so it runs through the migration chain
    doc = {
        "ingredients": [
            {"id": "ing_rice", "name": "Reis", "amount": 1000, "unit": "g", "price": 2.49, "shelfLifeDays": 365},
            {"id": "ing_chicken", "name": "Hähnchenbrust", "amount": 400, "unit": "g", "price": 4.99,
             "shelfLifeDays": 3},
            {"id": "ing_cheese", "name": "Käse", "amount": 200, "unit": "g", "price": 2.29, "shelfLifeDays": 14},
            {"id": "ing_tomato", "name": "Tomaten", "amount": 6, "unit": "Stück", "price": 2.19,
             "shelfLifeDays": 7},
            {"id": "ing_yogurt", "name": "Joghurt", "amount": 500, "unit": "g", "price": 1.59, "shelfLifeDays": 10},
            {"id": "ing_wraps", "name": "Wraps", "amount": 6, "unit": "Stück", "price": 1.99, "shelfLifeDays": 14},
        ],
        "pantry": [
            {"id": new_id(), "ingredientId": "ing_rice", "amount": 650, "unit": "g",
             "boughtAt": day(-20), "expiresAt": day(250)},
            {"id": new_id(), "ingredientId": "ing_chicken", "amount": 400, "unit": "g",
             "boughtAt": day(-1), "expiresAt": day(2)},
            {"id": new_id(), "ingredientId": "ing_cheese", "amount": 120, "unit": "g",
             "boughtAt": day(-5), "expiresAt": day(5)},
            {"id": new_id(), "ingredientId": "ing_tomato", "amount": 4, "unit": "Stück",
             "boughtAt": day(-2), "expiresAt": day(3)},
            {"id": new_id(), "ingredientId": "ing_wraps", "amount": 6, "unit": "Stück",
             "boughtAt": day(-4), "expiresAt": day(8)},
        ],
        "recipes": [
            {
                "id": "rec_wrap",
                "name": "Chicken-Wrap",
                "portions": 2,
                "description": "Quick and simple, good to take along.",
                "instructions": "Fry the chicken.\nRoll everything into the wraps.",
                "items": [
                    {"ingredientId": "ing_chicken", "amount": 300, "unit": "g"},
                    {"ingredientId": "ing_wraps", "amount": 2, "unit": "Stück"},
                    {"ingredientId": "ing_tomato", "amount": 2, "unit": "Stück"},
                    {"ingredientId": "ing_yogurt", "amount": 100, "unit": "g"},
                ],
                "cookHistory": [
                    {"id": new_id(), "at": day(-3), "seconds": 900},
                    {"id": new_id(), "at": day(-1), "seconds": 780},
                ],
            },
            {
                "id": "rec_rice",
                "name": "Reis + Käse",
                "portions": 1,
                "description": "Emergency meal.",
                "instructions": "Cook the rice, top with cheese.",
                "items": [
                    {"ingredientId": "ing_rice", "amount": 150, "unit": "g"},
                    {"ingredientId": "ing_cheese", "amount": 60, "unit": "g"},
                ],
                "cookHistory": [{"id": new_id(), "at": day(-10), "seconds": 1200}],
            },
        ],
        "purchaseLog": [
            {"id": new_id(), "at": day(-20), "total": 2.49, "ingredientId": "ing_rice",
             "packs": 1, "buyAmount": 1000, "unit": "g"},
            {"id": new_id(), "at": day(-5), "total": 2.29, "ingredientId": "ing_cheese",
             "packs": 1, "buyAmount": 200, "unit": "g"},
            {"id": new_id(), "at": day(-1), "total": 4.99, "ingredientId": "ing_chicken",
             "packs": 1, "buyAmount": 400, "unit": "g"},
        ],
        "wasteLog": [
            {"id": new_id(), "at": day(-15), "ingredientId": "ing_tomato", "amount": 2, "unit": "Stück",
             "value": 0.7},
        ],
        "shopping": [],
        "plannedRecipes": [],
        "shoppingSession": {"active": False, "checked": {}, "startedAt": None},
    }
    state = ensure_state_shape(doc, new_id, now)
    post_load_repair(state, now, new_id)
    return state
