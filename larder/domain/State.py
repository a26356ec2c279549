"""AppState aggregate: the single persisted document holding catalog, pantry, plan, shopping and logs."""
import copy
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from larder.domain.Ingredient import Ingredient
from larder.domain.Logs import PurchaseLogEntry, WasteLogEntry
from larder.domain.PantryLot import PantryLot
from larder.domain.Plan import PlannedRecipe
from larder.domain.Recipe import Recipe
from larder.domain.ShoppingList import ShoppingEntry, ShoppingSession
from larder.utilities.constants import CURRENT_SCHEMA, DEFAULT_SETTINGS
from larder.utilities.quantities import new_id as default_new_id

KNOWN_KEYS = {
    "schemaVersion", "ingredients", "recipes", "plannedRecipes", "shopping", "pantry",
    "purchaseLog", "wasteLog", "shoppingSession", "settings",
}


def _as_list(value) -> list:
    return value if isinstance(value, list) else []


class AppState:
    def __init__(self, ingredients: Optional[List[Ingredient]] = None, recipes: Optional[List[Recipe]] = None,
                 planned_recipes: Optional[List[PlannedRecipe]] = None,
                 shopping: Optional[List[ShoppingEntry]] = None, pantry: Optional[List[PantryLot]] = None,
                 purchase_log: Optional[List[PurchaseLogEntry]] = None,
                 waste_log: Optional[List[WasteLogEntry]] = None,
                 shopping_session: Optional[ShoppingSession] = None,
                 settings: Optional[Dict[str, Any]] = None, schema_version: int = CURRENT_SCHEMA,
                 extra: Optional[Dict[str, Any]] = None):
        self.ingredients = ingredients if ingredients is not None else []
        self.recipes = recipes if recipes is not None else []
        self.planned_recipes = planned_recipes if planned_recipes is not None else []
        self.shopping = shopping if shopping is not None else []
        self.pantry = pantry if pantry is not None else []
        self.purchase_log = purchase_log if purchase_log is not None else []
        self.waste_log = waste_log if waste_log is not None else []
        self.shopping_session = shopping_session if shopping_session is not None else ShoppingSession()
        self.settings = settings if settings is not None else copy.deepcopy(DEFAULT_SETTINGS)
        self.schema_version = schema_version
        # Unknown top-level keys, carried through load/save untouched
        self.extra = extra if extra is not None else {}

    @classmethod
    def default(cls) -> "AppState":
        return cls()

    # --- Lookups ----------------------------------------------------------
    def ingredient(self, ingredient_id: str) -> Optional[Ingredient]:
        for ing in self.ingredients:
            if ing.id == ingredient_id:
                return ing
        return None

    def recipe(self, recipe_id: str) -> Optional[Recipe]:
        for r in self.recipes:
            if r.id == recipe_id:
                return r
        return None

    def shopping_entry(self, ingredient_id: str) -> Optional[ShoppingEntry]:
        for entry in self.shopping:
            if entry.ingredient_id == ingredient_id:
                return entry
        return None

    def lot(self, lot_id: str) -> Optional[PantryLot]:
        for p in self.pantry:
            if p.id == lot_id:
                return p
        return None

    def lots_for(self, ingredient_id: str) -> List[PantryLot]:
        return [p for p in self.pantry if p.ingredient_id == ingredient_id]

    # --- Persistence ------------------------------------------------------
    @staticmethod
    def from_dict(data, new_id: Callable[[], str] = default_new_id, now: Optional[datetime] = None):
        '''Builds the aggregate from an already migrated document, filling defaults.'''
        d = dict(data) if isinstance(data, dict) else {}

        pantry = [PantryLot.from_dict(x) for x in _as_list(d.get("pantry")) if isinstance(x, dict)]
        for lot in pantry:
            if not lot.id:
                lot.id = new_id()

        shopping = [ShoppingEntry.from_dict(x) for x in _as_list(d.get("shopping")) if isinstance(x, dict)]
        for entry in shopping:
            if not entry.id:
                entry.id = new_id()

        planned = [PlannedRecipe.from_dict(x, now) for x in _as_list(d.get("plannedRecipes"))]

        settings = d.get("settings") if isinstance(d.get("settings"), dict) else {}
        merged_settings = copy.deepcopy(DEFAULT_SETTINGS)
        merged_settings.update(copy.deepcopy(settings))
        if not isinstance(merged_settings.get("pantryConsumeSteps"), dict):
            merged_settings["pantryConsumeSteps"] = {}

        return AppState(
            ingredients=[Ingredient.from_dict(x) for x in _as_list(d.get("ingredients")) if isinstance(x, dict)],
            recipes=[Recipe.from_dict(x, new_id) for x in _as_list(d.get("recipes")) if isinstance(x, dict)],
            planned_recipes=[p for p in planned if p is not None],
            shopping=shopping,
            pantry=pantry,
            purchase_log=[PurchaseLogEntry.from_dict(x, new_id)
                          for x in _as_list(d.get("purchaseLog")) if isinstance(x, dict)],
            waste_log=[WasteLogEntry.from_dict(x, new_id)
                       for x in _as_list(d.get("wasteLog")) if isinstance(x, dict)],
            shopping_session=ShoppingSession.from_dict(d.get("shoppingSession")),
            settings=merged_settings,
            schema_version=CURRENT_SCHEMA,
            extra={k: copy.deepcopy(v) for k, v in d.items() if k not in KNOWN_KEYS},
        )

    def to_dict(self):
        d = dict(copy.deepcopy(self.extra))
        d.update({
            "schemaVersion": self.schema_version,
            "ingredients": [i.to_dict() for i in self.ingredients],
            "recipes": [r.to_dict() for r in self.recipes],
            "plannedRecipes": [p.to_dict() for p in self.planned_recipes],
            "shopping": [s.to_dict() for s in self.shopping],
            "pantry": [p.to_dict() for p in self.pantry],
            "purchaseLog": [e.to_dict() for e in self.purchase_log],
            "wasteLog": [e.to_dict() for e in self.waste_log],
            "shoppingSession": self.shopping_session.to_dict(),
            "settings": copy.deepcopy(self.settings),
        })
        return d

    def __str__(self) -> str:
        return (f"AppState: {len(self.ingredients)} ingredients, {len(self.recipes)} recipes, "
                f"{len(self.pantry)} lots, {len(self.shopping)} shopping entries")

    __repr__ = __str__
