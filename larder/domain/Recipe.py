"""Recipe domain entity: base portions, ingredient items and the cook-time history."""
from datetime import datetime
from typing import Callable, List, Optional

from larder.utilities.constants import COOK_HISTORY_LIMIT
from larder.utilities.quantities import new_id as default_new_id
from larder.utilities.quantities import normalize_unit, parse_datetime, safe_number, to_iso


class RecipeItem:
    def __init__(self, ingredient_id: str, amount: float = 0.0, unit: str = ""):
        self.ingredient_id = ingredient_id
        self.amount = amount  # for the recipe's base portion count
        self.unit = unit

    @staticmethod
    def from_dict(data):
        d = dict(data) if isinstance(data, dict) else {}
        return RecipeItem(
            ingredient_id=str(d.get("ingredientId") or ""),
            amount=max(0.0, safe_number(d.get("amount")) or 0.0),
            unit=normalize_unit(d.get("unit")),
        )

    def to_dict(self):
        return {"ingredientId": self.ingredient_id, "amount": self.amount, "unit": self.unit}


class CookEntry:
    def __init__(self, id: str, at: datetime, seconds: int = 0,
                 portions: Optional[int] = None, multiplier: Optional[float] = None):
        self.id = id
        self.at = at
        self.seconds = seconds
        self.portions = portions
        self.multiplier = multiplier

    @staticmethod
    def from_dict(data, new_id: Callable[[], str] = default_new_id):
        '''Returns None for entries without a timestamp.'''
        d = dict(data) if isinstance(data, dict) else {}
        at = parse_datetime(d.get("at"))
        if at is None:
            return None
        seconds = safe_number(d.get("seconds"))
        portions = safe_number(d.get("portions"))
        return CookEntry(
            id=str(d.get("id") or new_id()),
            at=at,
            seconds=max(0, int(seconds)) if seconds is not None else 0,
            portions=int(portions) if portions is not None else None,
            multiplier=safe_number(d.get("multiplier")),
        )

    def to_dict(self):
        d = {"id": self.id, "at": to_iso(self.at), "seconds": self.seconds}
        if self.portions is not None:
            d["portions"] = self.portions
        if self.multiplier is not None:
            d["multiplier"] = self.multiplier
        return d


class Recipe:
    def __init__(self, id: str = "", name: str = "", portions: int = 1,
                 items: Optional[List[RecipeItem]] = None, cook_history: Optional[List[CookEntry]] = None,
                 description: str = "", instructions: str = "",
                 last_cook_seconds: Optional[int] = None, last_cook_at: Optional[datetime] = None):
        self.id = id
        self.name = name
        self.portions = portions
        self.items = items[:] if items else []
        self.cook_history = cook_history[:] if cook_history else []
        self.description = description
        self.instructions = instructions
        self.last_cook_seconds = last_cook_seconds
        self.last_cook_at = last_cook_at

    def base_portions(self) -> int:
        return self.portions if self.portions >= 1 else 1

    def record_cook(self, entry: CookEntry):
        '''Append a cook-time entry, keeping only the most recent ones.'''
        self.cook_history.append(entry)
        self.trim_cook_history()

    def trim_cook_history(self):
        if len(self.cook_history) > COOK_HISTORY_LIMIT:
            del self.cook_history[: len(self.cook_history) - COOK_HISTORY_LIMIT]
        if self.cook_history:
            last = self.cook_history[-1]
            self.last_cook_seconds = last.seconds
            self.last_cook_at = last.at

    def __str__(self) -> str:
        return f"{self.name} - {self.portions} portions - {len(self.items)} items"

    __repr__ = __str__

    @staticmethod
    def from_dict(data, new_id: Callable[[], str] = default_new_id):
        d = dict(data) if isinstance(data, dict) else {}
        portions = safe_number(d.get("portions"))
        raw_items = d.get("items") if isinstance(d.get("items"), list) else []
        raw_history = d.get("cookHistory") if isinstance(d.get("cookHistory"), list) else []
        history = [e for e in (CookEntry.from_dict(x, new_id) for x in raw_history) if e is not None]
        last_seconds = safe_number(d.get("lastCookSeconds"))
        recipe = Recipe(
            id=str(d.get("id") or ""),
            name=str(d.get("name") or ""),
            portions=max(1, round(portions)) if portions is not None else 1,
            items=[RecipeItem.from_dict(x) for x in raw_items if isinstance(x, dict)],
            cook_history=history,
            description=str(d.get("description") or ""),
            instructions=str(d.get("instructions") or ""),
            last_cook_seconds=int(last_seconds) if last_seconds is not None else None,
            last_cook_at=parse_datetime(d.get("lastCookAt")),
        )
        recipe.trim_cook_history()
        return recipe

    def to_dict(self):
        d = {
            "id": self.id,
            "name": self.name,
            "portions": self.portions,
            "items": [it.to_dict() for it in self.items],
            "cookHistory": [e.to_dict() for e in self.cook_history],
            "description": self.description,
            "instructions": self.instructions,
        }
        if self.last_cook_seconds is not None:
            d["lastCookSeconds"] = self.last_cook_seconds
        if self.last_cook_at is not None:
            d["lastCookAt"] = to_iso(self.last_cook_at)
        return d
