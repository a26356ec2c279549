"""Planned recipe: one recipe in the active meal plan, scaled to a wanted portion count."""
from datetime import datetime
from typing import Optional

from larder.utilities.quantities import parse_datetime, safe_number, to_iso


class PlannedRecipe:
    def __init__(self, recipe_id: str, portions_wanted: int = 1, added_at: Optional[datetime] = None):
        self.recipe_id = recipe_id
        self.portions_wanted = portions_wanted
        self.added_at = added_at

    def __str__(self) -> str:
        return f"{self.recipe_id} x{self.portions_wanted} portions"

    __repr__ = __str__

    @staticmethod
    def from_dict(data, default_added_at: Optional[datetime] = None):
        '''Returns None for entries without a recipe id.'''
        d = dict(data) if isinstance(data, dict) else {}
        if not d.get("recipeId"):
            return None
        portions = safe_number(d.get("portionsWanted"))
        return PlannedRecipe(
            recipe_id=str(d["recipeId"]),
            portions_wanted=max(1, round(portions)) if portions is not None else 1,
            added_at=parse_datetime(d.get("addedAt")) or default_added_at,
        )

    def to_dict(self):
        return {"recipeId": self.recipe_id, "portionsWanted": self.portions_wanted,
                "addedAt": to_iso(self.added_at)}
