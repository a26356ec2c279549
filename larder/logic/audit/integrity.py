"""Referential integrity repair.

Runs on every load and save. Shopping entries, pantry lots, recipe items and
planned recipes pointing at a missing ingredient/recipe are removed, as are
session counters for ingredients no longer on the list. Purchase and waste logs
are history: orphaned entries are only counted unless ``strict_logs`` is set.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from larder.domain.State import AppState
from larder.utilities.quantities import to_iso

logger = logging.getLogger(__name__)

__all__ = ["AuditReport", "repair_references"]


def _empty_removed() -> Dict[str, int]:
    return {"shopping": 0, "pantry": 0, "plannedRecipes": 0, "recipeItems": 0, "shoppingCheckedKeys": 0}


@dataclass
class AuditReport:
    at: Optional[datetime] = None
    removed: Dict[str, int] = field(default_factory=_empty_removed)
    orphaned: Dict[str, int] = field(default_factory=lambda: {"purchaseLog": 0, "wasteLog": 0})
    warnings: List[str] = field(default_factory=list)

    @property
    def total_removed(self) -> int:
        return sum(self.removed.values())

    @property
    def clean(self) -> bool:
        return self.total_removed == 0 and not self.warnings

    def to_dict(self) -> Dict[str, Any]:
        return {
            "at": to_iso(self.at),
            "removed": dict(self.removed),
            "orphaned": dict(self.orphaned),
            "warnings": list(self.warnings),
        }


def repair_references(state: AppState, strict_logs: bool = False, now: Optional[datetime] = None) -> AuditReport:
    report = AuditReport(at=now)
    ing_ids = {i.id for i in state.ingredients if i.id}
    recipe_ids = {r.id for r in state.recipes if r.id}

    before = len(state.shopping)
    state.shopping = [e for e in state.shopping if e.ingredient_id in ing_ids]
    report.removed["shopping"] = before - len(state.shopping)

    before = len(state.pantry)
    state.pantry = [p for p in state.pantry if p.ingredient_id in ing_ids]
    report.removed["pantry"] = before - len(state.pantry)

    for recipe in state.recipes:
        before = len(recipe.items)
        recipe.items = [it for it in recipe.items if it.ingredient_id in ing_ids]
        report.removed["recipeItems"] += before - len(recipe.items)

    before = len(state.planned_recipes)
    state.planned_recipes = [pr for pr in state.planned_recipes if pr.recipe_id in recipe_ids]
    report.removed["plannedRecipes"] = before - len(state.planned_recipes)

    listed = {e.ingredient_id for e in state.shopping}
    checked = state.shopping_session.checked
    for key in [k for k in checked if k not in listed]:
        del checked[key]
        report.removed["shoppingCheckedKeys"] += 1

    if strict_logs:
        before = len(state.purchase_log)
        state.purchase_log = [e for e in state.purchase_log if e.ingredient_id in ing_ids]
        if before != len(state.purchase_log):
            report.warnings.append(f"purchaseLog: {before - len(state.purchase_log)} orphaned entries removed.")
        before = len(state.waste_log)
        state.waste_log = [e for e in state.waste_log if e.ingredient_id in ing_ids]
        if before != len(state.waste_log):
            report.warnings.append(f"wasteLog: {before - len(state.waste_log)} orphaned entries removed.")

    report.orphaned["purchaseLog"] = sum(
        1 for e in state.purchase_log if e.ingredient_id and e.ingredient_id not in ing_ids)
    report.orphaned["wasteLog"] = sum(
        1 for e in state.waste_log if e.ingredient_id and e.ingredient_id not in ing_ids)
    for name, count in report.orphaned.items():
        if count:
            report.warnings.append(f"{name} holds {count} entries for deleted ingredients (still counted).")

    if report.total_removed:
        logger.warning("Reference repair removed %s", {k: v for k, v in report.removed.items() if v})
    return report
