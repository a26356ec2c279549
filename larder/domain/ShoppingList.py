"""Shopping list entries (packs to buy per ingredient) and the in-store shopping session."""
from datetime import datetime
from typing import Dict, Optional

from larder.utilities.quantities import parse_datetime, safe_number, to_iso


class ShoppingEntry:
    def __init__(self, id: str = "", ingredient_id: str = "", packs: int = 1, plan_min: Optional[int] = None):
        self.id = id
        self.ingredient_id = ingredient_id
        self.packs = packs
        # None = manual entry; otherwise minimum packs required by the meal plan
        self.plan_min = plan_min

    def is_plan_tracked(self) -> bool:
        return self.plan_min is not None

    def __str__(self) -> str:
        plan = f" (plan {self.plan_min})" if self.plan_min is not None else ""
        return f"{self.packs} x {self.ingredient_id}{plan}"

    __repr__ = __str__

    @staticmethod
    def from_dict(data):
        d = dict(data) if isinstance(data, dict) else {}
        packs = safe_number(d.get("packs"))
        plan_min = safe_number(d.get("planMin"))
        return ShoppingEntry(
            id=str(d.get("id") or ""),
            ingredient_id=str(d.get("ingredientId") or ""),
            packs=max(1, round(packs)) if packs is not None and packs > 0 else 1,
            plan_min=round(plan_min) if plan_min is not None and plan_min >= 0 else None,
        )

    def to_dict(self):
        d = {"id": self.id, "ingredientId": self.ingredient_id, "packs": self.packs}
        if self.plan_min is not None:
            d["planMin"] = self.plan_min
        return d


class ShoppingSession:
    def __init__(self, active: bool = False, checked: Optional[Dict[str, int]] = None,
                 started_at: Optional[datetime] = None):
        self.active = active
        # ingredientId -> packs marked bought in the current session
        self.checked = dict(checked) if checked else {}
        self.started_at = started_at

    @staticmethod
    def from_dict(data):
        d = dict(data) if isinstance(data, dict) else {}
        raw = d.get("checked") if isinstance(d.get("checked"), dict) else {}
        checked: Dict[str, int] = {}
        for key, value in raw.items():
            if value is True:
                checked[str(key)] = 1
                continue
            n = safe_number(value)
            if n is not None and int(n) > 0 and value is not False:
                checked[str(key)] = int(n)
        return ShoppingSession(
            active=bool(d.get("active")),
            checked=checked,
            started_at=parse_datetime(d.get("startedAt")),
        )

    def to_dict(self):
        return {"active": self.active, "checked": dict(self.checked), "startedAt": to_iso(self.started_at)}
