"""Historical log records. Never pruned automatically; ingredient ids may dangle."""
from datetime import datetime
from typing import Callable

from larder.utilities.quantities import new_id as default_new_id
from larder.utilities.quantities import normalize_unit, parse_datetime, round2, safe_number, to_iso


class PurchaseLogEntry:
    def __init__(self, id: str, at: datetime, total: float, ingredient_id: str,
                 packs: int, buy_amount: float, unit: str):
        self.id = id
        self.at = at
        self.total = total
        self.ingredient_id = ingredient_id
        self.packs = packs
        self.buy_amount = buy_amount
        self.unit = unit

    @staticmethod
    def from_dict(data, new_id: Callable[[], str] = default_new_id):
        d = dict(data) if isinstance(data, dict) else {}
        packs = safe_number(d.get("packs"))
        return PurchaseLogEntry(
            id=str(d.get("id") or new_id()),
            at=parse_datetime(d.get("at")),
            total=round2(d.get("total")),
            ingredient_id=str(d.get("ingredientId") or ""),
            packs=int(packs) if packs is not None else 0,
            buy_amount=safe_number(d.get("buyAmount")) or 0.0,
            unit=normalize_unit(d.get("unit")),
        )

    def to_dict(self):
        return {
            "id": self.id,
            "at": to_iso(self.at),
            "total": self.total,
            "ingredientId": self.ingredient_id,
            "packs": self.packs,
            "buyAmount": self.buy_amount,
            "unit": self.unit,
        }


class WasteLogEntry:
    def __init__(self, id: str, at: datetime, ingredient_id: str, amount: float, unit: str, cost: float):
        self.id = id
        self.at = at
        self.ingredient_id = ingredient_id
        self.amount = amount
        self.unit = unit
        self.cost = cost

    @staticmethod
    def from_dict(data, new_id: Callable[[], str] = default_new_id):
        d = dict(data) if isinstance(data, dict) else {}
        return WasteLogEntry(
            id=str(d.get("id") or new_id()),
            at=parse_datetime(d.get("at")),
            ingredient_id=str(d.get("ingredientId") or ""),
            amount=safe_number(d.get("amount")) or 0.0,
            unit=normalize_unit(d.get("unit")),
            cost=round2(d.get("cost")),
        )

    def to_dict(self):
        return {
            "id": self.id,
            "at": to_iso(self.at),
            "ingredientId": self.ingredient_id,
            "amount": self.amount,
            "unit": self.unit,
            "cost": self.cost,
        }
