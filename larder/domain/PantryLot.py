"""Pantry lot: a discrete quantity of one ingredient with its own dates and derived cost."""
from datetime import datetime
from typing import Optional

from larder.utilities.constants import LOT_SOURCE_CHECKOUT, LOT_SOURCE_MANUAL
from larder.utilities.quantities import normalize_unit, parse_datetime, safe_number, to_iso


class PantryLot:
    def __init__(self, id: str = "", ingredient_id: str = "", amount: float = 0.0, unit: str = "",
                 bought_at: Optional[datetime] = None, entered_at: Optional[datetime] = None,
                 source: str = LOT_SOURCE_CHECKOUT, expires_at: Optional[datetime] = None,
                 unit_cost: Optional[float] = None, cost: Optional[float] = None,
                 price_paid: Optional[float] = None, step: Optional[float] = None):
        self.id = id
        self.ingredient_id = ingredient_id
        self.amount = amount
        self.unit = unit
        self.bought_at = bought_at
        self.entered_at = entered_at
        self.source = source
        self.expires_at = expires_at
        # Cached values, re-derived from the ingredient price whenever it is known
        self.unit_cost = unit_cost
        self.cost = cost
        self.price_paid = price_paid
        self.step = step

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < now

    def __str__(self) -> str:
        exp = self.expires_at.date().isoformat() if self.expires_at else "-"
        return f"Lot {self.id}: {self.amount:g} {self.unit} of {self.ingredient_id} (exp {exp})"

    __repr__ = __str__

    @staticmethod
    def from_dict(data):
        d = dict(data) if isinstance(data, dict) else {}
        source = d.get("source")
        if source not in (LOT_SOURCE_MANUAL, LOT_SOURCE_CHECKOUT):
            source = LOT_SOURCE_MANUAL if d.get("enteredAt") else LOT_SOURCE_CHECKOUT
        return PantryLot(
            id=str(d.get("id") or ""),
            ingredient_id=str(d.get("ingredientId") or ""),
            amount=max(0.0, safe_number(d.get("amount")) or 0.0),
            unit=normalize_unit(d.get("unit")),
            bought_at=parse_datetime(d.get("boughtAt")),
            entered_at=parse_datetime(d.get("enteredAt")),
            source=source,
            expires_at=parse_datetime(d.get("expiresAt")),
            unit_cost=safe_number(d.get("unitCost")),
            cost=safe_number(d.get("cost")),
            price_paid=safe_number(d.get("pricePaid")),
            step=safe_number(d.get("step")),
        )

    def to_dict(self):
        d = {
            "id": self.id,
            "ingredientId": self.ingredient_id,
            "amount": self.amount,
            "unit": self.unit,
            "boughtAt": to_iso(self.bought_at),
            "source": self.source,
            "expiresAt": to_iso(self.expires_at),
            "unitCost": self.unit_cost,
            "cost": self.cost,
        }
        if self.entered_at is not None:
            d["enteredAt"] = to_iso(self.entered_at)
        if self.price_paid is not None:
            d["pricePaid"] = self.price_paid
        if self.step is not None:
            d["step"] = self.step
        return d
