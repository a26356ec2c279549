"""Ingredient catalog entry: one purchasable pack (size, price, unit, shelf life, barcode)."""
from typing import Optional

from larder.utilities.quantities import clean_barcode, format_euro, normalize_unit, safe_number


class Ingredient:
    def __init__(self, id: str = "", name: str = "", amount: float = 0.0, unit: str = "",
                 price: float = 0.0, shelf_life_days: int = 0, barcode: str = ""):
        self.id = id
        self.name = name
        self.amount = amount  # pack size
        self.unit = unit
        self.price = price  # pack price
        self.shelf_life_days = shelf_life_days  # 0 = no auto-expiry
        self.barcode = barcode

    def unit_price(self) -> Optional[float]:
        '''Price per unit (e.g. per g); None when the pack size is unknown.'''
        amount = safe_number(self.amount)
        price = safe_number(self.price)
        if amount is None or price is None or amount <= 0 or price < 0:
            return None
        return price / amount

    def pack_size(self) -> Optional[float]:
        amount = safe_number(self.amount)
        return amount if amount is not None and amount > 0 else None

    def __str__(self) -> str:
        return f"{self.name} - {self.amount:g} {self.unit} - {format_euro(self.price)}"

    __repr__ = __str__

    @staticmethod
    def from_dict(data):
        '''Creates an Ingredient from its persisted dictionary. Ignores unknown keys.'''
        d = dict(data) if isinstance(data, dict) else {}
        shelf = safe_number(d.get("shelfLifeDays"))
        return Ingredient(
            id=str(d.get("id") or ""),
            name=str(d.get("name") or ""),
            amount=safe_number(d.get("amount")) or 0.0,
            unit=normalize_unit(d.get("unit")),
            price=safe_number(d.get("price")) or 0.0,
            shelf_life_days=max(0, int(shelf)) if shelf is not None else 0,
            barcode=clean_barcode(d.get("barcode")),
        )

    def to_dict(self):
        '''Converts the Ingredient to a dictionary for JSON persistence.'''
        return {
            "id": self.id,
            "name": self.name,
            "amount": self.amount,
            "unit": self.unit,
            "price": self.price,
            "shelfLifeDays": self.shelf_life_days,
            "barcode": self.barcode,
        }
