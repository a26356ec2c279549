"""Deterministic clock, id sequence and small state builders shared by the tests."""
from datetime import datetime, timedelta, timezone

from larder.domain.Ingredient import Ingredient
from larder.domain.PantryLot import PantryLot
from larder.domain.Recipe import Recipe, RecipeItem
from larder.domain.State import AppState

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now = self.now + timedelta(seconds=seconds)


class IdSequence:
    def __init__(self, prefix: str = "id"):
        self.prefix = prefix
        self.n = 0

    def __call__(self) -> str:
        self.n += 1
        return f"{self.prefix}{self.n}"


def days(n: float) -> datetime:
    return NOW + timedelta(days=n)


def make_ingredient(id="rice", name="Rice", amount=1000.0, unit="g", price=2.0, shelf_life_days=0, barcode=""):
    return Ingredient(id=id, name=name, amount=amount, unit=unit, price=price,
                      shelf_life_days=shelf_life_days, barcode=barcode)


def make_lot(id, ingredient_id="rice", amount=100.0, unit="g", bought_at=None, expires_at=None, cost=None):
    return PantryLot(id=id, ingredient_id=ingredient_id, amount=amount, unit=unit,
                     bought_at=bought_at, expires_at=expires_at, cost=cost)


def make_recipe(id="r1", name="Dish", portions=2, items=()):
    return Recipe(id=id, name=name, portions=portions,
                  items=[RecipeItem(ingredient_id=i, amount=a, unit=u) for i, a, u in items])


def make_state(ingredients=(), pantry=(), recipes=()) -> AppState:
    return AppState(ingredients=list(ingredients), pantry=list(pantry), recipes=list(recipes))
