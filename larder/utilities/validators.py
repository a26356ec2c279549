"""
Input validation schemas using Pydantic for the edit boundary.

Fields accept snake_case or camelCase names; numeric fields also accept
strings with a decimal comma ("1,5").
"""
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from larder.utilities.quantities import clean_barcode, is_valid_barcode, normalize_unit, to_number


class _Input(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


def _decimal_comma(v):
    if isinstance(v, str):
        return to_number(v)
    return v


class IngredientInput(_Input):
    """Schema for ingredient create/update."""
    id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=100)
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    unit: str = Field(..., min_length=1, max_length=20)
    price: float = Field(0.0, ge=0, allow_inf_nan=False)
    shelf_life_days: int = Field(0, ge=0, le=3650)
    barcode: str = ""

    @field_validator('amount', 'price', mode='before')
    @classmethod
    def parse_decimal(cls, v):
        return _decimal_comma(v)

    @field_validator('unit')
    @classmethod
    def canonical_unit(cls, v):
        """Map unit spellings onto pcs/g/ml."""
        return normalize_unit(v)

    @field_validator('barcode', mode='before')
    @classmethod
    def validate_barcode(cls, v):
        """Digits only; 8-14 digits when given."""
        code = clean_barcode(v)
        if code and not is_valid_barcode(code):
            raise ValueError('Barcode must have 8 to 14 digits')
        return code


class RecipeItemInput(_Input):
    ingredient_id: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0, allow_inf_nan=False)
    unit: str = ""

    @field_validator('amount', mode='before')
    @classmethod
    def parse_decimal(cls, v):
        return _decimal_comma(v)

    @field_validator('unit')
    @classmethod
    def canonical_unit(cls, v):
        return normalize_unit(v)


class RecipeInput(_Input):
    """Schema for recipe create/update."""
    id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=200)
    portions: int = Field(1, ge=1, le=100)
    items: List[RecipeItemInput] = Field(default_factory=list)
    description: str = ""
    instructions: str = ""

    @field_validator('items')
    @classmethod
    def validate_items(cls, v):
        """Ensure recipe has at least one ingredient."""
        if not v:
            raise ValueError('Recipe must have at least one ingredient')
        return v


def _aware(v: Optional[datetime]) -> Optional[datetime]:
    if v is not None and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


class PantryLotInput(_Input):
    """Schema for manual stock entry and lot edits."""
    ingredient_id: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    expires_at: Optional[datetime] = None

    @field_validator('amount', mode='before')
    @classmethod
    def parse_decimal(cls, v):
        return _decimal_comma(v)

    @field_validator('expires_at')
    @classmethod
    def assume_utc(cls, v):
        return _aware(v)


class LotEditInput(_Input):
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    expires_at: Optional[datetime] = None

    @field_validator('amount', mode='before')
    @classmethod
    def parse_decimal(cls, v):
        return _decimal_comma(v)

    @field_validator('expires_at')
    @classmethod
    def assume_utc(cls, v):
        return _aware(v)


class PlannedRecipeInput(_Input):
    recipe_id: str = Field(..., min_length=1)
    portions_wanted: int = Field(1, ge=1, le=100)


class ShoppingAddInput(_Input):
    """Manual shopping addition: a pack count, or an amount when a unit is given."""
    ingredient_id: str = Field(..., min_length=1)
    value: float = Field(..., gt=0, allow_inf_nan=False)
    unit: Optional[str] = None

    @field_validator('value', mode='before')
    @classmethod
    def parse_decimal(cls, v):
        return _decimal_comma(v)


class ConsumeInput(_Input):
    ingredient_id: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    unit: str = ""

    @field_validator('amount', mode='before')
    @classmethod
    def parse_decimal(cls, v):
        return _decimal_comma(v)


class PurchaseEditInput(_Input):
    """Correction of a logged purchase."""
    packs: int = Field(..., ge=0, le=10000)
    total: float = Field(..., ge=0, allow_inf_nan=False)

    @field_validator('total', mode='before')
    @classmethod
    def parse_decimal(cls, v):
        return _decimal_comma(v)
