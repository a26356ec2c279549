"""Numeric, unit, barcode and timestamp helpers shared by the core.

No application logic lives here: every function is pure and safe to call with
whatever a persisted document happens to contain.
"""
from __future__ import annotations

import math
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from larder.utilities.constants import (
    BARCODE_MAX_DIGITS,
    BARCODE_MIN_DIGITS,
    EPSILON_BY_UNIT_KIND,
    UNIT_GRAM,
    UNIT_MILLILITER,
    UNIT_PIECE,
)

__all__ = [
    "to_number", "safe_number", "round2", "round4", "format_euro",
    "new_id", "normalize_unit", "unit_kind", "epsilon_for_unit", "is_effectively_zero",
    "clean_barcode", "is_valid_barcode", "parse_quantity", "parse_quantity_string",
    "utc_now", "parse_datetime", "to_iso", "date_key", "add_days", "days_left",
]

DAY_SECONDS = 24 * 60 * 60


# --- Numbers -------------------------------------------------------------

def to_number(value: Any) -> float:
    """Parse a number, accepting ',' as decimal separator. NaN when unparsable."""
    if value is None or isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip().replace(",", "."))
    except ValueError:
        return math.nan


def safe_number(value: Any) -> Optional[float]:
    n = to_number(value)
    return n if math.isfinite(n) else None


def round2(n: Any) -> float:
    return round(safe_number(n) or 0.0, 2)


def round4(n: Any) -> float:
    return round(safe_number(n) or 0.0, 4)


def format_euro(n: Any) -> str:
    """Format an amount as de-DE currency, e.g. ``1.234,50 €``."""
    x = safe_number(n) or 0.0
    text = f"{x:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{text} €"


def new_id() -> str:
    return uuid.uuid4().hex


# --- Units ---------------------------------------------------------------

def normalize_unit(raw: Any) -> str:
    text = str(raw if raw is not None else "").strip()
    low = text.lower()
    if not text:
        return ""
    if low in ("stk", "pc", "pcs", "piece", "pieces") or "stück" in low:
        return UNIT_PIECE
    if low == "g" or "gram" in low:
        return UNIT_GRAM
    if low == "ml" or "milli" in low:
        return UNIT_MILLILITER
    return text


def unit_kind(unit: Any) -> str:
    u = normalize_unit(unit)
    if u == UNIT_PIECE:
        return "piece"
    if u == UNIT_GRAM:
        return "weight"
    if u == UNIT_MILLILITER:
        return "volume"
    return "custom"


def epsilon_for_unit(unit: Any) -> float:
    return EPSILON_BY_UNIT_KIND[unit_kind(unit)]


def is_effectively_zero(amount: Any, unit: Any) -> bool:
    return (safe_number(amount) or 0.0) <= epsilon_for_unit(unit)


# --- Barcodes --------------------------------------------------------------

def clean_barcode(raw: Any) -> str:
    return re.sub(r"\D+", "", str(raw if raw is not None else ""))


def is_valid_barcode(code: Any) -> bool:
    c = clean_barcode(code)
    return BARCODE_MIN_DIGITS <= len(c) <= BARCODE_MAX_DIGITS


# --- Product quantity text ---------------------------------------------------

_UNIT_FACTORS = {
    "g": (1, UNIT_GRAM), "gram": (1, UNIT_GRAM), "grams": (1, UNIT_GRAM),
    "kg": (1000, UNIT_GRAM), "kilogram": (1000, UNIT_GRAM), "kilograms": (1000, UNIT_GRAM),
    "ml": (1, UNIT_MILLILITER), "milliliter": (1, UNIT_MILLILITER), "milliliters": (1, UNIT_MILLILITER),
    "l": (1000, UNIT_MILLILITER), "lt": (1000, UNIT_MILLILITER),
    "liter": (1000, UNIT_MILLILITER), "liters": (1000, UNIT_MILLILITER),
    "cl": (10, UNIT_MILLILITER), "dl": (100, UNIT_MILLILITER),
    "pcs": (1, UNIT_PIECE), "pc": (1, UNIT_PIECE), "piece": (1, UNIT_PIECE),
    "pieces": (1, UNIT_PIECE), "stk": (1, UNIT_PIECE),
}

_MULTIPACK = re.compile(r"(\d+(?:[.,]\d+)?)\s*[x×]\s*(\d+(?:[.,]\d+)?)\s*([a-zäöü]+)", re.IGNORECASE)
_SINGLE = re.compile(r"(\d+(?:[.,]\d+)?)\s*([a-zäöü]+)", re.IGNORECASE)


def parse_quantity(qty: Any, unit_raw: Any) -> Optional[tuple[float, str]]:
    """Convert a quantity and a unit spelling into ``(amount, canonical_unit)``."""
    n = to_number(qty)
    if not math.isfinite(n) or n <= 0:
        return None
    u = str(unit_raw or "").strip().lower()
    if "stück" in u:
        return n, UNIT_PIECE
    factor = _UNIT_FACTORS.get(u)
    if factor is None:
        return None
    return n * factor[0], factor[1]


def parse_quantity_string(text: Any) -> Optional[tuple[float, str]]:
    """Parse product text like ``"500 g"``, ``"1,5 l"`` or ``"6x250 g"``.

    For multipacks the single item size is the pack size.
    """
    raw = str(text or "").strip().lower()
    if not raw:
        return None
    multi = _MULTIPACK.search(raw)
    if multi:
        return parse_quantity(multi.group(2), multi.group(3))
    m = _SINGLE.search(raw)
    if not m:
        return None
    return parse_quantity(m.group(1), m.group(2))


# --- Timestamps --------------------------------------------------------------

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp or date; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt is not None else None


def date_key(dt: Optional[datetime]) -> str:
    return dt.date().isoformat() if dt is not None else ""


def add_days(dt: datetime, days: float) -> datetime:
    return dt + timedelta(days=days)


def days_left(expires_at: Optional[datetime], now: datetime) -> Optional[int]:
    if expires_at is None:
        return None
    return math.ceil((expires_at - now).total_seconds() / DAY_SECONDS)
