"""Pantry analysis helpers: per-ingredient grouping and expiry buckets for display."""
from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from larder.domain.PantryLot import PantryLot
from larder.domain.State import AppState
from larder.logic.pantry.engine import lot_value, sort_key_fifo
from larder.utilities.constants import (
    DELETED_INGREDIENT_NAME, EXPIRY_BUCKET_LATER, EXPIRY_BUCKET_NONE, EXPIRY_BUCKETS,
)
from larder.utilities.quantities import days_left, round2, round4

__all__ = ["expiry_bucket", "group_pantry", "compute_expiring_soon"]


def expiry_bucket(left: Optional[int]) -> str:
    """Map days-left to the ordinal scale le1 < le3 < le7 < gt7 (or none)."""
    if left is None:
        return EXPIRY_BUCKET_NONE
    for bound, name in EXPIRY_BUCKETS:
        if left <= bound:
            return name
    return EXPIRY_BUCKET_LATER


def group_pantry(state: AppState, now: datetime) -> List[Dict[str, Any]]:
    """Aggregate lots per ingredient.

    Returns dicts: { ingredient_id, name, unit, known, total_amount, total_cost,
    lots, earliest_expires_at, days_left, bucket }. Lots of an unknown ingredient
    keep a fallback name and are excluded from cost and expiry figures.
    """
    by_ingredient: Dict[str, List[PantryLot]] = {}
    for lot in state.pantry:
        if not lot.ingredient_id:
            continue
        by_ingredient.setdefault(lot.ingredient_id, []).append(lot)

    groups: List[Dict[str, Any]] = []
    for ingredient_id, lots in by_ingredient.items():
        ing = state.ingredient(ingredient_id)
        sorted_lots = sorted(lots, key=sort_key_fifo)
        unit = (ing.unit if ing else "") or sorted_lots[0].unit
        total_amount = round4(sum((x.amount or 0.0) for x in sorted_lots))
        if ing is None:
            groups.append({
                'ingredient_id': ingredient_id,
                'name': DELETED_INGREDIENT_NAME,
                'unit': unit,
                'known': False,
                'total_amount': total_amount,
                'total_cost': 0.0,
                'lots': sorted_lots,
                'earliest_expires_at': None,
                'days_left': None,
                'bucket': EXPIRY_BUCKET_NONE,
            })
            continue
        total_cost = round2(sum(lot_value(x, ing) for x in sorted_lots))
        first_with_exp = next((x for x in sorted_lots if x.expires_at is not None), None)
        earliest = first_with_exp.expires_at if first_with_exp else None
        left = days_left(earliest, now)
        groups.append({
            'ingredient_id': ingredient_id,
            'name': ing.name,
            'unit': unit,
            'known': True,
            'total_amount': total_amount,
            'total_cost': total_cost,
            'lots': sorted_lots,
            'earliest_expires_at': earliest,
            'days_left': left,
            'bucket': expiry_bucket(left),
        })

    groups.sort(key=lambda g: (
        g['earliest_expires_at'].timestamp() if g['earliest_expires_at'] else math.inf,
        g['name'].lower(),
    ))
    return groups


def compute_expiring_soon(state: AppState, now: datetime, *, window: int = 3) -> List[Dict[str, Any]]:
    """Return lots expiring in <= window days (including already expired)."""
    result: List[Dict[str, Any]] = []
    for lot in state.pantry:
        left = days_left(lot.expires_at, now)
        if left is None or left > window:
            continue
        ing = state.ingredient(lot.ingredient_id)
        result.append({
            'lot_id': lot.id,
            'ingredient_id': lot.ingredient_id,
            'name': ing.name if ing else DELETED_INGREDIENT_NAME,
            'amount': lot.amount,
            'unit': lot.unit,
            'expires_at': lot.expires_at,
            'days_left': left,
        })
    result.sort(key=lambda x: (x['days_left'], x['name']))
    return result
