"""
Statistics over the history logs.
Spending per ingredient from the purchase log, waste per ingredient from the
waste log, cooking time per recipe from the cook histories, and the cost of
each recipe at current prices. Everything is computed for one date range.
"""
import logging
import math
from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List

from larder.domain.State import AppState
from larder.logic.cooking.cook import recipe_cost
from larder.utilities.constants import DELETED_INGREDIENT_NAME
from larder.utilities.quantities import DAY_SECONDS, round2, round4, to_iso

logger = logging.getLogger(__name__)

RANGE_7_DAYS = "7d"
RANGE_30_DAYS = "30d"
RANGE_MONTH = "month"
RANGE_YEAR = "year"
RANGE_MODES = (RANGE_7_DAYS, RANGE_30_DAYS, RANGE_MONTH, RANGE_YEAR)

UNKNOWN_INGREDIENT_NAME = "Unknown"
UNNAMED_RECIPE_NAME = "Unnamed recipe"


@dataclass
class StatsRange:
    key: str
    start: datetime
    end: datetime
    days: int

    def contains(self, at) -> bool:
        return at is not None and self.start <= at <= self.end

    def to_dict(self) -> Dict[str, Any]:
        return {'key': self.key, 'start': to_iso(self.start), 'end': to_iso(self.end), 'days': self.days}


def range_info(mode: str, now: datetime) -> StatsRange:
    """Rolling 7/30 days, or the current calendar month/year up to ``now``.

    Unknown modes fall back to 30 days.
    """
    if mode == RANGE_7_DAYS:
        return StatsRange(RANGE_7_DAYS, now - timedelta(days=7), now, 7)
    if mode in (RANGE_MONTH, RANGE_YEAR):
        start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        if mode == RANGE_YEAR:
            start = start.replace(month=1)
        days = max(1, math.ceil((now - start).total_seconds() / DAY_SECONDS))
        return StatsRange(mode, start, now, days)
    return StatsRange(RANGE_30_DAYS, now - timedelta(days=30), now, 30)


class LarderStats:
    """Generate statistics from the state's purchase, waste and cook logs."""

    def __init__(self, state: AppState, now: datetime, mode: str = RANGE_30_DAYS):
        self.state = state
        self.range = range_info(mode, now)

    def _ingredient_label(self, ingredient_id: str, logged_unit: str):
        ing = self.state.ingredient(ingredient_id) if ingredient_id else None
        if ing is not None:
            return ing.name, ing.unit or logged_unit
        return (DELETED_INGREDIENT_NAME if ingredient_id else UNKNOWN_INGREDIENT_NAME), logged_unit

    def cook_entries(self) -> List[Dict[str, Any]]:
        """Timed cook entries inside the range, newest first."""
        out = []
        for recipe in self.state.recipes:
            for entry in recipe.cook_history:
                if entry.seconds <= 0 or not self.range.contains(entry.at):
                    continue
                out.append({'at': entry.at, 'seconds': entry.seconds, 'recipe_id': recipe.id,
                            'recipe_name': recipe.name or UNNAMED_RECIPE_NAME})
        out.sort(key=lambda e: e['at'], reverse=True)
        return out

    def _recipe_rows(self) -> List[Dict[str, Any]]:
        counts = Counter()
        seconds = Counter()
        names = {}
        for e in self.cook_entries():
            counts[e['recipe_id']] += 1
            seconds[e['recipe_id']] += e['seconds']
            names[e['recipe_id']] = e['recipe_name']
        return [{'id': rid, 'name': names[rid], 'count': counts[rid], 'seconds': seconds[rid]} for rid in counts]

    def top_recipes(self, limit: int = 8) -> List[Dict[str, Any]]:
        """Most cooked recipes; ties broken by total time."""
        rows = sorted(self._recipe_rows(), key=lambda r: (-r['count'], -r['seconds']))
        return rows[:limit]

    def top_recipes_by_time(self, limit: int = 8) -> List[Dict[str, Any]]:
        rows = sorted(self._recipe_rows(), key=lambda r: (-r['seconds'], -r['count']))
        return rows[:limit]

    def spend_by_ingredient(self, limit: int = 8) -> List[Dict[str, Any]]:
        """Purchase totals per ingredient, largest first."""
        rows = defaultdict(lambda: {'total': 0.0, 'packs': 0, 'amount': 0.0, 'count': 0})
        for e in self.state.purchase_log:
            if e.total <= 0 or not self.range.contains(e.at):
                continue
            row = rows[e.ingredient_id]
            row['name'], row['unit'] = self._ingredient_label(e.ingredient_id, e.unit)
            row['total'] += e.total
            row['packs'] += e.packs
            row['amount'] += e.buy_amount
            row['count'] += 1
        return self._ranked(rows, limit)

    def waste_by_ingredient(self, limit: int = 6) -> List[Dict[str, Any]]:
        """Wasted value per ingredient, largest first."""
        rows = defaultdict(lambda: {'total': 0.0, 'amount': 0.0, 'count': 0})
        for e in self.state.waste_log:
            if e.cost <= 0 or not self.range.contains(e.at):
                continue
            row = rows[e.ingredient_id]
            row['name'], row['unit'] = self._ingredient_label(e.ingredient_id, e.unit)
            row['total'] += e.cost
            row['amount'] += e.amount
            row['count'] += 1
        return self._ranked(rows, limit)

    @staticmethod
    def _ranked(rows, limit: int) -> List[Dict[str, Any]]:
        out = [dict(row, id=key, total=round2(row['total']), amount=round4(row['amount']))
               for key, row in rows.items()]
        out.sort(key=lambda r: r['total'], reverse=True)
        return out[:limit]

    def recipe_costs(self) -> List[Dict[str, Any]]:
        """Cost of every recipe at current prices, most expensive first."""
        out = []
        for recipe in self.state.recipes:
            cost = recipe_cost(self.state, recipe)
            out.append({'id': recipe.id, 'name': recipe.name or UNNAMED_RECIPE_NAME, 'cost': cost,
                        'per_portion': round2(cost / recipe.base_portions())})
        out.sort(key=lambda r: r['cost'], reverse=True)
        return out

    def totals(self) -> Dict[str, Any]:
        cooks = self.cook_entries()
        cook_seconds = sum(e['seconds'] for e in cooks)
        spent = sum(e.total for e in self.state.purchase_log if e.total > 0 and self.range.contains(e.at))
        wasted = sum(e.cost for e in self.state.waste_log if e.cost > 0 and self.range.contains(e.at))
        return {
            'spent': round2(spent),
            'wasted': round2(wasted),
            'spent_per_day': round2(spent / self.range.days),
            'cook_count': len(cooks),
            'cook_seconds': cook_seconds,
            'cook_seconds_per_session': round(cook_seconds / len(cooks)) if cooks else 0,
            'cook_seconds_per_day': round(cook_seconds / self.range.days),
        }

    def generate_report(self) -> Dict[str, Any]:
        """Generate the full statistics report for the range."""
        report = {
            'range': self.range.to_dict(),
            'totals': self.totals(),
            'top_recipes': self.top_recipes(),
            'top_recipes_by_time': self.top_recipes_by_time(),
            'spend_by_ingredient': self.spend_by_ingredient(),
            'waste_by_ingredient': self.waste_by_ingredient(),
            'recipe_costs': self.recipe_costs(),
            'recent_cooks': self.cook_entries()[:5],
        }
        logger.debug("Statistics for %s: %s", self.range.key, report['totals'])
        return report
