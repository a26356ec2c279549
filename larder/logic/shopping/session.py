"""In-store shopping session: per-entry bought counters and checkout into the pantry."""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from larder.domain.Logs import PurchaseLogEntry
from larder.domain.PantryLot import PantryLot
from larder.domain.State import AppState
from larder.logic.shopping.reconcile import RECONCILE_RAISE, reconcile_shopping_with_plan, required_packs_of
from larder.utilities.constants import LOT_SOURCE_CHECKOUT
from larder.utilities.quantities import add_days, round2, round4, safe_number
from larder.utilities.quantities import new_id as default_new_id

logger = logging.getLogger(__name__)

__all__ = [
    "CheckoutResult", "start_shopping", "cancel_shopping", "get_bought_count",
    "set_bought_count", "inc_bought", "dec_bought", "checkout",
]


@dataclass
class CheckoutResult:
    ok: bool
    reason: str = ""
    lots: List[PantryLot] = field(default_factory=list)
    purchases: List[PurchaseLogEntry] = field(default_factory=list)
    # Pre-checkout clones of the touched sub-trees, for undo
    snapshot: Dict[str, Any] = field(default_factory=dict)

    @property
    def total(self) -> float:
        return round2(sum(p.total for p in self.purchases))


def start_shopping(state: AppState, now: datetime) -> None:
    session = state.shopping_session
    session.active = True
    if session.started_at is None:
        session.started_at = now


def cancel_shopping(state: AppState) -> None:
    session = state.shopping_session
    session.active = False
    session.checked = {}
    session.started_at = None


def get_bought_count(state: AppState, ingredient_id: str) -> int:
    n = safe_number(state.shopping_session.checked.get(ingredient_id))
    return max(0, int(n)) if n is not None else 0


def set_bought_count(state: AppState, ingredient_id: str, count) -> int:
    """Store a bought counter clamped to the entry's packs; 0 removes the key."""
    limit = required_packs_of(state, ingredient_id)
    n = safe_number(count)
    n = max(0, int(n)) if n is not None else 0
    clamped = min(limit, n) if limit else n
    if clamped <= 0:
        state.shopping_session.checked.pop(ingredient_id, None)
        return 0
    state.shopping_session.checked[ingredient_id] = clamped
    return clamped


def inc_bought(state: AppState, ingredient_id: str, delta: int = 1) -> int:
    return set_bought_count(state, ingredient_id, get_bought_count(state, ingredient_id) + delta)


def dec_bought(state: AppState, ingredient_id: str, delta: int = 1) -> int:
    return set_bought_count(state, ingredient_id, get_bought_count(state, ingredient_id) - delta)


def checkout(state: AppState, now: datetime, new_id: Callable[[], str] = default_new_id,
             clone: Callable[[Any], Any] = copy.deepcopy) -> CheckoutResult:
    """Move every bought pack into the pantry.

    Per checked entry: log the purchase, add a fresh lot (expiry from the
    ingredient's shelf life), reduce or remove the entry. The session ends and
    the list is raised again for the meal plan.
    """
    bought: List[tuple] = []
    for entry in state.shopping:
        packs = min(max(1, entry.packs), get_bought_count(state, entry.ingredient_id))
        if packs > 0:
            bought.append((entry.ingredient_id, packs))
    if not bought:
        return CheckoutResult(ok=False, reason="none_checked")

    result = CheckoutResult(ok=True, snapshot={
        'shopping': clone(state.shopping),
        'pantry': clone(state.pantry),
        'purchase_log': clone(state.purchase_log),
        'shopping_session': clone(state.shopping_session),
    })

    for ingredient_id, packs in bought:
        ing = state.ingredient(ingredient_id)
        if ing is None:
            continue
        pack_size = safe_number(ing.amount) or 0.0
        buy_amount = round4(pack_size * packs)
        total = round2((safe_number(ing.price) or 0.0) * packs)

        purchase = PurchaseLogEntry(
            id=new_id(), at=now, total=total, ingredient_id=ing.id,
            packs=packs, buy_amount=buy_amount, unit=ing.unit,
        )
        state.purchase_log.append(purchase)
        result.purchases.append(purchase)

        uc = ing.unit_price()
        lot = PantryLot(
            id=new_id(), ingredient_id=ing.id, amount=buy_amount, unit=ing.unit,
            bought_at=now, source=LOT_SOURCE_CHECKOUT,
            expires_at=add_days(now, ing.shelf_life_days) if ing.shelf_life_days > 0 else None,
            unit_cost=uc, cost=total,
        )
        state.pantry.append(lot)
        result.lots.append(lot)

        entry = state.shopping_entry(ingredient_id)
        if entry is not None:
            remaining = max(1, entry.packs) - packs
            if remaining <= 0:
                state.shopping = [e for e in state.shopping if e.ingredient_id != ingredient_id]
            else:
                entry.packs = remaining
                if entry.plan_min is not None:
                    entry.plan_min = max(0, entry.plan_min - packs)
        state.shopping_session.checked.pop(ingredient_id, None)

    state.shopping_session.active = False
    state.shopping_session.started_at = None

    reconcile_shopping_with_plan(state, now, new_id, mode=RECONCILE_RAISE)
    logger.info("Checkout: %s purchases, total %.2f", len(result.purchases), result.total)
    return result
