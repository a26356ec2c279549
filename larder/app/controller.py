"""Application controller: owns the single in-memory state and commits every mutation.

Every user operation runs through ``update``: clone the state, apply a
mutation to the clone, persist it through the repository (which repairs
references, normalizes the pantry and raises the shopping list for the plan)
and publish ``state.committed``. Stock-affecting operations and log edits fill the
undo slot with clones of the sub-trees they touch.
"""
import copy
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from larder.app.undo import UndoManager
from larder.domain.Ingredient import Ingredient
from larder.domain.Logs import PurchaseLogEntry
from larder.domain.PantryLot import PantryLot
from larder.domain.Plan import PlannedRecipe
from larder.domain.Recipe import Recipe
from larder.domain.State import AppState
from larder.events.Event_Bus import EventBus
from larder.events.diagnostics import DiagnosticsObserver
from larder.events.event_helpers import publish_state_committed
from larder.infra.State_Repository import StateRepository
from larder.logic.audit.integrity import AuditReport
from larder.logic.catalog.catalog import delete_ingredient, delete_recipe, upsert_ingredient, upsert_recipe
from larder.logic.cooking.cook import COOK_MODE_ALL, CookResult, cook_recipe
from larder.logic.history import logs
from larder.logic.pantry import engine
from larder.logic.pantry.analysis import group_pantry
from larder.logic.shopping import reconcile, session
from larder.logic.shopping.list_builder import compute_plan_summary
from larder.utilities.config import UNDO_SECONDS
from larder.utilities.demo import build_demo_state
from larder.utilities.export_import import export_state_json, import_state_text
from larder.utilities.quantities import new_id as default_new_id
from larder.utilities.quantities import parse_datetime, utc_now
from larder.utilities.statistics import RANGE_30_DAYS, LarderStats
from larder.utilities.validators import (
    ConsumeInput, IngredientInput, LotEditInput, PantryLotInput, PlannedRecipeInput, PurchaseEditInput,
    RecipeInput, ShoppingAddInput,
)

logger = logging.getLogger(__name__)

# AppState attributes cloned into the undo slot by stock-affecting operations
STOCK_KEYS = ("pantry", "settings", "waste_log", "shopping", "purchase_log", "shopping_session")


def _succeeded(result) -> bool:
    if result is None or result is False:
        return False
    return bool(getattr(result, 'ok', True))


class AppController:
    def __init__(self, repository: StateRepository, clock: Callable[[], datetime] = utc_now,
                 new_id: Callable[[], str] = default_new_id, clone: Callable[[Any], Any] = copy.deepcopy,
                 bus: Optional[EventBus] = None, navigate: Optional[Callable[[str], None]] = None,
                 undo_seconds: float = UNDO_SECONDS):
        self.repository = repository
        self.clock = clock
        self.new_id = new_id
        self.clone = clone
        self.bus = bus or repository.bus or EventBus()
        if repository.bus is None:
            repository.bus = self.bus
        self.navigate = navigate
        self.undo_manager = UndoManager(clock, undo_seconds)
        self.diagnostics_observer = DiagnosticsObserver().start(self.bus)
        self.state = AppState.default()

    # --- Commit pipeline ----------------------------------------------------
    def update(self, mutator: Callable[[AppState], Any], navigate: Optional[str] = None, message: str = ""):
        """Apply ``mutator`` to a clone of the state and commit it. Returns the mutator's result.

        Exceptions raised by the mutator leave the committed state untouched.
        """
        draft = self.clone(self.state)
        result = mutator(draft)
        saved = self.repository.save(draft)
        # On save failure the mutated draft stays in memory
        self.state = saved if saved is not None else draft
        publish_state_committed(self.state, message, self.bus)
        if navigate and self.navigate is not None:
            self.navigate(navigate)
        return result

    def _stock_update(self, mutator: Callable[[AppState], Any], message: str,
                      keys: Iterable[str] = STOCK_KEYS, navigate: Optional[str] = None):
        snapshot = {k: self.clone(getattr(self.state, k)) for k in keys}
        result = self.update(mutator, navigate, message)
        if _succeeded(result):
            self.undo_manager.set(snapshot, message)
        return result

    def _replace_state(self, state: AppState, message: str):
        saved = self.repository.save(state)
        self.state = saved if saved is not None else state
        self.undo_manager.clear()
        publish_state_committed(self.state, message, self.bus)

    # --- Lifecycle ----------------------------------------------------------
    def load(self) -> AppState:
        self.state = self.repository.load()
        self.undo_manager.clear()
        return self.state

    # --- Catalog ------------------------------------------------------------
    def save_ingredient(self, data: Dict[str, Any]) -> Ingredient:
        payload = IngredientInput.model_validate(data)
        ing = self.update(lambda s: upsert_ingredient(s, payload, self.new_id), message="Ingredient saved")
        return self.state.ingredient(ing.id)

    def delete_ingredient(self, ingredient_id: str) -> bool:
        return self.update(lambda s: delete_ingredient(s, ingredient_id), message="Ingredient deleted")

    def save_recipe(self, data: Dict[str, Any]) -> Recipe:
        payload = RecipeInput.model_validate(data)
        recipe = self.update(lambda s: upsert_recipe(s, payload, self.new_id), message="Recipe saved")
        return self.state.recipe(recipe.id)

    def delete_recipe(self, recipe_id: str) -> bool:
        return self.update(lambda s: delete_recipe(s, recipe_id), message="Recipe deleted")

    # --- Meal plan ----------------------------------------------------------
    def plan_recipe(self, recipe_id: str, portions_wanted: int = 1) -> Optional[PlannedRecipe]:
        payload = PlannedRecipeInput(recipe_id=recipe_id, portions_wanted=portions_wanted)
        if self.state.recipe(payload.recipe_id) is None:
            return None
        return self.update(
            lambda s: reconcile.upsert_planned_recipe(s, payload.recipe_id, payload.portions_wanted, self.clock()),
            message="Recipe planned",
        )

    def unplan_recipe(self, recipe_id: str) -> bool:
        return self.update(lambda s: reconcile.remove_planned_recipe(s, recipe_id), message="Recipe unplanned")

    def plan_summary(self, planned_override: Optional[List[PlannedRecipe]] = None) -> Dict[str, Dict[str, Any]]:
        return compute_plan_summary(self.state, self.clock(), planned_override)

    # --- Shopping list ------------------------------------------------------
    def add_to_shopping(self, ingredient_id: str, value, unit: Optional[str] = None) -> Optional[int]:
        payload = ShoppingAddInput(ingredient_id=ingredient_id, value=value, unit=unit)
        return self.update(
            lambda s: reconcile.add_needed_to_shopping(s, payload.ingredient_id, payload.value, payload.unit,
                                                       self.new_id),
            message="Added to shopping list",
        )

    def change_packs(self, ingredient_id: str, delta: int) -> int:
        return self.update(lambda s: reconcile.change_packs(s, ingredient_id, int(delta), self.new_id),
                           message="Shopping list changed")

    def remove_from_shopping(self, ingredient_id: str) -> bool:
        return self._stock_update(lambda s: reconcile.remove_entry(s, ingredient_id),
                                  "Removed from shopping list", keys=("shopping", "shopping_session"))

    def reconcile_raise(self) -> Dict[str, int]:
        return self.update(
            lambda s: reconcile.reconcile_shopping_with_plan(s, self.clock(), self.new_id),
            message="Shopping list raised for plan",
        )

    def reconcile_exact(self, confirm: bool = False) -> Dict[str, int]:
        """Recompute the plan-driven part of the list; may reduce or remove entries."""
        if not confirm:
            raise ValueError("Exact reconciliation can reduce the shopping list and needs confirmation")
        return self._stock_update(
            lambda s: reconcile.reconcile_shopping_with_plan(s, self.clock(), self.new_id,
                                                             mode=reconcile.RECONCILE_EXACT),
            "Shopping list matched to plan", keys=("shopping", "shopping_session"),
        )

    def start_shopping(self):
        self.update(lambda s: session.start_shopping(s, self.clock()), message="Shopping started")

    def cancel_shopping(self):
        self.update(session.cancel_shopping, message="Shopping cancelled")

    def mark_bought(self, ingredient_id: str, count: int) -> int:
        return self.update(lambda s: session.set_bought_count(s, ingredient_id, count), message="Marked bought")

    def checkout(self) -> session.CheckoutResult:
        result = self.update(lambda s: session.checkout(s, self.clock(), self.new_id, self.clone),
                             navigate="inventory", message="Checkout")
        if result.ok:
            self.undo_manager.set(result.snapshot, "Checkout")
        return result

    # --- Pantry -------------------------------------------------------------
    def add_manual_lot(self, data: Dict[str, Any]) -> Optional[PantryLot]:
        payload = PantryLotInput.model_validate(data)
        return self.update(
            lambda s: engine.add_manual_lot(s, payload.ingredient_id, payload.amount, self.clock(),
                                            self.new_id, expires_at=payload.expires_at),
            message="Stock added",
        )

    def edit_lot(self, lot_id: str, data: Dict[str, Any]) -> bool:
        payload = LotEditInput.model_validate(data)
        return self._stock_update(lambda s: engine.edit_lot(s, lot_id, payload.amount, payload.expires_at),
                                  "Lot edited")

    def delete_lot(self, lot_id: str) -> bool:
        return self._stock_update(lambda s: engine.delete_lot(s, lot_id), "Lot deleted")

    def waste_lot(self, lot_id: str):
        return self._stock_update(lambda s: engine.waste_lot(s, lot_id, self.clock(), self.new_id), "Lot wasted")

    def waste_ingredient(self, ingredient_id: str):
        return self._stock_update(lambda s: engine.waste_ingredient(s, ingredient_id, self.clock(), self.new_id),
                                  "Stock wasted")

    def consume(self, ingredient_id: str, amount=None, unit: str = "") -> float:
        """Inventory decrement (all lots, soonest expiry first). Returns the unmet remainder.

        Without an amount the ingredient's remembered or default step is used.
        """
        step = amount if amount is not None else self.consume_step(ingredient_id)
        payload = ConsumeInput(ingredient_id=ingredient_id, amount=step, unit=unit)

        def mutate(s: AppState):
            ing = s.ingredient(payload.ingredient_id)
            unit_ = payload.unit or (ing.unit if ing else "")
            s.settings.setdefault("pantryConsumeSteps", {})[payload.ingredient_id] = payload.amount
            return engine.consume_fifo(s, payload.ingredient_id, payload.amount, unit_)

        return self._stock_update(mutate, "Stock consumed")

    def add_back(self, ingredient_id: str, amount=None) -> bool:
        step = amount if amount is not None else self.consume_step(ingredient_id)
        payload = ConsumeInput(ingredient_id=ingredient_id, amount=step)
        return self._stock_update(lambda s: engine.add_back_step(s, payload.ingredient_id, payload.amount),
                                  "Stock added back")

    def consume_all(self, ingredient_id: str) -> float:
        return self._stock_update(lambda s: engine.consume_all(s, ingredient_id), "Stock used up")

    def consume_step(self, ingredient_id: str) -> float:
        remembered = self.state.settings.get("pantryConsumeSteps", {}).get(ingredient_id)
        if remembered:
            return remembered
        ing = self.state.ingredient(ingredient_id)
        return engine.default_consume_step(ing, ing.unit if ing else "")

    def cook(self, recipe_id: str, portions=None, mode: str = COOK_MODE_ALL, seconds=None) -> CookResult:
        return self._stock_update(
            lambda s: cook_recipe(s, recipe_id, portions, self.clock(), self.new_id, mode=mode, seconds=seconds),
            "Recipe cooked", keys=STOCK_KEYS + ("recipes",), navigate="inventory",
        )

    def pantry_groups(self) -> List[Dict[str, Any]]:
        return group_pantry(self.state, self.clock())

    # --- History ------------------------------------------------------------
    def purchase_sessions(self) -> List[Dict[str, Any]]:
        return logs.purchase_sessions(self.state)

    def delete_purchase(self, entry_id: str) -> bool:
        return self._stock_update(lambda s: logs.delete_purchase_entry(s, entry_id),
                                  "Purchase entry deleted", keys=("purchase_log",))

    def delete_purchase_session(self, at) -> bool:
        """Delete every purchase-log entry of one checkout (same timestamp)."""
        when = parse_datetime(at)
        return self._stock_update(lambda s: logs.delete_purchase_session(s, when),
                                  "Purchase session deleted", keys=("purchase_log",))

    def edit_purchase(self, entry_id: str, data: Dict[str, Any]) -> Optional[PurchaseLogEntry]:
        payload = PurchaseEditInput.model_validate(data)
        edited = self._stock_update(lambda s: logs.edit_purchase_entry(s, entry_id, payload),
                                    "Purchase entry edited", keys=("purchase_log",))
        if edited is None:
            return None
        return next((e for e in self.state.purchase_log if e.id == entry_id), None)

    def delete_cook_entry(self, recipe_id: str, entry_id: str) -> bool:
        return self._stock_update(lambda s: logs.delete_cook_entry(s, recipe_id, entry_id),
                                  "Cook entry deleted", keys=("recipes",))

    def clear_cook_history(self, recipe_id: str) -> bool:
        return self._stock_update(lambda s: logs.clear_recipe_cook_history(s, recipe_id),
                                  "Cook history cleared", keys=("recipes",))

    def clear_all_cook_history(self) -> bool:
        return self._stock_update(logs.clear_all_cook_history, "All cook history cleared", keys=("recipes",))

    def statistics(self, mode: str = RANGE_30_DAYS) -> Dict[str, Any]:
        return LarderStats(self.state, self.clock(), mode).generate_report()

    # --- Undo ---------------------------------------------------------------
    def undo(self) -> bool:
        """Restore the last stock-affecting operation while its window is open."""
        slot = self.undo_manager.take()
        if slot is None:
            return False

        def restore(s: AppState):
            for key, value in slot.snapshot.items():
                setattr(s, key, self.clone(value))

        self.update(restore, message=f"Undone: {slot.message}")
        logger.info(f"Undone: {slot.message}")
        return True

    def undo_status(self) -> Optional[Dict[str, Any]]:
        slot = self.undo_manager.peek()
        if slot is None:
            return None
        return {'message': slot.message, 'seconds_left': self.undo_manager.seconds_left()}

    # --- Data tools ---------------------------------------------------------
    def repair_now(self) -> Optional[AuditReport]:
        self.state = self.repository.repair(self.state)
        publish_state_committed(self.state, "Data repaired", self.bus)
        return self.repository.last_audit

    def import_text(self, text: str) -> AuditReport:
        """Replace the state with imported data; a restore point is written first.

        Raises ValueError for text that is not a JSON object.
        """
        imported, report = import_state_text(text, self.clock(), self.new_id, self.repository.strict_logs)
        self.repository.set_restore_point(self.state)
        self._replace_state(imported, "Data imported")
        return report

    def load_demo(self) -> AppState:
        self.repository.set_restore_point(self.state)
        self._replace_state(build_demo_state(self.clock(), self.new_id), "Demo data loaded")
        return self.state

    def restore(self) -> bool:
        restored = self.repository.restore_from_restore_point()
        if restored is None:
            return False
        self.state = restored
        self.undo_manager.clear()
        publish_state_committed(self.state, "Restore point loaded", self.bus)
        return True

    def export_text(self, pretty: bool = True) -> str:
        return export_state_json(self.state, self.clock(), pretty=pretty)

    def diagnostics(self) -> Dict[str, Any]:
        info = self.diagnostics_observer.snapshot()
        info.update({
            'storage': self.repository.report.to_dict(),
            'meta': self.repository.read_meta(),
            'restore_point': self.repository.has_restore_point(),
            'quarantines': self.repository.list_quarantines(),
            'undo': self.undo_status(),
        })
        return info
