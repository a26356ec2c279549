import unittest

from larder.app.controller import AppController
from larder.events.Event_Bus import STATE_COMMITTED, EventBus
from larder.infra.Key_Value_Store import MemoryStore
from larder.infra.State_Repository import StateRepository
from state_builders import FixedClock, IdSequence

RICE = {"name": "Rice", "amount": "1000", "unit": "Gramm", "price": "2,00", "shelfLifeDays": 30,
        "barcode": "4006381333931"}
EGGS = {"name": "Eggs", "amount": 10, "unit": "Stück", "price": 3.0}


class ControllerTestCase(unittest.TestCase):

    def setUp(self):
        self.store = MemoryStore()
        self.clock = FixedClock()
        self.bus = EventBus()
        self.routes = []
        self.commits = []
        self.bus.subscribe(STATE_COMMITTED, lambda _name, payload: self.commits.append(payload['message']))
        repository = StateRepository(self.store, self.clock, IdSequence("repo"), self.bus)
        self.ctl = AppController(repository, self.clock, IdSequence("id"), bus=self.bus,
                                 navigate=self.routes.append, undo_seconds=10)
        self.ctl.load()
        self.rice = self.ctl.save_ingredient(RICE)

    def pantry_total(self, ingredient_id):
        return sum(p.amount for p in self.ctl.state.lots_for(ingredient_id))


class TestCatalog(ControllerTestCase):

    def test_ingredient_input_is_normalized(self):
        self.assertEqual(self.rice.unit, "g")
        self.assertEqual(self.rice.price, 2.0)
        self.assertEqual(self.rice.amount, 1000)
        self.assertIn("Ingredient saved", self.commits)

    def test_barcode_must_be_unique(self):
        with self.assertRaises(ValueError):
            self.ctl.save_ingredient({**RICE, "name": "Other rice"})
        self.assertEqual(len(self.ctl.state.ingredients), 1)

    def test_invalid_barcode_is_rejected(self):
        with self.assertRaises(ValueError):
            self.ctl.save_ingredient({**RICE, "barcode": "12345"})

    def test_price_change_reprices_lots(self):
        self.ctl.add_manual_lot({"ingredientId": self.rice.id, "amount": 500})
        self.ctl.save_ingredient({**RICE, "id": self.rice.id, "price": 4})
        self.assertEqual(self.ctl.state.lots_for(self.rice.id)[0].cost, 2.0)

    def test_recipe_needs_known_ingredients(self):
        with self.assertRaises(ValueError):
            self.ctl.save_recipe({"name": "Ghost soup", "items": [{"ingredientId": "nope", "amount": 1}]})
        with self.assertRaises(ValueError):
            self.ctl.save_recipe({"name": "Empty", "items": []})


class TestUndo(ControllerTestCase):

    def setUp(self):
        super().setUp()
        self.ctl.add_manual_lot({"ingredientId": self.rice.id, "amount": 500})

    def test_undo_inside_window(self):
        remainder = self.ctl.consume(self.rice.id, 200)
        self.assertEqual(remainder, 0)
        self.assertEqual(self.pantry_total(self.rice.id), 300)
        self.assertEqual(self.ctl.undo_status()['message'], "Stock consumed")

        self.clock.advance(5)
        self.assertTrue(self.ctl.undo())
        self.assertEqual(self.pantry_total(self.rice.id), 500)
        self.assertIsNone(self.ctl.undo_status())
        self.assertFalse(self.ctl.undo())

    def test_undo_window_expires(self):
        self.ctl.consume(self.rice.id, 200)
        self.clock.advance(11)
        self.assertIsNone(self.ctl.undo_status())
        self.assertFalse(self.ctl.undo())
        self.assertEqual(self.pantry_total(self.rice.id), 300)

    def test_consume_step_is_remembered(self):
        self.assertEqual(self.ctl.consume_step(self.rice.id), 100)
        self.ctl.consume(self.rice.id, "75")
        self.assertEqual(self.ctl.consume_step(self.rice.id), 75)
        self.ctl.consume(self.rice.id)
        self.assertEqual(self.pantry_total(self.rice.id), 350)
        self.assertTrue(self.ctl.add_back(self.rice.id))
        self.assertEqual(self.pantry_total(self.rice.id), 425)

    def test_waste_is_undoable(self):
        entry = self.ctl.waste_ingredient(self.rice.id)
        self.assertEqual(entry.cost, 1.0)
        self.assertEqual(self.ctl.state.lots_for(self.rice.id), [])
        self.ctl.undo()
        self.assertEqual(self.pantry_total(self.rice.id), 500)
        self.assertEqual(self.ctl.state.waste_log, [])


class TestCooking(ControllerTestCase):

    def setUp(self):
        super().setUp()
        self.eggs = self.ctl.save_ingredient(EGGS)
        self.ctl.add_manual_lot({"ingredientId": self.rice.id, "amount": 500})
        self.recipe = self.ctl.save_recipe({
            "name": "Fried rice", "portions": 2,
            "items": [{"ingredientId": self.rice.id, "amount": 300, "unit": "g"},
                      {"ingredientId": self.eggs.id, "amount": 2, "unit": "pcs"}],
        })

    def test_skip_missing_leaves_short_items(self):
        result = self.ctl.cook(self.recipe.id, mode="skip_missing", seconds=600)
        self.assertTrue(result.ok)
        self.assertEqual([line['ingredient_id'] for line in result.skipped], [self.eggs.id])
        self.assertEqual(self.pantry_total(self.rice.id), 200)
        self.assertEqual(self.ctl.state.recipe(self.recipe.id).last_cook_seconds, 600)
        self.assertEqual(self.routes, ["inventory"])

        self.ctl.undo()
        self.assertEqual(self.pantry_total(self.rice.id), 500)
        self.assertEqual(self.ctl.state.recipe(self.recipe.id).cook_history, [])

    def test_cook_history_clear_is_undoable(self):
        self.ctl.cook(self.recipe.id, mode="skip_missing", seconds=600)
        entry_id = self.ctl.state.recipe(self.recipe.id).cook_history[0].id
        self.assertTrue(self.ctl.clear_cook_history(self.recipe.id))
        recipe = self.ctl.state.recipe(self.recipe.id)
        self.assertEqual(recipe.cook_history, [])
        self.assertIsNone(recipe.last_cook_seconds)

        self.assertTrue(self.ctl.undo())
        self.assertEqual([e.id for e in self.ctl.state.recipe(self.recipe.id).cook_history], [entry_id])
        # only the history comes back, the cooked stock stays consumed
        self.assertEqual(self.pantry_total(self.rice.id), 200)

        self.assertTrue(self.ctl.delete_cook_entry(self.recipe.id, entry_id))
        self.assertTrue(self.ctl.clear_all_cook_history())
        self.assertEqual(self.ctl.undo_status()['message'], "All cook history cleared")

    def test_cook_all_reports_shortfall(self):
        result = self.ctl.cook(self.recipe.id, portions=4)
        self.assertEqual(result.shortfall, {self.rice.id: 100, self.eggs.id: 4})
        self.assertEqual(self.ctl.state.lots_for(self.rice.id), [])

    def test_unknown_recipe(self):
        result = self.ctl.cook("missing")
        self.assertFalse(result.ok)
        self.assertEqual(result.reason, "unknown_recipe")
        self.assertIsNone(self.ctl.undo_status())


class TestShoppingFlow(ControllerTestCase):

    def test_exact_reconcile_needs_confirmation(self):
        with self.assertRaises(ValueError):
            self.ctl.reconcile_exact()

    def test_plan_raises_the_list(self):
        recipe = self.ctl.save_recipe({"name": "Risotto", "portions": 1,
                                       "items": [{"ingredientId": self.rice.id, "amount": 1500}]})
        self.ctl.plan_recipe(recipe.id, 1)
        entry = self.ctl.state.shopping_entry(self.rice.id)
        self.assertEqual((entry.packs, entry.plan_min), (2, 2))
        self.assertIsNone(self.ctl.plan_recipe("missing"))

        self.ctl.unplan_recipe(recipe.id)
        self.ctl.reconcile_exact(confirm=True)
        self.assertIsNone(self.ctl.state.shopping_entry(self.rice.id))

    def test_checkout_and_undo(self):
        self.assertEqual(self.ctl.add_to_shopping(self.rice.id, 2), 2)
        self.ctl.start_shopping()
        self.assertEqual(self.ctl.mark_bought(self.rice.id, 1), 1)
        result = self.ctl.checkout()
        self.assertTrue(result.ok)
        self.assertEqual(self.pantry_total(self.rice.id), 1000)
        self.assertEqual(self.ctl.state.shopping_entry(self.rice.id).packs, 1)
        self.assertEqual(len(self.ctl.state.purchase_log), 1)
        self.assertEqual(self.routes, ["inventory"])

        self.assertTrue(self.ctl.undo())
        self.assertEqual(self.ctl.state.pantry, [])
        self.assertEqual(self.ctl.state.purchase_log, [])
        self.assertEqual(self.ctl.state.shopping_entry(self.rice.id).packs, 2)
        self.assertEqual(self.ctl.state.shopping_session.checked, {self.rice.id: 1})


class TestDataTools(ControllerTestCase):

    def test_import_writes_restore_point(self):
        exported = self.ctl.export_text()
        self.ctl.delete_ingredient(self.rice.id)
        report = self.ctl.import_text(exported)
        self.assertTrue(report.clean)
        self.assertIsNotNone(self.ctl.state.ingredient(self.rice.id))

        self.assertTrue(self.ctl.restore())
        self.assertEqual(self.ctl.state.ingredients, [])

    def test_bad_import_keeps_state(self):
        with self.assertRaises(ValueError):
            self.ctl.import_text("[]")
        self.assertFalse(self.ctl.repository.has_restore_point())
        self.assertEqual(len(self.ctl.state.ingredients), 1)

    def test_failed_save_keeps_changes_in_memory(self):
        self.ctl.add_manual_lot({"ingredientId": self.rice.id, "amount": 500})
        self.store.quota = 10
        self.ctl.consume(self.rice.id, 100)
        self.assertEqual(self.pantry_total(self.rice.id), 400)
        self.assertEqual(self.ctl.repository.report.status, "warning")
        self.assertEqual(self.ctl.diagnostics()['storage']['status'], "warning")


class TestHistory(ControllerTestCase):

    def setUp(self):
        super().setUp()
        self.ctl.add_to_shopping(self.rice.id, 2)
        self.ctl.start_shopping()
        self.ctl.mark_bought(self.rice.id, 2)
        self.ctl.checkout()
        self.entry = self.ctl.state.purchase_log[0]

    def test_delete_purchase_session_is_undoable(self):
        self.assertTrue(self.ctl.delete_purchase_session(self.entry.at.isoformat()))
        self.assertEqual(self.ctl.state.purchase_log, [])
        self.assertEqual(self.ctl.undo_status()['message'], "Purchase session deleted")

        self.assertTrue(self.ctl.undo())
        self.assertEqual([e.id for e in self.ctl.state.purchase_log], [self.entry.id])
        self.assertEqual(self.pantry_total(self.rice.id), 2000)

    def test_missing_entry_keeps_previous_undo(self):
        self.assertFalse(self.ctl.delete_purchase("missing"))
        self.assertEqual(self.ctl.undo_status()['message'], "Checkout")

    def test_edit_purchase(self):
        edited = self.ctl.edit_purchase(self.entry.id, {"packs": 1, "total": "1,99"})
        self.assertEqual((edited.packs, edited.total, edited.buy_amount), (1, 1.99, 1000))
        self.assertEqual(self.ctl.purchase_sessions()[0]['total'], 1.99)
        self.assertIsNone(self.ctl.edit_purchase("missing", {"packs": 1, "total": 1}))
        with self.assertRaises(ValueError):
            self.ctl.edit_purchase(self.entry.id, {"packs": -1, "total": 1})

    def test_statistics_cover_the_purchase(self):
        report = self.ctl.statistics("month")
        self.assertEqual(report['totals']['spent'], 4.0)
        self.assertEqual(report['spend_by_ingredient'][0]['name'], "Rice")
        self.ctl.delete_ingredient(self.rice.id)
        self.assertEqual(self.ctl.statistics()['spend_by_ingredient'][0]['name'], "Deleted ingredient")
