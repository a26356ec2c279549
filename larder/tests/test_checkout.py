import unittest

from larder.domain.ShoppingList import ShoppingEntry
from larder.logic.shopping.reconcile import reconcile_shopping_with_plan, upsert_planned_recipe
from larder.logic.shopping.session import (
    cancel_shopping, checkout, dec_bought, get_bought_count, inc_bought, set_bought_count, start_shopping,
)
from state_builders import NOW, IdSequence, days, make_ingredient, make_recipe, make_state


class TestShoppingSession(unittest.TestCase):

    def setUp(self):
        self.ids = IdSequence("c")
        self.state = make_state([make_ingredient(amount=250, price=1.0, shelf_life_days=5)])
        self.state.shopping.append(ShoppingEntry(id="e1", ingredient_id="rice", packs=3))

    def test_bought_counter_is_clamped_to_packs(self):
        start_shopping(self.state, NOW)
        self.assertTrue(self.state.shopping_session.active)
        self.assertEqual(self.state.shopping_session.started_at, NOW)
        for _ in range(5):
            inc_bought(self.state, "rice")
        self.assertEqual(get_bought_count(self.state, "rice"), 3)
        self.assertEqual(dec_bought(self.state, "rice", 2), 1)
        self.assertEqual(set_bought_count(self.state, "rice", 0), 0)
        self.assertNotIn("rice", self.state.shopping_session.checked)

    def test_cancel_clears_counters(self):
        start_shopping(self.state, NOW)
        inc_bought(self.state, "rice")
        cancel_shopping(self.state)
        self.assertFalse(self.state.shopping_session.active)
        self.assertEqual(self.state.shopping_session.checked, {})

    def test_nothing_checked(self):
        result = checkout(self.state, NOW, self.ids)
        self.assertFalse(result.ok)
        self.assertEqual(result.reason, "none_checked")
        self.assertEqual(self.state.pantry, [])

    def test_checkout_moves_bought_packs_to_pantry(self):
        start_shopping(self.state, NOW)
        set_bought_count(self.state, "rice", 2)
        result = checkout(self.state, NOW, self.ids)

        self.assertTrue(result.ok)
        self.assertEqual(result.total, 2.0)
        self.assertEqual(len(self.state.purchase_log), 1)
        purchase = self.state.purchase_log[0]
        self.assertEqual((purchase.packs, purchase.buy_amount, purchase.unit), (2, 500, "g"))

        self.assertEqual(len(self.state.pantry), 1)
        lot = self.state.pantry[0]
        self.assertEqual(lot.amount, 500)
        self.assertEqual(lot.cost, 2.0)
        self.assertEqual(lot.expires_at, days(5))
        self.assertEqual(lot.source, "checkout")

        self.assertEqual(self.state.shopping_entry("rice").packs, 1)
        self.assertEqual(self.state.shopping_session.checked, {})
        self.assertFalse(self.state.shopping_session.active)
        self.assertEqual(result.snapshot['shopping'][0].packs, 3)
        self.assertEqual(result.snapshot['pantry'], [])

    def test_fully_bought_plan_entry_disappears(self):
        self.state.shopping = []
        self.state.recipes.append(make_recipe("r1", "Rice bowl", 2, [("rice", 300, "g")]))
        upsert_planned_recipe(self.state, "r1", 2, NOW)
        reconcile_shopping_with_plan(self.state, NOW, self.ids)
        self.assertEqual(self.state.shopping_entry("rice").packs, 2)

        set_bought_count(self.state, "rice", 2)
        checkout(self.state, NOW, self.ids)
        self.assertIsNone(self.state.shopping_entry("rice"))
        self.assertEqual(sum(p.amount for p in self.state.pantry), 500)
