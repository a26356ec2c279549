import unittest

from larder.domain.Plan import PlannedRecipe
from larder.domain.ShoppingList import ShoppingEntry
from larder.logic.shopping.list_builder import compute_plan_summary, needs_from_planned_recipes, purchase_plan
from larder.logic.shopping.reconcile import (
    RECONCILE_EXACT, RECONCILE_RAISE, add_needed_to_shopping, change_packs, normalize_shopping,
    reconcile_shopping_with_plan, remove_planned_recipe, upsert_planned_recipe,
)
from state_builders import NOW, IdSequence, days, make_ingredient, make_lot, make_recipe, make_state


def _plan_state():
    state = make_state(
        [make_ingredient(amount=250, price=1.0), make_ingredient(id="salt", name="Salt", amount=500, price=0.5)],
        [make_lot("l1", amount=200, bought_at=NOW)],
        [make_recipe("r1", "Rice bowl", 2, [("rice", 300, "g")]),
         make_recipe("r2", "Seasoned rice", 1, [("rice", 50, "g"), ("salt", 5, "g")])],
    )
    return state


class TestPlanSummary(unittest.TestCase):

    def test_missing_amount_becomes_whole_packs(self):
        state = _plan_state()
        upsert_planned_recipe(state, "r1", 2, NOW)
        row = compute_plan_summary(state, NOW)["rice"]
        self.assertEqual(row['need'], 300)
        self.assertEqual(row['have'], 200)
        self.assertEqual(row['missing'], 100)
        self.assertEqual(row['required_packs'], 1)
        self.assertEqual(row['pack_size'], 250)

    def test_portions_scale_the_need(self):
        state = _plan_state()
        state.recipes[0].items[0].amount = 100
        upsert_planned_recipe(state, "r1", 6, NOW)
        self.assertEqual(needs_from_planned_recipes(state, state.planned_recipes), {"rice": 300})

    def test_needs_are_summed_across_recipes(self):
        state = _plan_state()
        planned = [PlannedRecipe("r1", 2), PlannedRecipe("r2", 2), PlannedRecipe("gone", 4)]
        self.assertEqual(needs_from_planned_recipes(state, planned), {"rice": 400, "salt": 10})

    def test_expired_stock_does_not_cover_the_plan(self):
        state = _plan_state()
        state.pantry[0].expires_at = days(-1)
        upsert_planned_recipe(state, "r1", 2, NOW)
        row = compute_plan_summary(state, NOW)["rice"]
        self.assertEqual(row['have'], 0)
        self.assertEqual(row['required_packs'], 2)

    def test_covered_need_requires_no_packs(self):
        state = _plan_state()
        upsert_planned_recipe(state, "r2", 1, NOW)
        self.assertEqual(compute_plan_summary(state, NOW)["rice"]['required_packs'], 0)

    def test_override_previews_without_touching_state(self):
        state = _plan_state()
        summary = compute_plan_summary(state, NOW, planned_override=[PlannedRecipe("r1", 4)])
        self.assertEqual(summary["rice"]['required_packs'], 2)
        self.assertEqual(state.planned_recipes, [])

    def test_purchase_plan_edges(self):
        ing = make_ingredient(amount=250)
        self.assertEqual(purchase_plan(ing, 251)['packs'], 2)
        self.assertEqual(purchase_plan(ing, 0)['packs'], 0)
        self.assertEqual(purchase_plan(make_ingredient(amount=0), 100)['packs'], 0)


class TestReconcile(unittest.TestCase):

    def setUp(self):
        self.ids = IdSequence("s")
        self.state = _plan_state()
        upsert_planned_recipe(self.state, "r1", 2, NOW)

    def test_raise_creates_plan_tracked_entry(self):
        required = reconcile_shopping_with_plan(self.state, NOW, self.ids, RECONCILE_RAISE)
        self.assertEqual(required, {"rice": 1})
        entry = self.state.shopping_entry("rice")
        self.assertEqual(entry.packs, 1)
        self.assertEqual(entry.plan_min, 1)

    def test_raise_never_lowers_packs(self):
        self.state.shopping.append(ShoppingEntry(id="e1", ingredient_id="rice", packs=5))
        reconcile_shopping_with_plan(self.state, NOW, self.ids, RECONCILE_RAISE)
        entry = self.state.shopping_entry("rice")
        self.assertEqual(entry.packs, 5)
        self.assertEqual(entry.plan_min, 1)

        remove_planned_recipe(self.state, "r1")
        reconcile_shopping_with_plan(self.state, NOW, self.ids, RECONCILE_RAISE)
        self.assertEqual(entry.packs, 5)
        self.assertEqual(entry.plan_min, 0)

    def test_exact_sets_required_and_drops_obsolete(self):
        self.state.shopping.append(ShoppingEntry(id="e1", ingredient_id="rice", packs=5, plan_min=3))
        self.state.shopping.append(ShoppingEntry(id="e2", ingredient_id="salt", packs=2))
        reconcile_shopping_with_plan(self.state, NOW, self.ids, RECONCILE_EXACT)
        self.assertEqual(self.state.shopping_entry("rice").packs, 1)

        remove_planned_recipe(self.state, "r1")
        self.state.shopping_session.checked["rice"] = 1
        reconcile_shopping_with_plan(self.state, NOW, self.ids, RECONCILE_EXACT)
        self.assertIsNone(self.state.shopping_entry("rice"))
        self.assertNotIn("rice", self.state.shopping_session.checked)
        # manual entry untouched
        self.assertEqual(self.state.shopping_entry("salt").packs, 2)

    def test_checked_counters_are_clamped(self):
        self.state.shopping.append(ShoppingEntry(id="e1", ingredient_id="rice", packs=4, plan_min=4))
        self.state.shopping_session.checked["rice"] = 4
        reconcile_shopping_with_plan(self.state, NOW, self.ids, RECONCILE_EXACT)
        self.assertEqual(self.state.shopping_session.checked["rice"], 1)

    def test_unknown_mode_raises(self):
        with self.assertRaises(ValueError):
            reconcile_shopping_with_plan(self.state, NOW, self.ids, "lower")


class TestShoppingList(unittest.TestCase):

    def setUp(self):
        self.ids = IdSequence("s")
        self.state = _plan_state()

    def test_normalize_merges_duplicates_and_drops_stale_counters(self):
        self.state.shopping = [
            ShoppingEntry(id="a", ingredient_id="rice", packs=2),
            ShoppingEntry(id="b", ingredient_id="rice", packs=3, plan_min=1),
            ShoppingEntry(id="", ingredient_id="salt", packs=1),
        ]
        self.state.shopping_session.checked = {"rice": 9, "ghost": 1}
        normalize_shopping(self.state, self.ids)
        self.assertEqual(len(self.state.shopping), 2)
        rice = self.state.shopping_entry("rice")
        self.assertEqual((rice.id, rice.packs, rice.plan_min), ("a", 5, 1))
        self.assertEqual(self.state.shopping_entry("salt").id, "s1")
        self.assertEqual(self.state.shopping_session.checked, {"rice": 5})

    def test_add_amount_or_packs(self):
        self.assertEqual(add_needed_to_shopping(self.state, "rice", 600, "g", self.ids), 3)
        self.assertEqual(add_needed_to_shopping(self.state, "rice", 2, None, self.ids), 2)
        entry = self.state.shopping_entry("rice")
        self.assertEqual(entry.packs, 5)
        self.assertIsNone(entry.plan_min)
        self.assertIsNone(add_needed_to_shopping(self.state, "ghost", 2, None, self.ids))
        self.assertIsNone(add_needed_to_shopping(self.state, "rice", 0, None, self.ids))

    def test_change_packs_to_zero_removes_entry(self):
        self.assertEqual(change_packs(self.state, "rice", 1, self.ids), 1)
        self.assertEqual(change_packs(self.state, "rice", 2, self.ids), 3)
        self.state.shopping_session.checked["rice"] = 3
        self.assertEqual(change_packs(self.state, "rice", -1, self.ids), 2)
        self.assertEqual(self.state.shopping_session.checked["rice"], 2)
        self.assertEqual(change_packs(self.state, "rice", -5, self.ids), 0)
        self.assertIsNone(self.state.shopping_entry("rice"))
        self.assertNotIn("rice", self.state.shopping_session.checked)
