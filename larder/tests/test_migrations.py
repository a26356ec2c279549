import unittest

from larder.infra.migrations import ensure_state_shape, migrate, migrate_ingredient, schema_version_of
from state_builders import NOW, IdSequence

LEGACY_DOC = {
    "ingredients": [
        {"id": "ing_rice", "name": "Rice", "packAmount": "1000", "packUnit": "Gramm", "packPrice": "1,99",
         "shelfLifeDays": 0, "barcode": 4006381333931},
        {"name": "Eggs", "packAmount": 10, "defaultUnit": "Stück", "packPrice": 2.5},
    ],
    "recipes": [{"name": "Congee", "portions": 2, "items": [{"ingredientId": "ing_rice", "amount": 150, "unit": "g"}]}],
    "shopping": [
        {"id": "s1", "ingredientId": "ing_rice", "qty": 2},
        {"id": "s2", "ingredientId": "ing_rice", "amount": 1500},
        {"id": "s3", "ingredientId": "other", "count": "3"},
    ],
    "shoppingSession": {"active": True, "checked": {"ing_rice": True, "other": False}},
    "wasteLog": [{"id": "w1", "at": "2026-03-01T10:00:00Z", "ingredientId": "ing_rice", "amount": 100, "value": 0.2}],
    "pantry": [{"id": "p1", "ingredientId": "ing_rice", "amount": 500, "enteredAt": "2026-03-01"}],
}


class TestMigrations(unittest.TestCase):

    def test_unversioned_document_is_version_zero(self):
        self.assertEqual(schema_version_of(LEGACY_DOC), 0)
        self.assertEqual(schema_version_of({"schemaVersion": "1"}), 1)

    def test_legacy_ingredient_fields(self):
        ing = migrate_ingredient(LEGACY_DOC["ingredients"][0])
        self.assertEqual(ing["amount"], 1000)
        self.assertEqual(ing["unit"], "Gramm")
        self.assertEqual(ing["price"], 1.99)
        self.assertEqual(ing["barcode"], "4006381333931")
        current = {"id": "x", "amount": 1, "unit": "g", "price": 1, "barcode": None}
        self.assertEqual(migrate_ingredient(current)["barcode"], "")

    def test_migrate_does_not_mutate_input(self):
        doc = migrate(LEGACY_DOC)
        self.assertEqual(doc["schemaVersion"], 2)
        self.assertNotIn("schemaVersion", LEGACY_DOC)
        self.assertIn("qty", LEGACY_DOC["shopping"][0])

    def test_legacy_shopping_quantities_become_packs(self):
        doc = migrate(LEGACY_DOC)
        self.assertEqual([s["packs"] for s in doc["shopping"]], [2, 2, 3])
        for row in doc["shopping"]:
            self.assertFalse({"qty", "count", "amount"} & set(row))

    def test_checked_true_means_whole_entry(self):
        doc = migrate(LEGACY_DOC)
        # last entry for the ingredient wins
        self.assertEqual(doc["shoppingSession"]["checked"], {"ing_rice": 2})

    def test_waste_value_and_lot_source(self):
        doc = migrate(LEGACY_DOC)
        self.assertEqual(doc["wasteLog"][0]["cost"], 0.2)
        self.assertNotIn("value", doc["wasteLog"][0])
        self.assertEqual(doc["pantry"][0]["source"], "manual")

    def test_shape_fills_defaults_and_ids(self):
        state = ensure_state_shape(LEGACY_DOC, IdSequence("n"), NOW)
        self.assertEqual([i.unit for i in state.ingredients], ["g", "pcs"])
        self.assertEqual(state.ingredients[1].id, "n1")
        self.assertEqual(state.recipes[0].id, "n2")
        self.assertEqual(state.settings["enableCookTimer"], True)
        self.assertEqual(state.planned_recipes, [])
        self.assertEqual(state.waste_log[0].cost, 0.2)

    def test_shape_of_garbage_is_default_state(self):
        state = ensure_state_shape(["not", "an", "object"], IdSequence(), NOW)
        self.assertEqual(state.ingredients, [])
        self.assertEqual(state.schema_version, 2)

    def test_newer_schema_is_loaded_best_effort(self):
        doc = migrate({"schemaVersion": 7, "ingredients": []})
        self.assertEqual(doc["schemaVersion"], 7)
