import json
import unittest

from larder.events.Event_Bus import STORAGE_STATUS, EventBus
from larder.infra.Key_Value_Store import MemoryStore
from larder.infra.State_Repository import StateRepository, dump_state
from larder.utilities.constants import META_KEY, RECOVERY_KEY, STORAGE_KEY
from state_builders import NOW, FixedClock, IdSequence, make_ingredient, make_lot, make_state


class _MirrorFailingStore(MemoryStore):

    fail_mirror = False
    fail_meta = False

    def set(self, key, value):
        if (self.fail_mirror and key == RECOVERY_KEY) or (self.fail_meta and key == META_KEY):
            raise OSError(f"disk full writing {key}")
        super().set(key, value)


def _saved_payload():
    state = make_state([make_ingredient(amount=500, price=1.0)], [make_lot("l1", amount=250, bought_at=NOW)])
    return dump_state(state)


class TestLoad(unittest.TestCase):

    def setUp(self):
        self.store = MemoryStore()
        self.clock = FixedClock()
        self.bus = EventBus()
        self.statuses = []
        self.bus.subscribe(STORAGE_STATUS, lambda _name, report: self.statuses.append(report.status))
        self.repo = StateRepository(self.store, self.clock, IdSequence(), self.bus, quarantine_limit=3)

    def test_empty_store_starts_fresh(self):
        state = self.repo.load()
        self.assertEqual(self.repo.report.status, "empty")
        self.assertEqual(state.ingredients, [])
        self.assertIsNotNone(self.store.get(STORAGE_KEY))
        self.assertEqual(self.store.get(STORAGE_KEY), self.store.get(RECOVERY_KEY))
        self.assertEqual(json.loads(self.store.get(META_KEY))["schema"], 2)
        self.assertEqual(self.statuses, ["empty"])

    def test_valid_payload_loads_ok(self):
        self.store.set(STORAGE_KEY, _saved_payload())
        state = self.repo.load()
        self.assertEqual(self.repo.report.status, "ok")
        self.assertEqual(state.ingredient("rice").amount, 500)
        self.assertEqual(state.pantry[0].cost, 0.5)

    def test_corrupt_main_falls_back_to_recovery(self):
        self.store.set(STORAGE_KEY, '{"ingredients": [')
        self.store.set(RECOVERY_KEY, _saved_payload())
        state = self.repo.load()
        report = self.repo.report
        self.assertEqual(report.status, "recovered")
        self.assertEqual(report.details["source"], "recovery")
        self.assertEqual(len(state.ingredients), 1)
        quarantined = self.repo.list_quarantines()
        self.assertEqual(quarantined, [report.details["quarantine_key"]])
        self.assertEqual(self.store.get(quarantined[0]), '{"ingredients": [')
        # main key healed
        self.assertEqual(self.store.get(STORAGE_KEY), self.store.get(RECOVERY_KEY))

    def test_non_object_payload_is_corrupt(self):
        self.store.set(STORAGE_KEY, "[1, 2, 3]")
        self.store.set(RECOVERY_KEY, "null")
        state = self.repo.load()
        self.assertEqual(self.repo.report.status, "reset")
        self.assertEqual(state.ingredients, [])

    def test_missing_recovery_means_reset(self):
        self.store.set(STORAGE_KEY, "not json")
        self.repo.load()
        self.assertEqual(self.repo.report.status, "reset")
        self.assertEqual(self.repo.report.details["source"], "default")

    def test_quarantine_keeps_only_the_newest(self):
        keys = []
        for n in range(5):
            self.store.set(STORAGE_KEY, f"garbage {n}")
            self.repo.load()
            keys.append(self.repo.report.details["quarantine_key"])
            self.clock.advance(1)
        self.assertEqual(self.repo.list_quarantines(), keys[-3:])
        self.assertEqual(self.store.get(keys[-1]), "garbage 4")

    def test_same_millisecond_quarantines_do_not_collide(self):
        first = self.repo.quarantine.quarantine("a", "test")
        second = self.repo.quarantine.quarantine("b", "test")
        self.assertNotEqual(first, second)
        self.assertTrue(second.startswith(first))


class TestSave(unittest.TestCase):

    def setUp(self):
        self.store = MemoryStore()
        self.clock = FixedClock()
        self.repo = StateRepository(self.store, self.clock, IdSequence(), EventBus())
        self.state = self.repo.load()

    def test_save_repairs_and_mirrors(self):
        self.state.ingredients.append(make_ingredient(amount=500, price=1.0))
        self.state.pantry.append(make_lot("a", amount=100, bought_at=NOW))
        self.state.pantry.append(make_lot("b", amount=100, bought_at=NOW))
        self.state.pantry.append(make_lot("ghost", ingredient_id="gone"))
        saved = self.repo.save(self.state)
        self.assertEqual(self.repo.report.status, "ok")
        self.assertEqual([(p.amount, p.cost) for p in saved.pantry], [(200, 0.4)])
        self.assertEqual(self.repo.last_audit.removed["pantry"], 1)
        self.assertEqual(self.store.get(STORAGE_KEY), self.store.get(RECOVERY_KEY))

    def test_failed_save_reports_warning(self):
        self.store.quota = sum(len(v) for v in self.store.data.values())
        self.state.ingredients.append(make_ingredient(name="A rather long ingredient name"))
        before = self.store.get(STORAGE_KEY)
        self.assertIsNone(self.repo.save(self.state))
        self.assertEqual(self.repo.report.status, "warning")
        self.assertIn("quota", self.repo.report.details["error"])
        self.assertEqual(self.store.get(STORAGE_KEY), before)

    def test_failed_mirror_write_leaves_keys_untouched(self):
        store = _MirrorFailingStore()
        repo = StateRepository(store, FixedClock(), IdSequence(), EventBus())
        state = repo.load()
        before = {key: store.get(key) for key in (STORAGE_KEY, RECOVERY_KEY, META_KEY)}
        store.fail_mirror = True
        state.ingredients.append(make_ingredient(name="Flour"))
        self.assertIsNone(repo.save(state))
        self.assertEqual(repo.report.status, "warning")
        self.assertEqual({key: store.get(key) for key in before}, before)
        self.assertNotIn("Flour", store.get(STORAGE_KEY))

    def test_failed_meta_write_restores_main_and_mirror(self):
        store = _MirrorFailingStore()
        repo = StateRepository(store, FixedClock(), IdSequence(), EventBus())
        state = repo.load()
        main_before = store.get(STORAGE_KEY)
        store.fail_meta = True
        state.ingredients.append(make_ingredient(name="Flour"))
        self.assertIsNone(repo.save(state))
        self.assertEqual(store.get(STORAGE_KEY), main_before)
        self.assertEqual(store.get(RECOVERY_KEY), main_before)

    def test_unknown_top_level_keys_survive(self):
        self.store.set(STORAGE_KEY, json.dumps({"schemaVersion": 2, "ingredients": [], "uiHints": {"tab": 2}}))
        state = self.repo.load()
        self.repo.save(state)
        self.assertEqual(json.loads(self.store.get(STORAGE_KEY))["uiHints"], {"tab": 2})


class TestRestorePoint(unittest.TestCase):

    def test_restore_point_round_trip(self):
        store = MemoryStore()
        repo = StateRepository(store, FixedClock(), IdSequence(), EventBus())
        state = repo.load()
        self.assertFalse(repo.has_restore_point())
        self.assertIsNone(repo.restore_from_restore_point())

        state.ingredients.append(make_ingredient())
        state = repo.save(state)
        self.assertTrue(repo.set_restore_point(state))
        self.assertTrue(repo.has_restore_point())
        self.assertIn("restorePointAt", repo.read_meta())

        state.ingredients = []
        repo.save(state)
        restored = repo.restore_from_restore_point()
        self.assertEqual([i.id for i in restored.ingredients], ["rice"])
        self.assertEqual(repo.report.details["source"], "restorePoint")

    def test_delete_all_local_data(self):
        store = MemoryStore()
        repo = StateRepository(store, FixedClock(), IdSequence(), EventBus())
        store.set(STORAGE_KEY, "broken")
        repo.load()
        repo.delete_all_local_data()
        self.assertEqual(store.keys(), [])
