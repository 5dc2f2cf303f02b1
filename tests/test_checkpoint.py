import unittest
from unittest.mock import Mock

from mongo_batch.core.checkpoint import CheckpointCoordinator, checkpoint_key
from mongo_batch.core.errors import UnexpectedValueError
from mongo_batch.core.models import BatchConfig, IterationSpec, SortDirection
from mongo_batch.state.memory_store import InMemoryCheckpointStore


class TestCheckpointKey(unittest.TestCase):
    def test_key_is_deterministic_and_distinct(self):
        asc = IterationSpec("_id", SortDirection.ASC)
        desc = IterationSpec("_id", SortDirection.DESC)
        other = IterationSpec("created_at", SortDirection.ASC)

        self.assertEqual(checkpoint_key(asc), "mongo:batch:_id:1")
        self.assertEqual(checkpoint_key(desc), "mongo:batch:_id:-1")
        self.assertEqual(checkpoint_key(asc), checkpoint_key(IterationSpec("_id", SortDirection.ASC)))
        self.assertEqual(len({checkpoint_key(asc), checkpoint_key(desc), checkpoint_key(other)}), 3)
        self.assertEqual(checkpoint_key(asc, prefix="jobs"), "jobs:_id:1")


class TestCheckpointCoordinator(unittest.TestCase):
    def setUp(self):
        self.iteration = IterationSpec("id", SortDirection.ASC)
        self.store = InMemoryCheckpointStore()

    def test_disabled_save_state_ignores_store(self):
        self.store.set("mongo:batch:id:1", 5)
        coordinator = CheckpointCoordinator(self.store, self.iteration, save_state=False)

        self.assertIsNone(coordinator.load_resume_value())
        self.assertFalse(coordinator.persist(9))
        self.assertEqual(self.store.get("mongo:batch:id:1"), 5)

    def test_missing_store_is_not_an_error(self):
        coordinator = CheckpointCoordinator(None, self.iteration, save_state=True)
        self.assertFalse(coordinator.enabled)
        self.assertIsNone(coordinator.load_resume_value())
        self.assertFalse(coordinator.persist(1))
        self.assertFalse(coordinator.clear())

    def test_first_run_has_no_resume_value(self):
        coordinator = CheckpointCoordinator(self.store, self.iteration, save_state=True)
        self.assertIsNone(coordinator.load_resume_value())

    def test_persist_and_load(self):
        coordinator = CheckpointCoordinator(self.store, self.iteration, save_state=True, ttl_s=60)
        self.assertTrue(coordinator.persist(42))
        self.assertEqual(coordinator.load_resume_value(), 42)
        self.assertEqual(coordinator.writes, 1)
        self.assertEqual(coordinator.last_checkpoint.value, 42)
        self.assertEqual(coordinator.last_checkpoint.ttl_s, 60)

    def test_persist_passes_ttl_or_none(self):
        store = Mock()
        store.set.return_value = True
        CheckpointCoordinator(store, self.iteration, save_state=True, ttl_s=0).persist(1)
        CheckpointCoordinator(store, self.iteration, save_state=True, ttl_s=30).persist(2)
        self.assertEqual(store.set.call_args_list[0].args, ("mongo:batch:id:1", 1, None))
        self.assertEqual(store.set.call_args_list[1].args, ("mongo:batch:id:1", 2, 30))

    def test_write_failures_are_counted_not_raised(self):
        store = Mock()
        store.set.side_effect = [ConnectionError("down"), False, True]
        coordinator = CheckpointCoordinator(store, self.iteration, save_state=True)

        with self.assertLogs("mongo_batch.checkpoint", level="WARNING") as logs:
            self.assertFalse(coordinator.persist(1))
            self.assertFalse(coordinator.persist(2))
        self.assertTrue(coordinator.persist(3))

        self.assertEqual(coordinator.failures, 2)
        self.assertEqual(coordinator.writes, 1)
        self.assertEqual(len(logs.records), 2)

    def test_clear_works_without_save_state(self):
        self.store.set("mongo:batch:id:1", 5)
        coordinator = CheckpointCoordinator(self.store, self.iteration, save_state=False)
        self.assertTrue(coordinator.clear())
        self.assertIsNone(self.store.get("mongo:batch:id:1"))
        self.assertFalse(coordinator.clear())

    def test_for_config(self):
        cfg = (
            BatchConfig()
            .with_iteration_field("ts", -1)
            .with_save_state(True, ttl_seconds=10)
            .with_checkpoint_prefix("jobs:a")
        )
        coordinator = CheckpointCoordinator.for_config(self.store, cfg)
        self.assertEqual(coordinator.key, "jobs:a:ts:-1")
        self.assertTrue(coordinator.enabled)
        self.assertEqual(coordinator.ttl_s, 10)

        with self.assertRaises(UnexpectedValueError):
            CheckpointCoordinator.for_config(self.store, BatchConfig())


if __name__ == "__main__":
    unittest.main()
