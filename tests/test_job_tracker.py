# tests/test_job_tracker.py

"""Tests for the in-memory JobProgressTracker."""

import threading
import unittest

from src.services.job_tracker import JobProgressTracker


class TestJobProgressTracker(unittest.TestCase):
    """Lifecycle and snapshot behaviour of tracked jobs."""

    def setUp(self) -> None:
        """Tracker with a long retention so nothing expires mid-test."""
        self.tracker = JobProgressTracker(retention=60.0)

    def tearDown(self) -> None:
        """Cancel any pending removal timers."""
        self.tracker.shutdown()

    def test_create_job_defaults(self) -> None:
        """A new job is running with zeroed counters."""
        job_id = self.tracker.create_job(["earbuds", "cable"])
        progress = self.tracker.get_progress(job_id)
        assert progress is not None
        self.assertEqual(progress["status"], "running")
        self.assertFalse(progress["completed"])
        self.assertEqual(progress["keywords"], ["earbuds", "cable"])
        self.assertEqual(progress["total_keywords"], 2)
        self.assertEqual(progress["products_processed"], 0)
        self.assertIsNone(progress["result"])
        self.assertFalse(progress["periodic"])

    def test_ids_are_unique(self) -> None:
        """Every create_job call yields a fresh id."""
        ids = {self.tracker.create_job(["x"]) for _ in range(20)}
        self.assertEqual(len(ids), 20)

    def test_update_merges_fields(self) -> None:
        """Updates touch only the named fields."""
        job_id = self.tracker.create_job(["earbuds"])
        self.tracker.update_progress(
            job_id, current_keyword="earbuds", current_page=2
        )
        self.tracker.update_progress(job_id, products_processed=7)
        progress = self.tracker.get_progress(job_id)
        assert progress is not None
        self.assertEqual(progress["current_keyword"], "earbuds")
        self.assertEqual(progress["current_page"], 2)
        self.assertEqual(progress["products_processed"], 7)

    def test_update_unknown_field_raises(self) -> None:
        """Misspelt fields are rejected."""
        job_id = self.tracker.create_job(["earbuds"])
        with self.assertRaises(ValueError):
            self.tracker.update_progress(job_id, curent_page=1)

    def test_update_cannot_set_status(self) -> None:
        """Status changes only through complete_job/fail_job."""
        job_id = self.tracker.create_job(["earbuds"])
        with self.assertRaises(ValueError):
            self.tracker.update_progress(job_id, status="completed")

    def test_update_unknown_job_ignored(self) -> None:
        """Progress for a removed job is silently dropped."""
        self.tracker.update_progress("missing", current_page=1)
        self.assertIsNone(self.tracker.get_progress("missing"))

    def test_complete_job(self) -> None:
        """Completion records result, end time and duration."""
        job_id = self.tracker.create_job(["earbuds"])
        self.tracker.complete_job(job_id, {"success": True, "updated": 3})
        progress = self.tracker.get_progress(job_id)
        assert progress is not None
        self.assertEqual(progress["status"], "completed")
        self.assertTrue(progress["completed"])
        self.assertEqual(progress["result"], {"success": True, "updated": 3})
        self.assertIsNotNone(progress["end_time"])
        self.assertGreaterEqual(progress["duration"], 0)

    def test_fail_job(self) -> None:
        """Failure records the error message."""
        job_id = self.tracker.create_job(["earbuds"])
        self.tracker.fail_job(job_id, RuntimeError("network down"))
        progress = self.tracker.get_progress(job_id)
        assert progress is not None
        self.assertEqual(progress["status"], "failed")
        self.assertTrue(progress["completed"])
        self.assertEqual(progress["error"], "network down")

    def test_fail_job_empty_message_uses_type(self) -> None:
        """An exception without a message reports its class name."""
        job_id = self.tracker.create_job(["earbuds"])
        self.tracker.fail_job(job_id, KeyError())
        progress = self.tracker.get_progress(job_id)
        assert progress is not None
        self.assertEqual(progress["error"], "KeyError")

    def test_snapshot_is_a_copy(self) -> None:
        """Mutating a snapshot does not affect the tracked job."""
        job_id = self.tracker.create_job(["earbuds"])
        snapshot = self.tracker.get_progress(job_id)
        assert snapshot is not None
        snapshot["keywords"].append("tampered")
        again = self.tracker.get_progress(job_id)
        assert again is not None
        self.assertEqual(again["keywords"], ["earbuds"])

    def test_remove_job(self) -> None:
        """Removed jobs are no longer reported."""
        job_id = self.tracker.create_job(["earbuds"])
        self.assertTrue(self.tracker.remove_job(job_id))
        self.assertFalse(self.tracker.remove_job(job_id))
        self.assertIsNone(self.tracker.get_progress(job_id))
        self.assertNotIn(job_id, self.tracker.job_ids())

    def test_schedule_removal_expires_job(self) -> None:
        """A scheduled removal drops the job after the delay."""
        job_id = self.tracker.create_job(["earbuds"])
        self.tracker.complete_job(job_id, {"success": True})
        self.tracker.schedule_removal(job_id, delay=0.01)

        gone = threading.Event()
        for _ in range(200):
            if self.tracker.get_progress(job_id) is None:
                gone.set()
                break
            gone.wait(0.01)
        self.assertTrue(gone.is_set())

    def test_shutdown_cancels_pending_removals(self) -> None:
        """shutdown forgets jobs and stops their timers."""
        job_id = self.tracker.create_job(["earbuds"])
        self.tracker.schedule_removal(job_id)
        self.tracker.shutdown()
        self.assertEqual(self.tracker.job_ids(), [])

    def test_concurrent_updates(self) -> None:
        """Writers on separate jobs do not interfere."""
        ids = [self.tracker.create_job([f"kw{i}"]) for i in range(4)]

        def bump(job_id: str) -> None:
            for n in range(1, 101):
                self.tracker.update_progress(job_id, products_processed=n)

        threads = [threading.Thread(target=bump, args=(j,)) for j in ids]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for job_id in ids:
            progress = self.tracker.get_progress(job_id)
            assert progress is not None
            self.assertEqual(progress["products_processed"], 100)


if __name__ == "__main__":
    unittest.main()
