"""
Unit tests for guest_gate.py.

Tests the free-watch boundary, the bypass rules, and the file-backed
counter store's persistence and fail-open behaviour.
"""

import json
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

from watch_access.guest_gate import GuestAccessGate, InMemoryCounterStore, JsonFileCounterStore


class TestGuestAccessGate(unittest.TestCase):
    """Test the free-watch limit for unauthenticated viewers."""

    def setUp(self):
        self.store = InMemoryCounterStore()
        self.gate = GuestAccessGate(self.store, limit=2)

    def test_limit_boundary(self):
        """Two permitted watches, then the third is refused."""
        for _ in range(2):
            self.assertTrue(self.gate.can_watch_free(False, 0))
            self.gate.record_free_watch()

        self.assertFalse(self.gate.can_watch_free(False, 0))
        self.assertTrue(self.gate.has_exhausted_free_watches())
        self.assertEqual(self.gate.remaining_free_watches(), 0)

    def test_authenticated_viewer_bypasses(self):
        self.store.count = 10
        self.assertTrue(self.gate.can_watch_free(True, 0))

    def test_paid_content_bypasses(self):
        self.store.count = 10
        self.assertTrue(self.gate.can_watch_free(False, 5))

    def test_checking_does_not_consume(self):
        self.gate.can_watch_free(False, 0)
        self.gate.can_watch_free(False, 0)
        self.assertEqual(self.store.count, 0)

    def test_reset_restores_allowance(self):
        self.store.count = 2
        self.gate.reset()
        self.assertEqual(self.gate.remaining_free_watches(), 2)

    def test_failing_store_fails_open(self):
        """A store that cannot be read is treated as zero watches used."""
        store = MagicMock()
        store.read.side_effect = OSError("disk gone")
        store.increment.side_effect = OSError("disk gone")
        gate = GuestAccessGate(store, limit=2)

        self.assertTrue(gate.can_watch_free(False, 0))
        gate.record_free_watch()  # must not raise

    def test_zero_limit_blocks_immediately(self):
        gate = GuestAccessGate(InMemoryCounterStore(), limit=0)
        self.assertFalse(gate.can_watch_free(False, 0))


class TestJsonFileCounterStore(unittest.TestCase):
    """Test the persisted counter store."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.path = Path(self.temp_dir) / "state" / "guest_counter.json"

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_missing_file_reads_zero(self):
        self.assertEqual(JsonFileCounterStore(str(self.path)).read(), 0)

    def test_increment_persists_across_instances(self):
        JsonFileCounterStore(str(self.path)).increment()
        JsonFileCounterStore(str(self.path)).increment()

        self.assertEqual(JsonFileCounterStore(str(self.path)).read(), 2)
        data = json.loads(self.path.read_text())
        self.assertEqual(data["count"], 2)
        self.assertIn("updated_at", data)

    def test_corrupt_file_reads_zero(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text("{not json")
        self.assertEqual(JsonFileCounterStore(str(self.path)).read(), 0)

    def test_negative_count_reads_zero(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text(json.dumps({"count": -3}))
        self.assertEqual(JsonFileCounterStore(str(self.path)).read(), 0)

    def test_reset(self):
        store = JsonFileCounterStore(str(self.path))
        store.increment()
        store.reset()
        self.assertEqual(store.read(), 0)

    def test_gate_over_file_store(self):
        gate = GuestAccessGate(JsonFileCounterStore(str(self.path)), limit=1)
        self.assertTrue(gate.can_watch_free(False, 0))
        gate.record_free_watch()

        reloaded = GuestAccessGate(JsonFileCounterStore(str(self.path)), limit=1)
        self.assertFalse(reloaded.can_watch_free(False, 0))


if __name__ == "__main__":
    unittest.main()
