# tests/test_price_analyzer.py

"""Tests for top-change ranking and price alerts."""

import shutil
import tempfile
import unittest
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock

from src.models.price_snapshot import PriceHistoryEntry, ProductSnapshot
from src.services.price_analyzer import (
    PriceChangeAnalyzer,
    compute_price_changes,
    rank_top_changes,
    select_alerts,
)
from src.storage.price_history_db import PriceHistoryDB

NOW = datetime(2026, 3, 1, 12, 0)
WINDOW = timedelta(hours=24)


def _entry(code: str, price: float, hours_ago: float) -> PriceHistoryEntry:
    return PriceHistoryEntry(
        code=code,
        price=price,
        rating=None,
        observed_at=NOW - timedelta(hours=hours_ago),
    )


def _snap(code: str) -> ProductSnapshot:
    return ProductSnapshot(
        code=code,
        title=f"Product {code}",
        price=0.0,
        rating=None,
        image_url=None,
        updated_at=NOW,
    )


class TestComputePriceChanges(unittest.TestCase):
    """Window bucketing and diffing."""

    def test_drop_against_previous_window(self) -> None:
        """100 -> 80 yields a -20% change."""
        changes = compute_price_changes(
            [_entry("A", 100.0, 30), _entry("A", 80.0, 1)],
            {"A": _snap("A")},
            NOW,
            WINDOW,
        )
        self.assertEqual(len(changes), 1)
        change = changes[0]
        self.assertFalse(change.is_new)
        self.assertEqual(change.previous_price, 100.0)
        self.assertEqual(change.current_price, 80.0)
        self.assertEqual(change.absolute_change, -20.0)
        self.assertEqual(change.percent_change, -20.0)

    def test_latest_entry_of_each_window_wins(self) -> None:
        """Only the most recent observation per window is compared."""
        changes = compute_price_changes(
            [
                _entry("A", 120.0, 50),
                _entry("A", 100.0, 30),
                _entry("A", 95.0, 10),
                _entry("A", 90.0, 2),
            ],
            {"A": _snap("A")},
            NOW,
            WINDOW,
        )
        self.assertEqual(changes[0].previous_price, 100.0)
        self.assertEqual(changes[0].current_price, 90.0)

    def test_new_product(self) -> None:
        """No earlier observation: previous mirrors current, pct undefined."""
        changes = compute_price_changes(
            [_entry("B", 50.0, 2)], {"B": _snap("B")}, NOW, WINDOW
        )
        change = changes[0]
        self.assertTrue(change.is_new)
        self.assertEqual(change.previous_price, 50.0)
        self.assertEqual(change.absolute_change, 0.0)
        self.assertIsNone(change.percent_change)

    def test_zero_previous_price(self) -> None:
        """A zero previous price leaves the percent change undefined."""
        changes = compute_price_changes(
            [_entry("Z", 0.0, 30), _entry("Z", 10.0, 1)],
            {"Z": _snap("Z")},
            NOW,
            WINDOW,
        )
        self.assertFalse(changes[0].is_new)
        self.assertIsNone(changes[0].percent_change)

    def test_out_of_window_only_excluded(self) -> None:
        """Products not seen inside the window do not appear."""
        changes = compute_price_changes(
            [_entry("OLD", 10.0, 48)], {"OLD": _snap("OLD")}, NOW, WINDOW
        )
        self.assertEqual(changes, [])

    def test_missing_snapshot_skipped(self) -> None:
        """History without a current snapshot is ignored."""
        changes = compute_price_changes(
            [_entry("GHOST", 10.0, 1)], {}, NOW, WINDOW
        )
        self.assertEqual(changes, [])


class TestRankingAndAlerts(unittest.TestCase):
    """rank_top_changes and select_alerts ordering rules."""

    def setUp(self) -> None:
        """A: -20%, B: new, C: -3%, D: -7%, E: +10%."""
        self.changes = compute_price_changes(
            [
                _entry("A", 100.0, 30), _entry("A", 80.0, 1),
                _entry("B", 50.0, 3),
                _entry("C", 100.0, 30), _entry("C", 97.0, 1),
                _entry("D", 100.0, 30), _entry("D", 93.0, 2),
                _entry("E", 100.0, 30), _entry("E", 110.0, 1),
            ],
            {code: _snap(code) for code in "ABCDE"},
            NOW,
            WINDOW,
        )

    def test_new_products_first_then_steepest_drop(self) -> None:
        """B (new) leads, then A, D, C; the rising E is excluded."""
        ranked = rank_top_changes(self.changes, limit=20)
        self.assertEqual([c.code for c in ranked], ["B", "A", "D", "C"])

    def test_limit(self) -> None:
        """Only *limit* rows are returned."""
        ranked = rank_top_changes(self.changes, limit=2)
        self.assertEqual([c.code for c in ranked], ["B", "A"])

    def test_ties_broken_by_recency(self) -> None:
        """Equal drops order the most recent observation first."""
        changes = compute_price_changes(
            [
                _entry("OLDER", 100.0, 30), _entry("OLDER", 90.0, 5),
                _entry("NEWER", 100.0, 30), _entry("NEWER", 90.0, 1),
            ],
            {"OLDER": _snap("OLDER"), "NEWER": _snap("NEWER")},
            NOW,
            WINDOW,
        )
        ranked = rank_top_changes(changes, limit=5)
        self.assertEqual([c.code for c in ranked], ["NEWER", "OLDER"])

    def test_alerts_strictly_below_threshold(self) -> None:
        """-20 and -7 alert at -5; -3, new and rising do not."""
        alerts = select_alerts(self.changes, -5.0)
        self.assertEqual([c.code for c in alerts], ["A", "D"])

    def test_alert_threshold_is_strict(self) -> None:
        """A change exactly at the threshold is not an alert."""
        alerts = select_alerts(self.changes, -20.0)
        self.assertEqual(alerts, [])


class TestPriceChangeAnalyzer(unittest.TestCase):
    """End-to-end queries over a temp PriceHistoryDB."""

    def setUp(self) -> None:
        """Seed two products: one dropped 20%, one new."""
        self.tmp_dir = tempfile.mkdtemp()
        self.db = PriceHistoryDB(db_path=Path(self.tmp_dir) / "a.db")
        self.db.upsert_current("B0PRODUCTA", "Product A", 80.0, 4.0)
        self.db.upsert_current("B0PRODUCTB", "Product B", 50.0, None)
        self.db.append_history(
            "B0PRODUCTA", 100.0, 4.0, NOW - timedelta(hours=30)
        )
        self.db.append_history(
            "B0PRODUCTA", 80.0, 4.0, NOW - timedelta(hours=1)
        )
        self.db.append_history(
            "B0PRODUCTB", 50.0, None, NOW - timedelta(hours=2)
        )
        self.analyzer = PriceChangeAnalyzer(self.db)

    def tearDown(self) -> None:
        """Close and remove the database."""
        self.db.close()
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_top_changes(self) -> None:
        """New product first, then the -20% drop."""
        top = self.analyzer.top_changes(WINDOW, limit=10, now=NOW)
        self.assertEqual(
            [c.code for c in top], ["B0PRODUCTB", "B0PRODUCTA"]
        )
        self.assertEqual(top[0].title, "Product B")
        self.assertEqual(top[1].percent_change, -20.0)
        self.assertFalse(top[1].is_new)

    def test_price_alerts(self) -> None:
        """Only the known product with a steep drop alerts."""
        alerts = self.analyzer.price_alerts(WINDOW, -5.0, now=NOW)
        self.assertEqual([c.code for c in alerts], ["B0PRODUCTA"])
        self.assertEqual(alerts[0].to_dict()["percent_change"], -20.0)

    def test_store_queried_from_cutoff_only(self) -> None:
        """The store is asked for the reduced window, snapshots in one batch."""
        store = MagicMock()
        store.query_window_latest.return_value = [
            _entry("A", 100.0, 30), _entry("A", 80.0, 1),
        ]
        store.get_snapshots.return_value = {"A": _snap("A")}

        top = PriceChangeAnalyzer(store).top_changes(WINDOW, now=NOW)

        store.query_window_latest.assert_called_once_with(NOW - WINDOW)
        store.get_snapshots.assert_called_once_with(["A"])
        self.assertEqual([c.percent_change for c in top], [-20.0])

    def test_long_history_reduced_in_storage(self) -> None:
        """Older history beyond the latest pre-window entry is ignored."""
        for hours in range(200, 40, -10):
            self.db.append_history(
                "B0PRODUCTA", 500.0, 4.0, NOW - timedelta(hours=hours)
            )
        alerts = self.analyzer.price_alerts(WINDOW, -5.0, now=NOW)
        self.assertEqual(alerts[0].previous_price, 100.0)

    def test_empty_store(self) -> None:
        """No history yields no rows."""
        empty = PriceHistoryDB(db_path=Path(self.tmp_dir) / "empty.db")
        try:
            analyzer = PriceChangeAnalyzer(empty)
            self.assertEqual(analyzer.top_changes(now=NOW), [])
            self.assertEqual(analyzer.price_alerts(now=NOW), [])
        finally:
            empty.close()


if __name__ == "__main__":
    unittest.main()
