# tests/test_models.py

"""Tests for the product, job and price change dataclasses."""

import unittest
from datetime import datetime

from src.models.price_change import PriceChangeRecord
from src.models.product import ProductRecord
from src.models.scrape_job import ScrapeJob


class TestProductRecord(unittest.TestCase):
    """ProductRecord unit tests."""

    def test_defaults(self) -> None:
        """Rating and image are optional, observed_at is stamped."""
        before = datetime.now()
        product = ProductRecord(code="B000000001", title="Cable", price=9.5)
        self.assertIsNone(product.rating)
        self.assertIsNone(product.image_url)
        self.assertGreaterEqual(product.observed_at, before)

    def test_unvalidated_values_are_stored(self) -> None:
        """The model itself does not validate (the validator does)."""
        product = ProductRecord(code="x", title="", price=-5.0, rating=9.0)
        self.assertEqual(product.price, -5.0)
        self.assertEqual(product.rating, 9.0)


class TestScrapeJob(unittest.TestCase):
    """ScrapeJob state helpers."""

    def test_new_job_is_running(self) -> None:
        """A fresh job is not terminal."""
        job = ScrapeJob(job_id="j1", keywords=["earbuds"])
        self.assertEqual(job.status, "running")
        self.assertFalse(job.is_terminal)

    def test_terminal_statuses(self) -> None:
        """completed and failed are terminal."""
        for status in ("completed", "failed"):
            with self.subTest(status=status):
                job = ScrapeJob(job_id="j1", keywords=[], status=status)
                self.assertTrue(job.is_terminal)


class TestPriceChangeRecord(unittest.TestCase):
    """PriceChangeRecord serialisation."""

    def test_to_dict_rounds_and_formats(self) -> None:
        """Changes are rounded, timestamps ISO formatted."""
        record = PriceChangeRecord(
            code="B000000001",
            title="Cable",
            image_url=None,
            current_price=93.0,
            previous_price=100.0,
            absolute_change=-7.000000001,
            percent_change=-7.000000000000001,
            is_new=False,
            observed_at=datetime(2026, 3, 1, 12, 0),
        )
        payload = record.to_dict()
        self.assertEqual(payload["absolute_change"], -7.0)
        self.assertEqual(payload["percent_change"], -7.0)
        self.assertEqual(payload["observed_at"], "2026-03-01T12:00:00")

    def test_new_product_has_no_percent(self) -> None:
        """An undefined percent change serialises as None."""
        record = PriceChangeRecord(
            code="B000000002",
            title="Earbuds",
            image_url="https://x/a.jpg",
            current_price=50.0,
            previous_price=50.0,
            absolute_change=0.0,
            percent_change=None,
            is_new=True,
            observed_at=datetime(2026, 3, 1, 12, 0),
        )
        self.assertIsNone(record.to_dict()["percent_change"])


if __name__ == "__main__":
    unittest.main()
