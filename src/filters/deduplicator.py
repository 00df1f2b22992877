# src/filters/deduplicator.py

"""Product deduplication by product code."""

import logging

from src.models.product import ProductRecord

logger = logging.getLogger("price_tracker.filters")


class ProductDeduplicator:
    """Drop repeated product codes, keeping the first occurrence.

    One instance tracks the codes of a single keyword across all of
    its pages, so a product that reappears on page 3 is not ingested
    twice in the same run.
    """

    def __init__(self) -> None:
        self._seen: set[str] = set()

    @staticmethod
    def _key(code: str) -> str:
        """Comparable form of a product code."""
        return code.strip().upper()

    def filter_new(
        self, products: list[ProductRecord],
    ) -> tuple[list[ProductRecord], int]:
        """Return products whose code was not seen yet, and the drop count."""
        kept: list[ProductRecord] = []
        removed = 0

        for product in products:
            key = self._key(product.code)
            if key in self._seen:
                removed += 1
                continue
            self._seen.add(key)
            kept.append(product)

        if removed:
            logger.debug(
                "Deduplication removed %d repeated products", removed
            )

        return kept, removed
