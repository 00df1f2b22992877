# src/services/ingest_pipeline.py

"""Validate, diff and persist scraped product candidates."""

import logging
from dataclasses import dataclass
from typing import Protocol

from src.filters.product_validator import ProductValidator
from src.models.errors import StorageFailure, ValidationRejection
from src.models.price_snapshot import PriceHistoryEntry, ProductSnapshot
from src.models.product import ProductRecord

logger = logging.getLogger("price_tracker.ingest")


class ProductStore(Protocol):
    """Storage operations the ingest pipeline relies on."""

    def get_current(self, code: str) -> ProductSnapshot | None: ...

    def upsert_current(
        self,
        code: str,
        title: str,
        price: float,
        rating: float | None,
        image_url: str | None = None,
    ) -> ProductSnapshot: ...

    def append_history(
        self,
        code: str,
        price: float,
        rating: float | None,
    ) -> PriceHistoryEntry: ...


@dataclass
class IngestResult:
    """An accepted candidate and its diff against the stored price."""

    record: ProductRecord
    previous_price: float | None = None
    percent_change: float | None = None

    @property
    def price_changed(self) -> bool:
        return (
            self.previous_price is not None
            and self.previous_price != self.record.price
        )


@dataclass
class IngestStats:
    """Per-batch counters: attempted, upserted and failed candidates."""

    processed: int = 0
    updated: int = 0
    errors: int = 0

    def __iadd__(self, other: "IngestStats") -> "IngestStats":
        self.processed += other.processed
        self.updated += other.updated
        self.errors += other.errors
        return self


def percent_change(current: float, previous: float | None) -> float | None:
    """Percent change from *previous* to *current*; None if undefined."""
    if previous is None or previous == 0:
        return None
    return (current - previous) / previous * 100


class IngestPipeline:
    """Cleans each candidate and writes snapshot + history through a store."""

    def __init__(self, store: ProductStore) -> None:
        self.store = store

    def ingest(self, candidate: ProductRecord) -> IngestResult:
        """Validate and persist one candidate.

        Raises ``ValidationRejection`` for unusable candidates and
        ``StorageFailure`` when the store raises.
        """
        record = ProductValidator.clean(candidate)

        try:
            existing = self.store.get_current(record.code)
            previous = existing.price if existing else None
            self.store.upsert_current(
                record.code,
                record.title,
                record.price,
                record.rating,
                record.image_url,
            )
        except Exception as exc:
            raise StorageFailure(
                f"upsert failed for {record.code}: {exc}"
            ) from exc

        result = IngestResult(
            record=record,
            previous_price=previous,
            percent_change=percent_change(record.price, previous),
        )

        try:
            self.store.append_history(
                record.code, record.price, record.rating
            )
        except Exception as exc:
            raise StorageFailure(
                f"history append failed for {record.code}: {exc}",
                upserted=True,
            ) from exc

        if result.price_changed and result.percent_change is not None:
            logger.info(
                "Price change for %s: %.2f -> %.2f (%.2f%%)",
                record.code,
                previous,
                record.price,
                result.percent_change,
            )
        return result

    def process(self, candidates: list[ProductRecord]) -> IngestStats:
        """Ingest a batch; one bad candidate never aborts the rest."""
        stats = IngestStats()

        for candidate in candidates:
            stats.processed += 1
            try:
                self.ingest(candidate)
            except ValidationRejection as exc:
                logger.warning(
                    "Skipping invalid product %s: %s",
                    candidate.code or "unknown",
                    exc.reason,
                )
                stats.errors += 1
                continue
            except StorageFailure as exc:
                if exc.upserted:
                    stats.updated += 1
                logger.error(
                    "Error processing product %s: %s",
                    candidate.code,
                    exc,
                    exc_info=True,
                )
                stats.errors += 1
                continue
            except Exception as exc:
                logger.error(
                    "Unexpected error processing product %s: %s",
                    candidate.code,
                    exc,
                    exc_info=True,
                )
                stats.errors += 1
                continue
            stats.updated += 1

        return stats
