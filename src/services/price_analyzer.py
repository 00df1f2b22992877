# src/services/price_analyzer.py

"""Window-over-window price movement analytics."""

import logging
from datetime import datetime, timedelta
from typing import Protocol

from src.config.settings import Settings
from src.models.price_change import PriceChangeRecord
from src.models.price_snapshot import PriceHistoryEntry, ProductSnapshot
from src.services.ingest_pipeline import percent_change

logger = logging.getLogger("price_tracker.analytics")

DEFAULT_WINDOW = timedelta(hours=Settings.ANALYTICS_WINDOW_HOURS)


class HistoryStore(Protocol):
    """Storage operations the analyzer reads from."""

    def query_window_latest(
        self, cutoff: datetime,
    ) -> list[PriceHistoryEntry]: ...

    def get_snapshots(
        self, codes: list[str],
    ) -> dict[str, ProductSnapshot]: ...


def compute_price_changes(
    entries: list[PriceHistoryEntry],
    snapshots: dict[str, ProductSnapshot],
    now: datetime,
    window: timedelta = DEFAULT_WINDOW,
) -> list[PriceChangeRecord]:
    """Compare each product's latest in-window price to its latest earlier one.

    Only products observed inside the window appear. A product with no
    observation before the window is new: its previous price mirrors
    the current one and its percent change is undefined. Products
    without a stored snapshot are skipped. Result order is unspecified.
    """
    cutoff = now - window
    current: dict[str, PriceHistoryEntry] = {}
    previous: dict[str, PriceHistoryEntry] = {}

    for entry in entries:
        bucket = current if entry.observed_at >= cutoff else previous
        latest = bucket.get(entry.code)
        if latest is None or entry.observed_at > latest.observed_at:
            bucket[entry.code] = entry

    changes: list[PriceChangeRecord] = []
    for code, cur in current.items():
        snapshot = snapshots.get(code)
        if snapshot is None:
            continue
        prev = previous.get(code)
        is_new = prev is None
        previous_price = cur.price if prev is None else prev.price
        changes.append(PriceChangeRecord(
            code=code,
            title=snapshot.title,
            image_url=snapshot.image_url,
            current_price=cur.price,
            previous_price=previous_price,
            absolute_change=cur.price - previous_price,
            percent_change=(
                None if is_new
                else percent_change(cur.price, previous_price)
            ),
            is_new=is_new,
            observed_at=cur.observed_at,
        ))
    return changes


def rank_top_changes(
    changes: list[PriceChangeRecord], limit: int,
) -> list[PriceChangeRecord]:
    """Keep drops and new products, ranked new-first then steepest drop."""
    candidates = [
        c for c in changes
        if c.is_new or c.current_price < c.previous_price
    ]
    # Stable two-pass sort: recency breaks ties left by the primary key
    candidates.sort(key=lambda c: c.observed_at, reverse=True)
    candidates.sort(key=lambda c: (
        not c.is_new,
        c.percent_change is None,
        c.percent_change if c.percent_change is not None else 0.0,
    ))
    return candidates[:limit]


def select_alerts(
    changes: list[PriceChangeRecord], threshold_percent: float,
) -> list[PriceChangeRecord]:
    """Products whose percent change is strictly below the threshold."""
    alerts = [
        c for c in changes
        if c.percent_change is not None
        and c.percent_change < threshold_percent
    ]
    alerts.sort(key=lambda c: c.percent_change or 0.0)
    return alerts


class PriceChangeAnalyzer:
    """Serves top-change and alert queries over stored price history."""

    def __init__(self, store: HistoryStore) -> None:
        self.store = store

    def _changes(
        self, window: timedelta, now: datetime | None,
    ) -> list[PriceChangeRecord]:
        when = now or datetime.now()
        cutoff = when - window
        # At most two rows per code: latest in window, latest before it
        entries = self.store.query_window_latest(cutoff)
        codes = sorted({e.code for e in entries})
        snapshots = self.store.get_snapshots(codes)
        return compute_price_changes(entries, snapshots, when, window)

    def top_changes(
        self,
        window: timedelta = DEFAULT_WINDOW,
        limit: int = Settings.TOP_CHANGES_LIMIT,
        now: datetime | None = None,
    ) -> list[PriceChangeRecord]:
        """Largest price drops (and new products) within *window*."""
        ranked = rank_top_changes(self._changes(window, now), limit)
        logger.debug("Top changes query returned %d rows", len(ranked))
        return ranked

    def price_alerts(
        self,
        window: timedelta = DEFAULT_WINDOW,
        threshold_percent: float = Settings.ALERT_THRESHOLD_PERCENT,
        now: datetime | None = None,
    ) -> list[PriceChangeRecord]:
        """Drops steeper than *threshold_percent*, steepest first."""
        alerts = select_alerts(
            self._changes(window, now), threshold_percent
        )
        if alerts:
            logger.info(
                "%d price alerts below %.1f%%",
                len(alerts),
                threshold_percent,
            )
        return alerts
