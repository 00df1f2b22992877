# src/models/price_snapshot.py

"""Stored product state and temporal price history models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class ProductSnapshot:
    """The current (latest upserted) state of a tracked product."""

    code: str
    title: str
    price: float
    rating: float | None
    image_url: str | None
    updated_at: datetime


@dataclass
class PriceHistoryEntry:
    """A single price observation for a product at a point in time."""

    code: str
    price: float
    rating: float | None
    observed_at: datetime
