# src/models/price_change.py

"""Derived price movement model served by the analytics queries."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class PriceChangeRecord:
    """Current-vs-previous price comparison for one product.

    Computed on demand from price history; never persisted.
    ``percent_change`` is ``None`` for new products and when the
    previous price was zero.
    """

    code: str
    title: str
    image_url: str | None
    current_price: float
    previous_price: float
    absolute_change: float
    percent_change: float | None
    is_new: bool
    observed_at: datetime

    def to_dict(self) -> dict[str, object]:
        """Serialise to plain JSON-friendly values."""
        return {
            "code": self.code,
            "title": self.title,
            "image_url": self.image_url,
            "current_price": self.current_price,
            "previous_price": self.previous_price,
            "absolute_change": round(self.absolute_change, 2),
            "percent_change": (
                round(self.percent_change, 2)
                if self.percent_change is not None
                else None
            ),
            "is_new": self.is_new,
            "observed_at": self.observed_at.isoformat(),
        }
