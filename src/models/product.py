# src/models/product.py

"""Product data model for inter-module data flow."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class ProductRecord:
    """A single product listing extracted from a search results page.

    Records leave the parser unvalidated; ``ProductValidator`` decides
    whether one is fit for storage.
    """

    code: str
    title: str
    price: float
    rating: float | None = None
    image_url: str | None = None
    observed_at: datetime = field(default_factory=datetime.now)
