# src/filters/product_validator.py

"""Product validation: clean candidates and reject unusable ones."""

import logging
import math
from dataclasses import replace

from src.config.settings import Settings
from src.models.errors import ValidationRejection
from src.models.product import ProductRecord

logger = logging.getLogger("price_tracker.filters")


class ProductValidator:
    """Normalise scraped candidates and enforce storage invariants."""

    @staticmethod
    def clean(candidate: ProductRecord) -> ProductRecord:
        """Return a cleaned copy of *candidate* or raise ValidationRejection.

        Rules are checked in order and the first failure wins:
        code, title, price. An out-of-range rating is cleared rather
        than rejected.
        """
        code = (candidate.code or "").strip().upper()
        if len(code) != Settings.CODE_LENGTH:
            raise ValidationRejection(
                f"invalid code {candidate.code!r}",
                code=candidate.code,
            )

        title = (candidate.title or "").strip()[
            : Settings.TITLE_MAX_LENGTH
        ]
        if len(title) < Settings.TITLE_MIN_LENGTH:
            raise ValidationRejection(
                f"title too short ({len(title)} chars)", code=code
            )

        price = candidate.price
        if (
            price is None
            or not math.isfinite(price)
            or price <= 0
            or price > Settings.PRICE_MAX
        ):
            raise ValidationRejection(
                f"price out of range: {price!r}", code=code
            )

        rating = candidate.rating
        if rating is not None and not (
            Settings.RATING_MIN <= rating <= Settings.RATING_MAX
        ):
            logger.debug(
                "Cleared out-of-range rating %s for %s", rating, code
            )
            rating = None

        return replace(
            candidate,
            code=code,
            title=title,
            price=float(price),
            rating=rating,
            image_url=candidate.image_url or None,
        )
