# src/scrapers/page_parser.py

"""Parser turning a search results page into product candidates."""

import json
import logging
import re
from datetime import datetime
from typing import Any

from bs4 import BeautifulSoup, Tag

from src.config.settings import Settings
from src.models.product import ProductRecord

logger = logging.getLogger("price_tracker.parser")

# Thumbnail size marker, e.g. "._AC_SL160_." in "...image._AC_SL160_.jpg"
_THUMBNAIL_RE = re.compile(r"\._AC_SL\d+_\.")
_LEADING_DECIMAL_RE = re.compile(r"\d+(?:\.\d*)?|\.\d+")
_FIRST_DECIMAL_RE = re.compile(r"\d+(?:\.\d+)?")


def parse_price(text: str | None) -> float | None:
    """Parse a price like '$1,299.99' into a float.

    Only digits and dots are kept; the leading decimal of what remains
    is used. Returns ``None`` when nothing parses.
    """
    if not text:
        return None
    cleaned = re.sub(r"[^0-9.]", "", text)
    match = _LEADING_DECIMAL_RE.match(cleaned)
    if not match:
        return None
    try:
        return float(match.group())
    except ValueError:
        return None


def parse_rating(text: str | None) -> float | None:
    """Parse the first number of a label like '4.5 out of 5 stars'."""
    if not text:
        return None
    match = _FIRST_DECIMAL_RE.search(text)
    return float(match.group()) if match else None


def normalize_image_url(raw: str | None, base_url: str) -> str | None:
    """Make an image URL absolute and prefer the full-size variant.

    Protocol-relative and root-relative forms become HTTPS URLs, the
    thumbnail size suffix is dropped, anything that still is not an
    HTTP(S) URL yields ``None``.
    """
    if not raw:
        return None
    url = raw.strip()
    if url.startswith("//"):
        url = f"https:{url}"
    elif url.startswith("/"):
        url = f"{base_url.rstrip('/')}{url}"
    url = _THUMBNAIL_RE.sub("._AC_.", url)
    if not url.startswith("http"):
        return None
    return url


class PageParser:
    """Extracts product candidates from a search results page."""

    def __init__(self, source_name: str = "amazon") -> None:
        self.source_name = source_name
        self.settings = Settings()
        self.selectors: dict[str, Any] = self._load_selectors()

    def _load_selectors(self) -> dict[str, Any]:
        """Load CSS selector cascades for this source from selectors.json."""
        with open(self.settings.SELECTORS_PATH, encoding="utf-8") as f:
            all_selectors: dict[str, Any] = json.load(f)
        result: dict[str, Any] = all_selectors.get(
            self.source_name, {}
        )
        return result

    @staticmethod
    def _first_text(card: Tag, selectors: list[str]) -> str:
        """Return the first non-empty stripped text across *selectors*."""
        for selector in selectors:
            el = card.select_one(selector)
            if el is None:
                continue
            text = el.get_text(strip=True)
            if text:
                return text
        return ""

    def _extract_rating(self, card: Tag) -> float | None:
        """Read the star rating from the aria-label or icon text."""
        label_el = card.select_one(self.selectors["rating_label"])
        label = label_el.get("aria-label") if label_el else None
        if isinstance(label, str) and label.strip():
            return parse_rating(label)
        return parse_rating(
            self._first_text(card, self.selectors["rating"])
        )

    def _extract_image(self, card: Tag) -> str | None:
        """Walk the image selector cascade, trying each source attribute."""
        for selector in self.selectors["image"]:
            img = card.select_one(selector)
            if img is None:
                continue
            for attr in self.selectors["image_attrs"]:
                value = img.get(attr)
                if isinstance(value, str) and value.strip():
                    return normalize_image_url(
                        value, self.settings.BASE_URL
                    )
        return None

    def _parse_card(
        self, card: Tag, code: str, observed_at: datetime,
    ) -> ProductRecord | None:
        """Parse a single product container, or None if incomplete."""
        title = self._first_text(card, self.selectors["title"])
        price = parse_price(
            self._first_text(card, self.selectors["price"])
        )
        if not title or not price:
            return None
        return ProductRecord(
            code=code,
            title=title[: self.settings.TITLE_MAX_LENGTH],
            price=price,
            rating=self._extract_rating(card),
            image_url=self._extract_image(card),
            observed_at=observed_at,
        )

    def parse(self, body: str) -> list[ProductRecord]:
        """Return unvalidated candidates found in *body*, in page order."""
        soup = BeautifulSoup(body, "lxml")
        observed_at = datetime.now()
        code_attr: str = self.selectors["code_attr"]
        cards = soup.select(self.selectors["product_card"])
        # Only emitted codes count as seen; an incomplete card never
        # hides a later complete one with the same code
        seen: set[str] = set()
        products: list[ProductRecord] = []

        for card in cards:
            raw_code = card.get(code_attr)
            code = raw_code.strip() if isinstance(raw_code, str) else ""
            if not code or code in seen:
                continue
            record = self._parse_card(card, code, observed_at)
            if record is not None:
                seen.add(code)
                products.append(record)

        logger.debug(
            "[%s] Parsed %d candidates from %d containers",
            self.source_name,
            len(products),
            len(cards),
        )
        return products
