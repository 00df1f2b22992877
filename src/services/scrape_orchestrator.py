# src/services/scrape_orchestrator.py

"""Drives fetch, parse and ingest across keywords and pages."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from src.config.settings import Settings
from src.filters.deduplicator import ProductDeduplicator
from src.models.errors import FatalOrchestratorError
from src.scrapers.page_fetcher import PageFetcher
from src.scrapers.page_parser import PageParser
from src.services.ingest_pipeline import IngestPipeline, IngestStats

logger = logging.getLogger("price_tracker.orchestrator")

ProgressCallback = Callable[..., None]


@dataclass
class RunSummary:
    """Aggregate outcome of one scrape run across all keywords."""

    keywords: list[str] = field(
        default_factory=lambda: list[str]()
    )
    products_found: int = 0
    processed: int = 0
    updated: int = 0
    errors: int = 0
    pages_fetched: int = 0
    duplicates_skipped: int = 0
    duration: float = 0.0

    @property
    def no_data(self) -> bool:
        """True when no keyword produced a single candidate."""
        return self.products_found == 0

    def to_dict(self) -> dict[str, Any]:
        """Serialise for job results and CLI output."""
        result: dict[str, Any] = {
            "success": not self.no_data,
            "products_found": self.products_found,
            "processed": self.processed,
            "updated": self.updated,
            "errors": self.errors,
            "pages_fetched": self.pages_fetched,
            "duplicates_skipped": self.duplicates_skipped,
            "duration": round(self.duration, 2),
        }
        if self.no_data:
            result["message"] = "No products found"
        return result


def _noop_progress(**_: Any) -> None:
    return None


class ScrapeOrchestrator:
    """Sequential keyword/page scraping loop feeding the ingest pipeline.

    Pages of one keyword are fetched strictly in order, with a delay
    between them; there is no fan-out inside a run.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        parser: PageParser,
        pipeline: IngestPipeline,
    ) -> None:
        self.settings = Settings()
        self.fetcher = fetcher
        self.parser = parser
        self.pipeline = pipeline

    def _scrape_keyword(
        self,
        keyword: str,
        total_pages: int,
        summary: RunSummary,
        totals: IngestStats,
        progress: ProgressCallback,
    ) -> None:
        """Fetch, dedupe and ingest up to *total_pages* pages of one keyword."""
        dedup = ProductDeduplicator()

        for page in range(1, total_pages + 1):
            progress(
                current_keyword=keyword,
                current_page=page,
                total_pages=total_pages,
            )

            fetched = self.fetcher.fetch(keyword, page)
            summary.pages_fetched += 1
            candidates = (
                [] if fetched.is_empty
                else self.parser.parse(fetched.body or "")
            )
            logger.info(
                "Found %d products for '%s' page %d (%s)",
                len(candidates),
                keyword,
                page,
                fetched.outcome,
            )

            if not candidates and page == 1:
                logger.info(
                    "No results for '%s', skipping keyword", keyword
                )
                break

            if candidates:
                fresh, dupes = dedup.filter_new(candidates)
                summary.duplicates_skipped += dupes
                summary.products_found += len(fresh)
                totals += self.pipeline.process(fresh)

            progress(
                products_scraped=summary.products_found,
                products_processed=totals.processed,
                products_updated=totals.updated,
                error_count=totals.errors,
            )
            self.fetcher.delay()

    def run(
        self,
        keywords: list[str],
        max_pages: int | None = None,
        progress: ProgressCallback | None = None,
    ) -> RunSummary:
        """Scrape every keyword in order and return aggregated counters.

        A run that finds nothing is a normal outcome (``no_data``);
        any unexpected error escaping the loop raises
        ``FatalOrchestratorError``.
        """
        report = progress or _noop_progress
        total_pages = self.settings.pages_per_keyword(max_pages)
        summary = RunSummary(keywords=list(keywords))
        totals = IngestStats()
        start = time.monotonic()

        logger.info(
            "Starting scrape for keywords: %s (%d pages each)",
            ", ".join(keywords),
            total_pages,
        )

        try:
            for index, keyword in enumerate(keywords, 1):
                if index > 1:
                    self.fetcher.delay()
                report(
                    current_keyword=keyword,
                    keyword_index=index,
                    total_keywords=len(keywords),
                )
                self._scrape_keyword(
                    keyword, total_pages, summary, totals, report
                )
        except Exception as exc:
            logger.error("Scrape run failed: %s", exc, exc_info=True)
            raise FatalOrchestratorError(str(exc)) from exc

        summary.processed = totals.processed
        summary.updated = totals.updated
        summary.errors = totals.errors
        summary.duration = time.monotonic() - start

        if summary.no_data:
            logger.warning(
                "No products scraped. Run completed with no data."
            )
        else:
            logger.info(
                "Run completed in %.2fs: %d found, %d processed, "
                "%d updated, %d errors",
                summary.duration,
                summary.products_found,
                summary.processed,
                summary.updated,
                summary.errors,
            )
        return summary
