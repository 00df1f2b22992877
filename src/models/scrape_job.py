# src/models/scrape_job.py

"""Scrape job state as tracked while a refresh runs."""

from dataclasses import dataclass
from typing import Any, Literal

JobStatus = Literal["running", "completed", "failed"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})


@dataclass
class ScrapeJob:
    """Mutable progress record for one scrape job."""

    job_id: str
    keywords: list[str]
    status: JobStatus = "running"
    current_keyword: str = ""
    keyword_index: int = 0
    total_keywords: int = 0
    current_page: int = 0
    total_pages: int = 0
    products_scraped: int = 0
    products_processed: int = 0
    products_updated: int = 0
    error_count: int = 0
    start_time: float = 0.0
    end_time: float | None = None
    duration: float | None = None
    result: dict[str, Any] | None = None
    error: str | None = None
    periodic: bool = False

    @property
    def is_terminal(self) -> bool:
        """True once the job completed or failed."""
        return self.status in TERMINAL_STATUSES
