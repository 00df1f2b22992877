# src/services/job_service.py

"""Job submission, polling and guarded periodic refresh runs."""

import logging
import threading
from collections.abc import Callable
from typing import Any

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from src.config.settings import Settings
from src.models.errors import InvalidInput, NotFound
from src.scrapers.page_fetcher import PageFetcher
from src.scrapers.page_parser import PageParser
from src.services.ingest_pipeline import IngestPipeline, ProductStore
from src.services.job_tracker import JobProgressTracker
from src.services.scrape_orchestrator import ScrapeOrchestrator

logger = logging.getLogger("price_tracker.jobs")

OrchestratorFactory = Callable[[], ScrapeOrchestrator]


def normalize_keywords(keywords: list[str] | str | None) -> list[str]:
    """Trim keywords and drop blanks; a string is split on commas."""
    if keywords is None:
        return []
    if isinstance(keywords, str):
        keywords = keywords.split(",")
    return [str(k).strip() for k in keywords if str(k).strip()]


class JobService:
    """Starts scrape jobs in worker threads and answers progress polls.

    Manual jobs run concurrently with each other and with the periodic
    job. Only one periodic run may be in flight; a timer fire that
    arrives meanwhile is skipped, not queued.
    """

    def __init__(
        self,
        store: ProductStore,
        tracker: JobProgressTracker | None = None,
        orchestrator_factory: OrchestratorFactory | None = None,
    ) -> None:
        self.store = store
        self.tracker = tracker or JobProgressTracker()
        self._factory = orchestrator_factory or self._default_orchestrator
        self._periodic_lock = threading.Lock()
        self._threads: dict[str, threading.Thread] = {}
        self._threads_lock = threading.Lock()

    def _default_orchestrator(self) -> ScrapeOrchestrator:
        return ScrapeOrchestrator(
            fetcher=PageFetcher(),
            parser=PageParser(),
            pipeline=IngestPipeline(self.store),
        )

    # ── Job execution ────────────────────────────────────

    def _execute(
        self,
        job_id: str,
        keywords: list[str],
        max_pages: int | None,
    ) -> None:
        """Run one job to a terminal state; never raises."""

        def progress(**fields: Any) -> None:
            self.tracker.update_progress(job_id, **fields)

        orchestrator: ScrapeOrchestrator | None = None
        try:
            orchestrator = self._factory()
            summary = orchestrator.run(keywords, max_pages, progress)
            self.tracker.complete_job(job_id, summary.to_dict())
        except Exception as exc:
            self.tracker.fail_job(job_id, exc)
        finally:
            if orchestrator is not None:
                orchestrator.fetcher.close()
            self.tracker.schedule_removal(job_id)
            with self._threads_lock:
                self._threads.pop(job_id, None)

    def submit_job(
        self,
        keywords: list[str] | str,
        max_pages: int | None = None,
    ) -> str:
        """Start a scrape job in the background and return its id at once.

        Raises ``InvalidInput`` when no usable keyword remains after
        trimming. Later failures surface only through ``poll_job``.
        """
        cleaned = normalize_keywords(keywords)
        if not cleaned:
            raise InvalidInput(
                "No keywords provided. Please provide at least one "
                "keyword to search for."
            )

        job_id = self.tracker.create_job(cleaned)
        worker = threading.Thread(
            target=self._execute,
            args=(job_id, cleaned, max_pages),
            name=f"scrape-{job_id[:8]}",
            daemon=True,
        )
        with self._threads_lock:
            self._threads[job_id] = worker
        logger.info(
            "Refresh triggered with keywords: %s (job %s)",
            ", ".join(cleaned),
            job_id,
        )
        worker.start()
        return job_id

    def poll_job(self, job_id: str) -> dict[str, Any]:
        """Return the job's progress snapshot or raise ``NotFound``."""
        snapshot = self.tracker.get_progress(job_id)
        if snapshot is None:
            raise NotFound(f"Job not found: {job_id}")
        return snapshot

    def wait(self, job_id: str, timeout: float | None = None) -> bool:
        """Block until the job's worker exits. Returns False on timeout."""
        with self._threads_lock:
            worker = self._threads.get(job_id)
        if worker is None:
            return True
        worker.join(timeout)
        return not worker.is_alive()

    # ── Periodic runs ────────────────────────────────────

    @property
    def periodic_running(self) -> bool:
        return self._periodic_lock.locked()

    def run_periodic(
        self,
        keywords: list[str] | None = None,
        max_pages: int | None = None,
    ) -> str | None:
        """Run a scheduled refresh in the calling thread.

        Returns the job id, or None when skipped because another
        periodic run is still active or no keywords are configured.
        """
        if not self._periodic_lock.acquire(blocking=False):
            logger.warning(
                "Previous periodic run still active, skipping this cycle"
            )
            return None
        try:
            cleaned = normalize_keywords(
                Settings.KEYWORDS if keywords is None else keywords
            )
            if not cleaned:
                logger.warning(
                    "No keywords configured for periodic run"
                )
                return None
            job_id = self.tracker.create_job(cleaned, periodic=True)
            logger.info("Periodic refresh started (job %s)", job_id)
            self._execute(job_id, cleaned, max_pages)
            return job_id
        finally:
            self._periodic_lock.release()

    def build_scheduler(
        self,
        cron: str | None = None,
        keywords: list[str] | None = None,
    ) -> BackgroundScheduler:
        """Return a configured but not yet started periodic scheduler.

        *cron* is a five-field crontab expression, defaulting to
        ``Settings.CRON_SCHEDULE``. The caller starts the scheduler and
        shuts it down with ``wait=True``. APScheduler never overlaps
        fires of the job; ``run_periodic`` keeps its own guard for
        direct callers.
        """
        expression = cron or Settings.CRON_SCHEDULE
        scheduler = BackgroundScheduler()
        scheduler.add_job(
            self.run_periodic,
            trigger=CronTrigger.from_crontab(expression),
            args=[keywords],
            id="periodic_refresh",
            name="Periodic price refresh",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info("Scheduler configured with cron: %s", expression)
        return scheduler

    def shutdown(self) -> None:
        """Release tracker timers; running workers are daemon threads."""
        self.tracker.shutdown()
