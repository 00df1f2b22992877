# src/services/job_tracker.py

"""In-memory registry of scrape jobs and their live progress."""

import dataclasses
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from src.config.settings import Settings
from src.models.scrape_job import ScrapeJob

logger = logging.getLogger("price_tracker.jobs")

# Status and terminal fields change only through complete_job/fail_job
_RESERVED_FIELDS: frozenset[str] = frozenset({
    "job_id", "keywords", "status", "start_time",
    "end_time", "duration", "result", "error",
})
_MUTABLE_FIELDS: frozenset[str] = frozenset(
    f.name
    for f in dataclasses.fields(ScrapeJob)
    if f.name not in _RESERVED_FIELDS
)


@dataclass
class _JobEntry:
    """A job record plus the lock guarding its fields."""

    job: ScrapeJob
    lock: threading.Lock = field(default_factory=threading.Lock)


class JobProgressTracker:
    """Process-lifetime registry mapping job ids to progress records.

    The registry lock is held only to add, look up or remove entries;
    each job's fields are guarded by that job's own lock, so pollers
    of one job never wait on writes to another.
    """

    def __init__(self, retention: float | None = None) -> None:
        self._jobs: dict[str, _JobEntry] = {}
        self._registry_lock = threading.Lock()
        self._timers: dict[str, threading.Timer] = {}
        self._retention = (
            Settings.JOB_RETENTION if retention is None else retention
        )

    def _entry(self, job_id: str) -> _JobEntry | None:
        with self._registry_lock:
            return self._jobs.get(job_id)

    def create_job(
        self,
        keywords: list[str],
        job_id: str | None = None,
        periodic: bool = False,
    ) -> str:
        """Register a new running job and return its id."""
        new_id = job_id or str(uuid.uuid4())
        job = ScrapeJob(
            job_id=new_id,
            keywords=list(keywords),
            total_keywords=len(keywords),
            start_time=time.time(),
            periodic=periodic,
        )
        with self._registry_lock:
            self._jobs[new_id] = _JobEntry(job=job)
        logger.info(
            "Created job %s for keywords: %s",
            new_id,
            ", ".join(keywords),
        )
        return new_id

    def update_progress(self, job_id: str, **fields: Any) -> None:
        """Shallow-merge *fields* into the job's progress.

        Unknown jobs are ignored; unknown field names raise ValueError.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(
                f"Unknown progress fields: {', '.join(sorted(unknown))}"
            )
        entry = self._entry(job_id)
        if entry is None:
            return
        with entry.lock:
            for name, value in fields.items():
                setattr(entry.job, name, value)

    def complete_job(
        self, job_id: str, result: dict[str, Any],
    ) -> None:
        """Mark a job completed with its result summary."""
        entry = self._entry(job_id)
        if entry is None:
            return
        with entry.lock:
            job = entry.job
            job.status = "completed"
            job.result = result
            job.end_time = time.time()
            job.duration = round(job.end_time - job.start_time, 2)
        logger.info("Job %s completed: %s", job_id, result)

    def fail_job(self, job_id: str, error: BaseException | str) -> None:
        """Mark a job failed with the error message."""
        entry = self._entry(job_id)
        if entry is None:
            return
        message = str(error) or error.__class__.__name__
        with entry.lock:
            job = entry.job
            job.status = "failed"
            job.error = message
            job.end_time = time.time()
            job.duration = round(job.end_time - job.start_time, 2)
        logger.error("Job %s failed: %s", job_id, message)

    def get_progress(self, job_id: str) -> dict[str, Any] | None:
        """Return a consistent snapshot of the job, or None if unknown."""
        entry = self._entry(job_id)
        if entry is None:
            return None
        with entry.lock:
            snapshot = dataclasses.asdict(entry.job)
            snapshot["completed"] = entry.job.is_terminal
        return snapshot

    def job_ids(self) -> list[str]:
        """Ids of all jobs currently held."""
        with self._registry_lock:
            return list(self._jobs)

    def remove_job(self, job_id: str) -> bool:
        """Drop a job immediately. Returns whether it existed."""
        with self._registry_lock:
            timer = self._timers.pop(job_id, None)
            removed = self._jobs.pop(job_id, None) is not None
        if timer is not None:
            timer.cancel()
        if removed:
            logger.debug("Removed job %s", job_id)
        return removed

    def schedule_removal(
        self, job_id: str, delay: float | None = None,
    ) -> None:
        """Remove the job after the retention period elapses."""
        wait = self._retention if delay is None else delay
        timer = threading.Timer(wait, self.remove_job, args=(job_id,))
        timer.daemon = True
        with self._registry_lock:
            previous = self._timers.pop(job_id, None)
            self._timers[job_id] = timer
        if previous is not None:
            previous.cancel()
        timer.start()

    def shutdown(self) -> None:
        """Cancel pending removals and forget every job."""
        with self._registry_lock:
            timers = list(self._timers.values())
            self._timers.clear()
            self._jobs.clear()
        for timer in timers:
            timer.cancel()
