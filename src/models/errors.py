# src/models/errors.py

"""Exception taxonomy shared across the scrape, ingest and job layers."""


class PriceTrackerError(Exception):
    """Base class for all price_tracker errors."""


class RetryableFetchError(PriceTrackerError):
    """HTTP 503/403 or a reset/timed-out connection.

    Raised and consumed inside the fetcher's retry loop; after the
    retry budget is spent the page degrades to an empty result.
    """

    def __init__(self, reason: str, status_code: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


class ValidationRejection(PriceTrackerError):
    """A scraped candidate failed validation and must not be stored."""

    def __init__(self, reason: str, code: str | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.code = code


class StorageFailure(PriceTrackerError):
    """The storage collaborator raised while ingesting one record.

    ``upserted`` tells whether the snapshot write landed before the
    failure (so the record still counts as updated).
    """

    def __init__(self, message: str, upserted: bool = False) -> None:
        super().__init__(message)
        self.upserted = upserted


class FatalOrchestratorError(PriceTrackerError):
    """An unexpected error aborted a scrape run."""


class InvalidInput(PriceTrackerError):
    """A job was submitted with unusable arguments."""


class NotFound(PriceTrackerError):
    """The requested job or product does not exist."""
