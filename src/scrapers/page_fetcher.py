# src/scrapers/page_fetcher.py

"""Search-results page fetcher with header rotation and retry/backoff."""

import logging
import random
import time
import urllib.parse
from dataclasses import dataclass
from typing import Literal

from curl_cffi import requests as curl_requests
from curl_cffi.requests import exceptions as curl_exceptions

from src.config.settings import Settings
from src.models.errors import RetryableFetchError

FetchOutcome = Literal["ok", "gave_up", "http_error", "error"]

# Network failures treated like 503/403: retried with the same backoff
_RETRYABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    curl_exceptions.ConnectionError,
    curl_exceptions.Timeout,
    ConnectionError,
    TimeoutError,
)


@dataclass
class FetchResult:
    """Outcome of fetching one search page.

    ``body`` is ``None`` for every outcome except ``"ok"``; callers
    that only care about data treat all of those as an empty page.
    """

    keyword: str
    page: int
    outcome: FetchOutcome
    body: str | None = None
    status_code: int | None = None
    attempts: int = 0

    @property
    def is_empty(self) -> bool:
        """True when there is no page body to parse."""
        return self.body is None


def backoff_seconds(attempt: int) -> float:
    """Return the wait before retry number *attempt* (1-based): 5s, 10s, 15s."""
    return attempt * Settings.RETRY_BACKOFF


class PageFetcher:
    """Fetches one search page per call, throttled and retried."""

    def __init__(
        self,
        delay_min_ms: int | None = None,
        delay_max_ms: int | None = None,
    ) -> None:
        self.logger = logging.getLogger("price_tracker.fetcher")
        self.settings = Settings()
        self.delay_min_ms = (
            self.settings.DELAY_MIN_MS
            if delay_min_ms is None
            else delay_min_ms
        )
        self.delay_max_ms = (
            self.settings.DELAY_MAX_MS
            if delay_max_ms is None
            else delay_max_ms
        )
        if self.delay_max_ms < self.delay_min_ms:
            self.delay_max_ms = self.delay_min_ms
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._request_timeout: int = self.settings.REQUEST_TIMEOUT

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()

    def delay(self) -> float:
        """Sleep a random interval within the configured bounds.

        Returns the number of seconds slept.
        """
        seconds = random.uniform(
            self.delay_min_ms, self.delay_max_ms
        ) / 1000
        time.sleep(seconds)
        return seconds

    def build_url(self, keyword: str, page: int) -> str:
        """Return the search URL for *keyword* at *page*."""
        query = urllib.parse.quote_plus(keyword)
        return f"{self.settings.BASE_URL}/s?k={query}&page={page}"

    def build_headers(self) -> dict[str, str]:
        """Default headers with a freshly rotated user agent."""
        return {
            **self.settings.DEFAULT_HEADERS,
            "User-Agent": random.choice(self.settings.USER_AGENTS),
            "Referer": f"{self.settings.BASE_URL}/",
        }

    def _get_once(self, url: str) -> curl_requests.Response:
        """Issue a single GET, raising RetryableFetchError when retryable."""
        try:
            resp = self.session.get(
                url,
                headers=self.build_headers(),
                timeout=self._request_timeout,
            )
        except _RETRYABLE_EXCEPTIONS as exc:
            raise RetryableFetchError(
                f"network error: {exc}"
            ) from exc
        if resp.status_code in self.settings.RETRYABLE_STATUSES:
            raise RetryableFetchError(
                f"HTTP {resp.status_code}", resp.status_code
            )
        return resp

    def fetch(self, keyword: str, page: int = 1) -> FetchResult:
        """Fetch one search page for *keyword*.

        Never raises for network or HTTP problems: retryable failures
        are retried up to ``MAX_RETRIES`` times with linear backoff and
        then degrade to a ``"gave_up"`` result.
        """
        url = self.build_url(keyword, page)
        max_retries = self.settings.MAX_RETRIES
        attempt = 0

        while True:
            self.logger.info(
                "Fetching %s%s",
                url,
                f" (retry {attempt})" if attempt else "",
            )
            self.delay()
            try:
                resp = self._get_once(url)
            except RetryableFetchError as exc:
                if attempt >= max_retries:
                    self.logger.error(
                        "Giving up on '%s' page %d after %d retries "
                        "(%s); the site may be blocking requests",
                        keyword,
                        page,
                        max_retries,
                        exc.reason,
                    )
                    return FetchResult(
                        keyword=keyword,
                        page=page,
                        outcome="gave_up",
                        status_code=exc.status_code,
                        attempts=attempt + 1,
                    )
                attempt += 1
                wait = backoff_seconds(attempt)
                self.logger.warning(
                    "%s for '%s' page %d, retrying in %.0fs",
                    exc.reason,
                    keyword,
                    page,
                    wait,
                )
                time.sleep(wait)
                continue
            except Exception as exc:
                self.logger.error(
                    "Error fetching %s: %s",
                    url,
                    exc,
                    exc_info=True,
                )
                return FetchResult(
                    keyword=keyword,
                    page=page,
                    outcome="error",
                    attempts=attempt + 1,
                )

            if resp.status_code != 200:
                self.logger.warning(
                    "HTTP %d for %s", resp.status_code, url
                )
                return FetchResult(
                    keyword=keyword,
                    page=page,
                    outcome="http_error",
                    status_code=resp.status_code,
                    attempts=attempt + 1,
                )

            return FetchResult(
                keyword=keyword,
                page=page,
                outcome="ok",
                body=resp.text,
                status_code=200,
                attempts=attempt + 1,
            )
