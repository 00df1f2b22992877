# src/config/settings.py

"""Central configuration for the price_tracker engine."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back on bad input."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str) -> list[str]:
    """Read a comma-separated environment variable into a list."""
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings:
    """Central configuration for the price_tracker engine."""

    # --- Scraping ---
    BASE_URL: str = "https://www.amazon.com"
    DELAY_MIN_MS: int = _env_int("SCRAPER_DELAY_MIN", 2000)
    DELAY_MAX_MS: int = _env_int("SCRAPER_DELAY_MAX", 5000)
    MAX_PAGES: int = _env_int("SCRAPER_MAX_PAGES", 3)
    MAX_PAGES_CAP: int = 5              # Hard ceiling regardless of MAX_PAGES
    REQUEST_TIMEOUT: int = 30           # Seconds before a request times out
    MAX_RETRIES: int = 3                # Retries on 503/403 and network errors
    RETRY_BACKOFF: float = 5.0          # Seconds per attempt (5, 10, 15)
    RETRYABLE_STATUSES: frozenset[int] = frozenset({403, 503})

    # --- Periodic runs ---
    KEYWORDS: list[str] = _env_list("SCRAPER_KEYWORDS")
    CRON_SCHEDULE: str = os.getenv("CRON_SCHEDULE", "0 * * * *")  # Hourly

    # --- Jobs ---
    JOB_RETENTION: float = 3600.0       # Seconds a finished job stays pollable

    # --- Validation ---
    CODE_LENGTH: int = 10
    TITLE_MIN_LENGTH: int = 5
    TITLE_MAX_LENGTH: int = 500
    PRICE_MAX: float = 100000.0
    RATING_MIN: float = 0.0
    RATING_MAX: float = 5.0

    # --- Analytics ---
    ANALYTICS_WINDOW_HOURS: int = 24
    ALERT_THRESHOLD_PERCENT: float = -5.0
    TOP_CHANGES_LIMIT: int = 20

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome120"
    USER_AGENTS: list[str] = [
        (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/120.0.0.0 Safari/537.36"
        ),
        (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/119.0.0.0 Safari/537.36"
        ),
        (
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/120.0.0.0 Safari/537.36"
        ),
        (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) "
            "Gecko/20100101 Firefox/121.0"
        ),
        (
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
            "AppleWebKit/605.1.15 (KHTML, like Gecko) "
            "Version/17.1 Safari/605.1.15"
        ),
    ]
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9",
        "Accept-Encoding": "gzip, deflate, br",
        "Cache-Control": "max-age=0",
        "sec-ch-ua": (
            '"Not_A Brand";v="8", '
            '"Chromium";v="120", '
            '"Google Chrome";v="120"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "Upgrade-Insecure-Requests": "1",
    }

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    SELECTORS_PATH: Path = BASE_DIR / "src" / "config" / "selectors.json"
    PRICE_DB_PATH: Path = Path(
        os.getenv(
            "PRICE_DB_PATH",
            str(BASE_DIR / "data" / "price_history.db"),
        )
    )
    LOGS_DIR: Path = BASE_DIR / "logs"

    @classmethod
    def pages_per_keyword(cls, requested: int | None = None) -> int:
        """Return the effective page count, never above MAX_PAGES_CAP."""
        pages = cls.MAX_PAGES if requested is None else requested
        return max(0, min(pages, cls.MAX_PAGES_CAP))
