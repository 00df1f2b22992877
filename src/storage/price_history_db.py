# src/storage/price_history_db.py

"""SQLite-backed product and price history store."""

import logging
import sqlite3
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from src.config.settings import Settings
from src.models.price_snapshot import PriceHistoryEntry, ProductSnapshot

logger = logging.getLogger("price_tracker.storage")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS products (
    code       TEXT    PRIMARY KEY,
    title      TEXT    NOT NULL,
    price      REAL    NOT NULL,
    rating     REAL,
    image_url  TEXT,
    updated_at TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS price_history (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    code        TEXT    NOT NULL,
    price       REAL    NOT NULL,
    rating      REAL,
    observed_at TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_products_updated
    ON products(updated_at);
CREATE INDEX IF NOT EXISTS idx_history_code_date
    ON price_history(code, observed_at);
CREATE INDEX IF NOT EXISTS idx_history_date
    ON price_history(observed_at);
"""

_PRODUCT_COLUMNS = "code, title, price, rating, image_url, updated_at"

_IN_CHUNK = 500

_WINDOW_LATEST_SQL = """\
WITH current_latest AS (
    SELECT code, MAX(observed_at) AS observed_at
    FROM price_history
    WHERE observed_at >= :cutoff
    GROUP BY code
),
previous_latest AS (
    SELECT h.code, MAX(h.observed_at) AS observed_at
    FROM price_history h
    JOIN current_latest c ON c.code = h.code
    WHERE h.observed_at < :cutoff
    GROUP BY h.code
),
picked AS (
    SELECT code, observed_at FROM current_latest
    UNION ALL
    SELECT code, observed_at FROM previous_latest
)
SELECT h.code, h.price, h.rating, h.observed_at
FROM price_history h
JOIN picked p
    ON p.code = h.code AND p.observed_at = h.observed_at
ORDER BY h.observed_at DESC, h.id DESC
"""


def _to_snapshot(row: tuple[Any, ...]) -> ProductSnapshot:
    return ProductSnapshot(
        code=str(row[0]),
        title=str(row[1]),
        price=float(row[2]),
        rating=float(row[3]) if row[3] is not None else None,
        image_url=str(row[4]) if row[4] is not None else None,
        updated_at=datetime.fromisoformat(str(row[5])),
    )


def _to_entry(row: tuple[Any, ...]) -> PriceHistoryEntry:
    return PriceHistoryEntry(
        code=str(row[0]),
        price=float(row[1]),
        rating=float(row[2]) if row[2] is not None else None,
        observed_at=datetime.fromisoformat(str(row[3])),
    )


class PriceHistoryDB:
    """SQLite store for current product snapshots and their price history.

    One connection is shared by every job thread; a lock serialises
    statements so concurrent jobs interleave at statement granularity
    (last write wins on the snapshot, history rows are all kept).
    """

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.PRICE_DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        logger.debug("PriceHistoryDB opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    # ── Writing ──────────────────────────────────────────

    def upsert_current(
        self,
        code: str,
        title: str,
        price: float,
        rating: float | None,
        image_url: str | None = None,
        updated_at: datetime | None = None,
    ) -> ProductSnapshot:
        """Insert or overwrite the current snapshot for *code*.

        A missing *image_url* keeps whatever image was stored before.
        """
        ts = (updated_at or datetime.now()).isoformat()
        with self._lock:
            self._conn.execute(
                "INSERT INTO products "
                f"({_PRODUCT_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(code) DO UPDATE SET "
                "  title = excluded.title, "
                "  price = excluded.price, "
                "  rating = excluded.rating, "
                "  image_url = COALESCE(excluded.image_url, "
                "                       products.image_url), "
                "  updated_at = excluded.updated_at",
                (code, title, price, rating, image_url or None, ts),
            )
            self._conn.commit()
            row = self._conn.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products "
                "WHERE code = ?",
                (code,),
            ).fetchone()
        return _to_snapshot(row)

    def append_history(
        self,
        code: str,
        price: float,
        rating: float | None,
        observed_at: datetime | None = None,
    ) -> PriceHistoryEntry:
        """Append one price observation for *code*."""
        when = observed_at or datetime.now()
        with self._lock:
            self._conn.execute(
                "INSERT INTO price_history "
                "(code, price, rating, observed_at) "
                "VALUES (?, ?, ?, ?)",
                (code, price, rating, when.isoformat()),
            )
            self._conn.commit()
        return PriceHistoryEntry(
            code=code, price=price, rating=rating, observed_at=when,
        )

    # ── Querying ─────────────────────────────────────────

    def get_current(self, code: str) -> ProductSnapshot | None:
        """Return the stored snapshot for *code*, if any."""
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products "
                "WHERE code = ?",
                (code.strip().upper(),),
            ).fetchone()
        return _to_snapshot(row) if row else None

    def query_history(
        self,
        code: str,
        window: timedelta | None = None,
        limit: int = 100,
    ) -> list[PriceHistoryEntry]:
        """Return price observations for *code*, most recent first.

        With *window*, only observations newer than ``now - window``.
        """
        sql = (
            "SELECT code, price, rating, observed_at "
            "FROM price_history WHERE code = ?"
        )
        params: list[object] = [code.strip().upper()]
        if window is not None:
            sql += " AND observed_at >= ?"
            params.append((datetime.now() - window).isoformat())
        sql += " ORDER BY observed_at DESC, id DESC LIMIT ?"
        params.append(limit)
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [_to_entry(r) for r in rows]

    def query_window_latest(
        self, cutoff: datetime,
    ) -> list[PriceHistoryEntry]:
        """Latest observation per code on each side of *cutoff*.

        Only codes observed at or after *cutoff* are returned. Each
        contributes its newest entry from ``[cutoff, now]`` and, when
        one exists, its newest entry from before *cutoff*. Rows come
        newest first; on identical timestamps the later insert wins.
        """
        with self._lock:
            rows = self._conn.execute(
                _WINDOW_LATEST_SQL, {"cutoff": cutoff.isoformat()},
            ).fetchall()
        return [_to_entry(r) for r in rows]

    def get_snapshots(
        self, codes: list[str],
    ) -> dict[str, ProductSnapshot]:
        """Batch-fetch current snapshots keyed by code."""
        wanted = sorted({c.strip().upper() for c in codes if c.strip()})
        result: dict[str, ProductSnapshot] = {}
        # Stay under SQLite's bound-parameter limit
        for start in range(0, len(wanted), _IN_CHUNK):
            chunk = wanted[start:start + _IN_CHUNK]
            placeholders = ", ".join("?" for _ in chunk)
            with self._lock:
                rows = self._conn.execute(
                    f"SELECT {_PRODUCT_COLUMNS} FROM products "
                    f"WHERE code IN ({placeholders})",
                    chunk,
                ).fetchall()
            for row in rows:
                snapshot = _to_snapshot(row)
                result[snapshot.code] = snapshot
        return result

    def query_recent(self, limit: int = 50) -> list[ProductSnapshot]:
        """Return the most recently updated products."""
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products "
                "ORDER BY updated_at DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [_to_snapshot(r) for r in rows]

    def query_by_substring(
        self, term: str, limit: int = 20,
    ) -> list[ProductSnapshot]:
        """Case-insensitive match of *term* against code or title."""
        pattern = f"%{term.strip().lower()}%"
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products "
                "WHERE LOWER(code) LIKE ? OR LOWER(title) LIKE ? "
                "ORDER BY updated_at DESC LIMIT ?",
                (pattern, pattern, limit),
            ).fetchall()
        return [_to_snapshot(r) for r in rows]

    def get_stats(self) -> dict[str, object]:
        """Aggregate product count, average price/rating and last update."""
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*), AVG(price), AVG(rating), "
                "       MAX(updated_at) "
                "FROM products",
            ).fetchone()
        return {
            "total_products": int(row[0] or 0),
            "avg_price": round(float(row[1]), 2) if row[1] else 0.0,
            "avg_rating": round(float(row[2]), 2) if row[2] else 0.0,
            "last_updated": row[3],
        }
