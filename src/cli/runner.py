# src/cli/runner.py

"""Headless CLI commands: scrape jobs, analytics and product lookups."""

import json
import logging
import sys
import threading
import time
from typing import Any

from rich.console import Console
from rich.progress import Progress
from rich.table import Table

from src.models.errors import InvalidInput
from src.models.price_change import PriceChangeRecord
from src.models.price_snapshot import ProductSnapshot
from src.services.job_service import JobService
from src.services.price_analyzer import PriceChangeAnalyzer
from src.storage.price_history_db import PriceHistoryDB

logger = logging.getLogger("price_tracker.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)

_POLL_INTERVAL = 0.5


def _snapshot_to_dict(s: ProductSnapshot) -> dict[str, object]:
    return {
        "code": s.code,
        "title": s.title,
        "price": s.price,
        "rating": s.rating,
        "image_url": s.image_url,
        "updated_at": s.updated_at.isoformat(),
    }


def _dump_json(payload: object) -> None:
    json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


def _format_pct(value: float | None) -> str:
    if value is None:
        return "—"
    colour = "green" if value < 0 else "red"
    return f"[{colour}]{value:+.2f}%[/{colour}]"


def _print_changes(
    title: str, changes: list[PriceChangeRecord],
) -> None:
    """Render a Rich table of price changes to stdout."""
    table = Table(title=title, show_lines=True, title_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Code", style="magenta")
    table.add_column("Title", max_width=60)
    table.add_column("Previous", justify="right")
    table.add_column("Current", justify="right", style="green")
    table.add_column("Change", justify="right")
    table.add_column("New", justify="center")

    for idx, c in enumerate(changes, 1):
        table.add_row(
            str(idx),
            c.code,
            c.title[:60],
            f"{c.previous_price:,.2f}",
            f"{c.current_price:,.2f}",
            _format_pct(c.percent_change),
            "✓" if c.is_new else "",
        )
    Console().print(table)


def _print_products(
    title: str, products: list[ProductSnapshot],
) -> None:
    """Render a Rich table of stored products to stdout."""
    table = Table(title=title, show_lines=True, title_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Code", style="magenta")
    table.add_column("Title", max_width=60)
    table.add_column("Price", justify="right", style="green")
    table.add_column("Rating", justify="center")
    table.add_column("Updated", style="dim")

    for idx, p in enumerate(products, 1):
        table.add_row(
            str(idx),
            p.code,
            p.title[:60],
            f"{p.price:,.2f}",
            f"{p.rating:.1f}" if p.rating is not None else "—",
            p.updated_at.strftime("%Y-%m-%d %H:%M"),
        )
    Console().print(table)


# ── Scraping ─────────────────────────────────────────────


def _poll_until_done(
    service: JobService, job_id: str,
) -> dict[str, Any]:
    """Poll a job, mirroring its progress in a Rich progress bar."""
    with Progress(console=_err, transient=True) as progress:
        task = progress.add_task("Starting...", total=None)
        while True:
            snap = service.poll_job(job_id)
            total = snap["total_keywords"] * max(snap["total_pages"], 1)
            done = (
                max(snap["keyword_index"] - 1, 0)
                * max(snap["total_pages"], 1)
                + snap["current_page"]
            )
            progress.update(
                task,
                description=(
                    f"'{snap['current_keyword']}' page "
                    f"{snap['current_page']}/{snap['total_pages']} "
                    f"({snap['products_processed']} processed)"
                ),
                total=total or None,
                completed=done,
            )
            if snap["completed"]:
                return snap
            time.sleep(_POLL_INTERVAL)


def cli_scrape(
    db: PriceHistoryDB,
    keywords_csv: str,
    max_pages: int | None = None,
) -> int:
    """Submit a scrape job, follow it to completion, print the summary."""
    service = JobService(db)
    try:
        job_id = service.submit_job(keywords_csv, max_pages)
    except InvalidInput as exc:
        _err.print(f"[red]{exc}[/red]")
        return 1

    _err.print(f"[bold]Job started:[/bold] {job_id}")
    try:
        final = _poll_until_done(service, job_id)
    finally:
        service.shutdown()

    if final["status"] == "failed":
        _err.print(f"[red]✗ Job failed: {final['error']}[/red]")
        return 1

    result: dict[str, Any] = final["result"] or {}
    if not result.get("success", False):
        _err.print("[yellow]No products found.[/yellow]")
        return 1

    _err.print(
        f"[green]✓ {result['processed']} processed, "
        f"{result['updated']} updated, {result['errors']} errors "
        f"in {final['duration']}s[/green]"
    )
    return 0


def run_schedule(
    db: PriceHistoryDB,
    cron: str | None = None,
    stop: threading.Event | None = None,
) -> int:
    """Run periodic refreshes on the cron schedule until interrupted."""
    service = JobService(db)
    scheduler = service.build_scheduler(cron)
    stop_event = stop or threading.Event()
    scheduler.start()
    _err.print("[bold]Scheduler running, Ctrl+C to stop[/bold]")
    try:
        while not stop_event.wait(1.0):
            pass
    except KeyboardInterrupt:
        stop_event.set()
    finally:
        scheduler.shutdown(wait=True)
        service.shutdown()
    return 0


# ── Analytics & lookups ──────────────────────────────────


def show_top_changes(
    db: PriceHistoryDB, output_format: str, limit: int,
) -> int:
    """Print the largest price drops of the last window."""
    changes = PriceChangeAnalyzer(db).top_changes(limit=limit)
    if output_format == "table":
        _print_changes("Top Price Changes (24h)", changes)
    else:
        _dump_json([c.to_dict() for c in changes])
    return 0


def show_alerts(db: PriceHistoryDB, output_format: str) -> int:
    """Print products whose price fell past the alert threshold."""
    alerts = PriceChangeAnalyzer(db).price_alerts()
    if output_format == "table":
        _print_changes("Price Alerts (24h)", alerts)
    else:
        _dump_json([a.to_dict() for a in alerts])
    return 0


def show_recent(
    db: PriceHistoryDB, output_format: str, limit: int,
) -> int:
    """Print the most recently updated products."""
    products = db.query_recent(limit)
    if output_format == "table":
        _print_products("Recent Products", products)
    else:
        _dump_json([_snapshot_to_dict(p) for p in products])
    return 0


def search_products(
    db: PriceHistoryDB, term: str, output_format: str,
) -> int:
    """Print stored products whose code or title contains *term*."""
    if not term.strip():
        _err.print("[red]Search query required[/red]")
        return 1
    products = db.query_by_substring(term.strip())
    if output_format == "table":
        _print_products(f"Search: {term}", products)
    else:
        _dump_json([_snapshot_to_dict(p) for p in products])
    return 0


def show_product(
    db: PriceHistoryDB, code: str, output_format: str,
) -> int:
    """Print one product with its price history."""
    snapshot = db.get_current(code)
    if snapshot is None:
        _err.print(f"[red]Product not found: {code.upper()}[/red]")
        return 1

    history = db.query_history(snapshot.code)
    if output_format == "table":
        _print_products(snapshot.code, [snapshot])
        table = Table(title="Price History", title_style="bold cyan")
        table.add_column("Observed", style="dim")
        table.add_column("Price", justify="right", style="green")
        table.add_column("Rating", justify="center")
        for h in history:
            table.add_row(
                h.observed_at.strftime("%Y-%m-%d %H:%M"),
                f"{h.price:,.2f}",
                f"{h.rating:.1f}" if h.rating is not None else "—",
            )
        Console().print(table)
    else:
        payload = _snapshot_to_dict(snapshot)
        payload["history"] = [
            {
                "price": h.price,
                "rating": h.rating,
                "observed_at": h.observed_at.isoformat(),
            }
            for h in history
        ]
        _dump_json(payload)
    return 0


def show_stats(db: PriceHistoryDB, output_format: str) -> int:
    """Print aggregate catalogue statistics."""
    stats = db.get_stats()
    if output_format == "table":
        table = Table(title="Catalogue Stats", title_style="bold cyan")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")
        for key, value in stats.items():
            table.add_row(key, str(value if value is not None else "—"))
        Console().print(table)
    else:
        _dump_json(stats)
    return 0
