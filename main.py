# main.py

"""Entry point for the price_tracker CLI."""

import argparse
import logging
import sys

from src.config.logging_config import setup_logging
from src.config.settings import Settings

logger = logging.getLogger("price_tracker.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="price_tracker",
        description=(
            "Track product prices from search results and report "
            "price drops."
        ),
    )
    parser.add_argument(
        "keywords",
        nargs="?",
        default=None,
        help="Comma-separated keywords to scrape now.",
    )
    parser.add_argument(
        "-p",
        "--pages",
        type=int,
        default=None,
        help=(
            f"Pages per keyword (default: {Settings.MAX_PAGES}, "
            f"max {Settings.MAX_PAGES_CAP})."
        ),
    )
    parser.add_argument(
        "--top-changes",
        action="store_true",
        default=False,
        dest="top_changes",
        help="Show the largest price drops of the last 24 hours.",
    )
    parser.add_argument(
        "--alerts",
        action="store_true",
        default=False,
        help="Show products that dropped more than 5%% in 24 hours.",
    )
    parser.add_argument(
        "--recent",
        action="store_true",
        default=False,
        help="Show the most recently updated products.",
    )
    parser.add_argument(
        "--search",
        default=None,
        metavar="TERM",
        help="Search stored products by code or title.",
    )
    parser.add_argument(
        "--product",
        default=None,
        metavar="CODE",
        help="Show one product and its price history.",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        default=False,
        help="Show catalogue statistics.",
    )
    parser.add_argument(
        "--schedule",
        action="store_true",
        default=False,
        help=(
            "Run periodic refreshes of SCRAPER_KEYWORDS on CRON_SCHEDULE "
            "until stopped."
        ),
    )
    parser.add_argument(
        "--cron",
        default=None,
        metavar="EXPR",
        help="Crontab expression overriding CRON_SCHEDULE for --schedule.",
    )
    parser.add_argument(
        "-n",
        "--limit",
        type=int,
        default=Settings.TOP_CHANGES_LIMIT,
        help="Row limit for listings (default: %(default)s).",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="table",
        dest="output_format",
        help="Output format (default: table).",
    )
    return parser


def main() -> None:
    """Route to the requested command."""
    from src.cli import runner
    from src.storage.price_history_db import PriceHistoryDB

    log_file = setup_logging()
    logger.info("price_tracker starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    db = PriceHistoryDB()
    try:
        if args.schedule:
            exit_code = runner.run_schedule(db, args.cron)
        elif args.top_changes:
            exit_code = runner.show_top_changes(
                db, args.output_format, args.limit
            )
        elif args.alerts:
            exit_code = runner.show_alerts(db, args.output_format)
        elif args.recent:
            exit_code = runner.show_recent(
                db, args.output_format, args.limit
            )
        elif args.search is not None:
            exit_code = runner.search_products(
                db, args.search, args.output_format
            )
        elif args.product is not None:
            exit_code = runner.show_product(
                db, args.product, args.output_format
            )
        elif args.stats:
            exit_code = runner.show_stats(db, args.output_format)
        elif args.keywords is not None:
            exit_code = runner.cli_scrape(db, args.keywords, args.pages)
        else:
            parser.print_help()
            exit_code = 2
    except Exception:
        logger.critical("Fatal error", exc_info=True)
        raise
    finally:
        db.close()
        logger.info("price_tracker shutting down")

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
