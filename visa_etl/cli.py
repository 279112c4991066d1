"""
Command line entry point.

    visa-etl run [--seed URL ...] [--max-pages N] ...
    visa-etl stats
    visa-etl import entries.jsonl
"""

import argparse
import signal
import sys
import threading
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from . import create_crawler_service, create_import_service, create_loader
from .ingest.domain.exceptions import ConfigError, StoreError
from .ingest.domain.value_objects.etl_config import EtlConfig
from .shared.db_manager import Database
from .shared.event_bus import EventBus
from .shared.event_handlers.logging_handler import LoggingEventHandler
from .shared.logging_config import get_error_logger, get_run_lifecycle_logger, setup_logging

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="visa-etl", description="Visa guide crawl / extract / load pipeline")
    parser.add_argument("--config", help="JSON configuration file")
    parser.add_argument("--database-url", help="SQLAlchemy URL, defaults to DATABASE_URL")
    parser.add_argument("--create-schema", action="store_true", help="create missing tables before running")
    parser.add_argument("--log-dir", help="directory for JSON log files")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="crawl, classify, extract and load")
    run_parser.add_argument("--seed", action="append", dest="seeds", metavar="URL",
                            help="seed URL, repeatable; replaces the configured seeds")
    run_parser.add_argument("--max-pages", type=int)
    run_parser.add_argument("--max-depth", type=int)
    run_parser.add_argument("--workers", type=int)
    run_parser.add_argument("--fetch-strategy", choices=["http", "browser"])
    run_parser.add_argument("--ignore-robots", action="store_true", help="do not consult robots.txt")

    subparsers.add_parser("stats", help="print store statistics")

    import_parser = subparsers.add_parser("import", help="load pre-extracted entries from a JSONL file")
    import_parser.add_argument("file")

    return parser


def load_config(args: argparse.Namespace) -> EtlConfig:
    """defaults < --config file < VISA_ETL_* environment < command line flags"""
    base = EtlConfig.from_file(args.config) if args.config else EtlConfig()
    config = EtlConfig.from_env(base)

    overrides = {"database_url": args.database_url}
    if args.command == "run":
        overrides.update(
            seed_urls=args.seeds,
            max_pages=args.max_pages,
            max_depth=args.max_depth,
            workers=args.workers,
            fetch_strategy=args.fetch_strategy,
            honor_robots=False if args.ignore_robots else None,
        )
    return config.with_overrides(**overrides)


def _run(config: EtlConfig, database: Database, event_bus: EventBus) -> int:
    logger = get_run_lifecycle_logger()
    cancel_event = threading.Event()

    def _on_sigint(signum, frame):
        logger.warning("Interrupt received, finishing in-flight pages")
        cancel_event.set()

    previous = signal.signal(signal.SIGINT, _on_sigint)
    crawler = create_crawler_service(config, database, event_bus)
    try:
        summary = crawler.run(config.seed_urls, cancel_event)
    finally:
        signal.signal(signal.SIGINT, previous)
        crawler.close()

    print(
        f"crawled={summary.pages_crawled} loaded={summary.pages_loaded} "
        f"(new={summary.pages_new} updated={summary.pages_updated} unchanged={summary.pages_unchanged}) "
        f"skipped={summary.pages_skipped} errors={summary.errors} elapsed={summary.elapsed:.1f}s"
        + (" [cancelled]" if summary.cancelled else "")
    )
    return EXIT_OK


def _stats(database: Database) -> int:
    stats = create_loader(database).get_stats()
    print(f"sources={stats.total_sources} pages={stats.total_pages} visa_types={stats.total_visa_types}")
    print(f"last_scraped={stats.last_scraped.isoformat() if stats.last_scraped else '-'}")
    return EXIT_OK


def _import(config: EtlConfig, database: Database, event_bus: EventBus, path: str) -> int:
    summary = create_import_service(config, database, event_bus).import_file(path)
    print(f"total={summary.total} loaded={summary.loaded} skipped={summary.skipped} errors={summary.errors}")
    return EXIT_OK if summary.errors == 0 else EXIT_FAILURE


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_dir, args.log_level)
    error_logger = get_error_logger()

    try:
        config = load_config(args)
    except ConfigError as e:
        print(f"configuration error: {e}", file=sys.stderr)
        return EXIT_USAGE
    if not config.database_url:
        print("configuration error: DATABASE_URL is not set (use --database-url)", file=sys.stderr)
        return EXIT_USAGE

    event_bus = EventBus()
    event_bus.subscribe_to_all(LoggingEventHandler())

    with Database(config.database_url) as database:
        try:
            if args.create_schema:
                database.create_schema()
            if args.command == "run":
                return _run(config, database, event_bus)
            if args.command == "stats":
                return _stats(database)
            return _import(config, database, event_bus, args.file)
        except StoreError as e:
            error_logger.error(f"Store unavailable: {e.message}")
            print(f"store error: {e.message}", file=sys.stderr)
            return EXIT_FAILURE
        except SQLAlchemyError as e:
            error_logger.error(f"Schema creation failed: {str(e)}", exc_info=True)
            print(f"store error: {e}", file=sys.stderr)
            return EXIT_FAILURE
        except OSError as e:
            print(f"cannot read input: {e}", file=sys.stderr)
            return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
