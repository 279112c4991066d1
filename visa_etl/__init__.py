"""
Visa guide ETL: crawl one site, keep the visa pages, extract structured
visa-type records and load them with change detection.

The factories below wire the pipeline the way the CLI uses it. Components
receive the Database handle explicitly; the caller owns its lifecycle.
"""

from typing import Optional

import requests

from .ingest.domain.demand_interface.i_fetcher import IFetcher
from .ingest.domain.domain_service.relevance_classifier import RelevanceClassifier
from .ingest.domain.value_objects.etl_config import EtlConfig
from .ingest.infrastructure.database.sqlalchemy_page_store import SqlAlchemyPageStore
from .ingest.infrastructure.http_fetcher_impl import HttpFetcherImpl
from .ingest.infrastructure.robots_guard_impl import RobotsGuardRegistry
from .ingest.services.crawler_service import CrawlerService
from .ingest.services.import_service import ImportService
from .ingest.services.loader_service import LoaderService
from .shared.db_manager import Database
from .shared.event_bus import EventBus

__version__ = "0.1.0"


def create_fetcher(config: EtlConfig) -> IFetcher:
    if config.fetch_strategy == "browser":
        # playwright is only imported when the browser strategy is chosen
        from .ingest.infrastructure.playwright_fetcher import PlaywrightFetcher

        return PlaywrightFetcher(user_agent=config.user_agent, timeout_ms=config.timeout_ms)
    return HttpFetcherImpl(user_agent=config.user_agent, timeout_ms=config.timeout_ms)


def create_loader(database: Database, event_bus: Optional[EventBus] = None) -> LoaderService:
    return LoaderService(SqlAlchemyPageStore(database), event_bus)


def create_crawler_service(
    config: EtlConfig,
    database: Database,
    event_bus: Optional[EventBus] = None,
    fetcher: Optional[IFetcher] = None,
) -> CrawlerService:
    """Build a CrawlerService with the default infrastructure for `config`"""
    return CrawlerService(
        config=config,
        fetcher=fetcher or create_fetcher(config),
        guards=RobotsGuardRegistry.from_config(config, requests.Session()),
        classifier=RelevanceClassifier(config),
        loader=create_loader(database, event_bus),
        event_bus=event_bus,
    )


def create_import_service(
    config: EtlConfig,
    database: Database,
    event_bus: Optional[EventBus] = None,
) -> ImportService:
    return ImportService(create_loader(database, event_bus), config, event_bus)


__all__ = [
    "CrawlerService",
    "Database",
    "EtlConfig",
    "EventBus",
    "ImportService",
    "LoaderService",
    "create_crawler_service",
    "create_fetcher",
    "create_import_service",
    "create_loader",
]
