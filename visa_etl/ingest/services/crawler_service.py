"""
Run orchestration (application layer).

A run drains the frontier with config.workers threads. Every entry goes
through: robots check -> fetch with retry (politeness delay before each
attempt) -> content classification -> child link discovery -> extraction ->
load. A failing page is counted and logged, it never aborts the run.
Cancellation is a threading.Event checked at every suspension point.
"""

import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from visa_etl.shared.event_bus import EventBus
from visa_etl.shared.logging_config import get_crawl_process_logger, get_error_logger

from ..domain.demand_interface.i_fetcher import IFetcher
from ..domain.demand_interface.i_frontier import IFrontier
from ..domain.demand_interface.i_html_document import IHtmlDocument
from ..domain.demand_interface.i_robots_guard import IRobotsGuard
from ..domain.domain_event.crawl_process_event import (
    CrawlErrorEvent,
    FetchAttemptedEvent,
    FetchFailedEvent,
    PageClassifiedEvent,
    PageFetchedEvent,
    UrlSkippedEvent,
)
from ..domain.domain_event.run_life_cycle_event import RunCancelledEvent, RunCompletedEvent, RunStartedEvent
from ..domain.domain_service.content_extractor import extract_page
from ..domain.domain_service.relevance_classifier import RelevanceClassifier
from ..domain.exceptions import FetchError, PermanentFetchError, StoreError, TransientFetchError
from ..domain.value_objects.etl_config import EtlConfig
from ..domain.value_objects.fetched_page import FetchedPage
from ..domain.value_objects.queued_url import QueuedUrl
from ..domain.value_objects.run_summary import RunSummary
from ..infrastructure.beautifulsoup_document import BeautifulSoupDocument
from ..infrastructure.frontier_impl import FrontierImpl
from ..infrastructure.robots_guard_impl import RobotsGuardRegistry
from .loader_service import LoaderService

FrontierFactory = Callable[[str, int, int, Callable[[str], bool]], IFrontier]
DocumentFactory = Callable[[str], IHtmlDocument]


@dataclass
class _RunContext:
    run_id: str
    frontier: IFrontier
    cancel_event: threading.Event
    summary: RunSummary
    lock: threading.Lock = field(default_factory=threading.Lock)

    def add_skipped(self) -> None:
        with self.lock:
            self.summary.pages_skipped += 1

    def add_error(self) -> None:
        with self.lock:
            self.summary.errors += 1

    def add_crawled(self) -> None:
        with self.lock:
            self.summary.pages_crawled += 1


class CrawlerService:
    """
    Application service: one crawl-classify-extract-load run per run() call.
    """

    def __init__(
        self,
        config: EtlConfig,
        fetcher: IFetcher,
        guards: RobotsGuardRegistry,
        classifier: RelevanceClassifier,
        loader: LoaderService,
        event_bus: Optional[EventBus] = None,
        frontier_factory: Optional[FrontierFactory] = None,
        document_factory: Optional[DocumentFactory] = None,
    ):
        """
        Parameters:
            config: run configuration
            fetcher: single attempt fetcher, retries happen here
            guards: hands out one robots/politeness guard per origin
            classifier: URL stage (frontier filter) and content stage
            loader: change aware loader
            event_bus: optional, domain events are dropped without it
            frontier_factory: (base_url, max_depth, max_pages, url_filter) -> IFrontier
            document_factory: html -> IHtmlDocument
        """
        self._config = config
        self._fetcher = fetcher
        self._guards = guards
        self._classifier = classifier
        self._loader = loader
        self._event_bus = event_bus
        self._frontier_factory = frontier_factory or FrontierImpl
        self._document_factory = document_factory or (
            lambda html: BeautifulSoupDocument(html, config.html_parser)
        )
        self._logger = get_crawl_process_logger()
        self._error_logger = get_error_logger()

    def run(self, seeds: Optional[Iterable[str]] = None, cancel_event: Optional[threading.Event] = None) -> RunSummary:
        seeds = list(seeds) if seeds is not None else list(self._config.seed_urls)
        cancel_event = cancel_event or threading.Event()

        frontier = self._frontier_factory(
            self._config.base_url,
            self._config.max_depth,
            self._config.max_pages,
            self._classifier.accepts_url,
        )
        run_id = str(uuid.uuid4())
        ctx = _RunContext(
            run_id=run_id,
            frontier=frontier,
            cancel_event=cancel_event,
            summary=RunSummary(run_id=run_id),
        )

        seeded = frontier.seed(seeds)
        self._publish(RunStartedEvent(
            run_id=ctx.run_id,
            base_url=self._config.base_url,
            seed_count=seeded,
            max_depth=self._config.max_depth,
            max_pages=self._config.max_pages,
            workers=self._config.workers,
        ))

        start_time = time.time()
        workers = [
            threading.Thread(target=self._worker, args=(ctx,), name=f"crawl-worker-{i}", daemon=True)
            for i in range(self._config.workers)
        ]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()

        summary = ctx.summary
        summary.elapsed = time.time() - start_time
        summary.cancelled = cancel_event.is_set()

        if summary.cancelled:
            self._publish(RunCancelledEvent(
                run_id=ctx.run_id,
                pages_crawled=summary.pages_crawled,
                pages_loaded=summary.pages_loaded,
                error_count=summary.errors,
                elapsed_time=summary.elapsed,
            ))
        else:
            self._publish(RunCompletedEvent(
                run_id=ctx.run_id,
                pages_crawled=summary.pages_crawled,
                pages_loaded=summary.pages_loaded,
                pages_new=summary.pages_new,
                pages_updated=summary.pages_updated,
                pages_unchanged=summary.pages_unchanged,
                pages_skipped=summary.pages_skipped,
                error_count=summary.errors,
                elapsed_time=summary.elapsed,
            ))
        return summary

    def close(self) -> None:
        """Release the fetcher's connections"""
        self._fetcher.close()

    # ------------------ worker ------------------

    def _worker(self, ctx: _RunContext) -> None:
        while True:
            entry = ctx.frontier.next(ctx.cancel_event)
            if entry is None:
                break
            try:
                self._process(ctx, entry)
            except Exception as e:
                # one broken page must not take the run down
                ctx.add_error()
                self._error_logger.error(
                    f"Unexpected error while processing {entry.url}: {type(e).__name__} - {str(e)}",
                    exc_info=True,
                    extra={'url': entry.url, 'run_id': ctx.run_id, 'component': 'CrawlerService'},
                )
                self._publish(CrawlErrorEvent(
                    run_id=ctx.run_id,
                    url=entry.url,
                    error_type=type(e).__name__,
                    error_message=str(e),
                ))
            finally:
                ctx.frontier.task_done()

    def _process(self, ctx: _RunContext, entry: QueuedUrl) -> None:
        url = entry.url
        guard = self._guards.for_url(url)

        # 1. robots
        if not guard.is_allowed(url):
            self._skip(ctx, url, "robots_disallowed")
            return

        # 2. fetch
        fetched = self._fetch_with_retry(ctx, entry, guard)
        if fetched is None:
            return
        ctx.add_crawled()

        content_type = fetched.headers.get('content-type', '')
        if content_type and 'html' not in content_type.lower():
            self._skip(ctx, url, f"not_html ({content_type})")
            return

        # 3. content stage
        doc = self._document_factory(fetched.html)
        classification = self._classifier.classify_content(doc, url)
        self._publish(PageClassifiedEvent(
            run_id=ctx.run_id,
            url=url,
            accept=classification.accept,
            confidence=classification.confidence,
            reasons=list(classification.reasons),
        ))
        if not classification.accept:
            self._skip(ctx, url, "not_relevant")
            return

        # 4. children, filtered by the URL stage inside the frontier
        if entry.depth < self._config.max_depth:
            for link in doc.links(fetched.final_url or url):
                ctx.frontier.push(link, entry.depth + 1)

        # 5. extraction
        draft = extract_page(doc, url, self._config)
        if draft is None:
            self._skip(ctx, url, "no_title")
            return

        # 6. load
        try:
            outcome = self._loader.load(fetched, draft, ctx.run_id)
        except StoreError as e:
            ctx.add_error()
            self._error_logger.error(
                f"Store failure for {url}: {e.message}",
                extra={'url': url, 'run_id': ctx.run_id, 'component': 'LoaderService'},
            )
            self._publish(CrawlErrorEvent(
                run_id=ctx.run_id,
                url=url,
                error_type=type(e).__name__,
                error_message=e.message,
            ))
            return

        with ctx.lock:
            ctx.summary.outcomes.append(outcome)

    def _fetch_with_retry(self, ctx: _RunContext, entry: QueuedUrl, guard: IRobotsGuard) -> Optional[FetchedPage]:
        """
        Up to max_retries + 1 attempts, each behind the politeness delay.
        Returns None when the URL is dropped or the run is cancelled.
        """
        url = entry.url
        max_attempts = self._config.max_retries + 1
        last_error: Optional[FetchError] = None

        for attempt in range(1, max_attempts + 1):
            if not guard.wait(ctx.cancel_event):
                self._logger.info(f"Cancelled before fetching {url}", extra={'url': url, 'run_id': ctx.run_id})
                return None

            self._publish(FetchAttemptedEvent(run_id=ctx.run_id, url=url, attempt=attempt, depth=entry.depth))
            start_time = time.time()
            try:
                fetched = self._fetcher.fetch(url)
            except TransientFetchError as e:
                last_error = e
                self._logger.warning(
                    f"Transient fetch failure ({attempt}/{max_attempts}): {url} - {e.message}",
                    extra={'url': url, 'attempt': attempt, 'run_id': ctx.run_id},
                )
                continue
            except PermanentFetchError as e:
                self._fetch_failed(ctx, url, e, attempt)
                return None

            self._publish(PageFetchedEvent(
                run_id=ctx.run_id,
                url=url,
                status_code=fetched.status_code,
                depth=entry.depth,
                elapsed_ms=(time.time() - start_time) * 1000,
            ))
            return fetched

        self._fetch_failed(ctx, url, last_error, max_attempts)
        return None

    def _fetch_failed(self, ctx: _RunContext, url: str, error: FetchError, attempts: int) -> None:
        ctx.add_error()
        self._publish(FetchFailedEvent(
            run_id=ctx.run_id,
            url=url,
            error_type=type(error).__name__,
            error_message=error.message,
            attempts=attempts,
            status_code=error.status_code,
        ))

    def _skip(self, ctx: _RunContext, url: str, reason: str) -> None:
        ctx.add_skipped()
        self._publish(UrlSkippedEvent(run_id=ctx.run_id, url=url, reason=reason))

    def _publish(self, event) -> None:
        if self._event_bus:
            self._event_bus.publish(event)
