"""
LoggingEventHandler test suite
Covers: logger routing, levels, structured extra, per-run bounded storage, queries
"""

import logging
from unittest.mock import patch

import pytest

from visa_etl.ingest.domain.domain_event.crawl_process_event import (
    CrawlErrorEvent,
    FetchFailedEvent,
    PageClassifiedEvent,
    PageLoadedEvent,
    UrlSkippedEvent,
)
from visa_etl.ingest.domain.domain_event.run_life_cycle_event import RunCompletedEvent, RunStartedEvent
from visa_etl.shared.event_bus import EventBus
from visa_etl.shared.event_handlers.logging_handler import LoggingEventHandler


class TestLoggingEventHandler:

    @pytest.fixture
    def handler(self):
        return LoggingEventHandler(max_logs_per_run=5)

    def test_lifecycle_events_go_to_lifecycle_logger(self, handler):
        with patch.object(handler, '_lifecycle_logger') as lifecycle, \
                patch.object(handler, '_process_logger') as process:
            handler.handle(RunStartedEvent(run_id="r1", base_url="https://visa.example.com", seed_count=2,
                                           max_depth=3, max_pages=50))

        lifecycle.log.assert_called_once()
        process.log.assert_not_called()
        level, message = lifecycle.log.call_args[0]
        assert level == logging.INFO
        assert 'Run started' in message
        extra = lifecycle.log.call_args[1]['extra']
        assert extra['event_type'] == 'RunStartedEvent'
        assert extra['run_id'] == 'r1'
        assert extra['seed_count'] == 2

    def test_process_events_go_to_process_logger(self, handler):
        with patch.object(handler, '_lifecycle_logger') as lifecycle, \
                patch.object(handler, '_process_logger') as process:
            handler.handle(UrlSkippedEvent(run_id="r1", url="https://visa.example.com/x", reason="robots_disallowed"))

        process.log.assert_called_once()
        lifecycle.log.assert_not_called()
        assert process.log.call_args[1]['extra']['reason'] == 'robots_disallowed'

    def test_levels(self, handler):
        handler.handle(FetchFailedEvent(run_id="r1", url="u", error_type="PermanentFetchError",
                                        error_message="HTTP 404", attempts=1, status_code=404))
        handler.handle(PageClassifiedEvent(run_id="r1", url="u", accept=False, confidence=0.1))
        handler.handle(PageLoadedEvent(run_id="r1", url="u", status="new", page_id=1, visa_type_count=1))
        handler.handle(RunCompletedEvent(run_id="r1", pages_crawled=1, pages_loaded=1, pages_new=1,
                                          pages_updated=0, pages_unchanged=0, pages_skipped=0,
                                          error_count=1, elapsed_time=0.5))

        levels = [log['level'] for log in handler.get_logs("r1")]
        assert levels == ['ERROR', 'DEBUG', 'INFO', 'SUCCESS']

    def test_error_queries(self, handler):
        handler.handle(UrlSkippedEvent(run_id="r1", url="u", reason="not_relevant"))
        assert handler.has_errors("r1") is False

        handler.handle(CrawlErrorEvent(run_id="r1", url="u", error_type="StoreError", error_message="locked"))
        assert handler.has_errors("r1") is True
        assert len(handler.get_error_logs("r1")) == 1

    def test_logs_are_bounded_per_run(self, handler):
        for i in range(8):
            handler.handle(UrlSkippedEvent(run_id="r1", url=f"u{i}", reason="not_relevant"))
        handler.handle(UrlSkippedEvent(run_id="r2", url="other", reason="not_relevant"))

        logs = handler.get_logs("r1")
        assert len(logs) == 5
        assert logs[-1]['data']['url'] == 'u7'
        assert [log['data']['url'] for log in handler.get_logs("r1", last_n=2)] == ['u6', 'u7']
        assert sorted(handler.get_all_run_ids()) == ['r1', 'r2']

    def test_clear_logs(self, handler):
        handler.handle(UrlSkippedEvent(run_id="r1", url="u", reason="not_relevant"))
        handler.clear_logs("r1")
        assert handler.get_logs("r1") == []

    def test_log_entry_shape(self, handler):
        handler.handle(UrlSkippedEvent(run_id="r1", url="u", reason="not_relevant"))
        entry = handler.get_logs("r1")[0]
        assert set(entry) == {'timestamp', 'level', 'message', 'event_type', 'run_id', 'data'}
        assert entry['event_type'] == 'UrlSkippedEvent'

    def test_subscribed_to_bus(self, handler):
        bus = EventBus()
        bus.subscribe_to_all(handler)
        bus.publish(UrlSkippedEvent(run_id="r9", url="u", reason="no_title"))
        assert len(handler.get_logs("r9")) == 1


class TestEventBus:

    def test_failing_handler_does_not_reach_publisher(self):
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("handler bug")

        bus.subscribe("UrlSkippedEvent", broken)
        bus.subscribe("UrlSkippedEvent", received.append)
        bus.publish(UrlSkippedEvent(run_id="r1", url="u", reason="x"))

        assert len(received) == 1

    def test_unsubscribe(self):
        bus = EventBus()
        received = []
        bus.subscribe("UrlSkippedEvent", received.append)
        bus.unsubscribe("UrlSkippedEvent", received.append)
        bus.publish(UrlSkippedEvent(run_id="r1", url="u", reason="x"))
        assert received == []
