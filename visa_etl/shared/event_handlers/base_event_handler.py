from abc import ABC, abstractmethod
from datetime import datetime
from typing import Tuple

from visa_etl.shared.domain.events import DomainEvent

RUN_LIFECYCLE_EVENTS = frozenset({
    "RunStartedEvent",
    "RunCompletedEvent",
    "RunCancelledEvent",
    "ImportCompletedEvent",
})


class BaseEventHandler(ABC):
    """
    Event handler base class with the shared event formatting
    """

    @abstractmethod
    def handle(self, event: DomainEvent) -> None:
        pass

    def _format_event_to_log(self, event: DomainEvent) -> dict:
        message, level = self._get_message_and_level(event)

        return {
            "timestamp": self._format_timestamp(event.timestamp),
            "level": level,
            "message": message,
            "event_type": event.event_type,
            "run_id": event.run_id,
            "data": event.data,
        }

    def _get_message_and_level(self, event: DomainEvent) -> Tuple[str, str]:
        """
        Human readable message and level for an event.

        Levels are the logging names plus SUCCESS for a finished run.
        """
        event_type = event.event_type
        data = event.data

        # --- run life cycle ---
        if event_type == "RunStartedEvent":
            return (
                f"▶ Run started: {data.get('base_url', 'N/A')} "
                f"[seeds: {data.get('seed_count', 0)}, max depth: {data.get('max_depth')}, "
                f"max pages: {data.get('max_pages')}, workers: {data.get('workers', 1)}]",
                "INFO",
            )

        elif event_type == "RunCompletedEvent":
            return (
                f"✓ Run completed: {data.get('pages_crawled', 0)} crawled, "
                f"{data.get('pages_loaded', 0)} loaded "
                f"({data.get('pages_new', 0)} new, {data.get('pages_updated', 0)} updated, "
                f"{data.get('pages_unchanged', 0)} unchanged), "
                f"{data.get('pages_skipped', 0)} skipped, {data.get('error_count', 0)} errors "
                f"(elapsed: {data.get('elapsed_time', 0):.1f}s)",
                "SUCCESS",
            )

        elif event_type == "RunCancelledEvent":
            return (
                f"⏹ Run cancelled ({data.get('reason')}): {data.get('pages_crawled', 0)} crawled, "
                f"{data.get('pages_loaded', 0)} loaded, {data.get('error_count', 0)} errors "
                f"(elapsed: {data.get('elapsed_time', 0):.1f}s)",
                "WARNING",
            )

        elif event_type == "ImportCompletedEvent":
            return (
                f"✓ Import finished: {data.get('source_file')} - {data.get('loaded', 0)}/{data.get('total', 0)} "
                f"loaded, {data.get('skipped', 0)} skipped, {data.get('errors', 0)} errors",
                "SUCCESS",
            )

        # --- crawl process ---
        elif event_type == "FetchAttemptedEvent":
            return (
                f"→ Fetch attempt {data.get('attempt')}: {data.get('url')} (depth: {data.get('depth', 0)})",
                "DEBUG",
            )

        elif event_type == "PageFetchedEvent":
            return (
                f"✓ Fetched HTTP {data.get('status_code')}: {data.get('url')} "
                f"(depth: {data.get('depth', 0)}, {data.get('elapsed_ms', 0):.0f}ms)",
                "INFO",
            )

        elif event_type == "FetchFailedEvent":
            status = f" HTTP {data['status_code']}" if data.get('status_code') else ""
            return (
                f"✗ Fetch failed [{data.get('error_type')}{status}] after {data.get('attempts')} attempt(s): "
                f"{data.get('url')}\n  Error: {data.get('error_message')}",
                "ERROR",
            )

        elif event_type == "UrlSkippedEvent":
            return (
                f"∅ Skipped: {data.get('url')} ({data.get('reason')})",
                "INFO",
            )

        elif event_type == "PageClassifiedEvent":
            verdict = "accepted" if data.get('accept') else "rejected"
            reasons = '; '.join(data.get('reasons') or []) or 'no signal'
            return (
                f"Classified {verdict} ({data.get('confidence', 0):.2f}): {data.get('url')}\n  Reasons: {reasons}",
                "INFO" if data.get('accept') else "DEBUG",
            )

        elif event_type == "PageLoadedEvent":
            status = data.get('status')
            diff = ""
            if status == "updated":
                diff = f" (+{data.get('added_lines', 0)}/-{data.get('removed_lines', 0)} lines)"
            return (
                f"✓ Loaded [{status}]: {data.get('url')} - {data.get('visa_type_count', 0)} visa type(s){diff}",
                "INFO",
            )

        elif event_type == "CrawlErrorEvent":
            return (
                f"✗ Page failed [{data.get('error_type', 'UNKNOWN')}]: {data.get('url')}\n"
                f"  Error: {data.get('error_message', '')}",
                "ERROR",
            )

        else:
            return (f"Event: {event_type}", "DEBUG")

    def _format_timestamp(self, timestamp: datetime) -> str:
        if not isinstance(timestamp, datetime):
            return str(timestamp)
        return timestamp.strftime('%Y-%m-%d %H:%M:%S')
