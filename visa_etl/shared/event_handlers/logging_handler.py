import logging
from collections import deque
from threading import Lock
from typing import Dict, List, Optional

from visa_etl.shared.domain.events import DomainEvent
from visa_etl.shared.logging_config import get_crawl_process_logger, get_run_lifecycle_logger

from .base_event_handler import RUN_LIFECYCLE_EVENTS, BaseEventHandler

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "SUCCESS": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


class LoggingEventHandler(BaseEventHandler):
    """
    Turns domain events into log records.

    1. run life cycle events go to domain.run_lifecycle, the rest to
       domain.crawl_process, with the event fields as structured extra
    2. keeps a bounded in-memory log per run for querying
    """

    def __init__(self, max_logs_per_run: int = 1000):
        # {run_id: deque}
        self._run_logs: Dict[str, deque] = {}
        self._max_logs_per_run = max_logs_per_run
        self._lock = Lock()

        self._lifecycle_logger = get_run_lifecycle_logger()
        self._process_logger = get_crawl_process_logger()

    def __call__(self, event: DomainEvent) -> None:
        self.handle(event)

    def handle(self, event: DomainEvent) -> None:
        log_entry = self._format_event_to_log(event)

        with self._lock:
            run_logs = self._run_logs.setdefault(event.run_id, deque(maxlen=self._max_logs_per_run))
            run_logs.append(log_entry)

        logger = self._lifecycle_logger if event.event_type in RUN_LIFECYCLE_EVENTS else self._process_logger
        extra = {'event_type': event.event_type, 'run_id': event.run_id}
        # the structured fields; 'message' would clash with the LogRecord attribute
        extra.update({k: v for k, v in event.data.items() if k not in ('message', 'msg', 'args')})
        logger.log(LEVELS.get(log_entry['level'], logging.INFO), log_entry['message'], extra=extra)

    # -------------------- queries --------------------

    def get_logs(self, run_id: str, last_n: Optional[int] = None) -> List[dict]:
        with self._lock:
            logs = list(self._run_logs.get(run_id, ()))
        if last_n:
            return logs[-last_n:]
        return logs

    def get_all_run_ids(self) -> List[str]:
        with self._lock:
            return list(self._run_logs.keys())

    def get_logs_by_level(self, run_id: str, level: str) -> List[dict]:
        return [log for log in self.get_logs(run_id) if log['level'] == level]

    def get_error_logs(self, run_id: str) -> List[dict]:
        return self.get_logs_by_level(run_id, 'ERROR')

    def has_errors(self, run_id: str) -> bool:
        return len(self.get_error_logs(run_id)) > 0

    def clear_logs(self, run_id: str) -> None:
        with self._lock:
            if run_id in self._run_logs:
                self._run_logs[run_id].clear()
