import threading
from collections import deque
from typing import Callable, Iterable, Optional, Set
from urllib.parse import urljoin, urlparse, urlunparse

from ..domain.demand_interface.i_frontier import IFrontier
from ..domain.value_objects.queued_url import QueuedUrl

DEFAULT_PORTS = {'http': '80', 'https': '443'}


class FrontierImpl(IFrontier):
    """
    Thread-safe BFS frontier for one origin.

    A URL enters the seen set when it is enqueued, so seen_count is the number
    of pages the run has committed to; max_pages caps it. The check and the
    insert happen under the same lock, which keeps dedup exact with several
    workers.
    """

    def __init__(
        self,
        base_url: str,
        max_depth: int = 3,
        max_pages: int = 100,
        url_filter: Optional[Callable[[str], bool]] = None,
    ):
        self._max_depth = max_depth
        self._max_pages = max_pages
        self._url_filter = url_filter

        self._base_url = self.normalize(base_url)
        if not self._base_url:
            raise ValueError(f"base_url is not an absolute http(s) URL: {base_url!r}")
        self._origin = self._origin_of(self._base_url)

        self._queue: deque = deque()
        self._seen: Set[str] = set()
        self._in_flight = 0
        self._dequeued = 0
        self._cond = threading.Condition()

    # ------------------ URL handling ------------------

    def normalize(self, url: str) -> Optional[str]:
        if not url or not isinstance(url, str):
            return None

        try:
            base = getattr(self, '_base_url', None)
            absolute = urljoin(base, url.strip()) if base else url.strip()
            parsed = urlparse(absolute)

            scheme = parsed.scheme.lower()
            if scheme not in ('http', 'https') or not parsed.hostname:
                return None

            host = parsed.hostname.lower()
            port = parsed.port  # ValueError on garbage ports
            netloc = host
            if port is not None and str(port) != DEFAULT_PORTS[scheme]:
                netloc = f"{host}:{port}"

            return urlunparse((
                scheme,
                netloc,
                parsed.path or '/',
                parsed.params,
                parsed.query,
                '',  # fragment dropped
            ))
        except ValueError:
            return None

    @staticmethod
    def _origin_of(url: str) -> str:
        parsed = urlparse(url)
        return f"{parsed.scheme}://{parsed.netloc}"

    def is_same_origin(self, url: str) -> bool:
        normalized = self.normalize(url)
        return normalized is not None and self._origin_of(normalized) == self._origin

    # ------------------ queue operations ------------------

    def seed(self, urls: Iterable[str]) -> int:
        # seeds are operator chosen: url_filter does not apply to them
        return sum(1 for url in urls if self._enqueue(url, 0, apply_filter=False))

    def push(self, url: str, depth: int) -> bool:
        return self._enqueue(url, depth, apply_filter=True)

    def _enqueue(self, url: str, depth: int, apply_filter: bool) -> bool:
        if depth > self._max_depth:
            return False

        normalized = self.normalize(url)
        if normalized is None or self._origin_of(normalized) != self._origin:
            return False

        with self._cond:
            if normalized in self._seen or len(self._seen) >= self._max_pages:
                return False
            if apply_filter and self._url_filter is not None and not self._url_filter(normalized):
                return False

            self._seen.add(normalized)
            self._queue.append(QueuedUrl(url=normalized, depth=depth))
            self._cond.notify()
            return True

    def next(self, cancel_event: Optional[threading.Event] = None) -> Optional[QueuedUrl]:
        with self._cond:
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    return None
                if self._dequeued >= self._max_pages:
                    return None
                if self._queue:
                    entry = self._queue.popleft()
                    self._in_flight += 1
                    self._dequeued += 1
                    return entry
                if self._in_flight == 0:
                    return None
                # another worker may still push children
                self._cond.wait(timeout=0.1)

    def task_done(self) -> None:
        with self._cond:
            if self._in_flight > 0:
                self._in_flight -= 1
            self._cond.notify_all()

    def size(self) -> int:
        with self._cond:
            return len(self._queue)

    @property
    def seen_count(self) -> int:
        with self._cond:
            return len(self._seen)

    @property
    def dequeued_count(self) -> int:
        with self._cond:
            return self._dequeued

    @property
    def origin(self) -> str:
        return self._origin
