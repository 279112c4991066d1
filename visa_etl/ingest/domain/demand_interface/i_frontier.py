from abc import ABC, abstractmethod
from threading import Event
from typing import Iterable, Optional

from ..value_objects.queued_url import QueuedUrl


class IFrontier(ABC):
    """
    Breadth-first URL frontier restricted to one origin.

    Every URL is handed out at most once per run; depth and page
    ceilings are enforced at push time.
    """

    @abstractmethod
    def normalize(self, url: str) -> Optional[str]:
        """Canonical absolute form of url, None when malformed or non-http(s)"""
        pass

    @abstractmethod
    def seed(self, urls: Iterable[str]) -> int:
        """Push urls at depth 0, returns the number accepted"""
        pass

    @abstractmethod
    def push(self, url: str, depth: int) -> bool:
        """
        Enqueue url unless it is off-origin, deeper than max_depth,
        already seen, or the page ceiling is reached.
        """
        pass

    @abstractmethod
    def next(self, cancel_event: Optional[Event] = None) -> Optional[QueuedUrl]:
        """
        Next URL in FIFO order.

        Blocks while the queue is empty but other workers may still push;
        returns None when the crawl is exhausted or cancelled.
        """
        pass

    @abstractmethod
    def task_done(self) -> None:
        """Mark the entry returned by next() as fully processed"""
        pass

    @abstractmethod
    def size(self) -> int:
        pass
