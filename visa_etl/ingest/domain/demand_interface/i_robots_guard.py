from abc import ABC, abstractmethod
from threading import Event
from typing import Optional


class IRobotsGuard(ABC):
    """Robots rules plus the randomized politeness delay of one origin"""

    @abstractmethod
    def is_allowed(self, url: str) -> bool:
        """
        True when robots.txt permits the configured user agent to fetch url.
        Unreachable robots.txt means allow-all.
        """
        pass

    @abstractmethod
    def crawl_delay(self) -> Optional[float]:
        """Crawl-delay in seconds declared for our user agent, None if absent"""
        pass

    @abstractmethod
    def wait(self, cancel_event: Optional[Event] = None) -> bool:
        """
        Block before a request to this origin.

        Returns False when cancel_event was set during the wait.
        """
        pass
