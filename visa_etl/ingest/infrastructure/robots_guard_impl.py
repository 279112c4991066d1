import random
import threading
from typing import Dict, Optional
from urllib.parse import urlparse
from urllib.robotparser import RobotFileParser

import requests

from visa_etl.shared.logging_config import get_crawl_process_logger, get_error_logger

from ..domain.demand_interface.i_robots_guard import IRobotsGuard

ROBOTS_TIMEOUT_SECONDS = 10


class RobotsGuardImpl(IRobotsGuard):
    """
    robots.txt rules and politeness delay for a single origin.

    robots.txt is fetched once, lazily; any failure (network error, non-2xx)
    degrades to allow-all with a warning.
    """

    def __init__(
        self,
        origin: str,
        user_agent: str,
        min_delay_ms: int = 500,
        max_delay_ms: int = 1500,
        honor_robots: bool = True,
        session: Optional[requests.Session] = None,
    ):
        self._origin = origin.rstrip('/')
        self._user_agent = user_agent
        self._min_delay = min_delay_ms / 1000.0
        self._max_delay = max_delay_ms / 1000.0
        self._honor_robots = honor_robots
        self._session = session or requests.Session()

        self._parser: Optional[RobotFileParser] = None
        self._load_lock = threading.Lock()
        # one request at a time towards this host
        self._host_lock = threading.Lock()

        self._logger = get_crawl_process_logger()
        self._error_logger = get_error_logger()

    @property
    def origin(self) -> str:
        return self._origin

    def load(self) -> RobotFileParser:
        with self._load_lock:
            if self._parser is not None:
                return self._parser

            robots_url = f"{self._origin}/robots.txt"
            parser = RobotFileParser()
            parser.set_url(robots_url)

            try:
                response = self._session.get(
                    robots_url,
                    headers={'User-Agent': self._user_agent},
                    timeout=ROBOTS_TIMEOUT_SECONDS,
                )
                if 200 <= response.status_code < 300:
                    parser.parse(response.text.splitlines())
                    self._logger.info(f"robots.txt loaded from {robots_url}", extra={'url': robots_url})
                else:
                    self._error_logger.warning(
                        f"robots.txt returned HTTP {response.status_code}, allowing all: {robots_url}",
                        extra={'url': robots_url, 'status_code': response.status_code},
                    )
                    parser.parse([])
            except requests.exceptions.RequestException as e:
                self._error_logger.warning(
                    f"robots.txt unreachable, allowing all: {robots_url} - {str(e)}",
                    extra={'url': robots_url, 'error_type': type(e).__name__},
                )
                parser.parse([])  # empty rules = allow all

            self._parser = parser
            return parser

    def is_allowed(self, url: str) -> bool:
        if not self._honor_robots:
            return True
        return self.load().can_fetch(self._user_agent, url)

    def crawl_delay(self) -> Optional[float]:
        if not self._honor_robots:
            return None
        delay = self.load().crawl_delay(self._user_agent)
        return float(delay) if delay else None

    def next_delay(self) -> float:
        delay = random.uniform(self._min_delay, self._max_delay)
        robots_delay = self.crawl_delay()
        if robots_delay is not None and robots_delay > delay:
            delay = robots_delay
        return delay

    def wait(self, cancel_event: Optional[threading.Event] = None) -> bool:
        delay = self.next_delay()
        with self._host_lock:
            if cancel_event is None:
                threading.Event().wait(delay)
                return True
            # Event.wait returns True as soon as cancellation is requested
            return not cancel_event.wait(delay)


class RobotsGuardRegistry:
    """Hands out one RobotsGuardImpl per origin"""

    def __init__(
        self,
        user_agent: str,
        min_delay_ms: int = 500,
        max_delay_ms: int = 1500,
        honor_robots: bool = True,
        session: Optional[requests.Session] = None,
    ):
        self._user_agent = user_agent
        self._min_delay_ms = min_delay_ms
        self._max_delay_ms = max_delay_ms
        self._honor_robots = honor_robots
        self._session = session
        self._guards: Dict[str, RobotsGuardImpl] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config, session: Optional[requests.Session] = None) -> "RobotsGuardRegistry":
        return cls(
            user_agent=config.user_agent,
            min_delay_ms=config.min_delay_ms,
            max_delay_ms=config.max_delay_ms,
            honor_robots=config.honor_robots,
            session=session,
        )

    def for_url(self, url: str) -> RobotsGuardImpl:
        parsed = urlparse(url)
        origin = f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"
        with self._lock:
            guard = self._guards.get(origin)
            if guard is None:
                guard = RobotsGuardImpl(
                    origin,
                    self._user_agent,
                    self._min_delay_ms,
                    self._max_delay_ms,
                    self._honor_robots,
                    self._session,
                )
                self._guards[origin] = guard
            return guard
