"""
RobotsGuardImpl / RobotsGuardRegistry test suite
Covers: rule loading, allow-all fallbacks, Crawl-delay, politeness wait and cancellation, per-origin guards
"""

import threading
from unittest.mock import patch

import pytest
import requests
import requests_mock

from visa_etl.ingest.domain.value_objects.etl_config import EtlConfig
from visa_etl.ingest.infrastructure.robots_guard_impl import RobotsGuardImpl, RobotsGuardRegistry

ORIGIN = "https://visa.example.com"
ROBOTS_URL = f"{ORIGIN}/robots.txt"
AGENT = "QatarVisaGuideBot/1.0"

ROBOTS_TXT = """
User-agent: *
Disallow: /private/
Crawl-delay: 2
"""


def make_guard(**kwargs):
    params = dict(origin=ORIGIN, user_agent=AGENT, min_delay_ms=0, max_delay_ms=0,
                  honor_robots=True, session=requests.Session())
    params.update(kwargs)
    return RobotsGuardImpl(**params)


# ============================================================================
# Rules
# ============================================================================

class TestRules:

    def test_disallow_rules(self):
        guard = make_guard()
        with requests_mock.Mocker() as m:
            m.get(ROBOTS_URL, text=ROBOTS_TXT)
            assert guard.is_allowed(f"{ORIGIN}/work-visa/") is True
            assert guard.is_allowed(f"{ORIGIN}/private/page") is False

    def test_robots_fetched_once_with_agent(self):
        guard = make_guard()
        with requests_mock.Mocker() as m:
            m.get(ROBOTS_URL, text=ROBOTS_TXT)
            guard.is_allowed(f"{ORIGIN}/a")
            guard.is_allowed(f"{ORIGIN}/b")
            guard.crawl_delay()

            assert m.call_count == 1
            assert m.request_history[0].headers['User-Agent'] == AGENT

    def test_crawl_delay(self):
        guard = make_guard()
        with requests_mock.Mocker() as m:
            m.get(ROBOTS_URL, text=ROBOTS_TXT)
            assert guard.crawl_delay() == 2.0

    def test_honor_robots_off(self):
        guard = make_guard(honor_robots=False)
        with requests_mock.Mocker() as m:
            assert guard.is_allowed(f"{ORIGIN}/private/page") is True
            assert guard.crawl_delay() is None
            assert m.call_count == 0


# ============================================================================
# Fallbacks
# ============================================================================

class TestFallbacks:

    @pytest.mark.parametrize("status", [404, 500])
    def test_http_error_allows_all(self, status):
        guard = make_guard()
        with requests_mock.Mocker() as m:
            m.get(ROBOTS_URL, status_code=status)
            assert guard.is_allowed(f"{ORIGIN}/private/page") is True
            assert guard.crawl_delay() is None

    @pytest.mark.parametrize("exc", [requests.exceptions.ConnectTimeout, requests.exceptions.ConnectionError])
    def test_network_error_allows_all(self, exc):
        guard = make_guard()
        with requests_mock.Mocker() as m:
            m.get(ROBOTS_URL, exc=exc)
            assert guard.is_allowed(f"{ORIGIN}/private/page") is True

    def test_fallback_is_logged_as_warning(self):
        guard = make_guard()
        with requests_mock.Mocker() as m, patch.object(guard, '_error_logger') as error_logger:
            m.get(ROBOTS_URL, status_code=404)
            guard.is_allowed(f"{ORIGIN}/")

        error_logger.warning.assert_called_once()


# ============================================================================
# Politeness
# ============================================================================

class TestWait:

    def test_delay_within_range(self):
        guard = make_guard(min_delay_ms=500, max_delay_ms=1500, honor_robots=False)
        for _ in range(20):
            assert 0.5 <= guard.next_delay() <= 1.5

    def test_crawl_delay_raises_floor(self):
        guard = make_guard(min_delay_ms=100, max_delay_ms=200)
        with requests_mock.Mocker() as m:
            m.get(ROBOTS_URL, text=ROBOTS_TXT)
            assert guard.next_delay() == 2.0

    def test_wait_returns_true_when_not_cancelled(self):
        guard = make_guard(honor_robots=False)
        assert guard.wait(threading.Event()) is True
        assert guard.wait() is True

    def test_wait_interrupted_by_cancel(self):
        guard = make_guard(min_delay_ms=10000, max_delay_ms=10000, honor_robots=False)
        cancel_event = threading.Event()
        cancel_event.set()
        assert guard.wait(cancel_event) is False


# ============================================================================
# Registry
# ============================================================================

class TestRegistry:

    def test_one_guard_per_origin(self):
        registry = RobotsGuardRegistry.from_config(EtlConfig(base_url=ORIGIN), requests.Session())

        first = registry.for_url(f"{ORIGIN}/a")
        second = registry.for_url(f"{ORIGIN}/b?x=1")
        other = registry.for_url("https://other.example.org/a")

        assert first is second
        assert first is not other
        assert first.origin == ORIGIN
        assert other.origin == "https://other.example.org"
