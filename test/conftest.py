import threading
from typing import Callable, Dict, List, Optional, Union

import pytest

from visa_etl.ingest.domain.demand_interface.i_fetcher import IFetcher
from visa_etl.ingest.domain.value_objects.etl_config import EtlConfig
from visa_etl.ingest.domain.value_objects.fetched_page import FetchedPage
from visa_etl.shared.db_manager import Database

BASE_URL = "https://visa.example.com"


# ============================================================================
# Fakes
# ============================================================================

class FakeFetcher(IFetcher):
    """
    Serves canned responses keyed by URL.

    A value is either an HTML string, an exception instance (raised), or a
    callable taking the attempt number (1-based) for that URL.
    """

    def __init__(self, pages: Dict[str, Union[str, Exception, Callable[[int], str]]],
                 content_type: str = 'text/html; charset=utf-8'):
        self._pages = pages
        self._content_type = content_type
        self._lock = threading.Lock()
        self.calls: List[str] = []

    def attempts(self, url: str) -> int:
        return self.calls.count(url)

    def fetch(self, url: str) -> FetchedPage:
        from visa_etl.ingest.domain.exceptions import PermanentFetchError

        with self._lock:
            self.calls.append(url)
            attempt = self.calls.count(url)

        value = self._pages.get(url)
        if value is None:
            raise PermanentFetchError(url, "HTTP 404", 404)
        if callable(value) and not isinstance(value, Exception):
            value = value(attempt)
        if isinstance(value, Exception):
            raise value
        return FetchedPage(url=url, final_url=url, html=value, headers={'content-type': self._content_type})


def visa_page(title: str, body: str = "", links: Optional[List[str]] = None, description: str = "") -> str:
    """A page that passes the content stage on its own"""
    anchors = ''.join(f'<a href="{href}">{href}</a>' for href in (links or []))
    meta = f'<meta name="description" content="{description}">' if description else ''
    return (
        f"<html><head><title>{title}</title>{meta}</head><body>"
        f"<h1>{title}</h1>"
        f"<p>Eligibility, required documents and processing time for this visa.</p>"
        f"{body}{anchors}</body></html>"
    )


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def config():
    """Zero delay configuration for a fake site"""
    return EtlConfig(
        base_url=BASE_URL,
        seed_urls=[f"{BASE_URL}/work-visa/"],
        min_delay_ms=0,
        max_delay_ms=0,
        max_retries=2,
        honor_robots=False,
    )


@pytest.fixture
def database():
    """In-memory SQLite store with the schema created"""
    db = Database("sqlite:///:memory:")
    db.create_schema()
    yield db
    db.drop_schema()
    db.close()


@pytest.fixture
def fake_fetcher():
    """FakeFetcher factory"""
    return FakeFetcher


@pytest.fixture
def make_page():
    """visa_page builder"""
    return visa_page
