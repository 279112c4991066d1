import time
from datetime import datetime

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from visa_etl.shared.logging_config import get_error_logger, get_performance_logger

from ..domain.demand_interface.i_fetcher import IFetcher
from ..domain.exceptions import PermanentFetchError, TransientFetchError
from ..domain.value_objects.fetched_page import FetchedPage

# Chromium network errors worth another attempt
TRANSIENT_NET_ERRORS = (
    'net::ERR_CONNECTION',
    'net::ERR_TIMED_OUT',
    'net::ERR_NETWORK_CHANGED',
    'net::ERR_EMPTY_RESPONSE',
    'net::ERR_INTERNET_DISCONNECTED',
)


class PlaywrightFetcher(IFetcher):
    """
    Headless Chromium fetcher for pages that need script execution.

    The sync API is not thread safe, so every fetch starts its own
    playwright instance and browser. Slow, but only used when
    fetch_strategy is "browser".
    """

    def __init__(self, user_agent: str, timeout_ms: int = 30000, headless: bool = True):
        self._user_agent = user_agent
        self._timeout_ms = timeout_ms
        self._headless = headless
        self._error_logger = get_error_logger()
        self._perf_logger = get_performance_logger()

    def fetch(self, url: str) -> FetchedPage:
        start_time = time.time()
        with sync_playwright() as p:
            browser = p.chromium.launch(headless=self._headless)
            try:
                context = browser.new_context(user_agent=self._user_agent)
                page = context.new_page()

                try:
                    response = page.goto(url, wait_until="domcontentloaded", timeout=self._timeout_ms)
                except PlaywrightTimeoutError as e:
                    raise TransientFetchError(url, f"Navigation timed out after {self._timeout_ms}ms") from e
                except PlaywrightError as e:
                    message = str(e)
                    if any(marker in message for marker in TRANSIENT_NET_ERRORS):
                        raise TransientFetchError(url, message) from e
                    self._error_logger.error(
                        f"Playwright Error: {url} - {message}",
                        extra={'url': url, 'component': 'PlaywrightFetcher'},
                    )
                    raise PermanentFetchError(url, message) from e

                status_code = response.status if response is not None else 200
                if status_code >= 400:
                    raise PermanentFetchError(url, f"HTTP {status_code}", status_code)

                html = page.content()
                headers = {}
                if response is not None:
                    response_headers = response.headers  # lower-cased by playwright
                    headers = {
                        name: response_headers[name]
                        for name in ('etag', 'last-modified', 'content-type')
                        if name in response_headers
                    }

                elapsed_ms = (time.time() - start_time) * 1000
                self._perf_logger.info(f"Playwright Render {url} - {elapsed_ms:.2f}ms", extra={
                    'url': url,
                    'method': 'RENDER',
                    'status_code': status_code,
                    'elapsed_ms': elapsed_ms,
                    'component': 'PlaywrightFetcher',
                })

                return FetchedPage(
                    url=url,
                    final_url=page.url,
                    html=html,
                    status_code=status_code,
                    headers=headers,
                    fetched_at=datetime.now(),
                )
            finally:
                browser.close()
