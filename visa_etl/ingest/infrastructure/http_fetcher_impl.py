import time
from datetime import datetime
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from visa_etl.shared.logging_config import get_performance_logger

from ..domain.demand_interface.i_fetcher import IFetcher
from ..domain.exceptions import PermanentFetchError, TransientFetchError
from ..domain.value_objects.fetched_page import FetchedPage

KEPT_HEADERS = ('etag', 'last-modified', 'content-type')


class HttpFetcherImpl(IFetcher):
    """requests based fetcher, one attempt per call"""

    def __init__(
        self,
        user_agent: str,
        timeout_ms: int = 30000,
        max_redirects: int = 10,
        session: Optional[requests.Session] = None,
    ):
        """
        Parameters:
            user_agent: sent on every request
            timeout_ms: connect and read timeout
            max_redirects: more than this counts as a redirect loop
            session: injectable for tests
        """
        self._timeout = timeout_ms / 1000.0
        self._session = session or requests.Session()
        self._session.max_redirects = max_redirects
        self._perf_logger = get_performance_logger()

        self._session.headers.update({
            'User-Agent': user_agent,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'en;q=0.9,ar;q=0.8',
            'Accept-Encoding': 'gzip, deflate',
            'Connection': 'keep-alive',
        })

        # No transport level retries: every retry must go through the
        # politeness delay, which the crawler service owns.
        retry_strategy = Retry(total=0, redirect=max_redirects, raise_on_status=False)
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)

    def fetch(self, url: str) -> FetchedPage:
        start_time = time.time()
        try:
            response = self._session.get(url, timeout=self._timeout, allow_redirects=True)

            if response.status_code >= 400:
                raise PermanentFetchError(url, f"HTTP {response.status_code}", response.status_code)

            # requests falls back to ISO-8859-1 when the header names no charset
            if response.encoding == 'ISO-8859-1':
                response.encoding = response.apparent_encoding
            if not response.encoding:
                response.encoding = 'utf-8'

            html = response.text

        except requests.exceptions.Timeout as e:
            raise TransientFetchError(url, f"Timed out after {self._timeout}s: {str(e)}") from e
        except requests.exceptions.TooManyRedirects as e:
            raise PermanentFetchError(url, f"Too many redirects: {str(e)}") from e
        except (requests.exceptions.InvalidURL,
                requests.exceptions.MissingSchema,
                requests.exceptions.InvalidSchema) as e:
            raise PermanentFetchError(url, f"Malformed URL: {str(e)}") from e
        except (requests.exceptions.ConnectionError,
                requests.exceptions.ChunkedEncodingError,
                requests.exceptions.ContentDecodingError) as e:
            raise TransientFetchError(url, f"Connection failed: {str(e)}") from e
        except requests.exceptions.RequestException as e:
            raise PermanentFetchError(url, f"Request failed: {type(e).__name__} - {str(e)}") from e

        elapsed_ms = (time.time() - start_time) * 1000
        self._perf_logger.info(f"GET {url} - {elapsed_ms:.2f}ms", extra={
            'url': url,
            'method': 'GET',
            'status_code': response.status_code,
            'elapsed_ms': elapsed_ms,
            'component': 'HttpFetcherImpl',
        })

        headers = {
            name: response.headers[name]
            for name in KEPT_HEADERS
            if name in response.headers
        }
        return FetchedPage(
            url=url,
            final_url=response.url,
            html=html,
            status_code=response.status_code,
            headers=headers,
            fetched_at=datetime.now(),
        )

    def close(self) -> None:
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
