"""
HttpFetcherImpl test suite
Covers: session configuration, successful fetches, header selection, encoding fix-up, error classification
"""

import pytest
import requests
import requests_mock

from visa_etl.ingest.domain.exceptions import PermanentFetchError, TransientFetchError
from visa_etl.ingest.infrastructure.http_fetcher_impl import HttpFetcherImpl

URL = "https://visa.example.com/work-visa/"


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def fetcher():
    """HttpFetcherImpl closed after the test"""
    client = HttpFetcherImpl(user_agent="TestBot/1.0", timeout_ms=5000)
    yield client
    client.close()


# ============================================================================
# Configuration
# ============================================================================

class TestInitialization:

    def test_headers(self, fetcher):
        assert fetcher._session.headers['User-Agent'] == "TestBot/1.0"
        assert 'text/html' in fetcher._session.headers['Accept']

    def test_timeout_in_seconds(self, fetcher):
        assert fetcher._timeout == 5.0

    def test_no_transport_retries(self, fetcher):
        adapter = fetcher._session.get_adapter('https://')
        assert adapter.max_retries.total == 0


# ============================================================================
# Success
# ============================================================================

class TestFetchSuccess:

    def test_basic_fetch(self, fetcher):
        with requests_mock.Mocker() as m:
            m.get(URL, text="<html><h1>Work Visa</h1></html>", headers={
                'Content-Type': 'text/html; charset=utf-8',
                'ETag': '"abc"',
                'Last-Modified': 'Tue, 05 Mar 2024 10:00:00 GMT',
                'X-Powered-By': 'PHP',
            })
            page = fetcher.fetch(URL)

        assert page.url == URL
        assert page.final_url == URL
        assert page.status_code == 200
        assert '<h1>Work Visa</h1>' in page.html
        assert page.etag == '"abc"'
        assert page.last_modified == 'Tue, 05 Mar 2024 10:00:00 GMT'
        assert page.headers['content-type'].startswith('text/html')
        assert 'x-powered-by' not in page.headers

    def test_redirect_reports_final_url(self, fetcher):
        with requests_mock.Mocker() as m:
            m.get(URL, status_code=301, headers={'Location': 'https://visa.example.com/visas/work/'})
            m.get('https://visa.example.com/visas/work/', text="<html>moved</html>")
            page = fetcher.fetch(URL)

        assert page.url == URL
        assert page.final_url == 'https://visa.example.com/visas/work/'

    def test_missing_charset_is_detected(self, fetcher):
        body = ("<html><body>" + "<p>Résidence à Doha, procédure expliquée.</p>" * 20 + "</body></html>").encode("utf-8")
        with requests_mock.Mocker() as m:
            m.get(URL, content=body, headers={'Content-Type': 'text/html'})
            page = fetcher.fetch(URL)

        assert 'Résidence' in page.html


# ============================================================================
# Failure classification
# ============================================================================

class TestFetchErrors:

    @pytest.mark.parametrize("status", [404, 410, 500, 503])
    def test_http_errors_are_permanent(self, fetcher, status):
        with requests_mock.Mocker() as m:
            m.get(URL, status_code=status)
            with pytest.raises(PermanentFetchError) as exc_info:
                fetcher.fetch(URL)

        assert exc_info.value.status_code == status
        assert exc_info.value.url == URL

    @pytest.mark.parametrize("exc", [
        requests.exceptions.ConnectTimeout,
        requests.exceptions.ReadTimeout,
        requests.exceptions.ConnectionError,
        requests.exceptions.ChunkedEncodingError,
    ])
    def test_network_errors_are_transient(self, fetcher, exc):
        with requests_mock.Mocker() as m:
            m.get(URL, exc=exc)
            with pytest.raises(TransientFetchError):
                fetcher.fetch(URL)

    def test_redirect_loop_is_permanent(self, fetcher):
        with requests_mock.Mocker() as m:
            m.get(URL, exc=requests.exceptions.TooManyRedirects)
            with pytest.raises(PermanentFetchError):
                fetcher.fetch(URL)

    @pytest.mark.parametrize("bad_url", ["visa.example.com/no-scheme", "ftp://visa.example.com/"])
    def test_malformed_url_is_permanent(self, fetcher, bad_url):
        with pytest.raises(PermanentFetchError):
            fetcher.fetch(bad_url)
