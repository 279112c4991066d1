"""
FrontierImpl test suite
Covers: normalization, dedup, origin restriction, depth/page ceilings, URL filter, exhaustion and cancellation
"""

import threading

import pytest

from visa_etl.ingest.infrastructure.frontier_impl import FrontierImpl

BASE = "https://visa.example.com"


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def frontier():
    return FrontierImpl(BASE, max_depth=3, max_pages=100)


def drain(frontier):
    """Dequeue everything, marking each entry done"""
    entries = []
    while True:
        entry = frontier.next()
        if entry is None:
            return entries
        entries.append(entry)
        frontier.task_done()


# ============================================================================
# Normalization
# ============================================================================

class TestNormalize:

    @pytest.mark.parametrize("raw, expected", [
        ("/work-visa/", "https://visa.example.com/work-visa/"),
        ("HTTPS://VISA.Example.COM/a", "https://visa.example.com/a"),
        ("https://visa.example.com:443/a", "https://visa.example.com/a"),
        ("https://visa.example.com:8443/a", "https://visa.example.com:8443/a"),
        ("https://visa.example.com", "https://visa.example.com/"),
        ("https://visa.example.com/a#section", "https://visa.example.com/a"),
        ("https://visa.example.com/a?x=1", "https://visa.example.com/a?x=1"),
    ])
    def test_canonical_form(self, frontier, raw, expected):
        assert frontier.normalize(raw) == expected

    @pytest.mark.parametrize("raw", [
        "mailto:info@example.com",
        "javascript:void(0)",
        "ftp://visa.example.com/file",
        "https://visa.example.com:notaport/",
        "",
        None,
    ])
    def test_malformed_is_none(self, frontier, raw):
        assert frontier.normalize(raw) is None

    def test_base_url_must_be_absolute(self):
        with pytest.raises(ValueError):
            FrontierImpl("not a url")


# ============================================================================
# Dedup and origin
# ============================================================================

class TestPush:

    def test_same_url_yielded_once(self, frontier):
        frontier.seed([f"{BASE}/work-visa/"])
        assert frontier.push(f"{BASE}/work-visa/", 1) is False
        assert frontier.push(f"{BASE}/work-visa/#fees", 1) is False
        assert frontier.push("/work-visa/", 1) is False

        urls = [entry.url for entry in drain(frontier)]
        assert urls == [f"{BASE}/work-visa/"]

    def test_other_origin_rejected(self, frontier):
        assert frontier.push("https://other.example.com/visa/", 1) is False
        assert frontier.push("http://visa.example.com/visa/", 1) is False
        assert frontier.size() == 0

    def test_is_same_origin(self, frontier):
        assert frontier.is_same_origin("/family-visa/") is True
        assert frontier.is_same_origin("HTTPS://VISA.EXAMPLE.COM:443/x") is True
        assert frontier.is_same_origin("https://visa.example.com.evil.org/") is False
        assert frontier.is_same_origin("mailto:info@example.com") is False

    def test_bfs_order(self, frontier):
        frontier.seed([f"{BASE}/a-visa/", f"{BASE}/b-visa/"])
        first = frontier.next()
        frontier.push(f"{BASE}/c-visa/", first.depth + 1)
        frontier.task_done()

        order = [(e.url, e.depth) for e in drain(frontier)]
        assert order == [(f"{BASE}/b-visa/", 0), (f"{BASE}/c-visa/", 1)]

    def test_url_filter_applies_to_push_not_seed(self):
        frontier = FrontierImpl(BASE, url_filter=lambda url: '/visa' in url)

        assert frontier.seed([f"{BASE}/"]) == 1
        assert frontier.push(f"{BASE}/visa/work/", 1) is True
        assert frontier.push(f"{BASE}/hotels/", 1) is False

    def test_seed_counts_accepted(self, frontier):
        accepted = frontier.seed([f"{BASE}/a/", f"{BASE}/a/", "https://elsewhere.org/", "bad://x"])
        assert accepted == 1


# ============================================================================
# Ceilings
# ============================================================================

class TestBounds:

    def test_depth_and_page_ceilings(self):
        """max_depth=1, max_pages=5, seed page links to 20 pages"""
        frontier = FrontierImpl(BASE, max_depth=1, max_pages=5)
        frontier.seed([f"{BASE}/visas/"])

        seed = frontier.next()
        pushed = [frontier.push(f"{BASE}/visa-{i}/", seed.depth + 1) for i in range(20)]
        frontier.task_done()

        assert sum(pushed) == 4

        entries = drain(frontier)
        for entry in entries:
            assert frontier.push(f"{entry.url}child/", entry.depth + 1) is False

        assert len(entries) + 1 <= 5
        assert all(entry.depth <= 1 for entry in entries)
        assert frontier.dequeued_count == 5

    def test_push_beyond_depth_rejected(self, frontier):
        assert frontier.push(f"{BASE}/deep/", 4) is False
        assert frontier.push(f"{BASE}/deep/", 3) is True


# ============================================================================
# Termination
# ============================================================================

class TestNext:

    def test_empty_frontier_is_exhausted(self, frontier):
        assert frontier.next() is None

    def test_cancel_stops_dequeuing(self, frontier):
        frontier.seed([f"{BASE}/a/", f"{BASE}/b/"])
        cancel_event = threading.Event()
        cancel_event.set()

        assert frontier.next(cancel_event) is None
        assert frontier.size() == 2

    def test_waits_for_in_flight_workers(self, frontier):
        frontier.seed([f"{BASE}/a/"])
        entry = frontier.next()
        results = []

        waiter = threading.Thread(target=lambda: results.append(frontier.next()))
        waiter.start()

        frontier.push(f"{BASE}/b/", entry.depth + 1)
        frontier.task_done()
        waiter.join(timeout=5)

        assert not waiter.is_alive()
        assert results[0].url == f"{BASE}/b/"
