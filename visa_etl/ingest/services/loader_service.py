import threading
from contextlib import contextmanager
from typing import Dict, List, Optional

from visa_etl.shared.event_bus import EventBus

from ..domain.demand_interface.i_page_store import IPageStore
from ..domain.domain_event.crawl_process_event import PageLoadedEvent
from ..domain.domain_service.change_detector import content_hash, generate_diff_summary
from ..domain.value_objects.fetched_page import FetchedPage
from ..domain.value_objects.load_outcome import LoadOutcome, LoadStatus
from ..domain.value_objects.page_draft import PageDraft
from ..domain.value_objects.run_summary import StoreStats


class LoaderService:
    """
    Change aware, idempotent loader.

    Per source URL: unseen -> fetched -> {unchanged | changed-new | changed-update}.
    Each load is one store transaction, so a page is either fully replaced
    or left as it was. Loads of the same URL are serialized in-process.
    """

    def __init__(self, store: IPageStore, event_bus: Optional[EventBus] = None):
        self._store = store
        self._event_bus = event_bus
        # url -> [lock, holders]; entries go away with their last holder
        self._url_locks: Dict[str, List] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _url_lock(self, url: str):
        with self._locks_guard:
            entry = self._url_locks.get(url)
            if entry is None:
                entry = self._url_locks[url] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._url_locks[url]

    def load(self, fetched: FetchedPage, draft: PageDraft, run_id: Optional[str] = None) -> LoadOutcome:
        """
        Persist one fetched page and its extraction.

        Raises:
            StoreError: the transaction was rolled back, nothing was written
        """
        new_hash = content_hash(fetched.html)

        with self._url_lock(fetched.url):
            with self._store.transaction() as tx:
                source = tx.find_source(fetched.url)

                if source is None:
                    source = tx.create_source(fetched, new_hash)
                    page_id = tx.save_page(source.id, draft)
                    count = tx.replace_records(page_id, draft.visa_types)
                    outcome = LoadOutcome(fetched.url, LoadStatus.NEW, source.id, page_id, count)

                elif source.content_hash == new_hash:
                    # idempotent path: only fetch metadata moves
                    tx.update_source(source.id, fetched)
                    page = tx.find_page(source.id)
                    outcome = LoadOutcome(
                        fetched.url, LoadStatus.UNCHANGED, source.id, page.id if page else None, 0
                    )

                else:
                    tx.update_source(source.id, fetched, new_hash)
                    page = tx.find_page(source.id)
                    diff = None
                    if page is not None:
                        diff = generate_diff_summary(page.content_text, draft.content_text)
                        tx.add_change(page.id, diff, fetched.fetched_at)
                    page_id = tx.save_page(source.id, draft, page.id if page else None)
                    count = tx.replace_records(page_id, draft.visa_types)
                    outcome = LoadOutcome(fetched.url, LoadStatus.UPDATED, source.id, page_id, count, diff)

        self._publish(outcome, run_id)
        return outcome

    def _publish(self, outcome: LoadOutcome, run_id: Optional[str]) -> None:
        if self._event_bus is None or run_id is None:
            return
        self._event_bus.publish(PageLoadedEvent(
            run_id=run_id,
            url=outcome.url,
            status=outcome.status.value,
            page_id=outcome.page_id,
            visa_type_count=outcome.visa_type_count,
            added_lines=outcome.diff.added_lines if outcome.diff else 0,
            removed_lines=outcome.diff.removed_lines if outcome.diff else 0,
        ))

    def get_stats(self) -> StoreStats:
        return self._store.get_stats()
