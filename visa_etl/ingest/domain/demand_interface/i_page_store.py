from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from ..value_objects.fetched_page import FetchedPage
from ..value_objects.load_outcome import DiffSummary
from ..value_objects.page_draft import PageDraft, VisaTypeDraft
from ..value_objects.run_summary import StoreStats


@dataclass(frozen=True)
class StoredSource:
    id: int
    url: str
    url_hash: str
    content_hash: Optional[str]
    last_fetched_at: Optional[datetime] = None


@dataclass(frozen=True)
class StoredPage:
    id: int
    source_id: int
    title: str
    content_text: str


class IStoreTransaction(ABC):
    """
    Unit of work handed out by IPageStore.transaction().
    Either every call in it is committed or none is.
    """

    @abstractmethod
    def find_source(self, url: str) -> Optional[StoredSource]:
        pass

    @abstractmethod
    def create_source(self, fetched: FetchedPage, content_hash: str) -> StoredSource:
        pass

    @abstractmethod
    def update_source(self, source_id: int, fetched: FetchedPage, content_hash: Optional[str] = None) -> None:
        """Refresh fetch metadata; content_hash only when given"""
        pass

    @abstractmethod
    def find_page(self, source_id: int) -> Optional[StoredPage]:
        pass

    @abstractmethod
    def save_page(self, source_id: int, draft: PageDraft, page_id: Optional[int] = None) -> int:
        """Insert (page_id None) or overwrite the page row, returns its id"""
        pass

    @abstractmethod
    def add_change(self, page_id: int, diff: DiffSummary, detected_at: datetime) -> None:
        pass

    @abstractmethod
    def replace_records(self, page_id: int, records: List[VisaTypeDraft]) -> int:
        """Delete the page's visa types (and children) then insert records"""
        pass


class IPageStore(ABC):
    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """Context manager yielding an IStoreTransaction"""
        pass

    @abstractmethod
    def get_stats(self) -> StoreStats:
        pass
