from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from .load_outcome import LoadOutcome, LoadStatus


@dataclass
class RunSummary:
    run_id: str
    pages_crawled: int = 0  # successfully fetched
    pages_skipped: int = 0  # robots / classifier / extraction said no
    errors: int = 0
    elapsed: float = 0.0
    cancelled: bool = False
    outcomes: List[LoadOutcome] = field(default_factory=list)

    def _count(self, status: LoadStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def pages_loaded(self) -> int:
        return len(self.outcomes)

    @property
    def pages_new(self) -> int:
        return self._count(LoadStatus.NEW)

    @property
    def pages_updated(self) -> int:
        return self._count(LoadStatus.UPDATED)

    @property
    def pages_unchanged(self) -> int:
        return self._count(LoadStatus.UNCHANGED)


@dataclass
class ImportSummary:
    source_file: str
    total: int = 0
    loaded: int = 0
    skipped: int = 0
    errors: int = 0
    outcomes: List[LoadOutcome] = field(default_factory=list)


@dataclass(frozen=True)
class StoreStats:
    total_sources: int
    total_pages: int
    total_visa_types: int
    last_scraped: Optional[datetime] = None
