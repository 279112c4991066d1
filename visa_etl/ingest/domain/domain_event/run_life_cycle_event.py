from dataclasses import dataclass

from visa_etl.shared.domain.events import DomainEvent


@dataclass
class RunStartedEvent(DomainEvent):
    base_url: str
    seed_count: int
    max_depth: int
    max_pages: int
    workers: int = 1


@dataclass
class RunCompletedEvent(DomainEvent):
    pages_crawled: int
    pages_loaded: int
    pages_new: int
    pages_updated: int
    pages_unchanged: int
    pages_skipped: int
    error_count: int
    elapsed_time: float


@dataclass
class RunCancelledEvent(DomainEvent):
    pages_crawled: int
    pages_loaded: int
    error_count: int
    elapsed_time: float
    reason: str = "cancellation requested"


@dataclass
class ImportCompletedEvent(DomainEvent):
    source_file: str
    loaded: int
    skipped: int
    errors: int
    total: int
