from dataclasses import dataclass, field
from typing import List, Optional

from visa_etl.shared.domain.events import DomainEvent


@dataclass
class FetchAttemptedEvent(DomainEvent):
    """One fetch attempt (retries included)"""
    url: str
    attempt: int
    depth: int = 0


@dataclass
class PageFetchedEvent(DomainEvent):
    url: str
    status_code: int
    depth: int
    elapsed_ms: float = 0.0


@dataclass
class FetchFailedEvent(DomainEvent):
    """A URL dropped after a permanent failure or exhausted retries"""
    url: str
    error_type: str
    error_message: str
    attempts: int
    status_code: Optional[int] = None


@dataclass
class UrlSkippedEvent(DomainEvent):
    """Not an error: robots, classifier or extraction said no"""
    url: str
    reason: str  # e.g. "robots_disallowed", "not_relevant", "no_title"


@dataclass
class PageClassifiedEvent(DomainEvent):
    url: str
    accept: bool
    confidence: float
    reasons: List[str] = field(default_factory=list)
    stage: str = "content"


@dataclass
class PageLoadedEvent(DomainEvent):
    url: str
    status: str  # new / updated / unchanged
    page_id: Optional[int] = None
    visa_type_count: int = 0
    added_lines: int = 0
    removed_lines: int = 0


@dataclass
class CrawlErrorEvent(DomainEvent):
    """Non-fatal, page level error (store failure, unexpected extraction bug)"""
    url: str
    error_type: str
    error_message: str
