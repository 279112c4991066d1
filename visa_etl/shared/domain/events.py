"""
Base class of all domain events.
It lives in shared/ so that the event handlers can read the common fields
without depending on the ingest package.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict


@dataclass
class DomainEvent:
    """
    Every domain event carries the crawl run id and a timestamp.
    timestamp is keyword-only so subclasses may declare required fields.
    """
    run_id: str
    timestamp: datetime = field(default_factory=datetime.now, kw_only=True)

    @property
    def event_type(self) -> str:
        """The class name doubles as the event type"""
        return self.__class__.__name__

    @property
    def data(self) -> Dict[str, Any]:
        """Event fields as a dict, without the base fields"""
        all_data = asdict(self)
        return {
            k: v for k, v in all_data.items()
            if k not in ('run_id', 'timestamp')
        }
