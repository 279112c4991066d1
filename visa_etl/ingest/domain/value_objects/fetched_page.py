from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional


@dataclass
class FetchedPage:
    """
    Successful fetch result.

    url is the requested (normalized) URL, final_url the one after redirects.
    Only the headers the loader cares about are kept: etag, last-modified,
    content-type (lower-cased keys).
    """
    url: str
    final_url: str
    html: str
    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    fetched_at: datetime = field(default_factory=datetime.now)

    @property
    def etag(self) -> Optional[str]:
        return self.headers.get("etag")

    @property
    def last_modified(self) -> Optional[str]:
        return self.headers.get("last-modified")
