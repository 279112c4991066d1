from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class LoadStatus(str, Enum):
    NEW = "new"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class DiffSummary:
    added_lines: int = 0
    removed_lines: int = 0
    changes: List[str] = field(default_factory=list)  # at most 10 previews

    def to_dict(self) -> dict:
        return {
            "added_lines": self.added_lines,
            "removed_lines": self.removed_lines,
            "changes": list(self.changes),
        }


@dataclass(frozen=True)
class LoadOutcome:
    url: str
    status: LoadStatus
    source_id: int
    page_id: Optional[int] = None
    visa_type_count: int = 0
    diff: Optional[DiffSummary] = None
