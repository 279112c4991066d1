from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class ClassificationResult:
    accept: bool
    confidence: float  # 0..1
    reasons: List[str] = field(default_factory=list)
