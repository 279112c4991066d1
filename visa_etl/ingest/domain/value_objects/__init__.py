from .classification_result import ClassificationResult
from .etl_config import EtlConfig
from .fetched_page import FetchedPage
from .load_outcome import DiffSummary, LoadOutcome, LoadStatus
from .page_draft import (
    DocumentDraft,
    FeeDraft,
    LinkDraft,
    PageDraft,
    ProcessingTimeDraft,
    StepDraft,
    VisaTypeDraft,
)
from .queued_url import QueuedUrl
from .run_summary import ImportSummary, RunSummary, StoreStats

__all__ = [
    'ClassificationResult',
    'EtlConfig',
    'FetchedPage',
    'DiffSummary',
    'LoadOutcome',
    'LoadStatus',
    'DocumentDraft',
    'FeeDraft',
    'LinkDraft',
    'PageDraft',
    'ProcessingTimeDraft',
    'StepDraft',
    'VisaTypeDraft',
    'QueuedUrl',
    'ImportSummary',
    'RunSummary',
    'StoreStats',
]
