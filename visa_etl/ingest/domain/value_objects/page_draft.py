"""
Extraction output. Drafts carry no ids; the loader assigns them on insert.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional


@dataclass
class DocumentDraft:
    doc_name: str
    notes: Optional[str] = None


@dataclass
class FeeDraft:
    fee_name: str
    amount: Optional[Decimal]
    currency: str = "QAR"
    notes: Optional[str] = None


@dataclass
class ProcessingTimeDraft:
    timeline_label: str
    min_days: Optional[int] = None
    max_days: Optional[int] = None
    notes: Optional[str] = None


@dataclass
class StepDraft:
    step_order: int  # 1-based, dense
    step_title: str
    step_detail: Optional[str] = None


@dataclass
class LinkDraft:
    link_title: str
    link_url: str


@dataclass
class VisaTypeDraft:
    name: str
    category: str
    purpose: Optional[str] = None
    audience: Optional[str] = None
    is_active: bool = True
    eligibility: List[str] = field(default_factory=list)
    documents: List[DocumentDraft] = field(default_factory=list)
    fees: List[FeeDraft] = field(default_factory=list)
    processing_times: List[ProcessingTimeDraft] = field(default_factory=list)
    steps: List[StepDraft] = field(default_factory=list)
    external_links: List[LinkDraft] = field(default_factory=list)


@dataclass
class PageDraft:
    url: str
    title: str
    slug: str
    summary: Optional[str] = None
    content_text: str = ""
    content_markup: Optional[str] = None
    last_updated: Optional[datetime] = None
    visa_types: List[VisaTypeDraft] = field(default_factory=list)
