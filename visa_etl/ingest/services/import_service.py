"""
Import of pre-extracted visa entries from a JSONL file.

One JSON object per line:
    {"source_url": ..., "title": ..., "visa_type_guess": "work",
     "sections": {"fees": ..., "processing_time": ..., "steps": ..., "validity": ...},
     "official_links": [{"title": ..., "url": ...}], "content_summary": ...}

Each entry goes through LoaderService.load with the raw line standing in
for the page HTML, so re-importing an unchanged line is a no-op.
"""

import json
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urldefrag, urlparse

from visa_etl.shared.event_bus import EventBus
from visa_etl.shared.logging_config import get_crawl_process_logger, get_error_logger

from ..domain.domain_event.run_life_cycle_event import ImportCompletedEvent
from ..domain.domain_service.content_extractor import NAME_MAX_LENGTH, SUMMARY_MAX_LENGTH, TITLE_MAX_LENGTH, slugify
from ..domain.domain_service.section_extractor import (
    PROCESSING_TIME_LABEL,
    STEP_TITLE_MAX_LENGTH,
    clean_text,
    extract_fees,
    extract_processing_times,
)
from ..domain.exceptions import StoreError
from ..domain.value_objects.etl_config import EtlConfig
from ..domain.value_objects.fetched_page import FetchedPage
from ..domain.value_objects.page_draft import (
    FeeDraft,
    LinkDraft,
    PageDraft,
    ProcessingTimeDraft,
    StepDraft,
    VisaTypeDraft,
)
from ..domain.value_objects.run_summary import ImportSummary
from .loader_service import LoaderService

GENERAL_GUESS = 'general'
MAX_IMPORTED_STEPS = 10
PURPOSE_MAX_LENGTH = 200
DEFAULT_PURPOSE = 'General visa information'
PURPOSE_SECTIONS = ('purpose', 'description', 'summary')


class MalformedEntry(ValueError):
    """A JSONL line that cannot become a page"""


class ImportService:
    def __init__(self, loader: LoaderService, config: Optional[EtlConfig] = None, event_bus: Optional[EventBus] = None):
        self._loader = loader
        self._config = config or EtlConfig()
        self._event_bus = event_bus
        self._logger = get_crawl_process_logger()
        self._error_logger = get_error_logger()

    def import_file(self, path: Union[str, Path]) -> ImportSummary:
        path = Path(path)
        run_id = str(uuid.uuid4())
        summary = ImportSummary(source_file=str(path))

        with open(path, encoding='utf-8') as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                summary.total += 1

                try:
                    fetched, draft = self.parse_line(line)
                except MalformedEntry as e:
                    summary.skipped += 1
                    self._logger.warning(
                        f"Skipping malformed entry at {path.name}:{line_no} - {str(e)}",
                        extra={'source_file': str(path), 'line': line_no},
                    )
                    continue

                try:
                    outcome = self._loader.load(fetched, draft, run_id)
                except StoreError as e:
                    summary.errors += 1
                    self._error_logger.error(
                        f"Store failure importing {fetched.url}: {e.message}",
                        extra={'url': fetched.url, 'source_file': str(path), 'line': line_no},
                    )
                    continue

                summary.loaded += 1
                summary.outcomes.append(outcome)

        if self._event_bus:
            self._event_bus.publish(ImportCompletedEvent(
                run_id=run_id,
                source_file=str(path),
                loaded=summary.loaded,
                skipped=summary.skipped,
                errors=summary.errors,
                total=summary.total,
            ))
        return summary

    # ------------------ mapping ------------------

    def parse_line(self, line: str):
        """Raw JSONL line -> (FetchedPage, PageDraft). Raises MalformedEntry."""
        try:
            entry = json.loads(line)
        except json.JSONDecodeError as e:
            raise MalformedEntry(f"invalid JSON: {e.msg}") from e
        if not isinstance(entry, dict):
            raise MalformedEntry("entry is not an object")

        url = urldefrag(str(entry.get('source_url') or '').strip())[0]
        if urlparse(url).scheme not in ('http', 'https'):
            raise MalformedEntry(f"missing or invalid source_url: {entry.get('source_url')!r}")
        title = clean_text(entry.get('title'))
        if not title:
            raise MalformedEntry("missing title")

        sections = entry.get('sections') or {}
        if not isinstance(sections, dict):
            raise MalformedEntry("sections is not an object")

        content = clean_text(entry.get('content_summary'))
        summary = content
        if len(summary) > SUMMARY_MAX_LENGTH:
            summary = summary[:SUMMARY_MAX_LENGTH - 3] + '...'

        visa_types = []
        guess = clean_text(entry.get('visa_type_guess')).lower()
        if guess and guess != GENERAL_GUESS:
            visa_types.append(self._visa_type(title, guess, sections, entry.get('official_links') or []))

        fetched = FetchedPage(url=url, final_url=url, html=line, status_code=200, fetched_at=datetime.now())
        draft = PageDraft(
            url=url,
            title=title[:TITLE_MAX_LENGTH],
            slug=slugify(title),
            summary=summary or None,
            content_text=content,
            content_markup=json.dumps(sections, ensure_ascii=False, sort_keys=True),
            visa_types=visa_types,
        )
        return fetched, draft

    def _visa_type(self, title: str, category: str, sections: Dict[str, Any], links: List[Any]) -> VisaTypeDraft:
        fees_text = clean_text(sections.get('fees'))
        fees = extract_fees(fees_text, fees_text, self._config.currency_aliases, self._config.free_fee_phrases)
        if not fees and fees_text:
            # keep the wording even without a parseable amount
            fees = [FeeDraft(fee_name='Visa Fee', amount=None, currency=next(iter(self._config.currency_aliases), 'QAR'),
                             notes=fees_text)]

        time_text = clean_text(sections.get('processing_time'))
        processing_times = extract_processing_times(time_text)
        if not processing_times and time_text:
            processing_times = [ProcessingTimeDraft(timeline_label=PROCESSING_TIME_LABEL, notes=time_text)]

        step_lines = [clean_text(s) for s in str(sections.get('steps') or '').split('\n')]
        step_lines = [s for s in step_lines if s][:MAX_IMPORTED_STEPS]
        steps = [
            StepDraft(step_order=i, step_title=s[:STEP_TITLE_MAX_LENGTH], step_detail=s)
            for i, s in enumerate(step_lines, start=1)
        ]

        eligibility = []
        validity = clean_text(sections.get('validity'))
        if validity:
            eligibility.append(f"Validity: {validity}")

        external_links = []
        for link in links:
            if isinstance(link, dict) and link.get('url') and clean_text(link.get('title')):
                external_links.append(LinkDraft(link_title=clean_text(link['title'])[:500], link_url=link['url']))

        return VisaTypeDraft(
            name=title[:NAME_MAX_LENGTH],
            category=category[:50],
            purpose=self._purpose(sections),
            eligibility=eligibility,
            fees=fees,
            processing_times=processing_times,
            steps=steps,
            external_links=external_links,
        )

    @staticmethod
    def _purpose(sections: Dict[str, Any]) -> str:
        for key in PURPOSE_SECTIONS:
            text = clean_text(sections.get(key))
            if text:
                return text[:PURPOSE_MAX_LENGTH]
        return DEFAULT_PURPOSE
