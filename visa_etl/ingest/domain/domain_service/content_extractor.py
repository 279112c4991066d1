"""
Page level extraction: pure functions over IHtmlDocument plus the thin
extract_page orchestrator.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Callable, List, Optional, TypeVar

from ..demand_interface.i_html_document import IHtmlDocument
from ..value_objects.etl_config import EtlConfig
from ..value_objects.page_draft import PageDraft, VisaTypeDraft
from . import section_extractor as sections
from .section_extractor import clean_text

logger = logging.getLogger('domain.crawl_process')

T = TypeVar('T')

SUMMARY_MAX_LENGTH = 2000
TITLE_MAX_LENGTH = 500
NAME_MAX_LENGTH = 255

CONTENT_EXCLUDED_TAGS = ('script', 'style', 'nav', 'footer', 'noscript')
CONTENT_EXCLUDED_CLASSES = ('ads', 'advertisement')
MARKUP_SELECTORS = ('.content', '.article', 'main', '[role=main]', '.post')

DATE_FORMATS = [
    '%Y-%m-%d',
    '%Y/%m/%d',
    '%d/%m/%Y',
    '%d-%m-%Y',
    '%B %d, %Y',
    '%b %d, %Y',
    '%d %B %Y',
    '%d %b %Y',
    '%a, %d %b %Y %H:%M:%S GMT',
    '%Y-%m-%d %H:%M:%S',
]
_DATE_PREFIX = re.compile(r'^(?:last\s+)?(?:updated|modified)(?:\s+on)?\s*:?\s*', re.IGNORECASE)

# first match wins
CATEGORY_RULES = [
    ('work', re.compile(r'work|employment|labou?r|job')),
    ('family', re.compile(r'family|spouse|dependent|child')),
    ('business', re.compile(r'business|commercial|entrepreneur')),
    ('tourist', re.compile(r'tourist|visit|tourism')),
    ('student', re.compile(r'student|study|education')),
    ('residence', re.compile(r'residence|residency|permanent')),
    ('transit', re.compile(r'transit')),
]
DEFAULT_CATEGORY = 'other'

PURPOSE_RULES = [
    ('employment', re.compile(r'employment|work')),
    ('family_reunion', re.compile(r'family')),
    ('business_visit', re.compile(r'business')),
    ('tourism', re.compile(r'tourism|tourist')),
    ('education', re.compile(r'education|study')),
]


def extract_title(doc: IHtmlDocument) -> Optional[str]:
    """First non-empty <h1>, else <title>"""
    for h1 in doc.find_all('h1'):
        text = h1.text()
        if text:
            return text
    return doc.title


def extract_summary(doc: IHtmlDocument) -> Optional[str]:
    summary = clean_text(doc.meta_content('description'))
    if not summary:
        for paragraph in doc.find_all('p'):
            summary = paragraph.text()
            if summary:
                break
    if not summary:
        return None
    if len(summary) > SUMMARY_MAX_LENGTH:
        summary = summary[:SUMMARY_MAX_LENGTH - 3] + '...'
    return summary


def extract_content_text(doc: IHtmlDocument) -> str:
    return doc.body_text(exclude_tags=CONTENT_EXCLUDED_TAGS, exclude_classes=CONTENT_EXCLUDED_CLASSES)


def extract_content_markup(doc: IHtmlDocument) -> Optional[str]:
    for selector in MARKUP_SELECTORS:
        matches = doc.select(selector)
        if matches:
            markup = matches[0].inner_html().strip()
            return markup or None
    return None


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """ISO 8601 or one of DATE_FORMATS; None when unparseable. Aware values become naive UTC."""
    if not value:
        return None
    text = _DATE_PREFIX.sub('', clean_text(value))
    if not text:
        return None

    parsed = None
    try:
        parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
    except ValueError:
        for fmt in DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

    if parsed is not None and parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def extract_last_updated(doc: IHtmlDocument) -> Optional[datetime]:
    candidates: List[Optional[str]] = []

    for element in doc.select('time[datetime]')[:1]:
        candidates.append(element.attr('datetime'))
    for element in doc.select('.updated, .modified, .last-updated')[:1]:
        candidates.append(element.attr('datetime') or element.attr('content') or element.text())
    candidates.append(doc.meta_content('article:modified_time'))
    candidates.append(doc.meta_content('last-modified'))

    for candidate in candidates:
        parsed = parse_date(candidate)
        if parsed is not None:
            return parsed
    return None


def categorize(title: str) -> str:
    lowered = (title or '').lower()
    for category, pattern in CATEGORY_RULES:
        if pattern.search(lowered):
            return category
    return DEFAULT_CATEGORY


def purpose_for(title: str) -> Optional[str]:
    lowered = (title or '').lower()
    for purpose, pattern in PURPOSE_RULES:
        if pattern.search(lowered):
            return purpose
    return None


def slugify(title: str) -> str:
    slug = re.sub(r'[^a-z0-9]+', '-', (title or '').lower()).strip('-')
    return slug[:NAME_MAX_LENGTH].rstrip('-') or 'page'


def _isolated(name: str, url: str, default: T, func: Callable[[], T]) -> T:
    """Run one extraction step; a failure costs only that step"""
    try:
        return func()
    except Exception as e:
        logger.debug(
            f"Extraction of {name} failed for {url}: {type(e).__name__} - {str(e)}",
            extra={'url': url, 'section': name, 'error_type': type(e).__name__},
        )
        return default


def extract_page(doc: IHtmlDocument, url: str, config: EtlConfig) -> Optional[PageDraft]:
    """
    Page draft with one visa type named after the title, or None when the
    page has no usable title.
    """
    title = _isolated('title', url, None, lambda: extract_title(doc))
    if not title:
        logger.warning(f"No title found, skipping page: {url}", extra={'url': url})
        return None

    content_text = _isolated('content_text', url, '', lambda: extract_content_text(doc))

    def section(keywords):
        return _isolated('section', url, [], lambda: sections.find_section(doc, keywords))

    eligibility_section = section(config.eligibility_keywords)
    document_section = section(config.document_keywords)
    fee_section = section(config.fee_keywords)
    time_section = section(config.processing_time_keywords)
    step_section = section(config.step_keywords)

    visa_type = VisaTypeDraft(
        name=title[:NAME_MAX_LENGTH],
        category=categorize(title),
        purpose=purpose_for(title),
        eligibility=_isolated('eligibility', url, [], lambda: sections.extract_eligibility(
            sections.section_items(eligibility_section, 'li', 'p'))),
        documents=_isolated('documents', url, [], lambda: sections.extract_documents(
            sections.section_items(document_section, 'li', 'p'))),
        fees=_isolated('fees', url, [], lambda: sections.extract_fees(
            sections.section_text(fee_section),
            content_text,
            config.currency_aliases,
            config.free_fee_phrases,
        )),
        processing_times=_isolated('processing_times', url, [], lambda: sections.extract_processing_times(
            sections.section_text(time_section))),
        steps=_isolated('steps', url, [], lambda: sections.extract_steps(
            sections.section_items(step_section, 'li'),
            sections.section_items(step_section, 'p'),
        )),
        external_links=_isolated('external_links', url, [], lambda: sections.extract_external_links(
            [(a.attr('href'), a.text()) for a in doc.find_by_attribute('a', 'href')],
            url,
            config.official_link_patterns,
        )),
    )

    return PageDraft(
        url=url,
        title=title[:TITLE_MAX_LENGTH],
        slug=slugify(title),
        summary=_isolated('summary', url, None, lambda: extract_summary(doc)),
        content_text=content_text,
        content_markup=_isolated('content_markup', url, None, lambda: extract_content_markup(doc)),
        last_updated=_isolated('last_updated', url, None, lambda: extract_last_updated(doc)),
        visa_types=[visa_type],
    )
