"""
Section scoped extraction.

Every function takes already isolated input (a list of texts, a section's
text) and returns plain drafts; nothing here touches the DOM except
find_section / section_items, which go through IHtmlDocument.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urljoin, urlparse

from ..demand_interface.i_html_document import IHtmlDocument, IHtmlElement
from ..value_objects.page_draft import DocumentDraft, FeeDraft, LinkDraft, ProcessingTimeDraft, StepDraft

SECTION_HEADINGS = ('h1', 'h2', 'h3', 'h4')

ELIGIBILITY_MIN_LENGTH, ELIGIBILITY_MAX_LENGTH = 10, 2000
DOCUMENT_MIN_LENGTH, DOCUMENT_MAX_LENGTH = 5, 500
STEP_MIN_LENGTH = 10
STEP_TITLE_MAX_LENGTH = 100
LINK_TITLE_MAX_LENGTH = 500
FEE_NAME_WINDOW = 50

DEFAULT_FEE_NAME = 'Visa Fee'
FREE_FEE_NAME = 'Application Fee'
PROCESSING_TIME_LABEL = 'Processing Time'

_WHITESPACE = re.compile(r'\s+')
_DOCUMENT_SPLIT = re.compile(r'\s*:\s*|\s+[-–—]\s+')
_STEP_SPLIT = re.compile(r':\s*|\.\s+')
_STEP_PREFIX = re.compile(r'^(?:\d+[.)]\s*|step\s*\d+\s*[:.)\-]?\s*)', re.IGNORECASE)
_FEE_NAME_TAIL = re.compile(r'(?:\s+(?:is|are|of|costs?|at|for)|\s*[=\-–])\s*$', re.IGNORECASE)

_UNIT = r'(business\s+days?|working\s+days?|days?|weeks?|months?)\b'
_RANGE_DURATION = re.compile(r'\b(\d+)\s*(?:to|-|–)\s*(\d+)\s*' + _UNIT, re.IGNORECASE)
_SINGLE_DURATION = re.compile(r'\b(\d+)\s*' + _UNIT, re.IGNORECASE)


def clean_text(text: Optional[str]) -> str:
    return _WHITESPACE.sub(' ', text or '').strip()


# ------------------ locating sections ------------------

def find_section(doc: IHtmlDocument, keywords: Iterable[str]) -> List[IHtmlElement]:
    """
    Content following every h1-h4 whose text contains one of keywords, up to
    the next heading of the same or a higher level. Document order, no
    element twice.
    """
    lowered = [k.lower() for k in keywords]
    collected: List[IHtmlElement] = []
    seen = set()

    for heading in doc.find_all(*SECTION_HEADINGS):
        heading_text = heading.text().lower()
        if not any(keyword in heading_text for keyword in lowered):
            continue
        for element in doc.siblings_until_heading(heading):
            if element not in seen:
                seen.add(element)
                collected.append(element)

    return collected


def section_items(elements: Sequence[IHtmlElement], *tags: str) -> List[str]:
    """
    Texts of the elements (or their descendants) with one of tags,
    deduplicated. A match nested inside an earlier match is already part
    of its text and is not counted again.
    """
    texts = []
    seen = set()
    nested = set()
    for element in elements:
        candidates = [element] if element.tag_name in tags else []
        candidates.extend(element.find_all(*tags))
        for candidate in candidates:
            if candidate in nested:
                continue
            nested.update(candidate.find_all(*tags))
            text = clean_text(candidate.text())
            if text and text not in seen:
                seen.add(text)
                texts.append(text)
    return texts


def section_text(elements: Sequence[IHtmlElement]) -> str:
    return clean_text(' '.join(e.text() for e in elements))


# ------------------ eligibility / documents ------------------

def extract_eligibility(items: Iterable[str]) -> List[str]:
    return [
        text for text in (clean_text(i) for i in items)
        if ELIGIBILITY_MIN_LENGTH <= len(text) <= ELIGIBILITY_MAX_LENGTH
    ]


def extract_documents(items: Iterable[str]) -> List[DocumentDraft]:
    documents = []
    for text in (clean_text(i) for i in items):
        if not DOCUMENT_MIN_LENGTH <= len(text) <= DOCUMENT_MAX_LENGTH:
            continue
        parts = _DOCUMENT_SPLIT.split(text, maxsplit=1)
        doc_name = parts[0].strip()
        notes = parts[1].strip() if len(parts) > 1 and parts[1].strip() else None
        documents.append(DocumentDraft(doc_name=doc_name or text, notes=notes))
    return documents


# ------------------ fees ------------------

def build_fee_pattern(currency_aliases: Dict[str, List[str]]) -> Tuple[re.Pattern, Dict[str, str]]:
    """
    Amount-then-currency regex for the configured aliases, plus a lookup
    from lower-cased alias to its currency code. Blank aliases are skipped,
    so an empty lookup means the pattern must not be used.
    """
    lookup = {}
    alternatives = []
    for code, aliases in currency_aliases.items():
        for alias in set(list(aliases) + [code]):
            if not alias.strip():
                continue
            lookup[clean_text(alias).lower()] = code
            alternatives.append(r'\s+'.join(re.escape(word) for word in alias.split()))

    # longest alias first so "Qatari Riyals" wins over "Qatari Riyal"
    alternatives.sort(key=len, reverse=True)
    pattern = re.compile(
        r'(?<![\d.,])(\d{1,3}(?:,\d{3})+|\d+)(\.\d+)?\s*(' + '|'.join(alternatives) + r')\b',
        re.IGNORECASE,
    )
    return pattern, lookup


def _fee_name(text: str, start: int) -> str:
    before = text[max(0, start - FEE_NAME_WINDOW):start].strip()
    segments = [s.strip() for s in re.split(r'[:.]', before) if s.strip()]
    name = segments[-1] if segments else ''
    while name:
        trimmed = _FEE_NAME_TAIL.sub('', name).strip()
        if trimmed == name:
            break
        name = trimmed
    return name[:255] or DEFAULT_FEE_NAME


def extract_fees(
    section: str,
    body_text: str,
    currency_aliases: Dict[str, List[str]],
    free_phrases: Iterable[str] = ('free of charge',),
) -> List[FeeDraft]:
    """
    Every "<amount> <currency>" in section text becomes a fee. When there is
    none and the body mentions a free-of-charge phrase, a single zero fee.
    """
    pattern, lookup = build_fee_pattern(currency_aliases)
    # no aliases would match every bare number
    matches = pattern.finditer(section or '') if lookup else []
    fees = []

    for match in matches:
        try:
            amount = Decimal(match.group(1).replace(',', '') + (match.group(2) or ''))
        except InvalidOperation:
            continue
        currency = lookup.get(clean_text(match.group(3)).lower(), match.group(3).upper())
        fees.append(FeeDraft(fee_name=_fee_name(match.string, match.start()), amount=amount, currency=currency))

    if not fees and body_text:
        lowered = body_text.lower()
        if any(phrase.lower() in lowered for phrase in free_phrases):
            default_currency = next(iter(currency_aliases), 'QAR')
            fees.append(FeeDraft(
                fee_name=FREE_FEE_NAME,
                amount=Decimal('0'),
                currency=default_currency,
                notes='Free of charge',
            ))

    return fees


# ------------------ processing times ------------------

def _days(value: int, unit: str) -> int:
    unit = unit.lower()
    if unit.startswith('week'):
        return value * 7
    if unit.startswith('month'):
        return value * 30
    return value


def extract_processing_times(text: str) -> List[ProcessingTimeDraft]:
    """
    "<N> to|- <M> <unit>" and "<N> <unit>" durations in days.
    A range is never reported a second time as a single value.
    """
    if not text:
        return []

    found = []  # (position, draft)
    covered = []

    for match in _RANGE_DURATION.finditer(text):
        low, high = int(match.group(1)), int(match.group(2))
        if low > high:
            low, high = high, low
        unit = match.group(3)
        found.append((match.start(), ProcessingTimeDraft(
            timeline_label=PROCESSING_TIME_LABEL,
            min_days=_days(low, unit),
            max_days=_days(high, unit),
            notes=clean_text(match.group(0)),
        )))
        covered.append((match.start(), match.end()))

    for match in _SINGLE_DURATION.finditer(text):
        if any(start <= match.start() < end for start, end in covered):
            continue
        days = _days(int(match.group(1)), match.group(2))
        found.append((match.start(), ProcessingTimeDraft(
            timeline_label=PROCESSING_TIME_LABEL,
            min_days=days,
            max_days=days,
            notes=clean_text(match.group(0)),
        )))

    found.sort(key=lambda item: item[0])
    return [draft for _, draft in found]


# ------------------ steps ------------------

def extract_steps(list_items: Iterable[str], paragraphs: Iterable[str] = ()) -> List[StepDraft]:
    """
    List items split on the first colon/period into title and detail.
    Without usable list items, numbered ("1." / "Step 2") paragraphs are used
    with the prefix stripped. step_order is always 1..N.
    """
    steps = []

    for text in (clean_text(i) for i in list_items):
        if len(text) <= STEP_MIN_LENGTH:
            continue
        parts = _STEP_SPLIT.split(text, maxsplit=1)
        title = parts[0].strip().rstrip('.')
        detail = parts[1].strip() if len(parts) > 1 and parts[1].strip() else text
        steps.append(StepDraft(
            step_order=len(steps) + 1,
            step_title=(title or text)[:STEP_TITLE_MAX_LENGTH],
            step_detail=detail,
        ))

    if steps:
        return steps

    for text in (clean_text(p) for p in paragraphs):
        if len(text) <= STEP_MIN_LENGTH or not _STEP_PREFIX.match(text):
            continue
        cleaned = _STEP_PREFIX.sub('', text, count=1).strip()
        if not cleaned:
            continue
        steps.append(StepDraft(
            step_order=len(steps) + 1,
            step_title=cleaned[:STEP_TITLE_MAX_LENGTH],
            step_detail=cleaned,
        ))

    return steps


# ------------------ official links ------------------

def extract_external_links(
    anchors: Iterable[Tuple[Optional[str], str]],
    base_url: str,
    patterns: Iterable[str],
) -> List[LinkDraft]:
    """
    anchors: (href, visible text) pairs. Keeps those whose resolved URL
    matches an official domain pattern and whose text is not empty.
    """
    compiled = [re.compile(p, re.IGNORECASE) for p in patterns]
    links = []
    seen = set()

    for href, text in anchors:
        title = clean_text(text)
        if not href or not title:
            continue
        resolved = urljoin(base_url, href.strip())
        if urlparse(resolved).scheme not in ('http', 'https'):
            continue
        if not any(p.search(resolved) for p in compiled) or resolved in seen:
            continue
        seen.add(resolved)
        links.append(LinkDraft(link_title=title[:LINK_TITLE_MAX_LENGTH], link_url=resolved))

    return links
