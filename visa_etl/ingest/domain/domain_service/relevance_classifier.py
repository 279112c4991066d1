import logging
import re
from typing import List, Optional
from urllib.parse import urlparse

from ..demand_interface.i_html_document import IHtmlDocument
from ..value_objects.classification_result import ClassificationResult
from ..value_objects.etl_config import EtlConfig

logger = logging.getLogger('domain.crawl_process')

URL_ALLOW_SCORE = 50
URL_EXCLUDE_SCORE = -100

TITLE_SCORE = 20
META_DESCRIPTION_SCORE = 15
HEADINGS_SCORE = 20
INDICATORS_FLAT_SCORE = 30
INDICATORS_FLAT_MIN = 3
INDICATOR_SCORE = 5
OFFICIAL_LINK_SCORE = 10
TOURISM_PENALTY = -20
TOURISM_PENALTY_MIN = 3


def _compile(patterns: List[str]) -> List[re.Pattern]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


class RelevanceClassifier:
    """
    Two stage relevance scorer (domain service).

    URL stage (before fetching): +50 for an allow pattern, -100 for any
    exclusion pattern, accept iff the score is positive.

    Content stage (after fetching): additive score out of 100 made of the URL
    stage confidence, title / meta description / heading keywords, section
    indicator phrases, official links and a tourism penalty. Accept iff the
    clamped score reaches the acceptance threshold.
    """

    def __init__(self, config: EtlConfig):
        self._config = config
        self._allow = _compile(config.allow_url_patterns)
        self._exclude = _compile(config.exclude_url_patterns)
        self._official = _compile(config.official_link_patterns)
        self._topic_keywords = [k.lower() for k in config.topic_keywords]
        self._indicators = [k.lower() for k in config.section_indicators]
        self._tourism_keywords = [k.lower() for k in config.tourism_keywords]

    # ------------------ URL stage ------------------

    @staticmethod
    def _url_subject(url: str) -> str:
        # the host is left out: a site named after the topic would match everything
        parsed = urlparse(url)
        subject = parsed.path or '/'
        if parsed.query:
            subject += '?' + parsed.query
        return subject

    def classify_url(self, url: str) -> ClassificationResult:
        subject = self._url_subject(url)
        score = 0
        reasons = []

        if any(p.search(subject) for p in self._allow):
            score += URL_ALLOW_SCORE
            reasons.append('URL contains visa/immigration keywords')

        for pattern in self._exclude:
            if pattern.search(subject):
                score += URL_EXCLUDE_SCORE
                reasons.append(f'URL matches exclusion pattern: {pattern.pattern}')
                break

        return ClassificationResult(
            accept=score > 0,
            confidence=min(max(score / 100, 0.0), 1.0),
            reasons=reasons,
        )

    def accepts_url(self, url: str) -> bool:
        """Frontier filter"""
        result = self.classify_url(url)
        if not result.accept:
            logger.debug(f"URL filtered by classifier: {url}", extra={'url': url, 'reasons': result.reasons})
        return result.accept

    # ------------------ content stage ------------------

    def has_topic_keywords(self, text: Optional[str]) -> bool:
        if not text:
            return False
        lowered = text.lower()
        return any(keyword in lowered for keyword in self._topic_keywords)

    def classify_content(self, doc: IHtmlDocument, url: str) -> ClassificationResult:
        url_result = self.classify_url(url)
        score = url_result.confidence * self._config.url_stage_weight
        reasons = list(url_result.reasons)

        title = doc.title
        if not title:
            h1 = doc.find_first('h1')
            title = h1.text() if h1 else ''
        if self.has_topic_keywords(title):
            score += TITLE_SCORE
            reasons.append('Title contains visa keywords')

        if self.has_topic_keywords(doc.meta_content('description')):
            score += META_DESCRIPTION_SCORE
            reasons.append('Meta description contains visa keywords')

        headings = ' '.join(h.text() for h in doc.find_all('h1', 'h2', 'h3'))
        if self.has_topic_keywords(headings):
            score += HEADINGS_SCORE
            reasons.append('Headings contain visa keywords')

        body = doc.body_text(exclude_tags=('script', 'style', 'noscript')).lower()
        found = [indicator for indicator in self._indicators if indicator in body]
        if len(found) >= INDICATORS_FLAT_MIN:
            score += INDICATORS_FLAT_SCORE
            reasons.append(f'Found {len(found)} visa section indicators')
        elif found:
            score += len(found) * INDICATOR_SCORE
            reasons.append(f'Found {len(found)} visa section indicators')

        if self._has_official_links(doc):
            score += OFFICIAL_LINK_SCORE
            reasons.append('Contains links to official government sites')

        tourism_count = sum(1 for keyword in self._tourism_keywords if keyword in body)
        if tourism_count >= TOURISM_PENALTY_MIN:
            score += TOURISM_PENALTY
            reasons.append('Contains significant tourism-related content')

        score = min(max(score, 0.0), 100.0)
        result = ClassificationResult(
            accept=score >= self._config.acceptance_threshold,
            confidence=score / 100,
            reasons=reasons,
        )
        logger.debug(
            f"Page classification: {url} accept={result.accept} confidence={result.confidence:.2f}",
            extra={'url': url, 'accept': result.accept, 'confidence': result.confidence, 'reasons': reasons},
        )
        return result

    def _has_official_links(self, doc: IHtmlDocument) -> bool:
        for anchor in doc.find_by_attribute('a', 'href'):
            href = anchor.attr('href') or ''
            if any(p.search(href) for p in self._official):
                return True
        return False
