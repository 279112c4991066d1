import copy
import re
from typing import Iterable, List, Optional
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from ..domain.demand_interface.i_html_document import IHtmlDocument, IHtmlElement

HEADING_TAGS = ('h1', 'h2', 'h3', 'h4', 'h5', 'h6')

_WHITESPACE = re.compile(r'\s+')


def _clean(text: str) -> str:
    return _WHITESPACE.sub(' ', text or '').strip()


def _heading_level(tag: Tag) -> Optional[int]:
    if isinstance(tag, Tag) and tag.name in HEADING_TAGS:
        return int(tag.name[1])
    return None


class BeautifulSoupElement(IHtmlElement):
    def __init__(self, tag: Tag):
        self._tag = tag

    @property
    def tag(self) -> Tag:
        return self._tag

    @property
    def tag_name(self) -> str:
        return (self._tag.name or '').lower()

    def text(self) -> str:
        return _clean(self._tag.get_text(separator=' ', strip=True))

    def attr(self, name: str) -> Optional[str]:
        value = self._tag.get(name)
        if isinstance(value, list):
            # multi-valued attributes such as class
            return ' '.join(value)
        return value

    def inner_html(self) -> str:
        return self._tag.decode_contents()

    def find_all(self, *tags: str) -> List[IHtmlElement]:
        return [BeautifulSoupElement(t) for t in self._tag.find_all(list(tags))]

    # identity of the underlying node, so overlapping sections can be deduplicated
    def __eq__(self, other):
        return isinstance(other, BeautifulSoupElement) and other._tag is self._tag

    def __hash__(self):
        return id(self._tag)

    def __repr__(self):
        return f"BeautifulSoupElement(<{self.tag_name}>)"


class BeautifulSoupDocument(IHtmlDocument):
    """IHtmlDocument backed by BeautifulSoup"""

    def __init__(self, html: str, parser: str = 'html.parser'):
        """
        Parameters:
            html: page source
            parser: 'html.parser' (stdlib, default), 'lxml' or 'html5lib'
                    when those are installed
        """
        self._soup = BeautifulSoup(html or '', parser)

    def find_all(self, *tags: str) -> List[IHtmlElement]:
        return [BeautifulSoupElement(t) for t in self._soup.find_all(list(tags))]

    def find_first(self, tag: str) -> Optional[IHtmlElement]:
        found = self._soup.find(tag)
        return BeautifulSoupElement(found) if found else None

    def find_by_attribute(self, tag: str, name: str, value: Optional[str] = None) -> List[IHtmlElement]:
        wanted = True if value is None else value
        return [BeautifulSoupElement(t) for t in self._soup.find_all(tag, attrs={name: wanted})]

    def select(self, css: str) -> List[IHtmlElement]:
        return [BeautifulSoupElement(t) for t in self._soup.select(css)]

    def siblings_until_heading(self, heading: IHtmlElement) -> List[IHtmlElement]:
        tag = heading.tag
        level = _heading_level(tag) or 6
        collected = []
        for sibling in tag.find_next_siblings():
            sibling_level = _heading_level(sibling)
            if sibling_level is not None and sibling_level <= level:
                break
            collected.append(BeautifulSoupElement(sibling))
        return collected

    def body_text(self, exclude_tags: Iterable[str] = (), exclude_classes: Iterable[str] = ()) -> str:
        root = self._soup.body or self._soup
        # work on a copy, the document stays intact for the other extractors
        clone = copy.copy(root)

        doomed = list(clone.find_all(list(exclude_tags))) if exclude_tags else []
        for class_name in exclude_classes:
            doomed.extend(clone.select(f'.{class_name}'))

        for tag in doomed:
            # nested matches die with their ancestor
            if not tag.decomposed:
                tag.decompose()

        return _clean(clone.get_text(separator=' ', strip=True))

    def meta_content(self, name: str) -> Optional[str]:
        meta = self._soup.find('meta', attrs={'name': name, 'content': True})
        if meta is None:
            meta = self._soup.find('meta', attrs={'property': name, 'content': True})
        if meta is None:
            return None
        content = meta['content'].strip()
        return content or None

    def links(self, base_url: str) -> List[str]:
        links = []
        for a_tag in self._soup.find_all('a', href=True):
            href = a_tag['href'].strip()

            if not href or href.startswith(('#', 'javascript:', 'mailto:', 'tel:')):
                continue

            absolute_url, _ = urldefrag(urljoin(base_url, href))
            if urlparse(absolute_url).scheme in ('http', 'https'):
                links.append(absolute_url)
        return links

    @property
    def title(self) -> Optional[str]:
        if self._soup.title is None:
            return None
        return _clean(self._soup.title.get_text()) or None
