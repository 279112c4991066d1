"""
Read-only DOM capability used by the classifier and the extractor.
Keeps both independent of the concrete HTML library.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional


class IHtmlElement(ABC):
    @property
    @abstractmethod
    def tag_name(self) -> str:
        """Lower-case tag name"""
        pass

    @abstractmethod
    def text(self) -> str:
        """Whitespace-normalized text content"""
        pass

    @abstractmethod
    def attr(self, name: str) -> Optional[str]:
        pass

    @abstractmethod
    def inner_html(self) -> str:
        pass

    @abstractmethod
    def find_all(self, *tags: str) -> List["IHtmlElement"]:
        """Descendants with one of the given tag names, document order"""
        pass


class IHtmlDocument(ABC):
    @abstractmethod
    def find_all(self, *tags: str) -> List[IHtmlElement]:
        pass

    @abstractmethod
    def find_first(self, tag: str) -> Optional[IHtmlElement]:
        pass

    @abstractmethod
    def find_by_attribute(self, tag: str, name: str, value: Optional[str] = None) -> List[IHtmlElement]:
        """Elements of tag carrying attribute name (equal to value when given)"""
        pass

    @abstractmethod
    def select(self, css: str) -> List[IHtmlElement]:
        """CSS selector query, document order"""
        pass

    @abstractmethod
    def siblings_until_heading(self, heading: IHtmlElement) -> List[IHtmlElement]:
        """
        Elements following heading up to (excluding) the next heading of the
        same or a higher level.
        """
        pass

    @abstractmethod
    def body_text(self, exclude_tags: Iterable[str] = (), exclude_classes: Iterable[str] = ()) -> str:
        """Body text without the excluded subtrees; the document is not modified"""
        pass

    @abstractmethod
    def meta_content(self, name: str) -> Optional[str]:
        """content of <meta name=...> or <meta property=...>"""
        pass

    @abstractmethod
    def links(self, base_url: str) -> List[str]:
        """Absolute http(s) href of every <a>, fragments dropped, document order"""
        pass

    @property
    @abstractmethod
    def title(self) -> Optional[str]:
        """Text of <title>, None when absent or blank"""
        pass
