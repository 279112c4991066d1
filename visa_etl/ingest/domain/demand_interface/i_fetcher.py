from abc import ABC, abstractmethod

from ..value_objects.fetched_page import FetchedPage


class IFetcher(ABC):
    @abstractmethod
    def fetch(self, url: str) -> FetchedPage:
        """
        Retrieve the HTML of one URL (a single attempt, no retry).

        Raises:
            TransientFetchError: timeout, connection reset, truncated body
            PermanentFetchError: status >= 400, malformed URL, redirect loop
        """
        pass

    def close(self) -> None:
        """Release connections / browser resources"""
        pass
