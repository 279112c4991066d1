"""
Fetch failure classes.

The crawler retries TransientFetchError (with a fresh politeness delay) and
drops the URL on PermanentFetchError.
"""

from typing import Optional

from .base import EtlError


class FetchError(EtlError):
    """
    Base class of all fetch failures.

    Attributes:
        url: requested URL
        message: error description
        status_code: HTTP status when the server answered
    """

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.message = message
        self.status_code = status_code
        super().__init__(f"{message} ({url})")


class TransientFetchError(FetchError):
    """Timeout, connection reset or truncated body: worth retrying."""


class PermanentFetchError(FetchError):
    """4xx/5xx answer, malformed URL, redirect loop: never retried."""
