# Pipeline exceptions
from .base import ConfigError, EtlError, StoreError
from .fetch_exceptions import FetchError, PermanentFetchError, TransientFetchError

__all__ = [
    'EtlError',
    'ConfigError',
    'StoreError',
    'FetchError',
    'TransientFetchError',
    'PermanentFetchError',
]
