class EtlError(Exception):
    """Root of the pipeline's exception hierarchy"""


class ConfigError(EtlError, ValueError):
    """Invalid or inconsistent configuration"""


class StoreError(EtlError):
    """
    The persistent store failed while loading a page.

    The crawler counts it as an error for that page and moves on.
    """

    def __init__(self, message: str, url: str = None):
        self.message = message
        self.url = url
        super().__init__(message)
