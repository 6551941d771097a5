"""
Error taxonomy for book resolution.

Only ValidationError and ConfigurationError ever reach a caller. SourceError
is raised inside adapters and turned into a SourceFailure result at the
adapter boundary, so tier fallback never depends on exception handling.
"""


class BookLookupError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(BookLookupError):
    """Malformed caller input, e.g. a query that is empty after trimming."""


class SourceError(BookLookupError):
    """Transport failure, timeout, or an upstream payload of the wrong shape."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class ConfigurationError(BookLookupError):
    """Missing credentials or endpoints. Fatal at startup."""
