"""
Error types raised by repositories and services.

Routes in `main.py` translate these into HTTP status codes:
- `ValidationFailure` -> 400
- `NotFound` -> 404
- `StoreUnavailable` (and subclasses) -> 500
"""


class AnalyticsError(Exception):
    """Base class for every error raised by the analytics backend."""


class ValidationFailure(AnalyticsError, ValueError):
    """Missing or malformed required input."""


class NotFound(AnalyticsError, LookupError):
    """A referenced bucket or entity does not exist."""


class StoreUnavailable(AnalyticsError):
    """The relational or document store failed or could not be reached."""


class WriteFailure(StoreUnavailable):
    """An insert into the document store did not complete."""


class ConnectionClosed(StoreUnavailable):
    """The document store handle was used before `open()` or after `close()`."""
