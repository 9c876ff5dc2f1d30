"""
Error taxonomy for the book lookup pipeline.

Every error derives from RuntimeError so callers that already handle
RuntimeError from repositories and API clients keep working unchanged.
Invalid caller input is reported with plain ValueError.
"""


class BookLookupError(RuntimeError):
    """Base class for failures raised by the lookup pipeline."""


class TransientProviderError(BookLookupError):
    """
    The external books provider could not be reached or answered with an error.

    Raised only after the client's retry budget is exhausted.
    """


class StoreUnavailableError(BookLookupError):
    """A read against the persistent catalog failed."""


class PersistenceError(BookLookupError):
    """A write against the persistent catalog failed."""


class ServiceUnavailableError(BookLookupError):
    """Raised when even the store-only fallback of a search fails."""
