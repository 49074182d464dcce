class SearchSyncError(Exception):
    """Base class for every error raised by the sync pipeline."""


class InvalidRecordError(SearchSyncError):
    """A change event lacks its mandatory identity or content fields.

    The batch processor skips such events instead of reporting them.
    """


class ShapingError(SearchSyncError):
    """A field is present but cannot be converted into the index shape."""

    retryable = False


class IndexClientError(SearchSyncError):
    """Base class for errors coming back from the search backend."""

    retryable: bool = True


class IndexUnavailableError(IndexClientError):
    """Transient backend failure (timeouts, throttling, 5xx)."""

    retryable = True


class IndexRejectedError(IndexClientError):
    """The backend permanently refused the request, e.g. a mapping conflict."""

    retryable = False


class IndexInitializationError(SearchSyncError):
    """The target index could not be ensured; the worker is not ready."""
