"""Exception hierarchy for swrcache.

All exceptions inherit from :class:`SwrcacheError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`swrcache.exit_codes`.
The top-level error handler in :func:`swrcache.app.main` catches
``SwrcacheError`` and exits with the appropriate code.

Storage errors are special: :class:`StorageIOError` and
:class:`JournalCorruptionError` are raised *inside* the cache store and are
always caught at its boundary, so callers of
:class:`~swrcache.cache.store.CacheStore` never see them.

Subclass hierarchy::

    SwrcacheError (exit 1)
    +-- InvalidUsageError        (exit 2)
    +-- NotFoundError            (exit 4)
    +-- ServerError              (exit 5)
    +-- ConnectionError_         (exit 6)
    +-- CacheError               (exit 8)
    |   +-- StorageIOError
    |   +-- JournalCorruptionError
    |   +-- CacheLockError
    +-- CoordinatorStateError    (exit 1)
    +-- ConfigError              (exit 1)
"""

from swrcache.exit_codes import (
    EXIT_CACHE_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class SwrcacheError(Exception):
    """Base exception for all swrcache errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`swrcache.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(SwrcacheError):
    """Raised for invalid CLI arguments or inconsistent caching policies."""

    exit_code = EXIT_INVALID_USAGE


class NotFoundError(SwrcacheError):
    """Raised when a requested cache entry does not exist."""

    exit_code = EXIT_NOT_FOUND


class ServerError(SwrcacheError):
    """Raised by the CLI when the final delivery carries an HTTP 5xx status."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(SwrcacheError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class CacheError(SwrcacheError):
    """Base class for cache store problems."""

    exit_code = EXIT_CACHE_ERROR


class StorageIOError(CacheError):
    """A blob or journal file could not be created, read, written, or deleted.

    Never escapes :class:`~swrcache.cache.store.CacheStore`; the store logs
    it and turns the operation into a no-op (or a miss).
    """


class JournalCorruptionError(CacheError):
    """The journal file exists but is not a JSON array of entry records."""


class CacheLockError(CacheError):
    """Another store instance already owns the requested cache directory."""


class CoordinatorStateError(SwrcacheError):
    """A revalidation coordinator step was invoked out of order."""


class ConfigError(SwrcacheError):
    """Raised for configuration problems (invalid JSON, failed validation)."""

    exit_code = EXIT_GENERIC_FAILURE
