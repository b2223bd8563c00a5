"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~swrcache.exceptions.SwrcacheError` subclass.
Shell wrappers can inspect the exit code to tell a network failure from a
broken cache or a usage mistake without parsing stderr.

Example::

    $ swrcache fetch https://unreachable.invalid/
    $ echo $?
    6   # EXIT_CONNECTION_ERROR -- the request never reached a server
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_NOT_FOUND = 4
"""The requested cache entry or resource was not found."""

EXIT_SERVER_ERROR = 5
"""The remote server returned an HTTP 5xx error."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_CACHE_ERROR = 8
"""The cache store could not be opened (directory already claimed, unusable root)."""
