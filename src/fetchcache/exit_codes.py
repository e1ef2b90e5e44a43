"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~fetchcache.exceptions.FetchCacheError` subclass.
Shell wrappers can inspect the exit code of the ``fetchcache`` command to
determine the failure class without parsing stderr.

Example::

    $ fetchcache get https://api.example.com/unreachable
    $ echo $?
    6   # EXIT_CONNECTION_ERROR -- every attempt failed
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or configuration."""

EXIT_ACTIVATION_FAILURE = 3
"""Pro features could not be activated."""

EXIT_STORAGE_UNAVAILABLE = 5
"""The durable storage backend could not be opened."""

EXIT_CONNECTION_ERROR = 6
"""The upstream request failed after all retries were exhausted."""
