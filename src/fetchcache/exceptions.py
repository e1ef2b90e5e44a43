"""Exception hierarchy for fetchcache.

All exceptions inherit from :class:`FetchCacheError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`fetchcache.exit_codes`.
Only :class:`TransportError` ever reaches a caller of
:meth:`~fetchcache.cache.RequestCache.fetch`; the other categories are
absorbed where they originate and, at most, logged.

Subclass hierarchy::

    FetchCacheError (exit 1)
    +-- InvalidConfiguration  (exit 2)
    +-- ActivationError       (exit 3)
    +-- StorageUnavailable    (exit 5)
    +-- TransportError        (exit 6)   alias: NetworkError
"""

from __future__ import annotations

from fetchcache.exit_codes import (
    EXIT_ACTIVATION_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_STORAGE_UNAVAILABLE,
)


class FetchCacheError(Exception):
    """Base exception for all fetchcache errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class TransportError(FetchCacheError):
    """Raised when the transport failed and no retries remain.

    The last underlying failure is available as :attr:`cause` (and as
    ``__cause__`` through exception chaining).
    """

    exit_code = EXIT_CONNECTION_ERROR

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        attempts: int = 1,
    ):
        super().__init__(message)
        self.cause = cause
        self.attempts = attempts


NetworkError = TransportError


class StorageUnavailable(FetchCacheError):
    """Raised when a durable backend cannot be opened or is not supported here."""

    exit_code = EXIT_STORAGE_UNAVAILABLE


class InvalidConfiguration(FetchCacheError):
    """Raised for an unrecognised strategy or store identifier."""

    exit_code = EXIT_INVALID_USAGE


class ActivationError(FetchCacheError):
    """Raised by an activation callable that rejects the supplied license key."""

    exit_code = EXIT_ACTIVATION_FAILURE
