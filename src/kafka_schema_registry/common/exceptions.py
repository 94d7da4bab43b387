"""
Error type and classification for schema registry operations.

Provides:
- ErrorCategory enum derived from the retriable flag
- SRCError, the single error value surfaced to callers
- Typed subclasses naming where a failure originated
"""

import copy
from enum import Enum
from typing import Optional


class ErrorCategory(Enum):
    """
    Classification of errors for retry decisions.

    Categories:
        TRANSIENT: Failures where re-issuing the same call may succeed
                   (e.g., connection refused, timeouts)
        PERMANENT: Failures that will not succeed on retry
                   (e.g., non-200 responses, malformed JSON, invalid strategy)
    """

    TRANSIENT = "transient"
    PERMANENT = "permanent"


class SRCError(Exception):
    """
    Error raised by every schema registry operation.

    Whether retrying may help is fixed when the error is created. The cached
    flag only flips to True through into_cache(), which the resolution cache
    calls when it stores the error.

    Attributes:
        message: Human-readable error description
        cause: Description of the underlying failure, if any
        retriable: Whether re-issuing the operation might succeed
        cached: Whether this value was replayed from the resolution cache
    """

    def __init__(
        self,
        message: str,
        cause: Optional[str] = None,
        retriable: bool = False,
        cached: bool = False,
    ):
        self.message = message
        self.cause = cause
        self.retriable = retriable
        self.cached = cached
        super().__init__(message)

    @classmethod
    def retryable_with_cause(cls, cause: object, message: str) -> "SRCError":
        return cls(message, cause=str(cause), retriable=True)

    @classmethod
    def non_retryable_with_cause(cls, cause: object, message: str) -> "SRCError":
        return cls(message, cause=str(cause), retriable=False)

    @classmethod
    def non_retryable_without_cause(cls, message: str) -> "SRCError":
        return cls(message, cause=None, retriable=False)

    @property
    def category(self) -> ErrorCategory:
        if self.retriable:
            return ErrorCategory.TRANSIENT
        return ErrorCategory.PERMANENT

    def clone(self) -> "SRCError":
        """Return an independent copy, keeping the current cached flag."""
        # Bypass __init__ so subclasses with different signatures copy cleanly
        duplicate = self.__class__.__new__(self.__class__)
        duplicate.__dict__.update(copy.copy(self.__dict__))
        duplicate.args = self.args
        return duplicate

    __copy__ = clone

    def into_cache(self) -> "SRCError":
        """Return a copy marked as stored in the resolution cache."""
        cached = self.clone()
        cached.cached = True
        return cached

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SRCError):
            return NotImplemented
        return (
            self.message == other.message
            and self.cause == other.cause
            and self.retriable == other.retriable
            and self.cached == other.cached
        )

    def __hash__(self) -> int:
        return hash((self.message, self.cause, self.retriable, self.cached))

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(message={self.message!r}, cause={self.cause!r}, "
            f"retriable={self.retriable}, cached={self.cached})"
        )

    def __str__(self) -> str:
        if self.cause is not None:
            return (
                f"Error: {self.message}, was cause by {self.cause}, "
                f"it's retriable: {self.retriable}, it's cached: {self.cached}"
            )
        return (
            f"Error: {self.message} had no other cause, "
            f"it's retriable: {self.retriable}, it's cached: {self.cached}"
        )


# =============================================================================
# Transport Errors (Transient)
# =============================================================================


class TransportError(SRCError):
    """Could not reach the registry (connection refused, DNS, timeout)."""

    def __init__(self, message: str, cause: Optional[str] = None, cached: bool = False):
        super().__init__(message, cause=cause, retriable=True, cached=cached)


# =============================================================================
# Permanent Errors (Don't Retry)
# =============================================================================


class HttpStatusError(SRCError):
    """Registry answered with something other than 200."""

    def __init__(self, status_code: int, cached: bool = False):
        super().__init__(
            f"Did not get a 200 response code but {status_code} instead",
            cause=None,
            retriable=False,
            cached=cached,
        )
        self.status_code = status_code


class ParseError(SRCError):
    """Response body was not UTF-8, not JSON, or missed a mandatory field."""

    def __init__(self, message: str, cause: Optional[str] = None, cached: bool = False):
        super().__init__(message, cause=cause, retriable=False, cached=cached)


class SubjectValidationError(SRCError):
    """Naming strategy or supplied schema is not usable as given."""

    def __init__(self, message: str, cause: Optional[str] = None, cached: bool = False):
        super().__init__(message, cause=cause, retriable=False, cached=cached)
