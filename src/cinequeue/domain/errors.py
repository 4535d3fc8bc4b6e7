"""Failure taxonomy of the synchronisation core."""

from __future__ import annotations


class SyncError(RuntimeError):
    """Base class for errors raised by the synchronisation core and its ports."""


class MaterializationError(SyncError):
    """Raised when a catalog reference cannot be turned into a persisted item."""


class RemoteError(SyncError):
    """Raised when the store rejects or fails an operation."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotAMemberError(RemoteError):
    """The item is not in the list; a vote can recover by adding it first."""


class AlreadyAMemberError(RemoteError):
    """The item is already in the list; callers treat this as a benign no-op."""


class ConflictError(RemoteError):
    """The store refused the write because of a conflicting state."""


class MutationTimeoutError(RemoteError):
    """A remote call exceeded the configured mutation timeout."""
