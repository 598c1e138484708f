"""
Exception hierarchy for the resumable upload engine.

``NegotiationError``, ``AuthError``, ``SessionExpiredError``,
``FileMismatchError`` and an exhausted ``TransientTransferError`` move an
upload to the error state; the others are reported to callers directly.
"""

from typing import Optional


class ResumableDriveError(Exception):
    """Base class for all errors raised by this package."""
    pass


class NegotiationError(ResumableDriveError):
    """Raised when the remote API refuses to open a resumable session."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class AuthError(ResumableDriveError):
    """Raised when the token provider cannot supply a token."""
    pass


class TransientTransferError(ResumableDriveError):
    """Raised for a chunk request that may succeed when retried."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class SessionExpiredError(ResumableDriveError):
    """Raised when the remote side no longer knows the session locator."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class PersistenceError(ResumableDriveError):
    """Raised when the snapshot cannot be read or written."""
    pass


class FileMismatchError(ResumableDriveError):
    """Raised when a resumed file does not match the recorded descriptor."""
    pass


class ConfigurationError(ResumableDriveError):
    """Raised for invalid configuration values."""
    pass
