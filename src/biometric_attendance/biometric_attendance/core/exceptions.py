from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or missing."""


class NotFoundError(DomainError):
    """Raised when a device or record does not exist."""


class ConflictError(DomainError):
    """Raised when a record already exists (e.g. a device connected twice)."""


class PreconditionError(DomainError):
    """Raised when the system is not configured for the requested action."""


class UpstreamError(DomainError):
    """Raised when the vendor API rejects or fails a synchronous call."""

    def __init__(self, message: str, *, error: Optional[object] = None):
        super().__init__(message)
        self.error = error


class PersistenceError(DomainError):
    """Raised when the database fails."""
