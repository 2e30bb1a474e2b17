"""
Error taxonomy for the migration engine.

Fatal errors (AuthError, VerificationError, ListingError,
RequestValidationError) propagate to the orchestrator and end the affected
stage. ItemOperationError subclasses describe a single failed write attempt; the executor records them in an OutcomeReport
and never raises them past its own boundary.
"""
from __future__ import annotations

from typing import Optional


class MigrationError(Exception):
    """Base class for every error raised by the migration engine."""


class RequestValidationError(MigrationError):
    """A MigrationRequest was malformed; nothing was sent upstream."""


class AuthError(MigrationError):
    """Reddit rejected a credential (401/403)."""

    def __init__(self, message: str, role: Optional[str] = None, status: Optional[int] = None):
        self.role = role
        self.status = status
        super().__init__(message)


class VerificationError(MigrationError):
    """An account could not be checked because Reddit or the network failed (5xx, 429, timeout)."""

    def __init__(self, message: str, role: Optional[str] = None, status: Optional[int] = None):
        self.role = role
        self.status = status
        super().__init__(message)


class ListingError(MigrationError):
    """A listing page could not be fetched; fatal for that content kind only."""

    def __init__(self, message: str, kind: Optional[str] = None, status: Optional[int] = None):
        self.kind = kind
        self.status = status
        super().__init__(message)


class ItemOperationError(MigrationError):
    """A single subscribe/save request failed."""

    status: Optional[int] = None


class NetworkError(ItemOperationError):
    """Transport failure or timeout before a response was received."""


class HttpError(ItemOperationError):
    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(f"HTTP {status}: {body[:200]}" if body else f"HTTP {status}")


class RateLimited(HttpError):
    """HTTP 429 from Reddit."""


def classify_status(status: int, body: str = "") -> HttpError:
    if status == 429:
        return RateLimited(status, body)
    return HttpError(status, body)
