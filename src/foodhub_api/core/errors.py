"""Domain error taxonomy shared by services and the HTTP layer."""

from __future__ import annotations


class FoodhubError(RuntimeError):
    """Base exception for failures that map onto a client-facing response."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, *, headers: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.headers = headers or {}


class ValidationError(FoodhubError):
    """Missing or malformed input."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(FoodhubError):
    """A referenced account, promotion or resource does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class ConflictError(FoodhubError):
    """The requested action duplicates or contradicts existing state."""

    status_code = 409
    code = "CONFLICT"


class InsufficientFundsError(ValidationError):
    """A balance is too low for the requested debit."""

    code = "INSUFFICIENT_FUNDS"


class RateLimitExceededError(FoodhubError):
    """The caller exhausted its request window."""

    status_code = 429
    code = "RATE_LIMITED"


class InternalError(FoodhubError):
    """Unexpected store or runtime failure."""


__all__ = [
    "ConflictError",
    "FoodhubError",
    "InsufficientFundsError",
    "InternalError",
    "NotFoundError",
    "RateLimitExceededError",
    "ValidationError",
]
