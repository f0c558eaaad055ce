"""
Exception types for discord-delete.

Every failure the engine surfaces is a DeleteError. Wrapping keeps the
original class so callers can still tell an authentication failure apart
from a server fault after context has been added.
"""

from typing import Optional


class DeleteError(Exception):
    """Base exception for all discord-delete errors."""

    def __init__(self, message: str, details: Optional[str] = None,
                 original_error: Optional[Exception] = None):
        self.message = message
        self.details = details
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        if self.original_error is not None:
            return f"{self.message}: {self.original_error}"
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


class AuthenticationError(DeleteError):
    """Token missing or rejected by the server (401)."""


class BadRequestError(DeleteError):
    """Server rejected a malformed request (400)."""


class ServerError(DeleteError):
    """Server fault (5xx)."""

    def __init__(self, message: str, status: int, **kwargs):
        self.status = status
        super().__init__(message, **kwargs)


class UnhandledStatusError(DeleteError):
    """Server returned a status code the dispatcher has no rule for."""

    def __init__(self, message: str, status: int, **kwargs):
        self.status = status
        super().__init__(message, **kwargs)


class TransportError(DeleteError):
    """Request never produced a response (connection, timeout, ...)."""


class DecodeError(DeleteError):
    """Response body was not the JSON we expected."""


class ValidationError(DeleteError):
    """Invalid parameter passed to an endpoint builder or config."""


def wrap(message: str, error: Exception) -> DeleteError:
    """Annotate ``error`` with ``message``, keeping its class when possible."""
    if isinstance(error, DeleteError):
        wrapped = DeleteError.__new__(type(error))
        DeleteError.__init__(wrapped, message, original_error=error)
        if hasattr(error, 'status'):
            wrapped.status = error.status
        return wrapped
    return DeleteError(message, original_error=error)
