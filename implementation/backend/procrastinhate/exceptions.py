"""Domain exception classes for Procrast-in-hate.

These exceptions are raised by router and service code and translated into
HTTP error responses by exception handlers registered in ``main.py``.
"""

from __future__ import annotations


class NotFoundError(Exception):
    """Raised when a requested resource does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequestError(Exception):
    """Raised when a request body fails a domain validation rule."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationError(Exception):
    """Raised when credentials are missing or do not match."""

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)
        self.message = message


class ForbiddenError(Exception):
    """Raised when an authenticated caller may not act on a resource."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConflictError(Exception):
    """Raised when an action conflicts with current state (e.g., duplicate email)."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
