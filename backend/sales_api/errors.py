# backend/sales_api/errors.py
"""
Domain error taxonomy.

Every failure a service or route can report is a DomainError subclass
tagged with an ErrorKind. The request pipeline is the only place that turns
a kind into an HTTP status and a JSON body (see pipeline.status_for).
"""
from __future__ import annotations

import enum
from typing import Any


class ErrorKind(enum.Enum):
    INVALID_IDENTIFIER = "invalid_identifier"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATION_FAILURE = "authentication_failure"
    VALIDATION_FAILURE = "validation_failure"
    INTEGRITY_FAULT = "integrity_fault"
    INTERNAL = "internal"


class DomainError(Exception):
    """Base class for all errors the pipeline knows how to render."""

    kind = ErrorKind.INTERNAL
    default_message = "Internal Server Error"

    def __init__(self, message: str | None = None, *, fields: list[dict[str, str]] | None = None):
        self.message = message or self.default_message
        self.fields = fields or []
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        if self.fields:
            body["fields"] = list(self.fields)
        return body


class InvalidIdentifierError(DomainError):
    """400: identifier is not a well-formed UUID."""
    kind = ErrorKind.INVALID_IDENTIFIER
    default_message = "id provided was not a valid UUID"


class NotFoundError(DomainError):
    """404: no row matches the identifier."""
    kind = ErrorKind.NOT_FOUND
    default_message = "not found"


class ForbiddenError(DomainError):
    """403: role or ownership check failed."""
    kind = ErrorKind.FORBIDDEN
    default_message = "you are not authorized for that action"


class UnauthenticatedError(DomainError):
    """401: bearer token missing or unusable."""
    kind = ErrorKind.UNAUTHENTICATED
    default_message = "authentication required"


class InvalidTokenError(UnauthenticatedError):
    """401: token signature, key id, or expiry rejected."""
    default_message = "invalid token"


class AuthenticationFailureError(DomainError):
    """401: email/password did not match. Never says which part was wrong."""
    kind = ErrorKind.AUTHENTICATION_FAILURE
    default_message = "authentication failed"


class ValidationFailureError(DomainError):
    """400: request body failed validation; carries every failing field."""
    kind = ErrorKind.VALIDATION_FAILURE
    default_message = "field validation error"


class IntegrityFaultError(DomainError):
    """500 + graceful shutdown: process state can no longer be trusted."""
    kind = ErrorKind.INTEGRITY_FAULT


class InternalError(DomainError):
    """500: unclassified failure."""
    kind = ErrorKind.INTERNAL


class DeadlineExceededError(InternalError):
    """500: the request ran past its deadline before a store call."""
    default_message = "request deadline exceeded"
