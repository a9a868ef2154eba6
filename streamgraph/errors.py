"""
Error types for StreamGraph.

Every failure raised by the core carries an ErrorKind so the API layer can
map it to a transport status without inspecting messages:

- InvalidArgumentError: malformed or missing input (400)
- UnauthorizedError: actor is not the entity's owner (401)
- NotFoundError: referenced entity or edge is absent (404)
- ConflictError: concurrent state that cannot be reconciled (409)
- InternalError: store, media store or cascade failure (500)

Invariants:
    - All errors inherit from StreamGraphError
    - Validation errors are raised before any store access
    - NotFoundError takes precedence over UnauthorizedError
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(Enum):
    """Error categories with their transport status."""

    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL = "INTERNAL"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]


_HTTP_STATUS = {
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}


class StreamGraphError(Exception):
    """Base exception for all StreamGraph errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    kind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.kind.value
        self.details = details or {}

    @property
    def http_status(self) -> int:
        return self.kind.http_status

    def to_dict(self) -> dict[str, Any]:
        """Convert to a response-friendly dictionary."""
        return {
            "error": self.message,
            "error_code": self.code,
            "details": self.details,
        }


class InvalidArgumentError(StreamGraphError):
    """Input failed validation.

    Raised when:
    - A required field is missing or blank
    - An identifier is malformed
    - A subscription targets the subscriber itself
    - A video is added to a playlist twice
    """

    kind = ErrorKind.INVALID_ARGUMENT

    def __init__(
        self,
        message: str,
        field_name: str | None = None,
        errors: list[str] | None = None,
    ) -> None:
        super().__init__(
            message,
            details={"field": field_name, "errors": errors or []},
        )
        self.field_name = field_name
        self.errors = errors or []


class NotFoundError(StreamGraphError):
    """Referenced entity or edge does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        message: str,
        resource_type: str,
        resource_id: str,
    ) -> None:
        super().__init__(
            message,
            details={
                "resource_type": resource_type,
                "resource_id": resource_id,
            },
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class UnauthorizedError(StreamGraphError):
    """Actor is not allowed to perform the action.

    Raised when a non-owner tries to mutate, delete or privately read
    an owned entity.
    """

    kind = ErrorKind.UNAUTHORIZED

    def __init__(
        self,
        actor: str,
        resource_id: str,
        action: str,
        message: str | None = None,
    ) -> None:
        super().__init__(
            message or f"Unauthorized: {actor} cannot {action} {resource_id}",
            details={
                "actor": actor,
                "resource_id": resource_id,
                "action": action,
            },
        )
        self.actor = actor
        self.resource_id = resource_id
        self.action = action


class ConflictError(StreamGraphError):
    """Store state changed underneath an atomic operation."""

    kind = ErrorKind.CONFLICT

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details=details)


class InternalError(StreamGraphError):
    """Store, media store or cascade failure.

    Attributes:
        reconciliation_id: Reconciliation log entry created for the
            failure, if any
    """

    kind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        reconciliation_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            details={"reconciliation_id": reconciliation_id},
        )
        self.reconciliation_id = reconciliation_id
