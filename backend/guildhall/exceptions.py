"""
Guildhall Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions, one per distinguishable failure.
How:   Each exception carries a user-safe message and an optional context
       dict. Global exception handlers (registered in main.py) map them to
       HTTP status codes and a structured JSON body.
Who:   Raised by services and the auth gate; caught by global handlers.

Exception Hierarchy:
    GuildhallError (base)
    ├── ValidationError          → 400 Bad Request
    ├── SelfReferenceError       → 400 Bad Request
    ├── AuthenticationError      → 401 Unauthorized
    ├── PermissionDeniedError    → 403 Forbidden
    ├── NotFoundError            → 404 Not Found
    ├── DuplicatePendingError    → 409 Conflict
    ├── AlreadyConnectedError    → 409 Conflict
    └── PersistenceError         → 500 Internal Server Error

Retry Semantics:
    Only PersistenceError is worth retrying, and only for idempotent
    operations. create_request is NOT idempotent; callers re-read state
    before trying again. Everything else is terminal for the request.
"""

from typing import Any, Dict, Optional


class GuildhallError(Exception):
    """
    Base exception for all Guildhall application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged; returned only where the
                  handler chooses to expose it as `details`)
    """

    error_code = "guildhall_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(GuildhallError):
    """
    Raised when client input fails a business rule.

    When:    Connection message too long, unknown list direction or status,
             unknown notification type.
    HTTP:    400 Bad Request

    Schema-level problems (wrong JSON types, malformed UUIDs) are still
    answered by FastAPI's own 422 handler.
    """

    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class SelfReferenceError(GuildhallError):
    """A member tried to send a connection request to themselves."""

    error_code = "self_reference"

    def __init__(
        self,
        member_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if member_id:
            ctx["member_id"] = member_id
        super().__init__(
            message="Cannot send a connection request to yourself",
            context=ctx,
        )


class AuthenticationError(GuildhallError):
    """
    Raised by the auth gate when no valid session can be established.

    When:    Missing bearer token, bad signature, expired token, unknown
             member, or a member whose status is no longer `active`.
    HTTP:    401 Unauthorized (with WWW-Authenticate: Bearer)

    The message is deliberately vague; the precise reason goes to the log.
    """

    error_code = "authentication_required"

    def __init__(
        self,
        message: str = "Authentication required. Provide a valid bearer token.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDeniedError(GuildhallError):
    """Authenticated member lacks the role a boundary capability check demands."""

    error_code = "permission_denied"

    def __init__(
        self,
        required_roles: Optional[list] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if required_roles:
            ctx["required_roles"] = list(required_roles)
        super().__init__(
            message="You do not have permission to perform this action",
            context=ctx,
        )


class NotFoundError(GuildhallError):
    """
    Raised when a requested resource does not exist or is not actionable.

    When:    Target member missing or not active; connection request that
             does not match the actor/pending precondition; notification
             not owned by the caller.
    HTTP:    404 Not Found

    A request that exists but is no longer pending is reported the same
    way as one that never existed. That is also what the loser of a
    concurrent accept/reject/cancel race sees.
    """

    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class DuplicatePendingError(GuildhallError):
    """A pending request already exists between the two members (either direction)."""

    error_code = "duplicate_pending_request"

    def __init__(
        self,
        message: str = "A connection request between these members is already pending",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AlreadyConnectedError(GuildhallError):
    """The two members already share an accepted connection."""

    error_code = "already_connected"

    def __init__(
        self,
        message: str = "You are already connected with this member",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PersistenceError(GuildhallError):
    """
    Raised when the storage layer fails unexpectedly.

    HTTP:    500 Internal Server Error

    Security Note:
        The client always receives a generic message. SQL text, constraint
        names and driver errors are logged server-side only.
    """

    error_code = "server_error"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
