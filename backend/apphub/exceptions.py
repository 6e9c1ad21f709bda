"""
AppHub Backend — Custom Exception Hierarchy
============================================

What:  Application-specific exceptions, one per failure kind a caller must
       be able to tell apart.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by services; caught by global handlers.

Exception Hierarchy:
    AppHubError (base)
    ├── InvalidArgumentError       → 400 Bad Request (malformed / contradictory input)
    ├── AuthenticationError        → 401 Unauthorized (no acting user on the request)
    ├── NotFoundError              → 404 Not Found (absent or not owned by the actor)
    ├── ForbiddenError             → 403 Forbidden (immutable resource)
    ├── ConflictError              → 409 Conflict
    │   └── DuplicateNameError     → 409 Conflict (folder name taken)
    ├── InvalidTransitionError     → 409 Conflict (app status table)
    ├── InvalidStateError          → 409 Conflict (request already decided)
    ├── DatabaseError              → 500 Internal Server Error
    └── NotificationDeliveryError  → never surfaced; logged by the dispatcher

    Idempotent outcomes (toggle-off, renaming a folder to its own name) are
    successes, not errors.
"""

from typing import Any, Dict, Optional


class AppHubError(Exception):
    """
    Base exception for all AppHub application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (returned as `details` for client errors,
                  logged only for server errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class InvalidArgumentError(AppHubError):
    """
    Raised when input is malformed or contradictory.

    When:    Both folder_id and folder_name supplied (or neither), blank names,
             an unknown decision value.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Invalid argument",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(AppHubError):
    """
    Raised when a request carries no usable acting-user id.

    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(AppHubError):
    """
    Raised when a referenced entity does not exist or is not owned by the actor.

    HTTP:    404 Not Found

    Ownership failures deliberately use this type too, so a caller cannot
    probe for the existence of another user's folders.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id is not None:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = str(resource_id)
        super().__init__(message=message, context=ctx)
        self.resource = resource


class ForbiddenError(AppHubError):
    """
    Raised on an attempted mutation of an immutable resource.

    When:    Renaming or deleting a user's default bookmark folder.
    HTTP:    403 Forbidden
    """

    def __init__(
        self,
        message: str = "This operation is not allowed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ConflictError(AppHubError):
    """
    Raised when the request conflicts with existing state.

    When:    Submitting a developer request while one is pending or after approval.
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        message: str = "The request conflicts with the current state",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DuplicateNameError(ConflictError):
    """Raised when a bookmark folder name is already used by the same owner."""

    def __init__(self, name: str, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx["name"] = name
        super().__init__(
            message=f"A bookmark folder named '{name}' already exists",
            context=ctx,
        )
        self.name = name


class InvalidTransitionError(AppHubError):
    """
    Raised when an app status change is listed as forbidden for the current status.

    HTTP:    409 Conflict
    """

    def __init__(
        self,
        current: str,
        target: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx.update({"current_status": current, "target_status": target})
        super().__init__(
            message=f"Changing status from {current} to {target} is not allowed",
            context=ctx,
        )
        self.current = current
        self.target = target


class InvalidStateError(AppHubError):
    """
    Raised when an entity is not in the state an operation requires.

    When:    Deciding a developer request that is already APPROVED or REJECTED.
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        message: str = "The resource is not in a state that allows this operation",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(AppHubError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    Security Note:
        The message returned to the client is always generic. Driver errors,
        constraint names and SQL are logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotificationDeliveryError(AppHubError):
    """
    Raised by a mail transport when a message could not be handed off.

    Never reaches a caller of the services: the notification dispatcher
    catches it (after retries) and logs it.
    """

    def __init__(
        self,
        message: str = "Notification delivery failed",
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if status_code is not None:
            ctx["status_code"] = status_code
        super().__init__(message=message, context=ctx)
        self.status_code = status_code
