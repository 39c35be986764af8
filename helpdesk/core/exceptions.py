"""
Custom exception hierarchy for structured error handling.

WHY: Custom exceptions provide:
1. Consistent error handling across the API
2. HTTP status code mapping for FastAPI
3. Structured error responses with contextual data
4. No sensitive data leaks in error messages

Every failure raised by the ticket lifecycle maps to one of four kinds:
BadRequest (ValidationError), Forbidden (AuthorizationError),
NotFound (ResourceNotFoundError) and ServerError (AppException and the
storage/database errors). Conflicts get their own 409 family.
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base exception class for all application exceptions.

    WHY: Centralizing exception handling in a base class ensures consistent
    error responses, HTTP status code mapping, and prevents sensitive data
    leaks in error messages.

    All custom exceptions should inherit from this class.
    """

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        **context: Any,
    ):
        """
        Initialize exception with message and context.

        Args:
            message: Human-readable error message
            status_code: HTTP status code (overrides class default)
            **context: Additional context for debugging (filtered in to_dict)
        """
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize exception to the failure envelope.

        WHY: Every response carries a success flag and a message, so clients
        can branch on one field regardless of endpoint.

        Returns:
            Dictionary with error details (sensitive fields filtered out)
        """
        sensitive_fields = {"password", "token", "secret", "key", "api_key"}
        filtered_context = {
            k: v for k, v in self.context.items() if k.lower() not in sensitive_fields
        }

        return {
            "success": False,
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "details": filtered_context if filtered_context else None,
        }


# ============================================================================
# Authentication & Authorization Exceptions
# ============================================================================


class AuthenticationError(AppException):
    """
    Raised when authentication fails.

    HTTP Status: 401 Unauthorized
    """

    status_code = 401
    default_message = "Authentication failed"


class TokenExpiredError(AuthenticationError):
    """
    Raised when JWT token has expired.

    WHY: Lets the dashboard refresh the session instead of logging out.

    HTTP Status: 401 Unauthorized
    """

    default_message = "Token has expired"


class TokenInvalidError(AuthenticationError):
    """
    Raised when JWT token is malformed or has invalid signature.

    HTTP Status: 401 Unauthorized
    """

    default_message = "Token is invalid"


class AuthorizationError(AppException):
    """
    Raised when the actor lacks permission for an action (Forbidden).

    WHY: Distinguishing authorization (403) from authentication (401) helps
    frontends show appropriate messages ("You don't have permission" vs
    "Please log in").

    HTTP Status: 403 Forbidden
    """

    status_code = 403
    default_message = "You do not have permission to perform this action"


# ============================================================================
# Validation & Input Exceptions (BadRequest)
# ============================================================================


class ValidationError(AppException):
    """
    Raised when input validation fails.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Validation failed"


class InvalidReferenceError(ValidationError):
    """
    Raised when a request points at a priority, tag or user that is
    missing or of the wrong kind (e.g. an assignee who is not an agent).

    HTTP Status: 400 Bad Request
    """

    default_message = "Invalid reference"


class UploadRejectedError(ValidationError):
    """
    Raised when an uploaded file is not an image, is too large, or a batch
    holds too many files.

    HTTP Status: 400 Bad Request
    """

    default_message = "Upload rejected"


# ============================================================================
# Resource Exceptions
# ============================================================================


class ResourceNotFoundError(AppException):
    """
    Raised when a requested resource doesn't exist.

    HTTP Status: 404 Not Found
    """

    status_code = 404
    default_message = "Resource not found"


class TicketNotFoundError(ResourceNotFoundError):
    """Raised when a ticket doesn't exist."""

    default_message = "Ticket not found"


class AttachmentNotFoundError(ResourceNotFoundError):
    """Raised when an attachment doesn't exist or belongs to another ticket."""

    default_message = "Attachment not found"


class PriorityNotFoundError(ResourceNotFoundError):
    """Raised when a priority doesn't exist."""

    default_message = "Priority not found"


class TagNotFoundError(ResourceNotFoundError):
    """Raised when a tag doesn't exist."""

    default_message = "Tag not found"


class ResourceAlreadyExistsError(AppException):
    """
    Raised when attempting to create a resource that already exists.

    WHY: 409 Conflict indicates the request can't be completed due to
    conflicting state (e.g. a priority name already taken).

    HTTP Status: 409 Conflict
    """

    status_code = 409
    default_message = "Resource already exists"


class TicketCodeConflictError(ResourceAlreadyExistsError):
    """
    Raised when no unused ticket code could be generated.

    HTTP Status: 409 Conflict
    """

    default_message = "Could not allocate a unique ticket code"


class ResourceInUseError(AppException):
    """
    Raised when deleting a resource that other records still reference.

    HTTP Status: 409 Conflict
    """

    status_code = 409
    default_message = "Resource is still in use"


# ============================================================================
# Business Logic Exceptions
# ============================================================================


class BusinessRuleViolation(AppException):
    """
    Raised when a business rule is violated.

    WHY: 422 Unprocessable Entity indicates the request was well-formed
    but semantically incorrect (e.g. closing a ticket nobody answered).

    HTTP Status: 422 Unprocessable Entity
    """

    status_code = 422
    default_message = "Business rule violation"


class TicketEventImmutableError(AppException):
    """
    Raised when attempting to update or delete a ticket event.

    WHY: Ticket events are the audit trail of a ticket. Once written they
    are never modified or removed.

    HTTP Status: 403 Forbidden
    """

    status_code = 403
    default_message = "Ticket events are immutable and cannot be modified"


# ============================================================================
# External Service Exceptions
# ============================================================================


class ExternalServiceError(AppException):
    """
    Base exception for external service failures.

    HTTP Status: 502 Bad Gateway
    """

    status_code = 502
    default_message = "External service error"


class StorageError(ExternalServiceError):
    """
    Raised when blob storage operations fail.

    WHY: Upload failures need a clear message ("File upload failed, please
    try again"). Deletes are best-effort and never raise this to callers.

    HTTP Status: 502 Bad Gateway
    """

    default_message = "File storage error"
