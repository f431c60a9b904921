"""
RecipeShare Backend - Custom Exception Hierarchy
==================================================

What:  Defines application-specific exceptions for different error scenarios.
Why:   Custom exceptions enable targeted error handling with appropriate HTTP
       status codes and user-friendly messages.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return the `{success: false, ...}` envelope with the right status code.
Who:   Raised by services and middleware; caught by global handlers.

Exception Hierarchy:
    RecipeShareError (base)
    ├── ValidationError                  → 400 Bad Request (client can fix)
    │   ├── ImageTooLargeError           → 400 (upload exceeds size limit)
    │   └── UnsupportedImageFormatError  → 400 (not PNG or JPEG)
    ├── NotFoundError                    → 404 Not Found (also: not the owner)
    ├── UnauthorizedError                → 401 Unauthorized (auth collaborator)
    ├── StoreUnavailableError            → 503 Service Unavailable (object store)
    ├── DatabaseError                    → 500 Internal Server Error
    └── RateLimitExceededError           → 429 Too Many Requests

Error propagation inside the pipeline:
    Any exception raised from inside a transactional image callback aborts the
    whole transaction. The exception type is preserved so the handler can still
    map it to the right status code.
"""

from typing import Any, Dict, Optional


class RecipeShareError(Exception):
    """
    Base exception for all RecipeShare application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(RecipeShareError):
    """
    Raised when client input fails validation.

    When:    Missing or malformed recipe fields, unknown field names, an empty
             update, more than one uploaded file, or a rejected image.
    HTTP:    400 Bad Request

    Example response:
        {
            "success": false,
            "error": "validation_error",
            "message": "servingSize must be greater than or equal to 1",
            "details": {"field": "servingSize"}
        }
    """

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


class ImageTooLargeError(ValidationError):
    """Uploaded image exceeds the configured byte limit."""

    def __init__(self, size: int, limit: int):
        limit_mb = limit / (1024 * 1024)
        super().__init__(
            message=f"Image file size is bigger than {limit_mb:g} MB",
            field="image",
            context={"size": size, "limit": limit},
        )
        self.size = size
        self.limit = limit


class UnsupportedImageFormatError(ValidationError):
    """Uploaded image is not a PNG or JPEG (by declared type or by content)."""

    def __init__(self, detected: Optional[str] = None):
        super().__init__(
            message="Image type should only be png or jpeg",
            field="image",
            context={"detected": detected},
        )
        self.detected = detected


class NotFoundError(RecipeShareError):
    """
    Raised when a requested resource does not exist.

    HTTP:    404 Not Found

    Ownership:
        Update and delete match on (id, author_id). A recipe that exists but
        belongs to someone else is reported exactly like a missing one, so the
        response never reveals whether the id exists.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class UnauthorizedError(RecipeShareError):
    """
    Raised by the auth collaborator when a bearer credential is missing or invalid.

    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StoreUnavailableError(RecipeShareError):
    """
    Raised when the object store transport fails.

    What:    Any boto3/botocore failure during upload, delete or ping.
    HTTP:    503 Service Unavailable

    The object store client wraps every transport failure in this type and
    never retries. The recipe pipeline decides whether to retry.
    """

    def __init__(
        self,
        message: str = "Image storage is temporarily unavailable",
        key: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if key:
            ctx["key"] = key
        super().__init__(message=message, context=ctx)
        self.key = key


class DatabaseError(RecipeShareError):
    """
    Raised when database operations fail unexpectedly.

    What:    Connection lost mid-query, constraint violation, deadlock,
             or a transaction that exceeded its timeout.
    HTTP:    500 Internal Server Error

    The message returned to the client is always generic; details stay in
    the server-side log.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(RecipeShareError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    HTTP:    429 Too Many Requests
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
