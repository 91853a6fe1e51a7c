"""
User API Backend — Custom Exception Hierarchy
===============================================

What:  Defines application-specific exceptions for different error scenarios.
Why:   Request-pipeline steps short-circuit by raising one of these; the global
       handlers registered in main.py turn them into JSON error responses
       with the matching HTTP status code.
How:   Each exception class carries a message and optional context dict.
Who:   Raised by pipeline steps, controllers and services; caught by global handlers.

Exception Hierarchy:
    UserAPIError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── AuthenticationError      → 401 Unauthorized
    ├── NotFoundError            → 404 Not Found
    ├── MethodNotAllowedError    → 405 Method Not Allowed (+ Allow header)
    └── DatabaseError            → 500 Internal Server Error
"""

from typing import Any, Dict, Iterable, Optional


class UserAPIError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(UserAPIError):
    """
    Raised when the request body fails validation.

    When:    Malformed JSON, unknown fields, missing required fields, bad values,
             or an email address that is already registered.
    HTTP:    400 Bad Request

    Example response:
        {
            "error": "validation_error",
            "message": "Request body failed validation",
            "details": {"errors": [{"field": "email", "message": "..."}]}
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


class AuthenticationError(UserAPIError):
    """
    Raised when a request cannot be tied to a known user.

    When:    Missing or malformed Authorization header, unknown email,
             or wrong password. The message never says which one.
    HTTP:    401 Unauthorized with `WWW-Authenticate: Basic`
    """

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(UserAPIError):
    """
    Raised when a requested resource does not exist.

    HTTP:    404 Not Found
    """

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


class MethodNotAllowedError(UserAPIError):
    """
    Raised for an HTTP method that no route binds on the requested path.

    HTTP:    405 Method Not Allowed
    The handler sets the `Allow` header from `allowed_methods`.
    """

    def __init__(
        self,
        method: str,
        allowed_methods: Iterable[str],
        context: Optional[Dict[str, Any]] = None,
    ):
        self.allowed_methods = list(allowed_methods)
        ctx = context or {}
        ctx["method"] = method
        ctx["allowed_methods"] = self.allowed_methods
        super().__init__(
            message=f"Method {method} is not allowed on this resource",
            context=ctx,
        )

    @property
    def allow_header(self) -> str:
        return ", ".join(self.allowed_methods)


class DatabaseError(UserAPIError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    The message returned to the client is always generic. Details
    (statement, constraint name) stay in the server log.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
