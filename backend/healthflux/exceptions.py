"""
HealthFlux Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions, one per failure class a handler can hit.
How:   Each exception carries a user-safe message and a context dict that is
       logged but never returned. Global handlers in main.py map them to
       HTTP responses.

Exception Hierarchy:
    HealthFluxError (base)
    ├── ValidationError          → 400 Bad Request
    ├── AuthenticationError      → 401 Unauthorized
    ├── NotFoundError            → 404 Not Found
    ├── FileStorageError         → 500 Internal Server Error
    ├── DatabaseError            → 500 Internal Server Error
    ├── ReportGenerationError    → 500 Internal Server Error
    ├── LLMServiceError          → 503 Service Unavailable
    ├── CircuitBreakerOpenError  → 503 Service Unavailable
    └── EmailDeliveryError       → reported in the share-link result, never raised to the client
"""

from typing import Any, Dict, Optional


class HealthFluxError(Exception):
    """
    Base exception for all HealthFlux application errors.

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


class ValidationError(HealthFluxError):
    """
    Raised when client input fails a business rule.

    HTTP: 400 Bad Request. Schema-level errors from FastAPI are mapped to
    the same status and body shape.
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


class AuthenticationError(HealthFluxError):
    """
    Raised when no identity can be resolved from the request.

    When:  Missing token, malformed token, bad signature, expired token.
    HTTP:  401 Unauthorized. Raised before any entity store access.
    """

    def __init__(
        self,
        message: str = "Unauthorized",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(HealthFluxError):
    """
    Raised when a requested entity record does not exist.

    When:  Policy id, document id, profile id or bootstrap user not in the store.
    HTTP:  404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"The requested {resource} was not found"
            if resource_id:
                message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource


class FileStorageError(HealthFluxError):
    """
    Raised when reading or writing an uploaded document fails.

    HTTP: 500 Internal Server Error (file system paths stay in the logs).
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(HealthFluxError):
    """
    Raised when an entity store operation fails unexpectedly.

    HTTP: 500 with a generic message; SQL and driver details are only logged.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ReportGenerationError(HealthFluxError):
    """
    Raised when a report cannot be fetched or rendered.

    The whole report is aborted; partial reports are never returned.
    HTTP: 500
    """

    def __init__(
        self,
        message: str = "Failed to generate the report. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class LLMServiceError(HealthFluxError):
    """
    Raised when the LLM (Gemini) call fails or returns an unusable reply.

    HTTP: 503 Service Unavailable. `retry_after` is suggested to the client
    when the circuit breaker has a recovery window.
    """

    def __init__(
        self,
        message: str = "AI service is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(HealthFluxError):
    """
    Raised when the LLM circuit breaker is OPEN.

    After cb_failure_threshold consecutive failures, calls are rejected
    immediately for cb_recovery_timeout seconds.
    HTTP: 503 Service Unavailable
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"AI service is temporarily unavailable due to repeated failures. "
            f"The service will automatically retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class EmailDeliveryError(HealthFluxError):
    """
    Raised by the email sender when a message could not be handed off.

    Callers decide whether delivery is fatal. The share-link flow records it
    as a failed notification and still reports the link as created.
    """

    def __init__(
        self,
        message: str = "Email could not be sent",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
