"""Exception hierarchy for catalog intake.

All exceptions inherit from BaseError and carry structured error information
compatible with RFC 7807 Problem Details, so the HTTP layer can tell input
problems (client_error, 4xx) apart from dependency failures (server_error, 5xx).
"""

from typing import Any, Optional
from enum import Enum


class ErrorCategory(str, Enum):
    """Error categories for classification and monitoring."""

    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"


class BaseError(Exception):
    """Base exception for all intake errors.

    Attributes:
        message: Human-readable error message
        error_code: Application-specific error code
        category: Error category for classification
        http_status: HTTP status code the API layer should return
        details: Additional context (dict)
        retryable: Whether the operation can be retried
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        category: ErrorCategory,
        http_status: int,
        details: Optional[dict[str, Any]] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.category = category
        self.http_status = http_status
        self.details = details or {}
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to RFC 7807 Problem Details format."""
        return {
            "type": f"/errors/{self.error_code}",
            "title": self.message,
            "status": self.http_status,
            "code": self.error_code,
            "detail": self.details.get("detail"),
            "category": self.category.value,
            "retryable": self.retryable,
        }


class ClientError(BaseError):
    """Base for client errors (4xx). Never retryable."""

    def __init__(self, message: str, error_code: str, **kwargs):
        super().__init__(
            message=message,
            error_code=error_code,
            category=ErrorCategory.CLIENT_ERROR,
            http_status=kwargs.pop("http_status", 400),
            retryable=False,
            **kwargs,
        )


class ValidationError(ClientError):
    """Input validation failed (422 Unprocessable Entity).

    Args:
        message: Validation error description
        field: Name of the field that failed validation
        details: Additional validation context
    """

    def __init__(self, message: str, field: str, **kwargs):
        additional_details = kwargs.pop("details", {})
        additional_details["field"] = field
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            http_status=422,
            details=additional_details,
            **kwargs,
        )


class SchemaValidationError(ClientError):
    """Structured payload does not conform to the declared schema (422).

    Carries every violation found, in schema declaration order.

    Args:
        violations: Ordered list of ``{"field": ..., "message": ...}`` dicts
        schema_version: Version identifier of the schema that was applied
    """

    def __init__(
        self,
        violations: list[dict[str, str]],
        schema_version: Optional[str] = None,
    ):
        self.violations = list(violations)
        self.schema_version = schema_version
        summary = "; ".join(f"{v['field']}: {v['message']}" for v in self.violations)
        super().__init__(
            message=f"Schema validation failed ({len(self.violations)} violations): {summary}",
            error_code="SCHEMA_VALIDATION_FAILED",
            http_status=422,
            details={
                "violations": self.violations,
                "schema_version": schema_version,
            },
        )


class ServerError(BaseError):
    """Base for server errors (5xx).

    Represents internal failures or failures in external dependencies.
    """

    def __init__(self, message: str, error_code: str, **kwargs):
        super().__init__(
            message=message,
            error_code=error_code,
            category=ErrorCategory.SERVER_ERROR,
            http_status=kwargs.pop("http_status", 500),
            retryable=kwargs.pop("retryable", False),
            **kwargs,
        )


class ExternalServiceError(ServerError):
    """External service failure (502 Bad Gateway / 504 Gateway Timeout).

    Args:
        service_name: Name of the external service
        error_type: Type of error ("timeout", "error")
        details: Additional error context
    """

    def __init__(self, service_name: str, error_type: str, **kwargs):
        http_status = 504 if error_type == "timeout" else 502

        additional_details = kwargs.pop("details", {})
        additional_details.update(
            {
                "service": service_name,
                "error_type": error_type,
            }
        )

        super().__init__(
            message=kwargs.pop("message", f"{service_name} service {error_type}"),
            error_code=f"{service_name.upper()}_{error_type.upper()}",
            http_status=http_status,
            retryable=True,
            details=additional_details,
            **kwargs,
        )


class InvocationTimeout(ExternalServiceError):
    """Model call exceeded the configured timeout."""

    def __init__(self, timeout_ms: int, **kwargs):
        details = kwargs.pop("details", {})
        details["timeout_ms"] = timeout_ms
        super().__init__(
            service_name="LLM",
            error_type="timeout",
            message=f"LLM call timed out after {timeout_ms} ms",
            details=details,
            **kwargs,
        )
        self.timeout_ms = timeout_ms


class InvocationError(ExternalServiceError):
    """Transport-level failure talking to the model endpoint.

    Covers refused connections, non-success statuses and malformed envelopes.
    """

    def __init__(self, reason: str, **kwargs):
        details = kwargs.pop("details", {})
        details["reason"] = reason
        super().__init__(
            service_name="LLM",
            error_type="error",
            message=f"LLM service error: {reason}",
            details=details,
            **kwargs,
        )
        self.reason = reason


class RetryExhausted(ServerError):
    """All retry attempts failed (503).

    Args:
        attempts: Number of attempts made
        last_error: The failure raised by the final attempt
    """

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(
            message=f"Operation failed after {attempts} attempts: {last_error}",
            error_code="RETRY_EXHAUSTED",
            http_status=503,
            retryable=True,
            details={
                "attempts": attempts,
                "last_error_type": type(last_error).__name__,
                "detail": str(last_error),
            },
        )
        self.attempts = attempts
        self.last_error = last_error


class PartialWriteFailure(ServerError):
    """A staging write failed after zero or more chunks were committed.

    Earlier chunks stay committed; ``result`` reports how much was written.

    Args:
        result: WriteResult describing committed chunks and records
        cause: Underlying failure of the chunk that did not land
    """

    def __init__(self, result: Any, cause: BaseException):
        super().__init__(
            message=(
                f"Staging write failed after {result.chunks_completed}/"
                f"{result.chunks_total} chunks: {cause}"
            ),
            error_code="PARTIAL_WRITE",
            http_status=500,
            details={
                "chunks_total": result.chunks_total,
                "chunks_completed": result.chunks_completed,
                "records_written": result.records_written,
                "detail": str(cause),
            },
        )
        self.result = result
        self.cause = cause

    @property
    def chunks_completed(self) -> int:
        return self.result.chunks_completed


class ReconciliationError(ServerError):
    """The server-side merge routine could not be executed."""

    def __init__(self, routine_name: str, cause: BaseException):
        super().__init__(
            message=f"Reconciliation routine {routine_name} failed: {cause}",
            error_code="RECONCILIATION_FAILED",
            http_status=500,
            details={"routine": routine_name, "detail": str(cause)},
        )
        self.routine_name = routine_name
        self.cause = cause
