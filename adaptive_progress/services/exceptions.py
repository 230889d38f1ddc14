"""Service-layer exceptions for adaptive progress.

Estimation-layer errors are handled inside the services and logged as
degradations. The only error a caller of ``run_with_estimate`` ever sees is
the wrapped task's own exception, plus ``ControllerBusyError`` on misuse.
"""

from typing import Any


class ServiceError(Exception):
    """Base class for all service-layer exceptions.

    Attributes:
        code: Machine-readable error code (e.g., "ESTIMATE_STORAGE_ERROR").
        message: Human-readable error message.
        details: Optional additional context.
        is_retryable: Whether the operation can be retried.
    """

    code: str = "SERVICE_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        is_retryable: bool | None = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        if is_retryable is not None:
            self.is_retryable = is_retryable
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "is_retryable": self.is_retryable,
        }


class EstimateStorageError(ServiceError):
    """Persistence layer could not be read or written."""

    code = "ESTIMATE_STORAGE_ERROR"
    is_retryable = True


class InvalidEstimateValueError(ServiceError):
    """A persisted estimate is not a finite number."""

    code = "INVALID_ESTIMATE_VALUE"

    def __init__(self, key: str, raw_value: str) -> None:
        super().__init__(
            f"Persisted estimate for {key!r} is not numeric",
            details={"key": key, "raw_value": raw_value[:100]},
        )
        self.key = key
        self.raw_value = raw_value


class ControllerBusyError(ServiceError):
    """A controller was asked to run while a session is still active."""

    code = "CONTROLLER_BUSY"

    def __init__(self, key: str | None) -> None:
        super().__init__(
            "Progress controller already has an active session",
            details={"active_key": key},
        )


class PublishError(ServiceError):
    """Progress snapshot could not be published."""

    code = "PUBLISH_ERROR"
    is_retryable = True
