"""Custom exception hierarchy for the encoding orchestrator.

All orchestrator-specific exceptions inherit from EncodingPipelineError,
enabling consistent error handling and structured error output.

Exception hierarchy:
    EncodingPipelineError (base)
    ├── ConfigurationError
    ├── KeyDeliveryError
    ├── RemoteCallError
    │   └── RetryableError
    ├── EncodingFailedError
    ├── EncodingTimeoutError
    └── OutputVerificationError
"""

from typing import Any


class EncodingPipelineError(Exception):
    """Base exception for all orchestrator errors.

    Provides structured error information suitable for logging and
    for the status endpoint.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error code for metrics/filtering
        details: Additional context as key-value pairs
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize pipeline error.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (e.g., 'KEY_DELIVERY_ERROR')
            details: Additional context for debugging
        """
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for JSON serialization.

        Returns:
            Dictionary with error_code, error_message, and details.
            Note: Uses 'error_message' instead of 'message' to avoid conflicts
            with Python's logging module which reserves 'message' internally.
        """
        return {
            "error_code": self.error_code,
            "error_message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.error_code!r}, {self.message!r})"


class ConfigurationError(EncodingPipelineError):
    """Raised when required settings are missing or invalid.

    Carries the list of offending fields so all problems are reported
    at once instead of one per run.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "CONFIGURATION_ERROR", details)


class KeyDeliveryError(EncodingPipelineError):
    """Raised when content key retrieval fails.

    This covers:
    - HTTP errors from the key-delivery service
    - Malformed XML payloads
    - Missing or badly sized key, IV, URI or asset fields
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "KEY_DELIVERY_ERROR", details)


class RemoteCallError(EncodingPipelineError):
    """Raised when a call to the encoding service fails.

    The run is aborted at the failing step; no later dependent call is made.
    """

    def __init__(
        self,
        message: str,
        operation: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        error_details = {"operation": operation, **(details or {})}
        super().__init__(message, "REMOTE_CALL_ERROR", error_details)
        self.operation = operation


class RetryableError(RemoteCallError):
    """Raised when a transient failure persisted through every retry."""

    def __init__(
        self,
        message: str,
        operation: str,
        original_error: Exception | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize retryable error.

        Args:
            message: Error description
            operation: Name of the remote operation that kept failing
            original_error: The last underlying exception
            details: Additional context
        """
        error_details = details or {}
        if original_error:
            error_details["original_error"] = str(original_error)
            error_details["original_error_type"] = type(original_error).__name__

        super().__init__(message, operation, error_details)
        # Override error code for more specific metrics
        self.error_code = "RETRYABLE_ERROR"
        self.original_error = original_error


class EncodingFailedError(EncodingPipelineError):
    """Raised when the remote encoding reaches a failed terminal status."""

    def __init__(self, encoding_id: str, status: str, messages: list[str]) -> None:
        """Initialize encoding failure.

        Args:
            encoding_id: ID of the failed encoding
            status: Terminal status reported by the service
            messages: Error messages collected from the status task
        """
        details = {
            "encoding_id": encoding_id,
            "status": status,
            "messages": messages,
        }
        super().__init__("Encoding failed", "ENCODING_FAILED", details)
        self.encoding_id = encoding_id
        self.messages = messages


class EncodingTimeoutError(EncodingPipelineError):
    """Raised when polling exceeds the configured maximum wait."""

    def __init__(self, encoding_id: str, max_wait: float, last_status: str | None) -> None:
        details = {
            "encoding_id": encoding_id,
            "max_wait_seconds": max_wait,
            "last_status": last_status,
        }
        message = (
            f"Encoding {encoding_id} did not reach a terminal status within "
            f"{max_wait:.0f}s (last status: {last_status})"
        )
        super().__init__(message, "ENCODING_TIMEOUT", details)
        self.encoding_id = encoding_id


class OutputVerificationError(EncodingPipelineError):
    """Raised when expected files are missing from the output bucket.

    This covers:
    - Missing DASH MPD or HLS playlist
    - No media segments written
    - S3 listing failures
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "OUTPUT_VERIFICATION_ERROR", details)
