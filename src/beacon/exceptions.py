"""Exception hierarchy shared by every Beacon component."""

from typing import Any, Dict, Optional


class BeaconException(Exception):
    """Base exception for the Beacon application."""

    retryable = False

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view used by callers that wrap operations in an API."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "details": self.details,
            "status_code": self.status_code,
            "retryable": self.retryable,
        }


class InputValidationError(BeaconException):
    """Malformed or out-of-range caller input. Never retried."""

    def __init__(
        self,
        message: str = "Validation failed",
        field_errors: Optional[Dict[str, str]] = None,
    ):
        super().__init__(
            message=message,
            status_code=422,
            details={"field_errors": field_errors or {}},
        )


class NotFoundError(BeaconException):
    """Exception for resource not found errors."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource} with identifier '{identifier}' not found",
            status_code=404,
            details={"resource": resource, "identifier": identifier},
        )


class UpstreamUnavailable(BeaconException):
    """The upstream provider could not serve the request."""

    retryable = True

    def __init__(self, service: str, operation: str, message: str):
        super().__init__(
            message=f"{service} service error during {operation}: {message}",
            status_code=503,
            details={"service": service, "operation": operation},
        )


class RateLimitedError(UpstreamUnavailable):
    """The upstream request budget is exhausted for now."""

    def __init__(
        self,
        service: str,
        operation: str,
        retry_after: Optional[float] = None,
    ):
        super().__init__(service, operation, "rate limit exceeded")
        self.status_code = 429
        self.retry_after = retry_after
        self.details["retry_after"] = retry_after


class InternalComputationFailure(BeaconException):
    """An analytic step failed unexpectedly for a single item."""

    def __init__(self, operation: str, item_id: str, message: str):
        super().__init__(
            message=f"{operation} failed for '{item_id}': {message}",
            status_code=500,
            details={"operation": operation, "item_id": item_id},
        )


class ConfigurationError(BeaconException):
    """Exception for configuration errors."""

    def __init__(self, setting: str, message: str):
        super().__init__(
            message=f"Configuration error for '{setting}': {message}",
            status_code=500,
            details={"setting": setting},
        )
