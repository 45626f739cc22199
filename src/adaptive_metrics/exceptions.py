"""
Custom exceptions for the Adaptive Metrics Engine.

Every exception carries:
- A descriptive message
- An error code for callers that translate failures into API responses
- Optional details for debugging

Estimators never raise for insufficient data or large changes; they return
rejected ThresholdEstimates. The InsufficientData/RequiresConfirmation
exceptions exist for callers that want a strict value accessor.
"""

from typing import Any, Dict, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for consistent error reporting."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    ZONE_VALIDATION_ERROR = "ZONE_VALIDATION_ERROR"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    REQUIRES_CONFIRMATION = "REQUIRES_CONFIRMATION"
    REFRESH_CANCELLED = "REFRESH_CANCELLED"


class AdaptiveMetricsError(Exception):
    """
    Base exception for all Adaptive Metrics Engine errors.

    Attributes:
        message: Human-readable error message
        code: Error code from ErrorCode enum
        details: Optional dictionary with additional error details
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        result: Dict[str, Any] = {
            "error": {
                "code": self.code.value,
                "message": self.message,
            }
        }
        if self.details:
            result["error"]["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


# ============================================================================
# Validation Errors
# ============================================================================

class ValidationError(AdaptiveMetricsError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            details=error_details,
        )


class ZoneValidationError(ValidationError):
    """Raised when a threshold cannot produce a well-formed zone table."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, field=field, details=details)
        self.code = ErrorCode.ZONE_VALIDATION_ERROR


# ============================================================================
# Estimation Errors
# ============================================================================

class InsufficientDataError(AdaptiveMetricsError):
    """Raised when too few qualifying efforts exist to produce an estimate."""

    def __init__(
        self,
        metric: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        error_details["metric"] = metric
        super().__init__(
            message=f"Not enough data to estimate {metric}",
            code=ErrorCode.INSUFFICIENT_DATA,
            details=error_details,
        )


class RequiresConfirmationError(AdaptiveMetricsError):
    """Raised when an estimate changed too much to be applied without confirmation."""

    def __init__(
        self,
        metric: str,
        previous: Optional[float] = None,
        candidate: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        error_details.update({"metric": metric, "previous": previous, "candidate": candidate})
        super().__init__(
            message=f"New {metric} estimate requires confirmation",
            code=ErrorCode.REQUIRES_CONFIRMATION,
            details=error_details,
        )


# ============================================================================
# Execution Errors
# ============================================================================

class RefreshCancelledError(AdaptiveMetricsError):
    """Raised when a refresh is cancelled between units of work."""

    def __init__(self, stage: str, details: Optional[Dict[str, Any]] = None) -> None:
        error_details = details or {}
        error_details["stage"] = stage
        super().__init__(
            message=f"Refresh cancelled during {stage}",
            code=ErrorCode.REFRESH_CANCELLED,
            details=error_details,
        )
