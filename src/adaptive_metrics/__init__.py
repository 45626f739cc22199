"""
Adaptive Metrics Engine.

Derives FTP, max heart rate, training zones and chronic/acute training load
from an athlete's activity history.
"""

from .cancellation import CancellationToken
from .config import EngineSettings, get_settings
from .exceptions import (
    AdaptiveMetricsError,
    ErrorCode,
    InsufficientDataError,
    RefreshCancelledError,
    RequiresConfirmationError,
    ValidationError,
    ZoneValidationError,
)
from .models import (
    ActivitySample,
    ActivityType,
    FieldResult,
    FieldStatus,
    LoadState,
    MetricsSnapshot,
    ThresholdEstimate,
    ZoneTable,
)
from .services import AdaptiveMetricsEngine, MetricsService, SampleStore

__version__ = "0.1.0"

__all__ = [
    "AdaptiveMetricsEngine",
    "MetricsService",
    "SampleStore",
    "CancellationToken",
    "EngineSettings",
    "get_settings",
    "AdaptiveMetricsError",
    "ErrorCode",
    "InsufficientDataError",
    "RefreshCancelledError",
    "RequiresConfirmationError",
    "ValidationError",
    "ZoneValidationError",
    "ActivitySample",
    "ActivityType",
    "FieldResult",
    "FieldStatus",
    "LoadState",
    "MetricsSnapshot",
    "ThresholdEstimate",
    "ZoneTable",
]
