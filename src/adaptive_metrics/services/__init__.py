"""Service layer for the Adaptive Metrics Engine."""

from .base import BaseService, SampleStore
from .metrics_engine import AdaptiveMetricsEngine
from .metrics_service import MetricsService

__all__ = [
    "AdaptiveMetricsEngine",
    "BaseService",
    "MetricsService",
    "SampleStore",
]
