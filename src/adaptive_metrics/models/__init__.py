"""Value types consumed and produced by the engine."""

from .activity import ActivitySample, ActivityType, to_camel
from .metrics import (
    EstimateState,
    FieldResult,
    FieldStatus,
    LoadState,
    MetricsSnapshot,
    RejectionReason,
    RetentionReason,
    RiskZone,
    ThresholdEstimate,
    ThresholdSource,
    Zone,
    ZoneKind,
    ZoneTable,
)

__all__ = [
    "ActivitySample",
    "ActivityType",
    "to_camel",
    "EstimateState",
    "FieldResult",
    "FieldStatus",
    "LoadState",
    "MetricsSnapshot",
    "RejectionReason",
    "RetentionReason",
    "RiskZone",
    "ThresholdEstimate",
    "ThresholdSource",
    "Zone",
    "ZoneKind",
    "ZoneTable",
]
