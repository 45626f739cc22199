"""Derived metric models: threshold estimates, zone tables, load state and snapshots."""

import math
from datetime import date, timedelta
from enum import Enum
from typing import Optional, Tuple, Union

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from ..exceptions import InsufficientDataError, RequiresConfirmationError
from .activity import to_camel


# Below this chronic load the acute:chronic ratio is meaningless
MIN_CHRONIC_LOAD_FOR_RATIO = 10.0


_MODEL_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
    ser_json_inf_nan="constants",
)


# =============================================================================
# Enums
# =============================================================================

class RejectionReason(str, Enum):
    """Why an estimator declined to produce a usable value."""
    INSUFFICIENT_DATA = "insufficient_data"
    REQUIRES_CONFIRMATION = "requires_confirmation"


class EstimateState(str, Enum):
    """Lifecycle of a threshold: no_estimate -> provisional -> confirmed."""
    NO_ESTIMATE = "no_estimate"
    PROVISIONAL = "provisional"
    CONFIRMED = "confirmed"


class ThresholdSource(str, Enum):
    """Where a threshold value came from."""
    COMPUTED = "computed"  # Adaptive, from performance data
    MANUAL = "manual"      # Entered by the athlete


class ZoneKind(str, Enum):
    POWER = "power"
    HEART_RATE = "heart_rate"


class FieldStatus(str, Enum):
    """Per-field outcome of a refresh."""
    UPDATED = "updated"      # New value applied
    UNCHANGED = "unchanged"  # Recomputed, same as before
    RETAINED = "retained"    # Previous value kept (rejection or override)
    FAILED = "failed"        # Validation error for this field


class RetentionReason(str, Enum):
    """Reasons a refresh kept a previous value, beyond estimator rejections."""
    MANUAL_OVERRIDE = "manual_override"


class RiskZone(str, Enum):
    UNDERTRAINED = "undertrained"
    OPTIMAL = "optimal"
    CAUTION = "caution"
    DANGER = "danger"


# =============================================================================
# Threshold estimates
# =============================================================================

class ThresholdEstimate(BaseModel):
    """Result of one estimation run for FTP or max heart rate."""

    model_config = _MODEL_CONFIG

    value: Optional[float] = Field(None, description="Estimated threshold (candidate when rejected)")
    confidence: float = Field(0.0, ge=0, le=1, description="Confidence in the estimate")
    supporting_sample_count: int = Field(0, ge=0, description="Qualifying efforts used")
    rejected: bool = Field(False, description="True when the value must not be applied")
    rejection_reason: Optional[RejectionReason] = None
    state: EstimateState = EstimateState.NO_ESTIMATE
    source: ThresholdSource = ThresholdSource.COMPUTED
    computed_at: Optional[AwareDatetime] = None

    @property
    def is_usable(self) -> bool:
        """True when this estimate carries a value that may be applied."""
        return not self.rejected and self.value is not None

    def require_value(self, metric: str = "threshold") -> float:
        """Return the value or raise the matching estimation error."""
        if self.rejection_reason == RejectionReason.REQUIRES_CONFIRMATION:
            raise RequiresConfirmationError(metric, candidate=self.value)
        if not self.is_usable:
            raise InsufficientDataError(metric)
        return self.value


# =============================================================================
# Zones
# =============================================================================

class Zone(BaseModel):
    """One training zone, covering [lower_bound, upper_bound)."""

    model_config = _MODEL_CONFIG

    index: int = Field(..., ge=1)
    name: str
    lower_bound: float = Field(..., ge=0)
    upper_bound: float

    def contains(self, value: float) -> bool:
        return self.lower_bound <= value < self.upper_bound


class ZoneTable(BaseModel):
    """Ordered zones covering [0, inf) with no gaps and no overlaps."""

    model_config = _MODEL_CONFIG

    kind: ZoneKind
    threshold: float = Field(..., gt=0, description="FTP or max HR the table derives from")
    lthr: Optional[float] = Field(None, description="LTHR anchoring the top HR zone")
    zones: Tuple[Zone, ...]

    def zone_for(self, value: float) -> Optional[Zone]:
        """Return the zone containing value, or None for negative input."""
        if value < 0:
            return None
        for zone in self.zones:
            if zone.contains(value):
                return zone
        return self.zones[-1]

    def boundaries(self) -> Tuple[float, ...]:
        """Upper bounds of every zone except the open-ended top one."""
        return tuple(zone.upper_bound for zone in self.zones if not math.isinf(zone.upper_bound))


# =============================================================================
# Training load
# =============================================================================

class LoadState(BaseModel):
    """
    Chronic/acute training load and their balance as of last_updated.

    The settled loads are the averages at the end of the day before
    last_updated. When present, last_updated is still open: activities
    logged later that day are folded in by re-running the day from the
    settled loads.
    """

    model_config = _MODEL_CONFIG

    chronic_load: float = Field(0.0, description="CTL - 42 day EWMA (fitness)")
    acute_load: float = Field(0.0, description="ATL - 7 day EWMA (fatigue)")
    balance: float = Field(0.0, description="TSB = CTL - ATL (form)")
    last_updated: Optional[date] = Field(None, description="Last day folded into the averages")
    settled_chronic_load: Optional[float] = Field(None, description="CTL before last_updated")
    settled_acute_load: Optional[float] = Field(None, description="ATL before last_updated")

    @property
    def is_open(self) -> bool:
        """True when last_updated may still receive activities."""
        return (
            self.last_updated is not None
            and self.settled_chronic_load is not None
            and self.settled_acute_load is not None
        )

    @property
    def next_fold_day(self) -> Optional[date]:
        """First day whose activities are not yet final in this state."""
        if self.last_updated is None:
            return None
        if self.is_open:
            return self.last_updated
        return self.last_updated + timedelta(days=1)

    @property
    def acute_chronic_ratio(self) -> float:
        """ACWR, defaulting to 1.0 while chronic load is too low to be meaningful."""
        if self.chronic_load > MIN_CHRONIC_LOAD_FOR_RATIO:
            return self.acute_load / self.chronic_load
        return 1.0

    @property
    def risk_zone(self) -> RiskZone:
        acwr = self.acute_chronic_ratio
        if acwr < 0.8:
            return RiskZone.UNDERTRAINED
        elif acwr <= 1.3:
            return RiskZone.OPTIMAL
        elif acwr <= 1.5:
            return RiskZone.CAUTION
        return RiskZone.DANGER


# =============================================================================
# Snapshot
# =============================================================================

class FieldResult(BaseModel):
    """Outcome of a refresh for one snapshot field."""

    model_config = _MODEL_CONFIG

    status: FieldStatus
    reason: Optional[Union[RejectionReason, RetentionReason]] = None
    candidate: Optional[ThresholdEstimate] = Field(
        None, description="Rejected estimate, surfaced for confirmation prompts"
    )
    error: Optional[str] = None
    stale: bool = False


class MetricsSnapshot(BaseModel):
    """Everything a refresh produces for one athlete."""

    model_config = _MODEL_CONFIG

    as_of: AwareDatetime
    ftp: Optional[ThresholdEstimate] = None
    max_hr: Optional[ThresholdEstimate] = None
    lthr: Optional[float] = None
    power_zones: Optional[ZoneTable] = None
    hr_zones: Optional[ZoneTable] = None
    load_state: LoadState

    ftp_result: FieldResult
    max_hr_result: FieldResult
    power_zones_result: FieldResult
    hr_zones_result: FieldResult
