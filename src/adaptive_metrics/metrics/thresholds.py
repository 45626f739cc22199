"""
Threshold estimation: FTP from the power curve, max HR from sustained peaks.

Both estimators follow the same lifecycle:

    no_estimate -> provisional -> confirmed

A non-rejected estimate is confirmed immediately. An estimate that moved
further than the configured change threshold is provisional until the caller
acknowledges it with confirm_estimate(). Estimates never decay back to
no_estimate; a stale value stays confirmed until replaced.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from ..config import EngineSettings, get_settings
from ..exceptions import ValidationError
from ..models import (
    ActivitySample,
    EstimateState,
    RejectionReason,
    ThresholdEstimate,
    ThresholdSource,
)
from .power import PowerCurve

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HRCandidate:
    """A sustained heart-rate peak from one activity."""

    activity_id: str
    start_time: datetime
    peak: float
    sustained_seconds: int
    weight: float


def recency_decay(days_ago: float, half_life_days: float) -> float:
    """
    Exponential recency weight: 1.0 today, 0.5 after one half-life.

    Args:
        days_ago: Age of the effort in days (negative treated as 0)
        half_life_days: Days for the weight to halve

    Returns:
        Weight in (0, 1]
    """
    if half_life_days <= 0:
        return 1.0
    return 0.5 ** (max(days_ago, 0.0) / half_life_days)


def _days_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds() / 86400


def _blend_confidence(
    sample_count: int,
    saturation: int,
    recency_weights: Sequence[float],
    settings: EngineSettings,
) -> float:
    """More and more recent efforts give higher confidence."""
    if sample_count <= 0 or not recency_weights:
        return 0.0
    count_factor = min(sample_count / max(saturation, 1), 1.0)
    recency_factor = sum(recency_weights) / len(recency_weights)
    w = settings.confidence_count_weight
    confidence = w * count_factor + (1 - w) * recency_factor
    return round(max(0.0, min(1.0, confidence)), 3)


def _insufficient(
    supporting: int,
    computed_at: Optional[datetime],
) -> ThresholdEstimate:
    return ThresholdEstimate(
        value=None,
        confidence=0.0,
        supporting_sample_count=supporting,
        rejected=True,
        rejection_reason=RejectionReason.INSUFFICIENT_DATA,
        state=EstimateState.NO_ESTIMATE,
        computed_at=computed_at,
    )


def _validated(
    value: float,
    confidence: float,
    supporting: int,
    previous: Optional[ThresholdEstimate],
    change_threshold: float,
    computed_at: Optional[datetime],
    metric: str,
) -> ThresholdEstimate:
    """Apply change validation against the previous estimate."""
    if previous is not None and previous.value is not None and previous.value > 0:
        change = abs(value - previous.value) / previous.value
        if change > change_threshold:
            logger.warning(
                "%s estimate moved %.1f%% (%.1f -> %.1f), requires confirmation",
                metric, change * 100, previous.value, value,
            )
            return ThresholdEstimate(
                value=value,
                confidence=confidence,
                supporting_sample_count=supporting,
                rejected=True,
                rejection_reason=RejectionReason.REQUIRES_CONFIRMATION,
                state=EstimateState.PROVISIONAL,
                computed_at=computed_at,
            )

    return ThresholdEstimate(
        value=value,
        confidence=confidence,
        supporting_sample_count=supporting,
        rejected=False,
        state=EstimateState.CONFIRMED,
        computed_at=computed_at,
    )


def estimate_ftp(
    curve: PowerCurve,
    previous: Optional[ThresholdEstimate] = None,
    *,
    as_of: Optional[datetime] = None,
    settings: Optional[EngineSettings] = None,
) -> ThresholdEstimate:
    """
    Estimate FTP as a fixed fraction of the curve's 20-minute power.

    Insufficient data is checked before change validation: a candidate
    must exist before it can require confirmation.

    Args:
        curve: Power curve built from recent activities
        previous: Currently applied FTP estimate, if any
        as_of: Reference instant for recency (defaults to the newest effort)
        settings: Engine settings

    Returns:
        ThresholdEstimate, rejected with insufficient_data or
        requires_confirmation when the value must not be applied
    """
    settings = settings or get_settings()

    supporting = curve.supporting_efforts(settings.ftp_min_effort_seconds)
    if as_of is None and supporting:
        as_of = max(record.start_time for record in supporting)

    reference = curve.value_at(settings.ftp_reference_duration)
    if curve.is_empty or reference is None:
        logger.debug("No %ds power point, cannot estimate FTP", settings.ftp_reference_duration)
        return _insufficient(len(supporting), as_of)

    if len(supporting) < settings.ftp_min_supporting_efforts:
        logger.debug(
            "Only %d efforts >= %ds, need %d for FTP",
            len(supporting), settings.ftp_min_effort_seconds, settings.ftp_min_supporting_efforts,
        )
        return _insufficient(len(supporting), as_of)

    candidate = round(settings.ftp_coefficient * reference, 1)
    decays = [
        recency_decay(_days_between(record.start_time, as_of), settings.recency_half_life_days)
        for record in supporting
    ]
    confidence = _blend_confidence(len(supporting), settings.ftp_saturation_efforts, decays, settings)

    return _validated(
        candidate,
        confidence,
        len(supporting),
        previous,
        settings.ftp_change_threshold,
        as_of,
        "FTP",
    )


def longest_sustained_run(samples: Sequence[float], floor: float) -> int:
    """Longest run of consecutive samples at or above floor."""
    longest = 0
    current = 0
    for sample in samples:
        if sample >= floor:
            current += 1
            if current > longest:
                longest = current
        else:
            current = 0
    return longest


def effort_multiplier(activity: ActivitySample, settings: EngineSettings) -> float:
    """Races count more than training sessions."""
    multipliers = settings.effort_multipliers
    if activity.is_race:
        return multipliers.get("race", 1.0)
    return multipliers.get(activity.type.value, 1.0)


def find_hr_candidates(
    efforts: Sequence[ActivitySample],
    window_start: datetime,
    as_of: datetime,
    settings: EngineSettings,
) -> List[HRCandidate]:
    """
    Sustained HR peaks from activities inside [window_start, as_of].

    The peak is the stream maximum, and it must be held within the sustain
    window for the minimum run. A brief spike above an otherwise sustained
    maximum therefore disqualifies the whole activity rather than falling
    back to the sustained value: a noisy stream gives no candidate at all.
    """
    candidates: List[HRCandidate] = []
    sustain_fraction = 1.0 - settings.max_hr_sustain_window

    for activity in sorted(efforts, key=lambda a: (a.start_time, a.id)):
        if not (window_start <= activity.start_time <= as_of):
            continue
        if not activity.has_hr_stream:
            continue

        peak = max(activity.hr_stream)
        if peak <= 0:
            continue

        run = longest_sustained_run(activity.hr_stream, peak * sustain_fraction)
        if run < settings.max_hr_min_sustained_seconds:
            logger.debug(
                "Activity %s: peak %.0f bpm held %ds, treating as sensor spike",
                activity.id, peak, run,
            )
            continue

        decay = recency_decay(_days_between(activity.start_time, as_of), settings.recency_half_life_days)
        candidates.append(
            HRCandidate(
                activity_id=activity.id,
                start_time=activity.start_time,
                peak=float(peak),
                sustained_seconds=run,
                weight=decay * effort_multiplier(activity, settings),
            )
        )

    return candidates


def estimate_max_hr(
    efforts: Sequence[ActivitySample],
    window_days: Optional[int] = None,
    *,
    as_of: Optional[datetime] = None,
    previous: Optional[ThresholdEstimate] = None,
    settings: Optional[EngineSettings] = None,
) -> ThresholdEstimate:
    """
    Estimate maximum heart rate from sustained peaks in a trailing window.

    Each qualifying activity contributes its peak HR weighted by recency and
    effort type; the estimate is the weighted mean of the top candidates.

    Args:
        efforts: Activities with HR streams
        window_days: Trailing window length (defaults to settings)
        as_of: End of the window (defaults to the newest activity start)
        previous: Currently applied max HR estimate, if any
        settings: Engine settings

    Returns:
        ThresholdEstimate, rejected with insufficient_data when no activity
        qualifies
    """
    settings = settings or get_settings()
    window = window_days if window_days is not None else settings.max_hr_window_days
    if window <= 0:
        raise ValidationError("Max HR window must be positive", field="window_days")

    if as_of is None:
        if not efforts:
            return _insufficient(0, None)
        as_of = max(activity.start_time for activity in efforts)

    candidates = find_hr_candidates(efforts, as_of - timedelta(days=window), as_of, settings)
    if not candidates:
        return _insufficient(0, as_of)

    top = sorted(
        candidates,
        key=lambda c: (-c.weight, -c.peak, c.start_time.timestamp(), c.activity_id),
    )[: settings.max_hr_top_candidates]
    total_weight = sum(c.weight for c in top)
    value = round(sum(c.peak * c.weight for c in top) / total_weight, 1)

    decays = [
        recency_decay(_days_between(c.start_time, as_of), settings.recency_half_life_days)
        for c in top
    ]
    confidence = _blend_confidence(len(candidates), settings.max_hr_top_candidates, decays, settings)

    logger.debug("Max HR %.1f from %d candidates (top %d)", value, len(candidates), len(top))
    return _validated(
        value,
        confidence,
        len(candidates),
        previous,
        settings.max_hr_change_threshold,
        as_of,
        "Max HR",
    )


def derive_lthr(max_hr: float, settings: Optional[EngineSettings] = None) -> float:
    """
    Lactate threshold heart rate as a fixed fraction of max HR.

    LTHR is typically ~90% of max HR for trained athletes but varies
    (85-95%); the fraction is configurable.
    """
    settings = settings or get_settings()
    if max_hr <= 0:
        raise ValidationError("Max HR must be positive", field="max_hr")
    return round(max_hr * settings.lthr_fraction, 1)


def confirm_estimate(
    estimate: ThresholdEstimate,
    confirmed_at: Optional[datetime] = None,
) -> ThresholdEstimate:
    """
    Accept a provisional estimate that was waiting for confirmation.

    Raises:
        ValidationError: If the estimate is not awaiting confirmation
    """
    if (
        estimate.state != EstimateState.PROVISIONAL
        or estimate.rejection_reason != RejectionReason.REQUIRES_CONFIRMATION
        or estimate.value is None
    ):
        raise ValidationError(
            "Only provisional estimates awaiting confirmation can be confirmed",
            field="state",
            details={"state": estimate.state.value},
        )

    return estimate.model_copy(
        update={
            "rejected": False,
            "rejection_reason": None,
            "state": EstimateState.CONFIRMED,
            "computed_at": confirmed_at or estimate.computed_at,
        }
    )


def manual_estimate(value: float, set_at: datetime) -> ThresholdEstimate:
    """A confirmed, athlete-entered threshold that adaptive updates must not replace."""
    if value <= 0:
        raise ValidationError("Manual threshold must be positive", field="value")
    return ThresholdEstimate(
        value=float(value),
        confidence=1.0,
        supporting_sample_count=0,
        rejected=False,
        state=EstimateState.CONFIRMED,
        source=ThresholdSource.MANUAL,
        computed_at=set_at,
    )
