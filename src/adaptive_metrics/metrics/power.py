"""Cycling power metrics: power-duration curve, NP, IF, TSS."""

import concurrent.futures
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..cancellation import CancellationToken
from ..config import EngineSettings, get_settings
from ..exceptions import ValidationError
from ..models import ActivitySample

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EffortRecord:
    """Best average power one activity produced for one curve duration."""

    activity_id: str
    start_time: datetime
    power: float
    activity_duration: float  # length of the whole effort in seconds
    from_stream: bool = True

    def sort_key(self) -> Tuple[float, float, str]:
        """Higher power first, then earlier start, then id."""
        return (-self.power, self.start_time.timestamp(), self.activity_id)


@dataclass(frozen=True)
class PowerCurvePoint:
    """A (duration, best average power) pair."""

    duration_seconds: int
    max_average_power: float
    activity_id: str


@dataclass(frozen=True)
class PowerCurve:
    """
    Best maximal-mean power per canonical duration across a set of activities.

    Values never increase with duration: the builder clamps shorter durations
    up to the best longer effort, since a sustained effort bounds every shorter
    window from below.
    """

    durations: Tuple[int, ...]
    points: Dict[int, PowerCurvePoint] = field(default_factory=dict)
    efforts: Dict[int, Tuple[EffortRecord, ...]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.points

    def value_at(self, duration_seconds: int) -> Optional[float]:
        """Best power for a duration, or None when no activity covered it."""
        point = self.points.get(duration_seconds)
        return point.max_average_power if point else None

    def sorted_points(self) -> List[PowerCurvePoint]:
        return [self.points[d] for d in self.durations if d in self.points]

    def supporting_efforts(self, min_effort_seconds: int) -> List[EffortRecord]:
        """
        One record per distinct activity whose effort lasted at least
        min_effort_seconds, keeping its longest-duration contribution.
        """
        by_activity: Dict[str, EffortRecord] = {}
        for duration in self.durations:
            for record in self.efforts.get(duration, ()):
                if record.activity_duration >= min_effort_seconds:
                    by_activity[record.activity_id] = record
        return sorted(by_activity.values(), key=EffortRecord.sort_key)

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization."""
        return {
            "points": [
                {
                    "duration_seconds": p.duration_seconds,
                    "max_average_power": p.max_average_power,
                    "activity_id": p.activity_id,
                }
                for p in self.sorted_points()
            ],
        }


def max_mean_power(power_samples: Sequence[float], duration_seconds: int) -> Optional[float]:
    """
    Maximum average power over any window of duration_seconds samples (1 Hz).

    Uses a running window sum, so the scan is O(len(power_samples)).

    Args:
        power_samples: Power values in watts, one per second
        duration_seconds: Window length in samples

    Returns:
        Best window average in watts, or None if the stream is too short
    """
    n = len(power_samples)
    if duration_seconds <= 0 or n < duration_seconds:
        return None

    window_sum = sum(power_samples[:duration_seconds])
    best_sum = window_sum
    for i in range(duration_seconds, n):
        window_sum += power_samples[i] - power_samples[i - duration_seconds]
        if window_sum > best_sum:
            best_sum = window_sum

    return best_sum / duration_seconds


def _scan_activity(
    activity: ActivitySample,
    durations: Tuple[int, ...],
) -> Dict[int, EffortRecord]:
    """Best effort per duration for one activity."""
    records: Dict[int, EffortRecord] = {}

    if activity.has_power_stream:
        stream = activity.power_stream
        for duration in durations:
            best = max_mean_power(stream, duration)
            if best is not None and best > 0:
                records[duration] = EffortRecord(
                    activity_id=activity.id,
                    start_time=activity.start_time,
                    power=best,
                    activity_duration=float(len(stream)),
                )
        return records

    # Summary only: one point at the longest duration it covers
    summary_power = _summary_power(activity)
    if summary_power is not None:
        covered = [d for d in durations if d <= activity.duration_seconds]
        if covered:
            records[covered[-1]] = EffortRecord(
                activity_id=activity.id,
                start_time=activity.start_time,
                power=summary_power,
                activity_duration=activity.duration_seconds,
                from_stream=False,
            )
    return records


def _summary_power(activity: ActivitySample) -> Optional[float]:
    """Average power when reported, else normalized power."""
    if activity.average_power and activity.average_power > 0:
        return float(activity.average_power)
    if activity.normalized_power and activity.normalized_power > 0:
        return float(activity.normalized_power)
    return None


def _merge(
    per_activity: Iterable[Dict[int, EffortRecord]],
    durations: Tuple[int, ...],
) -> PowerCurve:
    """Merge per-activity results; independent of the order they arrive in."""
    collected: Dict[int, List[EffortRecord]] = {d: [] for d in durations}
    for records in per_activity:
        for duration, record in records.items():
            collected[duration].append(record)

    efforts = {
        d: tuple(sorted(records, key=EffortRecord.sort_key))
        for d, records in collected.items()
        if records
    }

    points: Dict[int, PowerCurvePoint] = {}
    best_longer: Optional[EffortRecord] = None
    for duration in reversed(durations):
        candidates = efforts.get(duration)
        best = candidates[0] if candidates else None
        if best_longer is not None and (best is None or best_longer.power > best.power):
            best = best_longer
        if best is None:
            continue
        points[duration] = PowerCurvePoint(
            duration_seconds=duration,
            max_average_power=best.power,
            activity_id=best.activity_id,
        )
        best_longer = best

    return PowerCurve(durations=durations, points=points, efforts=efforts)


def build_power_curve(
    activities: Sequence[ActivitySample],
    durations: Optional[Sequence[int]] = None,
    *,
    parallel: bool = False,
    max_workers: Optional[int] = None,
    cancel_token: Optional[CancellationToken] = None,
    settings: Optional[EngineSettings] = None,
) -> PowerCurve:
    """
    Build a maximal-mean power curve from a set of activities.

    Args:
        activities: Activities to scan (any order)
        durations: Target durations in seconds (defaults to settings)
        parallel: Scan activities on a thread pool
        max_workers: Pool size when parallel
        cancel_token: Checked between activities
        settings: Engine settings (defaults to get_settings())

    Returns:
        PowerCurve; empty when no activity carries power data
    """
    settings = settings or get_settings()
    target = tuple(sorted(set(durations if durations is not None else settings.curve_durations)))
    if any(d <= 0 for d in target):
        raise ValidationError("Curve durations must be positive", field="durations")

    if not activities:
        return PowerCurve(durations=target)

    if parallel and len(activities) > 1:
        workers = max_workers or settings.curve_max_workers

        def scan(activity: ActivitySample) -> Dict[int, EffortRecord]:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled("power curve")
            return _scan_activity(activity, target)

        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(scan, activity) for activity in activities]
            results = [f.result() for f in futures]
    else:
        results = []
        for activity in activities:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled("power curve")
            results.append(_scan_activity(activity, target))

    curve = _merge(results, target)
    logger.debug(
        "Built power curve from %d activities: %d/%d durations covered",
        len(activities), len(curve.points), len(target),
    )
    return curve


def calculate_normalized_power(power_samples: Sequence[float], sample_rate_hz: int = 1) -> float:
    """
    Calculate Normalized Power (NP) using 30-second rolling average.

    NP accounts for the physiological cost of variable power output.
    It uses a 30-second rolling average, then takes the 4th power mean.

    Formula: NP = (mean(rolling_30s_power^4))^0.25

    Args:
        power_samples: List of power values in watts (one per sample)
        sample_rate_hz: Sample rate in Hz (samples per second), default 1

    Returns:
        Normalized Power in watts (unrounded), or 0.0 if insufficient data
    """
    if not power_samples or sample_rate_hz <= 0:
        return 0.0

    window_size = 30 * sample_rate_hz
    n = len(power_samples)

    if n < window_size:
        # Short streams use the whole stream, but only with a few seconds of data
        if n < 3 * sample_rate_hz:
            return 0.0
        window_size = n

    window_sum = float(sum(power_samples[:window_size]))
    fourth_power_sum = (window_sum / window_size) ** 4
    count = 1
    for i in range(window_size, n):
        window_sum += power_samples[i] - power_samples[i - window_size]
        fourth_power_sum += (window_sum / window_size) ** 4
        count += 1

    return (fourth_power_sum / count) ** 0.25


def calculate_tss(
    duration_sec: float,
    normalized_power: float,
    intensity_factor: float,
    ftp: float,
) -> float:
    """
    Calculate Training Stress Score from power.

    A TSS of 100 represents one hour at FTP.

    Formula: TSS = (duration_sec * NP * IF) / (FTP * 3600) * 100

    Args:
        duration_sec: Duration of activity in seconds
        normalized_power: Normalized Power in watts
        intensity_factor: Intensity Factor (NP/FTP)
        ftp: Functional Threshold Power in watts

    Returns:
        Training Stress Score
    """
    if ftp <= 0 or duration_sec <= 0:
        return 0.0

    tss = (duration_sec * normalized_power * intensity_factor) / (ftp * 3600) * 100
    return round(tss, 1)


def resolve_normalized_power(activity: ActivitySample) -> Optional[float]:
    """Best available NP for an activity: reported, from stream, else average power."""
    if activity.normalized_power and activity.normalized_power > 0:
        return float(activity.normalized_power)
    if activity.has_power_stream:
        np = calculate_normalized_power(activity.power_stream)
        if np > 0:
            return np
    if activity.average_power and activity.average_power > 0:
        return float(activity.average_power)
    return None
