"""Per-activity training stress (TSS, TRIMP) with a tiered data fallback."""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

from ..config import EngineSettings, get_settings
from ..models import ActivitySample
from .power import calculate_tss, resolve_normalized_power

logger = logging.getLogger(__name__)

# Banister's coefficients (a, b) by sex
TRIMP_COEFFICIENTS: Dict[str, Tuple[float, float]] = {
    "male": (0.64, 1.92),
    "female": (0.86, 1.67),
}


class StressMethod(str, Enum):
    """Which data tier produced a stress score."""
    POWER = "power"
    HEART_RATE = "heart_rate"
    DURATION = "duration"


@dataclass(frozen=True)
class StressScore:
    """Training stress of one activity on the TSS scale (100 = 1h at threshold)."""

    value: float
    method: StressMethod


def heart_rate_reserve_fraction(avg_hr: float, rest_hr: float, max_hr: float) -> float:
    """Fraction of heart rate reserve used, clamped to [0, 1]."""
    hr_reserve = max_hr - rest_hr
    if hr_reserve <= 0:
        return 0.0
    return max(0.0, min(1.0, (avg_hr - rest_hr) / hr_reserve))


def calculate_trimp(
    duration_min: float,
    avg_hr: float,
    rest_hr: float,
    max_hr: float,
    gender: str = "male",
) -> float:
    """
    Training Impulse using Banister's exponential formula.

    TRIMP accounts for both duration and intensity, with an exponential
    weighting that emphasizes high-intensity work.

    Args:
        duration_min: Duration of activity in minutes
        avg_hr: Average heart rate during activity
        rest_hr: Resting heart rate
        max_hr: Maximum heart rate
        gender: 'male' or 'female' (selects Banister's coefficients)

    Returns:
        TRIMP value, unrounded (arbitrary units, typical session: 50-150)
    """
    if max_hr - rest_hr <= 0:
        return 0.0
    delta_hr = heart_rate_reserve_fraction(avg_hr, rest_hr, max_hr)
    a, b = TRIMP_COEFFICIENTS.get(gender.lower(), TRIMP_COEFFICIENTS["male"])
    return duration_min * delta_hr * a * math.exp(b * delta_hr)


def resolve_average_heart_rate(activity: ActivitySample) -> Optional[float]:
    """Reported average HR, else the mean of the HR stream."""
    if activity.average_heart_rate:
        return float(activity.average_heart_rate)
    if activity.has_hr_stream:
        return sum(activity.hr_stream) / len(activity.hr_stream)
    return None


def resolve_peak_heart_rate(activity: ActivitySample) -> Optional[float]:
    """Reported peak HR, else the stream maximum."""
    if activity.peak_heart_rate:
        return float(activity.peak_heart_rate)
    if activity.has_hr_stream:
        return float(max(activity.hr_stream))
    return None


def daily_stress(
    activity: ActivitySample,
    ftp: Optional[float] = None,
    max_hr: Optional[float] = None,
    resting_hr: Optional[float] = None,
    settings: Optional[EngineSettings] = None,
) -> StressScore:
    """
    Training stress for one activity.

    Tiers are tried strictly in order and the first one with data wins:
    1. Power: TSS from normalized power and FTP
    2. Heart rate: Banister TRIMP scaled onto the TSS range. Without a max HR
       estimate the activity's own peak HR is the ceiling.
    3. Duration: hours at an assumed intensity for the activity type

    Only the final score is rounded.

    Args:
        activity: Completed workout
        ftp: Functional Threshold Power in watts
        max_hr: Maximum heart rate estimate
        resting_hr: Resting heart rate (defaults to settings)
        settings: Engine settings

    Returns:
        StressScore with the value and the tier that produced it
    """
    settings = settings or get_settings()
    duration = activity.duration_seconds

    if ftp is not None and ftp > 0:
        normalized_power = resolve_normalized_power(activity)
        if normalized_power is not None:
            tss = calculate_tss(duration, normalized_power, normalized_power / ftp, ftp)
            return StressScore(value=tss, method=StressMethod.POWER)

    avg_hr = resolve_average_heart_rate(activity)
    if avg_hr is not None:
        ceiling = max_hr if max_hr is not None and max_hr > 0 else resolve_peak_heart_rate(activity)
        rest_hr = resting_hr if resting_hr is not None else settings.default_resting_hr
        if ceiling is not None and ceiling > rest_hr:
            impulse = calculate_trimp(duration / 60, avg_hr, rest_hr, ceiling)
            return StressScore(
                value=round(impulse * settings.hr_stress_scale, 1),
                method=StressMethod.HEART_RATE,
            )
        logger.debug("Activity %s: no HR ceiling above resting HR", activity.id)

    assumed_if = settings.assumed_intensity.get(
        activity.type.value, settings.assumed_intensity.get("other", 0.6)
    )
    hours = duration / 3600
    return StressScore(
        value=round(hours * assumed_if ** 2 * 100, 1),
        method=StressMethod.DURATION,
    )


def aggregate_daily_stress(
    activities: Sequence[ActivitySample],
    ftp: Optional[float] = None,
    max_hr: Optional[float] = None,
    resting_hr: Optional[float] = None,
    settings: Optional[EngineSettings] = None,
) -> Dict[date, float]:
    """
    Sum per-activity stress by calendar day.

    Returns:
        Dictionary mapping each day with activity to its total stress
    """
    totals: Dict[date, float] = defaultdict(float)
    for activity in sorted(activities, key=lambda a: (a.start_time, a.id)):
        score = daily_stress(activity, ftp=ftp, max_hr=max_hr, resting_hr=resting_hr, settings=settings)
        totals[activity.start_date] += score.value
        logger.debug("Activity %s: %.1f stress (%s)", activity.id, score.value, score.method.value)
    return dict(totals)
