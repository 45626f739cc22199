"""Fitness-Fatigue model calculations (CTL, ATL, TSB, ACWR)."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterator, List, Mapping, Optional, Tuple, Union

from ..config import EngineSettings, get_settings
from ..models import LoadState, RiskZone

# Baseline multipliers for seeding a cold start from early training
BASELINE_CTL_MULTIPLIER = 0.7
BASELINE_ATL_MULTIPLIER = 0.4
BASELINE_DAYS = 14


@dataclass
class FitnessMetrics:
    """Daily fitness metrics from the Fitness-Fatigue model."""

    date: date
    daily_load: float  # Stress folded in on this day
    ctl: float  # Chronic Training Load (fitness) - 42 day EWMA
    atl: float  # Acute Training Load (fatigue) - 7 day EWMA
    tsb: float  # Training Stress Balance (form) = CTL - ATL
    acwr: float  # Acute:Chronic Workload Ratio
    risk_zone: RiskZone


def _as_date(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


def calculate_ewma(
    current_value: float,
    previous_ewma: float,
    time_constant: int,
) -> float:
    """
    Exponentially Weighted Moving Average, one day step.

    Uses the formula: EWMA_n = EWMA_{n-1} * decay + value * (1 - decay)
    where decay = 1 - 1/time_constant

    Args:
        current_value: Today's training load
        previous_ewma: Yesterday's EWMA value
        time_constant: Time constant in days (42 for CTL, 7 for ATL)

    Returns:
        New EWMA value
    """
    decay = 1 - 1 / time_constant
    return previous_ewma * decay + current_value * (1 - decay)


def _fold_start(
    state: LoadState,
    daily_totals: Mapping[date, float],
    end: date,
) -> Tuple[Optional[date], float, float]:
    """First day to fold and the CTL/ATL carried into it."""
    if state.last_updated is None:
        pending = [d for d in daily_totals if d <= end]
        return (min(pending) if pending else None), state.chronic_load, state.acute_load
    if state.is_open:
        return state.last_updated, state.settled_chronic_load, state.settled_acute_load
    return state.last_updated + timedelta(days=1), state.chronic_load, state.acute_load


def _fold_days(
    state: LoadState,
    daily_totals: Mapping[date, float],
    end: date,
    settings: EngineSettings,
) -> Iterator[Tuple[date, float, float, float]]:
    """Yield (day, stress, ctl, atl) for every day not yet settled through end."""
    day, ctl, atl = _fold_start(state, daily_totals, end)
    if day is None:
        return

    while day <= end:
        # Rest days still decay: detraining
        stress = daily_totals.get(day, 0.0)
        ctl = calculate_ewma(stress, ctl, settings.ctl_time_constant)
        atl = calculate_ewma(stress, atl, settings.atl_time_constant)
        yield day, stress, ctl, atl
        day += timedelta(days=1)


def advance(
    state: LoadState,
    daily_totals: Mapping[date, float],
    as_of: Union[date, datetime],
    settings: Optional[EngineSettings] = None,
) -> LoadState:
    """
    Fold daily stress into the load state one calendar day at a time.

    Days already settled are ignored. An open last_updated day is re-run from
    the settled loads, so activities logged after a same-day refresh still
    count. An as_of earlier than last_updated leaves the state unchanged.
    Splitting a history into several advance() calls gives exactly the same
    result as a single call over the whole history.

    Args:
        state: Previous load state (LoadState() for a cold start)
        daily_totals: Stress per calendar day
        as_of: Last day to fold in
        settings: Engine settings

    Returns:
        New LoadState with last_updated = as_of, left open
    """
    settings = settings or get_settings()
    end = _as_date(as_of)

    if state.last_updated is not None:
        if end < state.last_updated or (end == state.last_updated and not state.is_open):
            return state

    _, ctl, atl = _fold_start(state, daily_totals, end)
    settled_ctl, settled_atl = ctl, atl
    for _, _, day_ctl, day_atl in _fold_days(state, daily_totals, end, settings):
        settled_ctl, settled_atl = ctl, atl
        ctl, atl = day_ctl, day_atl

    return LoadState(
        chronic_load=ctl,
        acute_load=atl,
        balance=ctl - atl,
        last_updated=end,
        settled_chronic_load=settled_ctl,
        settled_acute_load=settled_atl,
    )


def replay(
    daily_totals: Mapping[date, float],
    as_of: Union[date, datetime],
    settings: Optional[EngineSettings] = None,
) -> LoadState:
    """Rebuild the load state from scratch over a full daily-stress history."""
    return advance(LoadState(), daily_totals, as_of, settings=settings)


def estimate_baseline(
    daily_totals: Mapping[date, float],
    start: date,
) -> LoadState:
    """
    Seed a cold start from the first two weeks of training.

    At steady state with 3-4 activities/week CTL is roughly 0.7x the average
    stress per active day; ATL starts lower.

    Returns:
        LoadState positioned the day before start
    """
    active = [
        daily_totals[start + timedelta(days=offset)]
        for offset in range(BASELINE_DAYS)
        if (start + timedelta(days=offset)) in daily_totals
    ]
    seeded_day = start - timedelta(days=1)
    if not active:
        return LoadState(last_updated=seeded_day)

    average = sum(active) / len(active)
    ctl = average * BASELINE_CTL_MULTIPLIER
    atl = average * BASELINE_ATL_MULTIPLIER
    return LoadState(chronic_load=ctl, acute_load=atl, balance=ctl - atl, last_updated=seeded_day)


def load_history(
    daily_totals: Mapping[date, float],
    as_of: Union[date, datetime],
    initial: Optional[LoadState] = None,
    settings: Optional[EngineSettings] = None,
) -> List[FitnessMetrics]:
    """
    Per-day CTL, ATL, TSB and ACWR for charting.

    Args:
        daily_totals: Stress per calendar day, need not be consecutive
        as_of: Last day of the series
        initial: State to continue from (cold start when omitted)
        settings: Engine settings

    Returns:
        List of FitnessMetrics, one per day folded
    """
    settings = settings or get_settings()
    state = initial or LoadState()

    results = []
    for day, stress, ctl, atl in _fold_days(state, daily_totals, _as_date(as_of), settings):
        day_state = LoadState(chronic_load=ctl, acute_load=atl, balance=ctl - atl, last_updated=day)
        acwr = day_state.acute_chronic_ratio
        results.append(
            FitnessMetrics(
                date=day,
                daily_load=round(stress, 1),
                ctl=round(ctl, 1),
                atl=round(atl, 1),
                tsb=round(ctl - atl, 1),
                acwr=round(acwr, 2),
                risk_zone=day_state.risk_zone,
            )
        )
    return results