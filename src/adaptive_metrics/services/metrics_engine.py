"""
Adaptive Metrics Engine.

Orchestrates curve building, threshold estimation, zone generation and
training-load accumulation for one athlete. The engine holds no per-athlete
state: previous thresholds, zones and load state come in as arguments and a
new immutable MetricsSnapshot goes out. Callers must serialise refreshes for
the same athlete; refreshes for different athletes share nothing.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence, Tuple
import logging

from ..cancellation import CancellationToken
from ..config import EngineSettings
from ..exceptions import ValidationError, ZoneValidationError
from ..metrics.fitness import advance, estimate_baseline
from ..metrics.load import aggregate_daily_stress
from ..metrics.power import build_power_curve
from ..metrics.thresholds import confirm_estimate, derive_lthr, estimate_ftp, estimate_max_hr
from ..metrics.zones import generate_hr_zones, generate_power_zones
from ..models import (
    ActivitySample,
    FieldResult,
    FieldStatus,
    LoadState,
    MetricsSnapshot,
    RejectionReason,
    RetentionReason,
    ThresholdEstimate,
    ThresholdSource,
    ZoneTable,
)
from .base import BaseService


def _usable(estimate: Optional[ThresholdEstimate]) -> Optional[ThresholdEstimate]:
    return estimate if estimate is not None and estimate.is_usable else None


class AdaptiveMetricsEngine(BaseService):
    """
    Single entry point for deriving an athlete's adaptive metrics.

    Failure policy:
    - A rejected FTP/max HR estimate keeps the previous threshold and zones
      and reports the rejection next to the otherwise successful snapshot.
    - A zone validation error marks only that zone field as failed.
    - Load state is always advanced.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(settings=settings, logger=logger)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def refresh(
        self,
        activities: Sequence[ActivitySample],
        previous_ftp: Optional[ThresholdEstimate] = None,
        previous_max_hr: Optional[ThresholdEstimate] = None,
        previous_load_state: Optional[LoadState] = None,
        as_of: Optional[datetime] = None,
        *,
        previous_power_zones: Optional[ZoneTable] = None,
        previous_hr_zones: Optional[ZoneTable] = None,
        resting_hr: Optional[float] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> MetricsSnapshot:
        """
        Recompute thresholds, zones and load state as of a given instant.

        Identical inputs always produce identical snapshots; every timestamp
        in the result derives from as_of, never from the wall clock.

        Args:
            activities: Activities from the sample store (any order)
            previous_ftp: Currently applied FTP estimate
            previous_max_hr: Currently applied max HR estimate
            previous_load_state: Load state from the previous snapshot
            as_of: Timezone-aware reference instant
            previous_power_zones: Power zones from the previous snapshot
            previous_hr_zones: HR zones from the previous snapshot
            resting_hr: Resting heart rate for HR-based stress
            cancel_token: Cooperative cancellation

        Returns:
            MetricsSnapshot with per-field results

        Raises:
            ValidationError: On malformed input
            RefreshCancelledError: If cancel_token fires mid-refresh
        """
        self._validate(activities, as_of, resting_hr)
        settings = self.settings

        in_scope = sorted(
            (a for a in activities if a.start_time <= as_of),
            key=lambda a: (a.start_time, a.id),
        )
        self.logger.info(
            "Refreshing metrics as of %s with %d activities", as_of.isoformat(), len(in_scope)
        )

        curve = build_power_curve(
            in_scope,
            parallel=settings.parallel_curve,
            max_workers=settings.curve_max_workers,
            cancel_token=cancel_token,
            settings=settings,
        )

        if cancel_token is not None:
            cancel_token.raise_if_cancelled("threshold estimation")

        ftp, ftp_result = self._resolve_threshold(
            "FTP",
            previous_ftp,
            lambda prev: estimate_ftp(curve, prev, as_of=as_of, settings=settings),
            as_of,
        )
        max_hr, max_hr_result = self._resolve_threshold(
            "Max HR",
            previous_max_hr,
            lambda prev: estimate_max_hr(in_scope, as_of=as_of, previous=prev, settings=settings),
            as_of,
        )

        lthr = derive_lthr(max_hr.value, settings) if max_hr is not None else None

        power_zones, power_zones_result = self._resolve_zones(
            "power",
            ftp.value if ftp else None,
            previous_power_zones,
            lambda: generate_power_zones(ftp.value),
            ftp_result,
        )
        hr_zones, hr_zones_result = self._resolve_zones(
            "heart rate",
            max_hr.value if max_hr else None,
            previous_hr_zones,
            lambda: generate_hr_zones(max_hr.value, lthr),
            max_hr_result,
            lthr=lthr,
        )

        if cancel_token is not None:
            cancel_token.raise_if_cancelled("load accumulation")

        load_state = self._advance_load(
            in_scope,
            previous_load_state,
            as_of,
            ftp=ftp.value if ftp else None,
            max_hr=max_hr.value if max_hr else None,
            resting_hr=resting_hr,
        )

        self.logger.info(
            "Refresh complete: FTP %s (%s), max HR %s (%s), CTL %.1f ATL %.1f TSB %.1f",
            ftp.value if ftp else None, ftp_result.status.value,
            max_hr.value if max_hr else None, max_hr_result.status.value,
            load_state.chronic_load, load_state.acute_load, load_state.balance,
        )

        return MetricsSnapshot(
            as_of=as_of,
            ftp=ftp,
            max_hr=max_hr,
            lthr=lthr,
            power_zones=power_zones,
            hr_zones=hr_zones,
            load_state=load_state,
            ftp_result=ftp_result,
            max_hr_result=max_hr_result,
            power_zones_result=power_zones_result,
            hr_zones_result=hr_zones_result,
        )

    def apply_confirmation(
        self,
        snapshot: MetricsSnapshot,
        metric: str,
        confirmed_at: Optional[datetime] = None,
    ) -> MetricsSnapshot:
        """
        Accept the provisional FTP or max HR candidate held in a snapshot.

        Returns a new snapshot with the confirmed threshold and regenerated
        zones; the load state is left as it was.

        Args:
            snapshot: Snapshot whose result carries a requires_confirmation candidate
            metric: "ftp" or "max_hr"
            confirmed_at: When the athlete confirmed (defaults to the candidate time)

        Raises:
            ValidationError: Unknown metric or nothing awaiting confirmation
        """
        if metric == "ftp":
            result = snapshot.ftp_result
        elif metric == "max_hr":
            result = snapshot.max_hr_result
        else:
            raise ValidationError(f"Unknown metric '{metric}'", field="metric")

        if result.candidate is None:
            raise ValidationError(f"No {metric} estimate awaiting confirmation", field="metric")

        confirmed = confirm_estimate(result.candidate, confirmed_at)
        self.logger.info("Confirmed %s estimate %.1f", metric, confirmed.value)
        updated_result = FieldResult(status=FieldStatus.UPDATED)

        if metric == "ftp":
            zones, zones_result = self._resolve_zones(
                "power",
                confirmed.value,
                snapshot.power_zones,
                lambda: generate_power_zones(confirmed.value),
                updated_result,
            )
            return snapshot.model_copy(
                update={
                    "ftp": confirmed,
                    "ftp_result": updated_result,
                    "power_zones": zones,
                    "power_zones_result": zones_result,
                }
            )

        lthr = derive_lthr(confirmed.value, self.settings)
        zones, zones_result = self._resolve_zones(
            "heart rate",
            confirmed.value,
            snapshot.hr_zones,
            lambda: generate_hr_zones(confirmed.value, lthr),
            updated_result,
            lthr=lthr,
        )
        return snapshot.model_copy(
            update={
                "max_hr": confirmed,
                "max_hr_result": updated_result,
                "lthr": lthr,
                "hr_zones": zones,
                "hr_zones_result": zones_result,
            }
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _validate(
        self,
        activities: Sequence[ActivitySample],
        as_of: Optional[datetime],
        resting_hr: Optional[float],
    ) -> None:
        if as_of is None or as_of.tzinfo is None:
            raise ValidationError("as_of must be a timezone-aware datetime", field="as_of")
        if resting_hr is not None and resting_hr <= 0:
            raise ValidationError("Resting HR must be positive", field="resting_hr")

        seen = set()
        for activity in activities:
            if activity.id in seen:
                raise ValidationError(
                    f"Duplicate activity id '{activity.id}'",
                    field="activities",
                    details={"activity_id": activity.id},
                )
            seen.add(activity.id)

    def _is_stale(self, estimate: ThresholdEstimate, as_of: datetime) -> bool:
        if estimate.source == ThresholdSource.MANUAL or estimate.computed_at is None:
            return False
        age = as_of - estimate.computed_at
        return age > timedelta(days=self.settings.threshold_stale_after_days)

    def _resolve_threshold(
        self,
        metric: str,
        previous: Optional[ThresholdEstimate],
        estimator: Callable[[Optional[ThresholdEstimate]], ThresholdEstimate],
        as_of: datetime,
    ) -> Tuple[Optional[ThresholdEstimate], FieldResult]:
        """Apply override and rejection policy to a fresh estimate."""
        current = _usable(previous)

        if current is not None and current.source == ThresholdSource.MANUAL:
            self.logger.debug("%s is set manually, skipping adaptive update", metric)
            return current, FieldResult(
                status=FieldStatus.RETAINED,
                reason=RetentionReason.MANUAL_OVERRIDE,
            )

        candidate = estimator(current)

        if candidate.is_usable:
            if current is not None and current.value == candidate.value:
                return candidate, FieldResult(status=FieldStatus.UNCHANGED)
            return candidate, FieldResult(status=FieldStatus.UPDATED)

        if candidate.rejection_reason == RejectionReason.REQUIRES_CONFIRMATION:
            self.logger.warning(
                "%s candidate %.1f awaits confirmation, keeping %.1f",
                metric, candidate.value, current.value,
            )
        else:
            self.logger.info(
                "%s: not enough data (%d qualifying efforts)",
                metric, candidate.supporting_sample_count,
            )

        return current, FieldResult(
            status=FieldStatus.RETAINED,
            reason=candidate.rejection_reason,
            candidate=candidate,
            stale=current is not None and self._is_stale(current, as_of),
        )

    def _resolve_zones(
        self,
        label: str,
        threshold: Optional[float],
        previous: Optional[ZoneTable],
        generator: Callable[[], ZoneTable],
        threshold_result: FieldResult,
        lthr: Optional[float] = None,
    ) -> Tuple[Optional[ZoneTable], FieldResult]:
        """Regenerate zones only when the threshold changed or none exist yet."""
        if threshold is None:
            return previous, FieldResult(status=FieldStatus.RETAINED, reason=threshold_result.reason)

        if previous is not None and previous.threshold == threshold and previous.lthr == lthr:
            return previous, FieldResult(status=FieldStatus.UNCHANGED)

        try:
            table = generator()
        except ZoneValidationError as e:
            self.logger.warning("Could not generate %s zones: %s", label, e.message)
            return previous, FieldResult(status=FieldStatus.FAILED, error=e.message)

        return table, FieldResult(status=FieldStatus.UPDATED)

    def _advance_load(
        self,
        activities: Sequence[ActivitySample],
        previous: Optional[LoadState],
        as_of: datetime,
        ftp: Optional[float],
        max_hr: Optional[float],
        resting_hr: Optional[float],
    ) -> LoadState:
        """Fold stress from days not yet settled in the previous state."""
        end = as_of.date()
        state = previous or LoadState()

        # An open last day is re-run in full, so its earlier activities count again
        first_day = state.next_fold_day
        if first_day is not None:
            fresh = [a for a in activities if a.start_date >= first_day]
        else:
            fresh = list(activities)

        totals = aggregate_daily_stress(
            fresh, ftp=ftp, max_hr=max_hr, resting_hr=resting_hr, settings=self.settings
        )

        if previous is None and self.settings.seed_baseline and totals:
            state = estimate_baseline(totals, min(totals))
            self.logger.debug("Seeded cold start: CTL %.1f ATL %.1f", state.chronic_load, state.acute_load)

        return advance(state, totals, end, settings=self.settings)
