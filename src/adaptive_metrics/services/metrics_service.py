"""
Per-athlete refresh service.

Pulls activities from a SampleStore and feeds them, together with the
athlete's previous snapshot, to the AdaptiveMetricsEngine. Refreshes for the
same athlete are serialised; different athletes refresh concurrently.
"""

from datetime import datetime, time, timedelta
from typing import Dict, Optional
import logging
import threading

from ..cancellation import CancellationToken
from ..config import EngineSettings
from ..exceptions import ValidationError
from ..models import MetricsSnapshot
from .base import BaseService, SampleStore
from .metrics_engine import AdaptiveMetricsEngine


class MetricsService(BaseService):
    """Fetches activities per athlete and runs engine refreshes."""

    def __init__(
        self,
        store: SampleStore,
        engine: Optional[AdaptiveMetricsEngine] = None,
        settings: Optional[EngineSettings] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(settings=settings, logger=logger)
        self._store = store
        self._engine = engine or AdaptiveMetricsEngine(settings=self.settings)
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def engine(self) -> AdaptiveMetricsEngine:
        return self._engine

    def _lock_for(self, athlete_id: str) -> threading.Lock:
        with self._locks_guard:
            if athlete_id not in self._locks:
                self._locks[athlete_id] = threading.Lock()
            return self._locks[athlete_id]

    def _history_start(self, previous: Optional[MetricsSnapshot], as_of: datetime) -> datetime:
        """Earliest activity start needed for estimation and load folding."""
        since = as_of - timedelta(days=self.settings.history_days)
        resume_day = previous.load_state.next_fold_day if previous is not None else None
        if resume_day is not None:
            # Unsettled days older than the history window still need stress
            resume = datetime.combine(resume_day, time.min, tzinfo=as_of.tzinfo)
            since = min(since, resume)
        return since

    def refresh_athlete(
        self,
        athlete_id: str,
        as_of: datetime,
        previous: Optional[MetricsSnapshot] = None,
        *,
        resting_hr: Optional[float] = None,
        limit: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> MetricsSnapshot:
        """
        Refresh one athlete's metrics from the sample store.

        Args:
            athlete_id: Athlete to refresh
            as_of: Timezone-aware reference instant
            previous: The athlete's last snapshot, if any
            resting_hr: Resting heart rate for HR-based stress
            limit: Maximum number of activities to fetch
            cancel_token: Cooperative cancellation

        Returns:
            New MetricsSnapshot
        """
        if not athlete_id:
            raise ValidationError("athlete_id is required", field="athlete_id")
        if as_of is None or as_of.tzinfo is None:
            raise ValidationError("as_of must be a timezone-aware datetime", field="as_of")

        since = self._history_start(previous, as_of)

        with self._lock_for(athlete_id):
            activities = self._store.fetch_activities(athlete_id, since, limit=limit)
            self.logger.info(
                "Fetched %d activities for athlete %s since %s",
                len(activities), athlete_id, since.date().isoformat(),
            )
            return self._engine.refresh(
                activities,
                previous.ftp if previous else None,
                previous.max_hr if previous else None,
                previous.load_state if previous else None,
                as_of,
                previous_power_zones=previous.power_zones if previous else None,
                previous_hr_zones=previous.hr_zones if previous else None,
                resting_hr=resting_hr,
                cancel_token=cancel_token,
            )
