"""Configuration settings for the Adaptive Metrics Engine."""

from pathlib import Path
from functools import lru_cache
from typing import Dict, Tuple

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# __file__ = src/adaptive_metrics/config.py
# .parent.parent.parent = project root
PACKAGE_ROOT = Path(__file__).parent
PROJECT_ROOT = PACKAGE_ROOT.parent.parent


class EngineSettings(BaseSettings):
    """Tunable constants, loaded from ADAPTIVE_METRICS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ADAPTIVE_METRICS_",
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Power curve
    curve_durations: Tuple[int, ...] = (1, 5, 10, 30, 60, 120, 300, 600, 1200, 1800, 3600)
    parallel_curve: bool = False
    curve_max_workers: int = 4

    # FTP estimation
    ftp_reference_duration: int = 1200  # 20-minute point
    ftp_coefficient: float = 0.95
    ftp_min_supporting_efforts: int = 3
    ftp_min_effort_seconds: int = 900
    ftp_change_threshold: float = 0.10
    ftp_saturation_efforts: int = 8  # efforts needed for full count confidence

    # Max HR estimation
    max_hr_window_days: int = 90
    max_hr_sustain_window: float = 0.05  # stay within 5% of the peak
    max_hr_min_sustained_seconds: int = 30
    max_hr_top_candidates: int = 3
    max_hr_change_threshold: float = 0.05
    effort_multipliers: Dict[str, float] = {"race": 1.5, "ride": 1.0, "run": 1.0, "other": 0.8}

    # Shared estimator weighting
    recency_half_life_days: float = 30.0
    confidence_count_weight: float = 0.6

    # LTHR
    lthr_fraction: float = 0.90

    # Training load
    ctl_time_constant: int = 42
    atl_time_constant: int = 7
    hr_stress_scale: float = 0.6
    default_resting_hr: float = 60.0
    assumed_intensity: Dict[str, float] = {"ride": 0.70, "run": 0.75, "other": 0.60}
    seed_baseline: bool = False

    # Staleness policy
    threshold_stale_after_days: int = 60

    # Activity history fetched per refresh by MetricsService
    history_days: int = 90

    @field_validator("curve_durations")
    @classmethod
    def _sorted_durations(cls, value: Tuple[int, ...]) -> Tuple[int, ...]:
        return tuple(sorted(set(value)))


@lru_cache
def get_settings() -> EngineSettings:
    """Get cached settings instance."""
    return EngineSettings()
