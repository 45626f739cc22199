"""Training metrics calculations."""

from .load import (
    StressMethod,
    StressScore,
    aggregate_daily_stress,
    calculate_trimp,
    daily_stress,
    resolve_average_heart_rate,
)
from .fitness import (
    FitnessMetrics,
    advance,
    calculate_ewma,
    estimate_baseline,
    load_history,
    replay,
)
from .zones import (
    calculate_zone_distribution,
    generate_hr_zones,
    generate_power_zones,
    get_zone_for_value,
)
from .power import (
    EffortRecord,
    PowerCurve,
    PowerCurvePoint,
    build_power_curve,
    calculate_normalized_power,
    calculate_tss,
    max_mean_power,
)
from .thresholds import (
    confirm_estimate,
    derive_lthr,
    estimate_ftp,
    estimate_max_hr,
    manual_estimate,
)

__all__ = [
    # Load calculations
    "StressMethod",
    "StressScore",
    "aggregate_daily_stress",
    "calculate_trimp",
    "daily_stress",
    "resolve_average_heart_rate",
    # Fitness model
    "FitnessMetrics",
    "advance",
    "calculate_ewma",
    "estimate_baseline",
    "load_history",
    "replay",
    # Zones
    "calculate_zone_distribution",
    "generate_hr_zones",
    "generate_power_zones",
    "get_zone_for_value",
    # Power curve and power metrics
    "EffortRecord",
    "PowerCurve",
    "PowerCurvePoint",
    "build_power_curve",
    "calculate_normalized_power",
    "calculate_tss",
    "max_mean_power",
    # Thresholds
    "confirm_estimate",
    "derive_lthr",
    "estimate_ftp",
    "estimate_max_hr",
    "manual_estimate",
]
