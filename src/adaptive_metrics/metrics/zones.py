"""Power and heart rate zone tables."""

import math
from typing import Dict, List, Optional, Sequence, Tuple

from ..exceptions import ZoneValidationError
from ..models import Zone, ZoneKind, ZoneTable


# (name, upper bound as a fraction of FTP); the last zone is open-ended
POWER_ZONE_BANDS: Tuple[Tuple[str, float], ...] = (
    ("Active Recovery", 0.55),
    ("Endurance", 0.75),
    ("Tempo", 0.90),
    ("Threshold", 1.05),
    ("VO2max", 1.20),
    ("Anaerobic", 1.50),
    ("Neuromuscular", math.inf),
)

# Upper bounds of Z1-Z3 as a fraction of max HR
HR_ZONE_NAMES: Tuple[str, ...] = ("Recovery", "Aerobic", "Tempo", "Threshold", "Maximum")
HR_ZONE_MAX_FRACTIONS: Tuple[float, ...] = (0.60, 0.70, 0.80)
HR_TOP_ZONE_MAX_FRACTION = 0.90  # Z5 start without LTHR
HR_TOP_ZONE_LTHR_FRACTION = 1.00  # Z5 start with LTHR


def _require_positive(value: float, field: str) -> None:
    if value is None or not math.isfinite(value) or value <= 0:
        raise ZoneValidationError(
            f"{field} must be a positive finite number",
            field=field,
            details={"value": value},
        )


def _build_table(
    kind: ZoneKind,
    threshold: float,
    names: Sequence[str],
    upper_bounds: Sequence[float],
    lthr: Optional[float] = None,
) -> ZoneTable:
    """Chain zones so each lower bound equals the previous upper bound."""
    zones: List[Zone] = []
    lower = 0.0
    for index, (name, upper) in enumerate(zip(names, upper_bounds), start=1):
        if not upper > lower:
            raise ZoneValidationError(
                f"Zone {index} ({name}) would be empty or inverted",
                field="threshold",
                details={"lower": lower, "upper": upper, "threshold": threshold},
            )
        zones.append(Zone(index=index, name=name, lower_bound=lower, upper_bound=upper))
        lower = upper

    return ZoneTable(kind=kind, threshold=threshold, lthr=lthr, zones=tuple(zones))


def generate_power_zones(ftp: float) -> ZoneTable:
    """
    Generate the 7-zone Coggan power table from FTP.

    - Zone 1: Active Recovery (<55% FTP)
    - Zone 2: Endurance (55-75% FTP)
    - Zone 3: Tempo (75-90% FTP)
    - Zone 4: Threshold (90-105% FTP)
    - Zone 5: VO2max (105-120% FTP)
    - Zone 6: Anaerobic (120-150% FTP)
    - Zone 7: Neuromuscular (>150% FTP)

    Args:
        ftp: Functional Threshold Power in watts

    Returns:
        ZoneTable covering [0, inf)

    Raises:
        ZoneValidationError: If ftp is not a positive finite number
    """
    _require_positive(ftp, "ftp")
    names = [name for name, _ in POWER_ZONE_BANDS]
    uppers = [ftp * fraction for _, fraction in POWER_ZONE_BANDS]
    return _build_table(ZoneKind.POWER, ftp, names, uppers)


def generate_hr_zones(max_hr: float, lthr: Optional[float] = None) -> ZoneTable:
    """
    Generate the 5-zone heart rate table.

    Zones 1-4 are anchored on max HR (60/70/80% boundaries). Zone 5 starts
    at LTHR when it is known, otherwise at 90% of max HR.

    Args:
        max_hr: Maximum heart rate
        lthr: Lactate threshold heart rate, optional

    Returns:
        ZoneTable covering [0, inf)

    Raises:
        ZoneValidationError: If max_hr is not positive, or lthr would
            produce an empty/inverted zone or exceed max_hr
    """
    _require_positive(max_hr, "max_hr")
    if lthr is not None:
        _require_positive(lthr, "lthr")
        if lthr > max_hr:
            raise ZoneValidationError(
                "LTHR cannot exceed max HR",
                field="lthr",
                details={"lthr": lthr, "max_hr": max_hr},
            )
        top_start = lthr * HR_TOP_ZONE_LTHR_FRACTION
    else:
        top_start = max_hr * HR_TOP_ZONE_MAX_FRACTION

    uppers = [max_hr * fraction for fraction in HR_ZONE_MAX_FRACTIONS]
    uppers.extend([top_start, math.inf])
    return _build_table(ZoneKind.HEART_RATE, max_hr, HR_ZONE_NAMES, uppers, lthr=lthr)


def get_zone_for_value(value: float, table: ZoneTable) -> int:
    """
    Return the zone index for a power or heart rate value.

    Returns:
        Zone number (1-based), or 0 for negative values
    """
    zone = table.zone_for(value)
    return zone.index if zone else 0


def calculate_zone_distribution(samples: Sequence[float], table: ZoneTable) -> Dict[int, float]:
    """
    Percentage of samples spent in each zone.

    Zero samples (coasting, dropouts) are skipped for power tables.

    Args:
        samples: Per-second power or heart rate values
        table: Zone table to classify against

    Returns:
        Dictionary mapping zone index to percentage of valid samples
    """
    counts = {zone.index: 0 for zone in table.zones}
    for sample in samples:
        if sample <= 0 and table.kind == ZoneKind.POWER:
            continue
        index = get_zone_for_value(sample, table)
        if index:
            counts[index] += 1

    total = sum(counts.values())
    if total == 0:
        return {index: 0.0 for index in counts}

    return {index: round(count / total * 100, 1) for index, count in counts.items()}
