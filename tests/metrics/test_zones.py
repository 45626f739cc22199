"""Tests for power and heart rate zone generation."""

import math

import pytest

from adaptive_metrics.exceptions import ZoneValidationError
from adaptive_metrics.metrics.zones import (
    calculate_zone_distribution,
    generate_hr_zones,
    generate_power_zones,
    get_zone_for_value,
)
from adaptive_metrics.models import ZoneKind


def _assert_complete(table):
    """Zones start at 0, chain without gaps, and end open-ended."""
    assert table.zones[0].lower_bound == 0
    assert math.isinf(table.zones[-1].upper_bound)
    for previous, current in zip(table.zones, table.zones[1:]):
        assert current.lower_bound == previous.upper_bound
        assert current.upper_bound > current.lower_bound
    assert [z.index for z in table.zones] == list(range(1, len(table.zones) + 1))


class TestPowerZones:
    """Tests for the 7-zone power table."""

    def test_zone_boundaries(self):
        table = generate_power_zones(250)

        assert table.kind == ZoneKind.POWER
        assert table.threshold == 250
        assert len(table.zones) == 7
        assert table.boundaries() == pytest.approx((137.5, 187.5, 225.0, 262.5, 300.0, 375.0))

    def test_complete_for_many_thresholds(self):
        for ftp in (50, 137.3, 250, 420.9):
            _assert_complete(generate_power_zones(ftp))

    def test_zone_names(self):
        names = [z.name for z in generate_power_zones(250).zones]
        assert names[0] == "Active Recovery"
        assert names[-1] == "Neuromuscular"

    @pytest.mark.parametrize("ftp", [0, -100, float("nan"), float("inf")])
    def test_invalid_ftp(self, ftp):
        with pytest.raises(ZoneValidationError) as exc_info:
            generate_power_zones(ftp)
        assert exc_info.value.details["field"] == "ftp"

    def test_zone_lookup(self):
        table = generate_power_zones(250)

        assert get_zone_for_value(100, table) == 1
        assert get_zone_for_value(140, table) == 2
        assert get_zone_for_value(250, table) == 4
        assert get_zone_for_value(2000, table) == 7
        assert get_zone_for_value(-1, table) == 0


class TestHRZones:
    """Tests for the 5-zone heart rate table."""

    def test_without_lthr(self):
        table = generate_hr_zones(190)

        assert table.kind == ZoneKind.HEART_RATE
        assert len(table.zones) == 5
        assert table.lthr is None
        assert table.boundaries() == pytest.approx((114.0, 133.0, 152.0, 171.0))
        _assert_complete(table)

    def test_lthr_anchors_top_zone(self):
        table = generate_hr_zones(190, lthr=175)

        assert table.zones[4].lower_bound == 175
        assert table.lthr == 175
        _assert_complete(table)

    def test_lthr_above_max_hr(self):
        with pytest.raises(ZoneValidationError):
            generate_hr_zones(180, lthr=185)

    def test_lthr_below_tempo_boundary(self):
        """An LTHR under 80% of max HR would make zone 4 empty."""
        with pytest.raises(ZoneValidationError):
            generate_hr_zones(190, lthr=150)

    @pytest.mark.parametrize("max_hr", [0, -1])
    def test_invalid_max_hr(self, max_hr):
        with pytest.raises(ZoneValidationError):
            generate_hr_zones(max_hr)

    def test_invalid_lthr(self):
        with pytest.raises(ZoneValidationError):
            generate_hr_zones(190, lthr=0)


class TestZoneDistribution:
    """Tests for time-in-zone calculation."""

    def test_power_distribution(self):
        table = generate_power_zones(200)
        samples = [100] * 50 + [200] * 50

        distribution = calculate_zone_distribution(samples, table)

        assert distribution[1] == 50.0
        assert distribution[4] == 50.0
        assert sum(distribution.values()) == pytest.approx(100.0)

    def test_power_zeros_skipped(self):
        table = generate_power_zones(200)

        distribution = calculate_zone_distribution([0] * 50 + [100] * 50, table)

        assert distribution[1] == 100.0

    def test_empty_samples(self):
        distribution = calculate_zone_distribution([], generate_hr_zones(190))
        assert all(value == 0.0 for value in distribution.values())
