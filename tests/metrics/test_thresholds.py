"""Tests for FTP and max HR estimation."""

from datetime import timedelta

import pytest

from adaptive_metrics.exceptions import (
    InsufficientDataError,
    RequiresConfirmationError,
    ValidationError,
)
from adaptive_metrics.metrics.power import build_power_curve
from adaptive_metrics.metrics.thresholds import (
    confirm_estimate,
    derive_lthr,
    estimate_ftp,
    estimate_max_hr,
    longest_sustained_run,
    manual_estimate,
    recency_decay,
)
from adaptive_metrics.models import (
    ActivityType,
    EstimateState,
    RejectionReason,
    ThresholdEstimate,
    ThresholdSource,
)


def _confirmed(value, as_of):
    return ThresholdEstimate(
        value=value,
        confidence=0.8,
        supporting_sample_count=3,
        state=EstimateState.CONFIRMED,
        computed_at=as_of - timedelta(days=7),
    )


def _hr_stream(peak, held=60, base=140):
    return tuple([float(base)] * 300 + [float(peak)] * held + [float(base)] * 300)


@pytest.fixture
def twenty_minute_efforts(make_activity):
    """Summary-only 20 minute efforts at the given average powers."""

    def _make(*watts, days_ago=1):
        return [
            make_activity(days_ago=days_ago + i, duration=1200, average_power=w)
            for i, w in enumerate(watts)
        ]

    return _make


class TestRecencyDecay:
    """Tests for the recency weighting curve."""

    def test_today(self):
        assert recency_decay(0, 30) == 1.0

    def test_one_half_life(self):
        assert recency_decay(30, 30) == pytest.approx(0.5)

    def test_future_treated_as_today(self):
        assert recency_decay(-5, 30) == 1.0


class TestEstimateFTP:
    """Tests for FTP estimation from the power curve."""

    def test_three_efforts_confirmed(self, twenty_minute_efforts, settings, as_of):
        """300/290/310W 20-minute efforts give 0.95 x 310 = 294.5W."""
        curve = build_power_curve(twenty_minute_efforts(300, 290, 310), settings=settings)

        estimate = estimate_ftp(curve, None, as_of=as_of, settings=settings)

        assert estimate.value == pytest.approx(294.5)
        assert estimate.rejected is False
        assert estimate.rejection_reason is None
        assert estimate.state == EstimateState.CONFIRMED
        assert estimate.supporting_sample_count == 3
        assert estimate.computed_at == as_of

    def test_normalized_power_only_summaries(self, make_activity, settings, as_of):
        """Summaries reporting only NP still support an estimate."""
        efforts = [
            make_activity(days_ago=1 + i, duration=1200, normalized_power=w)
            for i, w in enumerate((300, 290, 310))
        ]

        estimate = estimate_ftp(build_power_curve(efforts, settings=settings), None, as_of=as_of, settings=settings)

        assert estimate.value == pytest.approx(294.5)
        assert estimate.state == EstimateState.CONFIRMED
        assert estimate.supporting_sample_count == 3

    def test_large_increase_requires_confirmation(self, twenty_minute_efforts, settings, as_of):
        """250W -> ~290W is a 16% jump and must not be applied silently."""
        curve = build_power_curve(twenty_minute_efforts(305.3, 300, 298), settings=settings)

        estimate = estimate_ftp(curve, _confirmed(250.0, as_of), as_of=as_of, settings=settings)

        assert estimate.rejected is True
        assert estimate.rejection_reason == RejectionReason.REQUIRES_CONFIRMATION
        assert estimate.state == EstimateState.PROVISIONAL
        assert estimate.value == pytest.approx(290.0, abs=0.1)

    def test_small_change_applied(self, twenty_minute_efforts, settings, as_of):
        curve = build_power_curve(twenty_minute_efforts(300, 290, 310), settings=settings)

        estimate = estimate_ftp(curve, _confirmed(285.0, as_of), as_of=as_of, settings=settings)

        assert estimate.rejected is False
        assert estimate.state == EstimateState.CONFIRMED

    def test_large_decrease_requires_confirmation(self, twenty_minute_efforts, settings, as_of):
        curve = build_power_curve(twenty_minute_efforts(220, 210, 215), settings=settings)

        estimate = estimate_ftp(curve, _confirmed(250.0, as_of), as_of=as_of, settings=settings)

        assert estimate.rejection_reason == RejectionReason.REQUIRES_CONFIRMATION

    def test_too_few_efforts(self, twenty_minute_efforts, settings, as_of):
        curve = build_power_curve(twenty_minute_efforts(300, 310), settings=settings)

        estimate = estimate_ftp(curve, None, as_of=as_of, settings=settings)

        assert estimate.rejected is True
        assert estimate.rejection_reason == RejectionReason.INSUFFICIENT_DATA
        assert estimate.value is None
        assert estimate.supporting_sample_count == 2
        assert estimate.state == EstimateState.NO_ESTIMATE

    def test_insufficient_checked_before_confirmation(self, twenty_minute_efforts, settings, as_of):
        """Few efforts plus a large jump reports insufficient data."""
        curve = build_power_curve(twenty_minute_efforts(400, 410), settings=settings)

        estimate = estimate_ftp(curve, _confirmed(250.0, as_of), as_of=as_of, settings=settings)

        assert estimate.rejection_reason == RejectionReason.INSUFFICIENT_DATA

    def test_short_efforts_do_not_count(self, make_activity, twenty_minute_efforts, settings, as_of):
        activities = twenty_minute_efforts(300, 290) + [
            make_activity(duration=600, average_power=350),
        ]
        curve = build_power_curve(activities, settings=settings)

        estimate = estimate_ftp(curve, None, as_of=as_of, settings=settings)

        assert estimate.rejection_reason == RejectionReason.INSUFFICIENT_DATA

    def test_empty_curve(self, settings, as_of):
        estimate = estimate_ftp(build_power_curve([], settings=settings), as_of=as_of, settings=settings)

        assert estimate.rejection_reason == RejectionReason.INSUFFICIENT_DATA
        assert estimate.supporting_sample_count == 0

    def test_confidence_blends_count_and_recency(self, twenty_minute_efforts, settings, as_of):
        """Three fresh efforts: 0.6 * 3/8 + 0.4 * 1.0."""
        curve = build_power_curve(twenty_minute_efforts(300, 290, 310, days_ago=0), settings=settings)
        # days_ago=0,1,2: recency factor is the mean of three decays
        decays = [recency_decay(d, 30) for d in (0, 1, 2)]
        expected = 0.6 * 3 / 8 + 0.4 * sum(decays) / 3

        estimate = estimate_ftp(curve, None, as_of=as_of, settings=settings)

        assert estimate.confidence == pytest.approx(expected, abs=1e-3)

    def test_more_efforts_raise_confidence(self, twenty_minute_efforts, settings, as_of):
        few = estimate_ftp(
            build_power_curve(twenty_minute_efforts(300, 290, 310), settings=settings),
            as_of=as_of,
            settings=settings,
        )
        many = estimate_ftp(
            build_power_curve(twenty_minute_efforts(300, 290, 310, 295, 305, 300), settings=settings),
            as_of=as_of,
            settings=settings,
        )

        assert many.confidence > few.confidence

    def test_as_of_defaults_to_newest_effort(self, twenty_minute_efforts, settings, as_of):
        curve = build_power_curve(twenty_minute_efforts(300, 290, 310), settings=settings)

        estimate = estimate_ftp(curve, settings=settings)

        assert estimate.computed_at == as_of - timedelta(days=1)

    def test_require_value(self, twenty_minute_efforts, settings, as_of):
        insufficient = estimate_ftp(build_power_curve([], settings=settings), as_of=as_of, settings=settings)
        with pytest.raises(InsufficientDataError):
            insufficient.require_value("FTP")

        curve = build_power_curve(twenty_minute_efforts(305.3, 300, 298), settings=settings)
        provisional = estimate_ftp(curve, _confirmed(250.0, as_of), as_of=as_of, settings=settings)
        with pytest.raises(RequiresConfirmationError):
            provisional.require_value("FTP")


class TestSustainedRun:
    """Tests for sustained-peak detection."""

    def test_counts_longest_run(self):
        assert longest_sustained_run([190, 191, 150, 190, 190, 190], 185) == 3

    def test_no_samples_above_floor(self):
        assert longest_sustained_run([100, 120], 185) == 0


class TestEstimateMaxHR:
    """Tests for max HR estimation from HR streams."""

    def test_equal_weights_average_peaks(self, make_activity, settings, as_of):
        efforts = [
            make_activity(days_ago=2, hr_stream=_hr_stream(peak), id=f"hr_{peak}")
            for peak in (188, 190, 192)
        ]

        estimate = estimate_max_hr(efforts, as_of=as_of, settings=settings)

        assert estimate.value == pytest.approx(190.0)
        assert estimate.rejected is False
        assert estimate.supporting_sample_count == 3

    def test_sensor_spike_rejected(self, make_activity, settings, as_of):
        """A brief spike is not a sustained peak."""
        spiky = make_activity(hr_stream=tuple([150.0] * 600 + [220.0] * 3))

        estimate = estimate_max_hr([spiky], as_of=as_of, settings=settings)

        assert estimate.rejection_reason == RejectionReason.INSUFFICIENT_DATA
        assert estimate.value is None

    def test_spike_does_not_pull_estimate(self, make_activity, settings, as_of):
        efforts = [
            make_activity(hr_stream=_hr_stream(185)),
            make_activity(hr_stream=tuple([150.0] * 600 + [230.0] * 2)),
        ]

        estimate = estimate_max_hr(efforts, as_of=as_of, settings=settings)

        assert estimate.value == pytest.approx(185.0)

    def test_spike_on_sustained_effort_drops_activity(self, make_activity, settings, as_of):
        """A one-sample spike over a held 185 leaves the activity with no candidate."""
        stream = _hr_stream(185) + (230.0,) + tuple([140.0] * 60)
        spiked = make_activity(hr_stream=stream)

        estimate = estimate_max_hr([spiked], as_of=as_of, settings=settings)

        assert estimate.rejection_reason == RejectionReason.INSUFFICIENT_DATA
        assert estimate.value is None

    def test_race_weighted_higher(self, make_activity, settings, as_of):
        efforts = [
            make_activity(hr_stream=_hr_stream(195), is_race=True, id="race"),
            make_activity(hr_stream=_hr_stream(185), id="ride_a"),
            make_activity(hr_stream=_hr_stream(185), id="ride_b"),
        ]

        estimate = estimate_max_hr(efforts, as_of=as_of, settings=settings)

        # (195 * 1.5 + 185 + 185) / 3.5
        assert estimate.value == pytest.approx(189.3)

    def test_other_sport_weighted_lower(self, make_activity, settings, as_of):
        efforts = [
            make_activity(hr_stream=_hr_stream(180), activity_type=ActivityType.OTHER),
            make_activity(hr_stream=_hr_stream(190), activity_type=ActivityType.RUN),
        ]

        estimate = estimate_max_hr(efforts, as_of=as_of, settings=settings)

        assert estimate.value > 185.0

    def test_only_top_candidates_used(self, make_activity, settings, as_of):
        efforts = [make_activity(days_ago=1, hr_stream=_hr_stream(190)) for _ in range(3)]
        efforts.append(make_activity(days_ago=80, hr_stream=_hr_stream(200)))

        estimate = estimate_max_hr(efforts, as_of=as_of, settings=settings)

        assert estimate.value == pytest.approx(190.0)
        assert estimate.supporting_sample_count == 4

    def test_outside_window_ignored(self, make_activity, settings, as_of):
        old = make_activity(days_ago=120, hr_stream=_hr_stream(195))

        estimate = estimate_max_hr([old], as_of=as_of, settings=settings)

        assert estimate.rejection_reason == RejectionReason.INSUFFICIENT_DATA

    def test_custom_window(self, make_activity, settings, as_of):
        effort = make_activity(days_ago=120, hr_stream=_hr_stream(195))

        estimate = estimate_max_hr([effort], window_days=180, as_of=as_of, settings=settings)

        assert estimate.value == pytest.approx(195.0)

    def test_summary_only_skipped(self, make_activity, settings, as_of):
        summary = make_activity(peak_heart_rate=195, average_heart_rate=160)

        estimate = estimate_max_hr([summary], as_of=as_of, settings=settings)

        assert estimate.rejection_reason == RejectionReason.INSUFFICIENT_DATA

    def test_large_change_requires_confirmation(self, make_activity, settings, as_of):
        efforts = [make_activity(hr_stream=_hr_stream(190))]

        estimate = estimate_max_hr(
            efforts, as_of=as_of, previous=_confirmed(170.0, as_of), settings=settings
        )

        assert estimate.rejection_reason == RejectionReason.REQUIRES_CONFIRMATION
        assert estimate.state == EstimateState.PROVISIONAL

    def test_invalid_window(self, settings, as_of):
        with pytest.raises(ValidationError):
            estimate_max_hr([], window_days=0, as_of=as_of, settings=settings)

    def test_empty_without_as_of(self, settings):
        estimate = estimate_max_hr([], settings=settings)
        assert estimate.rejection_reason == RejectionReason.INSUFFICIENT_DATA


class TestDeriveLTHR:
    """Tests for LTHR derivation."""

    def test_ninety_percent(self, settings):
        assert derive_lthr(190, settings) == 171.0

    def test_invalid_max_hr(self, settings):
        with pytest.raises(ValidationError):
            derive_lthr(0, settings)


class TestEstimateLifecycle:
    """Tests for confirmation and manual overrides."""

    def test_confirm_provisional(self, twenty_minute_efforts, settings, as_of):
        curve = build_power_curve(twenty_minute_efforts(305.3, 300, 298), settings=settings)
        provisional = estimate_ftp(curve, _confirmed(250.0, as_of), as_of=as_of, settings=settings)

        confirmed = confirm_estimate(provisional, as_of + timedelta(hours=1))

        assert confirmed.state == EstimateState.CONFIRMED
        assert confirmed.rejected is False
        assert confirmed.rejection_reason is None
        assert confirmed.value == provisional.value
        assert confirmed.computed_at == as_of + timedelta(hours=1)

    def test_confirm_requires_provisional(self, as_of):
        with pytest.raises(ValidationError):
            confirm_estimate(_confirmed(250.0, as_of))

    def test_manual_estimate(self, as_of):
        estimate = manual_estimate(265, as_of)

        assert estimate.source == ThresholdSource.MANUAL
        assert estimate.state == EstimateState.CONFIRMED
        assert estimate.value == 265.0
        assert estimate.is_usable

    def test_manual_estimate_must_be_positive(self, as_of):
        with pytest.raises(ValidationError):
            manual_estimate(0, as_of)
