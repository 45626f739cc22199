"""Tests for value models, settings and exceptions."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from adaptive_metrics.cancellation import CancellationToken
from adaptive_metrics.config import EngineSettings
from adaptive_metrics.exceptions import (
    ErrorCode,
    RefreshCancelledError,
    RequiresConfirmationError,
    ValidationError,
    ZoneValidationError,
)
from adaptive_metrics.models import ActivitySample, ActivityType, LoadState


START = datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)


class TestActivitySample:
    """Tests for ActivitySample validation."""

    def test_parse_camel_case(self):
        activity = ActivitySample.model_validate(
            {
                "id": "a1",
                "startTime": "2024-06-01T08:00:00+02:00",
                "durationSeconds": 3600,
                "type": "run",
                "averageHeartRate": 150,
            }
        )

        assert activity.type == ActivityType.RUN
        assert activity.average_heart_rate == 150
        assert activity.start_date.isoformat() == "2024-06-01"
        assert not activity.has_power_stream

    def test_naive_start_rejected(self):
        with pytest.raises(PydanticValidationError):
            ActivitySample(id="a1", start_time=datetime(2024, 6, 1), duration_seconds=60)

    def test_non_positive_duration_rejected(self):
        with pytest.raises(PydanticValidationError):
            ActivitySample(id="a1", start_time=START, duration_seconds=0)

    def test_negative_stream_rejected(self):
        with pytest.raises(PydanticValidationError):
            ActivitySample(id="a1", start_time=START, duration_seconds=3, power_stream=(100, -5, 100))

    def test_empty_id_rejected(self):
        with pytest.raises(PydanticValidationError):
            ActivitySample(id="", start_time=START, duration_seconds=60)

    def test_frozen(self):
        activity = ActivitySample(id="a1", start_time=START, duration_seconds=60)
        with pytest.raises(PydanticValidationError):
            activity.duration_seconds = 120


class TestLoadState:
    """Tests for open and closed load states."""

    def test_persisted_state_stays_open(self):
        state = LoadState(
            chronic_load=40.0,
            acute_load=55.0,
            balance=-15.0,
            last_updated=START.date(),
            settled_chronic_load=39.0,
            settled_acute_load=50.0,
        )

        restored = LoadState.model_validate_json(state.model_dump_json(by_alias=True))

        assert restored.is_open
        assert restored.next_fold_day == START.date()

    def test_without_settled_loads_is_closed(self):
        state = LoadState(chronic_load=40.0, last_updated=START.date())

        assert not state.is_open
        assert state.next_fold_day.isoformat() == "2024-06-02"

    def test_cold_state_has_no_fold_day(self):
        assert LoadState().next_fold_day is None

class TestEngineSettings:
    """Tests for settings loading."""

    def test_defaults(self):
        settings = EngineSettings(_env_file=None)

        assert settings.curve_durations[-1] == 3600
        assert settings.ftp_coefficient == 0.95
        assert settings.ctl_time_constant == 42
        assert settings.atl_time_constant == 7

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("ADAPTIVE_METRICS_FTP_CHANGE_THRESHOLD", "0.2")
        monkeypatch.setenv("ADAPTIVE_METRICS_PARALLEL_CURVE", "true")

        settings = EngineSettings(_env_file=None)

        assert settings.ftp_change_threshold == 0.2
        assert settings.parallel_curve is True

    def test_durations_sorted_and_deduplicated(self):
        settings = EngineSettings(_env_file=None, curve_durations=(60, 5, 60, 1))
        assert settings.curve_durations == (1, 5, 60)


class TestExceptions:
    """Tests for error codes and serialization."""

    def test_validation_error_field(self):
        error = ValidationError("bad input", field="as_of")

        assert error.code == ErrorCode.VALIDATION_ERROR
        assert error.to_dict() == {
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "bad input",
                "details": {"field": "as_of"},
            }
        }

    def test_zone_error_is_validation_error(self):
        error = ZoneValidationError("empty zone", field="lthr")

        assert isinstance(error, ValidationError)
        assert error.code == ErrorCode.ZONE_VALIDATION_ERROR

    def test_requires_confirmation_details(self):
        error = RequiresConfirmationError("FTP", previous=250.0, candidate=290.0)
        assert error.details == {"metric": "FTP", "previous": 250.0, "candidate": 290.0}

    def test_cancellation_token(self):
        token = CancellationToken()
        token.raise_if_cancelled("anything")
        token.cancel()

        assert token.cancelled
        with pytest.raises(RefreshCancelledError):
            token.raise_if_cancelled("load accumulation")
