"""Activity sample model shared by every provider adapter."""

from datetime import date
from enum import Enum
from typing import Optional, Tuple

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, field_validator


def to_camel(string: str) -> str:
    """Convert snake_case to camelCase."""
    components = string.split("_")
    return components[0] + "".join(x.title() for x in components[1:])


class ActivityType(str, Enum):
    """Sport of a completed workout."""
    RIDE = "ride"
    RUN = "run"
    OTHER = "other"


class ActivitySample(BaseModel):
    """One completed workout in the common provider-independent shape."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str = Field(..., min_length=1, description="Opaque unique activity identifier")
    start_time: AwareDatetime = Field(..., description="Start instant (timezone-aware)")
    duration_seconds: float = Field(..., gt=0, description="Elapsed duration in seconds")
    type: ActivityType = Field(default=ActivityType.OTHER, description="Sport")
    is_race: bool = Field(default=False, description="Race or test effort")

    average_power: Optional[float] = Field(None, ge=0, description="Average power in watts")
    normalized_power: Optional[float] = Field(None, ge=0, description="Normalized power in watts")
    average_heart_rate: Optional[float] = Field(None, gt=0, description="Average HR in bpm")
    peak_heart_rate: Optional[float] = Field(None, gt=0, description="Peak HR in bpm")

    # 1 Hz streams; absent when only summary data was fetched
    power_stream: Optional[Tuple[float, ...]] = Field(None, description="Per-second power")
    hr_stream: Optional[Tuple[float, ...]] = Field(None, description="Per-second heart rate")

    @field_validator("power_stream", "hr_stream")
    @classmethod
    def _non_negative_samples(cls, value: Optional[Tuple[float, ...]]) -> Optional[Tuple[float, ...]]:
        if value is not None and any(sample < 0 for sample in value):
            raise ValueError("stream samples must be non-negative")
        return value

    @property
    def start_date(self) -> date:
        """Calendar day the activity started on, in its own timezone."""
        return self.start_time.date()

    @property
    def has_power_stream(self) -> bool:
        return bool(self.power_stream)

    @property
    def has_hr_stream(self) -> bool:
        return bool(self.hr_stream)
