"""
Congestion Models
=================

Congestion events produced by the detector and the rolling per-segment
aggregates maintained by the statistics aggregator.

Event Contract:
    {
        "drive_id": "drive_42",
        "segment_id": "main_st_north",
        "start_time": "2024-01-01T08:15:02+00:00",
        "end_time": "2024-01-01T08:16:40+00:00",
        "duration_ms": 98000,
        "day_of_week": 1,
        "hour_of_day": 8,
        "iso_week": 1,
        "severity": "HEAVY",
        "avg_speed_mps": 3.1,
        "min_speed_mps": 0.0,
        "max_speed_mps": 7.4,
        "distance_meters": 304.2,
        "start_gps_id": "gps_1001",
        "end_gps_id": "gps_1050"
    }

Statistics Keys:
    Each event contributes to five aggregate rows for its segment:
        (segment, -, -, -)          all-time
        (segment, day, -, -)        per day of week
        (segment, -, hour, -)       per hour of day
        (segment, day, hour, -)     per day of week and hour
        (segment, -, -, week_start) per ISO week
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field, model_validator


class CongestionSeverity(str, Enum):
    """
    Congestion severity tiers, ordered from fastest to slowest.

    Attributes:
        FREE_FLOW: Average speed at or above the free-flow threshold
        SLOW: Below free flow, at or above the slow threshold
        CONGESTED: Below slow, at or above the congested threshold
        HEAVY: Below congested, at or above the heavy threshold
        GRIDLOCK: Below the heavy threshold
    """

    FREE_FLOW = "FREE_FLOW"
    SLOW = "SLOW"
    CONGESTED = "CONGESTED"
    HEAVY = "HEAVY"
    GRIDLOCK = "GRIDLOCK"


# Points awarded per tier when scoring a severity distribution
SEVERITY_WEIGHTS: Dict[CongestionSeverity, int] = {
    CongestionSeverity.FREE_FLOW: 100,
    CongestionSeverity.SLOW: 75,
    CongestionSeverity.CONGESTED: 50,
    CongestionSeverity.HEAVY: 25,
    CongestionSeverity.GRIDLOCK: 0,
}


class CongestionEvent(BaseModel):
    """
    One contiguous below-free-flow period on one segment.

    Created only by the congestion detector and never modified.

    Attributes:
        drive_id: Drive the event was observed on
        segment_id: Road segment the event occurred on
        start_time: Timestamp of the first sample in the event
        end_time: Timestamp of the last sample in the event
        duration_ms: end_time - start_time in milliseconds
        day_of_week: 0 = Sunday ... 6 = Saturday (local time)
        hour_of_day: 0-23 (local time)
        iso_week: ISO-8601 week number of start_time
        severity: Severity tier of the average speed
        avg_speed_mps: Mean of the non-null speeds in the event
        min_speed_mps: Minimum non-null speed
        max_speed_mps: Maximum non-null speed
        distance_meters: Sum of distance_from_prev over the event samples
        start_gps_id: First GPS sample in the event
        end_gps_id: Last GPS sample in the event
    """

    drive_id: str
    segment_id: str
    start_time: datetime
    end_time: datetime
    duration_ms: int = Field(..., gt=0)
    day_of_week: int = Field(..., ge=0, le=6)
    hour_of_day: int = Field(..., ge=0, le=23)
    iso_week: int = Field(..., ge=1, le=53)
    severity: CongestionSeverity
    avg_speed_mps: float = Field(..., ge=0.0)
    min_speed_mps: float = Field(..., ge=0.0)
    max_speed_mps: float = Field(..., ge=0.0)
    distance_meters: float = Field(default=0.0, ge=0.0)
    start_gps_id: str
    end_gps_id: str

    class Config:
        """Pydantic model configuration."""

        frozen = True

    @model_validator(mode="after")
    def check_invariants(self) -> "CongestionEvent":
        """Enforce time ordering and speed ordering invariants."""
        # Compare instants; same-zone datetime arithmetic is wall-clock and
        # breaks across DST changes
        start_ts = self.start_time.timestamp()
        end_ts = self.end_time.timestamp()
        if end_ts <= start_ts:
            raise ValueError("end_time must be after start_time")
        # Inputs carry millisecond timestamps, so compare at that resolution
        span_ms = round((end_ts - start_ts) * 1000)
        if span_ms != self.duration_ms:
            raise ValueError(
                f"duration_ms {self.duration_ms} does not match time span {span_ms}"
            )
        # Tolerate float noise from averaging identical speeds
        eps = 1e-9
        if not (
            self.min_speed_mps - eps <= self.avg_speed_mps <= self.max_speed_mps + eps
        ):
            raise ValueError(
                "speeds must satisfy min_speed_mps <= avg_speed_mps <= max_speed_mps"
            )
        return self


@dataclass(frozen=True, slots=True)
class StatisticsKey:
    """
    Aggregation key for a statistics row.

    A None dimension means "all values" for that dimension.
    """

    segment_id: str
    day_of_week: Optional[int] = None
    hour_of_day: Optional[int] = None
    week_start: Optional[datetime] = None

    def __repr__(self) -> str:
        week = self.week_start.date().isoformat() if self.week_start else "*"
        day = "*" if self.day_of_week is None else self.day_of_week
        hour = "*" if self.hour_of_day is None else self.hour_of_day
        return f"StatisticsKey({self.segment_id}:{day}:{hour}:{week})"

    @property
    def is_weekly(self) -> bool:
        """Whether this key is a weekly trend bucket."""
        return self.week_start is not None


class SegmentStatistics(BaseModel):
    """
    Rolling congestion aggregate for one statistics key.

    event_count and total_duration_ms are lifetime counters. The speed,
    percentage and score fields follow the store's merge mode: in the
    default latest-batch mode they describe only the most recently
    merged batch.

    Attributes:
        segment_id: Road segment
        day_of_week: Day-of-week bucket, or None for all days
        hour_of_day: Hour bucket, or None for all hours
        week_start: Monday 00:00 local of the week bucket, or None
        event_count: Cumulative number of events
        total_duration_ms: Cumulative congestion time
        avg_speed_mps: Mean event average speed
        pct_free_flow .. pct_gridlock: Severity distribution (sum to 100)
        congestion_score: 0-100, 100 = always free-flowing
        severity_counts: Cumulative events per severity tier
        speed_sum_mps: Cumulative sum of event average speeds
        updated_at: Time of the last merge
    """

    segment_id: str
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    hour_of_day: Optional[int] = Field(default=None, ge=0, le=23)
    week_start: Optional[datetime] = None

    event_count: int = Field(default=0, ge=0)
    total_duration_ms: int = Field(default=0, ge=0)
    avg_speed_mps: Optional[float] = None

    pct_free_flow: float = Field(default=0.0, ge=0.0, le=100.0)
    pct_slow: float = Field(default=0.0, ge=0.0, le=100.0)
    pct_congested: float = Field(default=0.0, ge=0.0, le=100.0)
    pct_heavy: float = Field(default=0.0, ge=0.0, le=100.0)
    pct_gridlock: float = Field(default=0.0, ge=0.0, le=100.0)

    congestion_score: Optional[float] = Field(default=None, ge=0.0, le=100.0)

    severity_counts: Dict[CongestionSeverity, int] = Field(default_factory=dict)
    speed_sum_mps: float = Field(default=0.0, ge=0.0)

    updated_at: Optional[datetime] = None

    @property
    def key(self) -> StatisticsKey:
        """Aggregation key of this row."""
        return StatisticsKey(
            segment_id=self.segment_id,
            day_of_week=self.day_of_week,
            hour_of_day=self.hour_of_day,
            week_start=self.week_start,
        )

    def severity_breakdown(self) -> Dict[str, float]:
        """Severity percentages keyed by lower-case tier name."""
        return {
            "free_flow": self.pct_free_flow,
            "slow": self.pct_slow,
            "congested": self.pct_congested,
            "heavy": self.pct_heavy,
            "gridlock": self.pct_gridlock,
        }
