"""
Test Configuration
==================

Pytest fixtures and test configuration for RoadSense.

Geometry used throughout:
    - an east-west segment ~100 m long at the reference latitude
    - a diagonal segment crossing a small box north-east of it
Calendar fields are computed in UTC so results do not depend on the
host time zone.
"""

import math
import os
import time
from datetime import timezone

import pytest


REF_LAT = 37.7749
REF_LON = -122.4194

# Degrees of longitude per metre at the reference latitude
LON_PER_METER = 1.0 / (6371008.8 * math.cos(math.radians(REF_LAT)) * math.pi / 180.0)
LAT_PER_METER = 1.0 / (6371008.8 * math.pi / 180.0)

# 2024-01-01T00:00:00Z, a Monday in ISO week 1
JAN_1_2024_MS = 1704067200000


def lon_at(meters_east: float) -> float:
    """Longitude of a point meters_east of the reference point."""
    return REF_LON + meters_east * LON_PER_METER


def lat_at(meters_north: float) -> float:
    """Latitude of a point meters_north of the reference point."""
    return REF_LAT + meters_north * LAT_PER_METER


def make_gps(
    index: int,
    timestamp_ms: int,
    speed,
    segment_id=None,
    drive_id: str = "drive_1",
    meters_east: float = 0.0,
    distance_from_prev=None,
):
    """Build a GpsSample on the straight test segment."""
    from roadsense.models.samples import GpsSample

    return GpsSample(
        id=f"gps_{index}",
        drive_id=drive_id,
        latitude=REF_LAT,
        longitude=lon_at(meters_east),
        speed_mps=speed,
        timestamp_ms=timestamp_ms,
        distance_from_prev_meters=distance_from_prev,
        matched_segment_id=segment_id,
    )


@pytest.fixture
def utc():
    """UTC tzinfo for deterministic calendar fields."""
    return timezone.utc


@pytest.fixture
def new_york_host_time():
    """Switch the process local time zone to America/New_York."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")

    previous = os.environ.get("TZ")
    os.environ["TZ"] = "America/New_York"
    time.tzset()
    yield
    if previous is None:
        os.environ.pop("TZ", None)
    else:
        os.environ["TZ"] = previous
    time.tzset()


@pytest.fixture
def straight_segment():
    """East-west segment ~100 m long starting at the reference point."""
    from roadsense.models.geometry import RoadSegment

    return RoadSegment(
        id="straight",
        name="Straight St",
        coordinates=[(REF_LON, REF_LAT), (lon_at(100.0), REF_LAT)],
    )


@pytest.fixture
def diagonal_segment():
    """Segment running north-east ~280 m across a box."""
    from roadsense.models.geometry import RoadSegment

    return RoadSegment(
        id="diagonal",
        coordinates=[
            (lon_at(200.0), lat_at(200.0)),
            (lon_at(400.0), lat_at(400.0)),
        ],
    )


@pytest.fixture
def test_settings():
    """Default settings with the calendar pinned to UTC."""
    from roadsense.config import Settings

    return Settings.model_validate({"calendar": {"timezone": "UTC"}})


@pytest.fixture
def sample_analyze_request():
    """Request body for POST /drives/analyze with one congested run."""
    samples = []
    for i in range(20):
        speed = 1.0 if i < 16 else 20.0
        samples.append({
            "id": f"gps_{i}",
            "latitude": REF_LAT,
            "longitude": lon_at(min(2.0 * i, 99.0)),
            "speed_mps": speed,
            "timestamp_ms": JAN_1_2024_MS + i * 2000,
            "distance_from_prev_meters": 2.0 if i else None,
        })

    accel = [
        {"x": 0.0, "y": 0.0, "z": 9.81, "timestamp_ms": JAN_1_2024_MS + i * 100}
        for i in range(30)
    ]

    return {
        "drive_id": "drive_api",
        "gps_samples": samples,
        "accel_samples": accel,
        "segments": [
            {
                "id": "straight",
                "name": "Straight St",
                "coordinates": [[REF_LON, REF_LAT], [lon_at(100.0), REF_LAT]],
            }
        ],
    }
