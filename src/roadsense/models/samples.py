"""
Sensor Sample Models
====================

Typed sensor records handed to the pipeline by the recording subsystem.

These are plain frozen dataclasses rather than pydantic models: a single
drive carries tens of thousands of samples and they flow through every
stage of the pipeline, so construction must stay cheap. Range and
ordering checks happen once, at the pipeline entry point.
"""

from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True, slots=True)
class GpsSample:
    """
    One GPS fix from a drive.

    Attributes:
        id: Unique sample identifier
        drive_id: Drive this sample belongs to
        latitude: Degrees north
        longitude: Degrees east
        speed_mps: Reported ground speed (None when the receiver gave none)
        timestamp_ms: UNIX timestamp in milliseconds
        distance_from_prev_meters: Distance from the previous fix (derived upstream)
        matched_segment_id: Nearest road segment (derived by the matcher)
    """

    id: str
    drive_id: str
    latitude: float
    longitude: float
    speed_mps: Optional[float]
    timestamp_ms: int
    distance_from_prev_meters: Optional[float] = None
    matched_segment_id: Optional[str] = None

    def with_segment(self, segment_id: Optional[str]) -> "GpsSample":
        """Return a copy tagged with the given segment (None clears it)."""
        return replace(self, matched_segment_id=segment_id)

    def to_dict(self) -> dict:
        """Export as dictionary for serialization."""
        return {
            "id": self.id,
            "drive_id": self.drive_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "speed_mps": self.speed_mps,
            "timestamp_ms": self.timestamp_ms,
            "distance_from_prev_meters": self.distance_from_prev_meters,
            "matched_segment_id": self.matched_segment_id,
        }


@dataclass(frozen=True, slots=True)
class AccelSample:
    """
    One accelerometer reading in the device frame.

    Z is expected to be close to +9.8 m/s² when the device is level and
    stationary. No rotation into the vehicle frame is applied.

    Attributes:
        x: Acceleration along device X (m/s²)
        y: Acceleration along device Y (m/s²)
        z: Acceleration along device Z (m/s²)
        timestamp_ms: UNIX timestamp in milliseconds
    """

    x: float
    y: float
    z: float
    timestamp_ms: int
