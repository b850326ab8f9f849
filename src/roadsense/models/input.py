"""
Input Message Schema
====================

Pydantic models for analysis requests received over HTTP.

The recording subsystem posts a completed drive together with the
segment catalog it should be matched against. These models validate
the wire shape and convert it into the pipeline's internal types.

Input Contract:
    {
        "drive_id": "drive_42",
        "gps_samples": [
            {
                "id": "gps_1",
                "latitude": 37.7749,
                "longitude": -122.4194,
                "speed_mps": 4.2,
                "timestamp_ms": 1704096000000,
                "distance_from_prev_meters": 4.1
            }
        ],
        "accel_samples": [
            {"x": 0.1, "y": -0.2, "z": 9.81, "timestamp_ms": 1704096000000}
        ],
        "segments": [
            {
                "id": "main_st_north",
                "name": "Main St",
                "coordinates": [[-122.4194, 37.7749], [-122.4190, 37.7760]]
            }
        ]
    }
"""

from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from roadsense.models.geometry import RoadSegment
from roadsense.models.recording import DriveRecording
from roadsense.models.samples import AccelSample, GpsSample


class GpsSampleMessage(BaseModel):
    """GPS fix as posted by the recording subsystem."""

    id: str
    latitude: float
    longitude: float
    speed_mps: Optional[float] = None
    timestamp_ms: int = Field(..., ge=0)
    distance_from_prev_meters: Optional[float] = None


class AccelSampleMessage(BaseModel):
    """Accelerometer reading as posted by the recording subsystem."""

    x: float
    y: float
    z: float
    timestamp_ms: int = Field(..., ge=0)


class SegmentMessage(BaseModel):
    """Road segment geometry; the bounding box is derived server-side."""

    id: str
    name: Optional[str] = None
    coordinates: List[Tuple[float, float]] = Field(..., min_length=2)


class AnalyzeDriveRequest(BaseModel):
    """
    Request to analyse one completed drive.

    Attributes:
        drive_id: Drive identifier
        gps_samples: GPS fixes ordered by timestamp
        accel_samples: Accelerometer readings ordered by timestamp
        segments: Road segment catalog to match against
    """

    drive_id: str = Field(..., min_length=1)
    gps_samples: List[GpsSampleMessage] = Field(default_factory=list)
    accel_samples: List[AccelSampleMessage] = Field(default_factory=list)
    segments: List[SegmentMessage] = Field(default_factory=list)

    def to_recording(self) -> DriveRecording:
        """Convert to the pipeline's recording type."""
        return DriveRecording(
            drive_id=self.drive_id,
            gps_samples=tuple(
                GpsSample(
                    id=s.id,
                    drive_id=self.drive_id,
                    latitude=s.latitude,
                    longitude=s.longitude,
                    speed_mps=s.speed_mps,
                    timestamp_ms=s.timestamp_ms,
                    distance_from_prev_meters=s.distance_from_prev_meters,
                )
                for s in self.gps_samples
            ),
            accel_samples=tuple(
                AccelSample(x=s.x, y=s.y, z=s.z, timestamp_ms=s.timestamp_ms)
                for s in self.accel_samples
            ),
        )

    def to_segments(self) -> List[RoadSegment]:
        """
        Build validated road segments.

        Raises:
            pydantic.ValidationError: If any segment geometry is invalid
        """
        return [
            RoadSegment(id=s.id, name=s.name, coordinates=s.coordinates)
            for s in self.segments
        ]
