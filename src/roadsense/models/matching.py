"""
Matching Models
===============

Output of the segment matcher, persisted by the caller as a join table
between GPS samples and road segments.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class SegmentMatch:
    """
    A GPS point matched to a road segment within the distance threshold.

    Attributes:
        segment_id: Matched road segment
        distance_meters: Distance from the point to the segment centerline
        position_fraction: Position of the nearest point along the segment
            (0.0 = first vertex, 1.0 = last vertex)
        gps_sample_id: Matched GPS sample, when matching a stored sample
    """

    segment_id: str
    distance_meters: float
    position_fraction: float
    gps_sample_id: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"SegmentMatch(segment={self.segment_id}, "
            f"dist={self.distance_meters:.2f}m, "
            f"pos={self.position_fraction:.3f})"
        )

    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "gps_sample_id": self.gps_sample_id,
            "segment_id": self.segment_id,
            "distance_meters": round(self.distance_meters, 3),
            "position_fraction": round(self.position_fraction, 4),
        }
