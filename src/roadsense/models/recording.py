"""
Recording Models
================

The unit of work handed to the pipeline (a completed drive) and the
analysis result returned for it.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from roadsense.models.congestion import CongestionEvent
from roadsense.models.matching import SegmentMatch
from roadsense.models.roughness import RoughnessResult
from roadsense.models.samples import AccelSample, GpsSample


@dataclass(frozen=True)
class DriveRecording:
    """
    A completed drive as delivered by the recording subsystem.

    Attributes:
        drive_id: Unique drive identifier
        gps_samples: GPS fixes ordered by timestamp
        accel_samples: Accelerometer readings ordered by timestamp
        roughness_score: Previously computed score, if any
    """

    drive_id: str
    gps_samples: Tuple[GpsSample, ...] = ()
    accel_samples: Tuple[AccelSample, ...] = ()
    roughness_score: Optional[int] = None


@dataclass
class DriveAnalysisResult:
    """
    Everything the pipeline produced for one drive.

    Attributes:
        drive_id: Analysed drive
        matches: Nearest segment match per matched GPS sample
        tagged_samples: GPS samples with matched_segment_id filled in
        events: Detected congestion events
        roughness: Roughness summary, or None with too few samples
        statistics_applied: Whether events were merged into the store
    """

    drive_id: str
    matches: List[SegmentMatch] = field(default_factory=list)
    tagged_samples: List[GpsSample] = field(default_factory=list)
    events: List[CongestionEvent] = field(default_factory=list)
    roughness: Optional[RoughnessResult] = None
    statistics_applied: bool = False

    @property
    def match_count(self) -> int:
        """Number of GPS samples matched to a segment."""
        return len(self.matches)

    @property
    def event_count(self) -> int:
        """Number of congestion events detected."""
        return len(self.events)

    @property
    def total_duration_ms(self) -> int:
        """Total congestion time across all events."""
        return sum(e.duration_ms for e in self.events)

    def to_dict(self) -> dict:
        """Export a JSON-friendly summary."""
        return {
            "drive_id": self.drive_id,
            "match_count": self.match_count,
            "event_count": self.event_count,
            "total_duration_ms": self.total_duration_ms,
            "statistics_applied": self.statistics_applied,
            "matches": [m.to_dict() for m in self.matches],
            "events": [e.model_dump(mode="json") for e in self.events],
            "roughness": (
                self.roughness.model_dump(mode="json") if self.roughness else None
            ),
        }
