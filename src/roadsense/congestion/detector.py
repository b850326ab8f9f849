"""
Congestion Detector
===================

Detects sustained low-speed periods in segment-tagged GPS samples.

Scan Rules (per segment, samples sorted by timestamp):
    speed <  free_flow  -> open or extend the candidate event
    speed >= free_flow  -> close the candidate event
    missing speed counts as 0 (stopped)

Finalization:
    - duration = last.timestamp - first.timestamp
    - discard if duration < min_duration (red lights, brief stops)
    - discard if no sample in the window reports a speed
    - avg/min/max over reported speeds, distance = Σ distance_from_prev
    - severity from avg speed, inclusive lower bounds:
          avg >= free_flow  -> FREE_FLOW
          avg >= slow       -> SLOW
          avg >= congested  -> CONGESTED
          avg >= heavy      -> HEAVY
          otherwise         -> GRIDLOCK
    - calendar fields from the start time (local zone)

Events never span segments, even when temporally adjacent.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import tzinfo
from typing import Dict, Iterable, List, Optional, Sequence

from roadsense.congestion import calendar
from roadsense.errors import ConfigurationError
from roadsense.models.congestion import CongestionEvent, CongestionSeverity
from roadsense.models.samples import GpsSample


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CongestionThresholds:
    """
    Speed thresholds (m/s) and minimum event duration.

    Defaults:
        free_flow 15 m/s (~33 mph), slow 8 (~18 mph), congested 5
        (~11 mph), heavy 2.78 (~6 mph), gridlock 1 (~2 mph), 30 s.
    """

    free_flow: float = 15.0
    slow: float = 8.0
    congested: float = 5.0
    heavy: float = 2.78
    gridlock: float = 1.0
    min_duration_ms: int = 30000

    def validate(self) -> None:
        """
        Check that speeds are strictly decreasing and non-negative.

        Raises:
            ConfigurationError: If thresholds are inconsistent
        """
        speeds = [self.free_flow, self.slow, self.congested, self.heavy, self.gridlock]
        errors = []
        if any(b >= a for a, b in zip(speeds, speeds[1:])):
            errors.append(
                "speed thresholds must satisfy free_flow > slow > congested "
                f"> heavy > gridlock, got {speeds}"
            )
        if self.gridlock < 0:
            errors.append(f"gridlock must be >= 0, got {self.gridlock}")
        if self.min_duration_ms < 0:
            errors.append(f"min_duration_ms must be >= 0, got {self.min_duration_ms}")
        if errors:
            raise ConfigurationError(
                "Congestion threshold validation failed:\n" + "\n".join(errors)
            )

    def classify(self, avg_speed_mps: float) -> CongestionSeverity:
        """Severity tier for an average speed."""
        if avg_speed_mps >= self.free_flow:
            return CongestionSeverity.FREE_FLOW
        if avg_speed_mps >= self.slow:
            return CongestionSeverity.SLOW
        if avg_speed_mps >= self.congested:
            return CongestionSeverity.CONGESTED
        if avg_speed_mps >= self.heavy:
            return CongestionSeverity.HEAVY
        return CongestionSeverity.GRIDLOCK


class CongestionDetector:
    """
    Batch congestion detection over one drive's tagged GPS samples.

    Attributes:
        thresholds: Speed thresholds and minimum duration
        tz: Zone for calendar fields (None = host local time)

    Example:
        detector = CongestionDetector(CongestionThresholds())
        events = detector.detect(tagged_samples)
    """

    def __init__(
        self,
        thresholds: Optional[CongestionThresholds] = None,
        tz: Optional[tzinfo] = None,
    ) -> None:
        """
        Initialize congestion detector.

        Args:
            thresholds: Thresholds (defaults if None)
            tz: Zone for calendar fields

        Raises:
            ConfigurationError: If thresholds are inconsistent
        """
        self.thresholds = thresholds or CongestionThresholds()
        self.thresholds.validate()
        self.tz = tz

        self._candidates_seen: int = 0
        self._candidates_too_short: int = 0
        self._candidates_without_speed: int = 0

        logger.info(
            f"CongestionDetector initialized: free_flow={self.thresholds.free_flow}m/s, "
            f"min_duration={self.thresholds.min_duration_ms}ms"
        )

    @staticmethod
    def group_by_segment(samples: Iterable[GpsSample]) -> Dict[str, List[GpsSample]]:
        """Group matched samples by segment, dropping unmatched ones."""
        by_segment: Dict[str, List[GpsSample]] = defaultdict(list)
        for sample in samples:
            if sample.matched_segment_id:
                by_segment[sample.matched_segment_id].append(sample)
        return dict(by_segment)

    def detect(self, samples: Sequence[GpsSample]) -> List[CongestionEvent]:
        """
        Detect congestion events.

        Args:
            samples: GPS samples tagged with matched_segment_id

        Returns:
            Events grouped by segment (first-seen order), each segment's
            events in time order. Empty for no matched samples.
        """
        events: List[CongestionEvent] = []

        for segment_id, segment_samples in self.group_by_segment(samples).items():
            events.extend(self.detect_segment(segment_id, segment_samples))

        logger.debug(f"Detected {len(events)} congestion events from {len(samples)} samples")
        return events

    def detect_segment(
        self,
        segment_id: str,
        samples: Sequence[GpsSample],
    ) -> List[CongestionEvent]:
        """Scan one segment's samples for congestion events."""
        ordered = sorted(samples, key=lambda s: s.timestamp_ms)
        events: List[CongestionEvent] = []
        window: List[GpsSample] = []

        for sample in ordered:
            speed = sample.speed_mps if sample.speed_mps is not None else 0.0

            if speed < self.thresholds.free_flow:
                window.append(sample)
                continue

            if window:
                event = self._finalize(segment_id, window)
                if event is not None:
                    events.append(event)
            window = []

        # Still congested at the end of the drive
        if window:
            event = self._finalize(segment_id, window)
            if event is not None:
                events.append(event)

        return events

    def _finalize(
        self,
        segment_id: str,
        window: Sequence[GpsSample],
    ) -> Optional[CongestionEvent]:
        """Turn a candidate window into an event, or None if filtered out."""
        self._candidates_seen += 1
        first, last = window[0], window[-1]
        duration_ms = last.timestamp_ms - first.timestamp_ms

        if duration_ms < self.thresholds.min_duration_ms or duration_ms <= 0:
            self._candidates_too_short += 1
            return None

        speeds = [s.speed_mps for s in window if s.speed_mps is not None]
        if not speeds:
            self._candidates_without_speed += 1
            logger.debug(
                f"Discarding candidate on {segment_id}: no reported speeds "
                f"({first.id}..{last.id})"
            )
            return None

        avg_speed = sum(speeds) / len(speeds)
        distance = sum(s.distance_from_prev_meters or 0.0 for s in window)

        start_time = calendar.from_timestamp_ms(first.timestamp_ms, self.tz)
        end_time = calendar.from_timestamp_ms(last.timestamp_ms, self.tz)

        return CongestionEvent(
            drive_id=first.drive_id,
            segment_id=segment_id,
            start_time=start_time,
            end_time=end_time,
            duration_ms=duration_ms,
            day_of_week=calendar.day_of_week(start_time),
            hour_of_day=start_time.hour,
            iso_week=calendar.iso_week(start_time),
            severity=self.thresholds.classify(avg_speed),
            avg_speed_mps=avg_speed,
            min_speed_mps=min(speeds),
            max_speed_mps=max(speeds),
            distance_meters=distance,
            start_gps_id=first.id,
            end_gps_id=last.id,
        )

    def get_metrics(self) -> dict:
        """Get detector metrics for observability."""
        return {
            "candidates_seen": self._candidates_seen,
            "candidates_too_short": self._candidates_too_short,
            "candidates_without_speed": self._candidates_without_speed,
        }


def detect_congestion(
    samples: Sequence[GpsSample],
    thresholds: Optional[CongestionThresholds] = None,
    tz: Optional[tzinfo] = None,
) -> List[CongestionEvent]:
    """Detect congestion events. See CongestionDetector.detect."""
    return CongestionDetector(thresholds, tz=tz).detect(samples)
