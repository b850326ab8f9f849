"""
Segment Matching
================

Matches GPS points to road segments.

Algorithm (per point):
    1. Bounding-box prefilter: skip segments whose stored bbox does not
       contain the point (inclusive, no padding)
    2. Distance from the point to each remaining polyline, in metres,
       plus the fractional position of the nearest point
    3. Keep matches with distance <= threshold
    4. Sort by distance, nearest first

Strategies for a whole track:
    - nearest: every point independently takes its nearest match
    - sticky:  a point keeps the previous point's segment while that
               segment is within threshold + hysteresis; otherwise it
               falls back to nearest. Suppresses segment flicker at
               junctions.

Example:
    from roadsense.geometry import SegmentMatcher

    matcher = SegmentMatcher(segments, threshold_meters=50.0)
    matches, tagged = matcher.match_samples(gps_samples)
"""

import logging
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from roadsense.errors import ConfigurationError
from roadsense.geometry.distance import project_onto_polyline
from roadsense.models.geometry import GeoPoint, RoadSegment
from roadsense.models.matching import SegmentMatch
from roadsense.models.samples import GpsSample


logger = logging.getLogger(__name__)


DEFAULT_MATCH_THRESHOLD_METERS = 50.0


class MatchStrategy(str, Enum):
    """How consecutive points of a track are assigned to segments."""

    NEAREST = "nearest"
    STICKY = "sticky"


def match_point_to_segments(
    point: GeoPoint,
    segments: Iterable[RoadSegment],
    threshold_meters: float = DEFAULT_MATCH_THRESHOLD_METERS,
) -> List[SegmentMatch]:
    """
    Match a GPS point against road segments.

    Segments are assumed valid (at least two in-range coordinates and a
    bbox that bounds them); they are not re-validated here.

    Args:
        point: GPS point to match
        segments: Road segments to match against
        threshold_meters: Maximum distance for a match (inclusive)

    Returns:
        Matches sorted by distance, nearest first. Empty if none.
    """
    matches: List[SegmentMatch] = []

    for segment in segments:
        if not segment.bbox.contains(point.latitude, point.longitude):
            continue

        projection = project_onto_polyline(
            point.latitude, point.longitude, segment.coordinates
        )

        if projection.distance_meters <= threshold_meters:
            matches.append(
                SegmentMatch(
                    segment_id=segment.id,
                    distance_meters=projection.distance_meters,
                    position_fraction=projection.position_fraction,
                )
            )

    # sorted() is stable, so equal distances keep catalog order
    return sorted(matches, key=lambda m: m.distance_meters)


class SegmentMatcher:
    """
    Matches GPS tracks against a fixed segment catalog.

    Attributes:
        segments: Segment catalog
        threshold_meters: Maximum match distance
        strategy: Track matching strategy
        hysteresis_meters: Extra distance allowed for the previous segment
            under the sticky strategy
    """

    def __init__(
        self,
        segments: Sequence[RoadSegment],
        threshold_meters: float = DEFAULT_MATCH_THRESHOLD_METERS,
        strategy: MatchStrategy = MatchStrategy.NEAREST,
        hysteresis_meters: float = 25.0,
    ) -> None:
        """
        Initialize the matcher.

        Args:
            segments: Segment catalog
            threshold_meters: Maximum match distance (> 0)
            strategy: 'nearest' or 'sticky'
            hysteresis_meters: Sticky-strategy allowance (>= 0)

        Raises:
            ConfigurationError: If parameters are invalid
        """
        if threshold_meters <= 0:
            raise ConfigurationError(
                f"threshold_meters must be > 0, got {threshold_meters}"
            )
        if hysteresis_meters < 0:
            raise ConfigurationError(
                f"hysteresis_meters must be >= 0, got {hysteresis_meters}"
            )

        self.segments = list(segments)
        self.threshold_meters = threshold_meters
        self.strategy = MatchStrategy(strategy)
        self.hysteresis_meters = hysteresis_meters

        logger.info(
            f"SegmentMatcher initialized: segments={len(self.segments)}, "
            f"threshold={threshold_meters}m, strategy={self.strategy.value}"
        )

    def match_point(self, point: GeoPoint) -> List[SegmentMatch]:
        """Match one point against the catalog, nearest first."""
        return match_point_to_segments(point, self.segments, self.threshold_meters)

    def best_match(
        self,
        point: GeoPoint,
        previous_segment_id: Optional[str] = None,
    ) -> Optional[SegmentMatch]:
        """
        Pick the match for one point of a track.

        Args:
            point: GPS point
            previous_segment_id: Segment of the previous point, used by
                the sticky strategy

        Returns:
            Chosen match, or None if no segment is within threshold
        """
        if self.strategy is MatchStrategy.STICKY and previous_segment_id is not None:
            widened = match_point_to_segments(
                point,
                self.segments,
                self.threshold_meters + self.hysteresis_meters,
            )
            for match in widened:
                if match.segment_id == previous_segment_id:
                    return match
            within = [m for m in widened if m.distance_meters <= self.threshold_meters]
            return within[0] if within else None

        matches = self.match_point(point)
        return matches[0] if matches else None

    def match_samples(
        self,
        samples: Sequence[GpsSample],
    ) -> Tuple[List[SegmentMatch], List[GpsSample]]:
        """
        Match every sample of a track to its segment.

        Samples are processed in the order given; the sticky strategy
        expects them ordered by timestamp.

        Args:
            samples: GPS samples of one drive

        Returns:
            Tuple of (matches, tagged_samples)
            - matches: one SegmentMatch per matched sample
            - tagged_samples: every input sample, with matched_segment_id
              set to the chosen segment or None
        """
        matches: List[SegmentMatch] = []
        tagged: List[GpsSample] = []
        previous: Optional[str] = None

        for sample in samples:
            point = GeoPoint(latitude=sample.latitude, longitude=sample.longitude)
            match = self.best_match(point, previous_segment_id=previous)

            if match is None:
                tagged.append(sample.with_segment(None))
                previous = None
                continue

            matches.append(
                SegmentMatch(
                    segment_id=match.segment_id,
                    distance_meters=match.distance_meters,
                    position_fraction=match.position_fraction,
                    gps_sample_id=sample.id,
                )
            )
            tagged.append(sample.with_segment(match.segment_id))
            previous = match.segment_id

        logger.debug(
            f"Matched {len(matches)}/{len(samples)} samples "
            f"against {len(self.segments)} segments"
        )
        return matches, tagged
