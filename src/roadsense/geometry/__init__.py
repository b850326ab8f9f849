"""
Geometry Module
===============

Spatial matching of GPS points to the road segment network.

This module provides the segment matcher and the distance helpers it is
built on. Segment geometry itself is defined in roadsense.models.geometry.
"""

from roadsense.geometry.distance import (
    haversine_meters,
    polyline_length_meters,
    project_onto_polyline,
)
from roadsense.geometry.matcher import (
    MatchStrategy,
    SegmentMatcher,
    match_point_to_segments,
)
from roadsense.models.geometry import compute_bounding_box, is_valid_line_string

__all__ = [
    "MatchStrategy",
    "SegmentMatcher",
    "match_point_to_segments",
    "compute_bounding_box",
    "is_valid_line_string",
    "haversine_meters",
    "polyline_length_meters",
    "project_onto_polyline",
]
