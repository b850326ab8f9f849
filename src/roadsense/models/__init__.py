"""
Data Models
===========

Typed records for the RoadSense analysis pipeline.

This module re-exports all data models for convenient access.

Models:
    Geometry:
        - GeoPoint, BoundingBox, RoadSegment: Road network primitives

    Samples:
        - GpsSample, AccelSample: Sensor records from a drive

    Matching:
        - SegmentMatch: GPS point matched to a segment

    Congestion:
        - CongestionSeverity: Severity tiers (FREE_FLOW .. GRIDLOCK)
        - CongestionEvent: One sustained low-speed period on a segment
        - StatisticsKey, SegmentStatistics: Rolling per-segment aggregates

    Roughness:
        - RoughnessBreakdown, RoughnessResult: Road surface summary

    Recording:
        - DriveRecording: Completed drive handed to the pipeline
        - DriveAnalysisResult: Everything produced for one drive

    Input:
        - AnalyzeDriveRequest: HTTP request body for drive analysis
"""

from roadsense.models.geometry import BoundingBox, GeoPoint, RoadSegment
from roadsense.models.samples import AccelSample, GpsSample
from roadsense.models.matching import SegmentMatch
from roadsense.models.congestion import (
    CongestionEvent,
    CongestionSeverity,
    SegmentStatistics,
    StatisticsKey,
)
from roadsense.models.roughness import RoughnessBreakdown, RoughnessResult
from roadsense.models.recording import DriveAnalysisResult, DriveRecording
from roadsense.models.input import AnalyzeDriveRequest

__all__ = [
    # Geometry
    "GeoPoint",
    "BoundingBox",
    "RoadSegment",
    # Samples
    "GpsSample",
    "AccelSample",
    # Matching
    "SegmentMatch",
    # Congestion
    "CongestionSeverity",
    "CongestionEvent",
    "StatisticsKey",
    "SegmentStatistics",
    # Roughness
    "RoughnessBreakdown",
    "RoughnessResult",
    # Recording
    "DriveRecording",
    "DriveAnalysisResult",
    # Input
    "AnalyzeDriveRequest",
]
