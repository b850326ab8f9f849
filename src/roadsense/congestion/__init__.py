"""
Congestion Module
=================

Congestion event detection and rolling per-segment statistics.

This module provides:
    - CongestionDetector: Sustained low-speed periods per segment
    - StatisticsAggregator: Folds events into five aggregate keys
    - InMemoryStatisticsStore: Thread-safe reference store
"""

from roadsense.congestion.detector import (
    CongestionDetector,
    CongestionThresholds,
    detect_congestion,
)
from roadsense.congestion.statistics import (
    InMemoryStatisticsStore,
    MergeMode,
    StatisticsAggregator,
    StatisticsStore,
    update_segment_statistics,
)

__all__ = [
    "CongestionDetector",
    "CongestionThresholds",
    "detect_congestion",
    "InMemoryStatisticsStore",
    "MergeMode",
    "StatisticsAggregator",
    "StatisticsStore",
    "update_segment_statistics",
]
