"""
RoadSense
=========

Road roughness and traffic congestion analysis for recorded drives.

This package provides the batch analysis pipeline that runs after a drive
recording completes. It matches GPS samples to a road segment network,
detects sustained congestion, folds events into rolling per-segment
statistics, and scores road-surface roughness from vertical acceleration.

Components:
    - geometry: Segment matching and distance helpers
    - signals: Accelerometer roughness analysis
    - congestion: Event detection and segment statistics
    - pipeline: Per-drive orchestration and input validation
    - main: FastAPI service wrapper

Example:
    from roadsense.config import load_config
    from roadsense.pipeline import AnalysisPipeline

    pipeline = AnalysisPipeline(load_config())
    result = pipeline.analyze(recording, segments)
"""

__version__ = "0.1.0"
__author__ = "RoadSense Project"

__all__ = [
    "__version__",
]
