#!/usr/bin/env python3
"""
Offline Drive Analysis Script
=============================

Standalone script to run the analysis pipeline on exported drives.

This script:
    1. Loads one or more drive recordings from JSON files
    2. Loads the road segment catalog from a GeoJSON FeatureCollection
    3. Runs matching, congestion detection, statistics and roughness
    4. Logs a summary per drive and the resulting all-time statistics

Recording file format: the body of POST /drives/analyze, without the
"segments" field (it is ignored if present).

Segment file format: a FeatureCollection of LineString features; the
feature "id" (or properties.id) is the segment id and properties.name
its name.

Usage:
    python scripts/analyze_recording.py drive_42.json --segments roads.geojson
    python scripts/analyze_recording.py drives/*.json --segments roads.geojson --json
"""

import argparse
import json
import logging
import os
import sys
from typing import List

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from roadsense.config import load_config
from roadsense.congestion import InMemoryStatisticsStore
from roadsense.errors import RecordingValidationError
from roadsense.models.geometry import RoadSegment
from roadsense.models.input import AnalyzeDriveRequest
from roadsense.pipeline import AnalysisPipeline


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


def load_segments(path: str) -> List[RoadSegment]:
    """
    Load road segments from a GeoJSON FeatureCollection.

    Features that are not valid LineStrings are skipped with a warning.
    """
    with open(path, "r") as f:
        collection = json.load(f)

    segments = []
    for index, feature in enumerate(collection.get("features", [])):
        properties = feature.get("properties") or {}
        segment_id = str(feature.get("id") or properties.get("id") or f"segment_{index}")
        try:
            segments.append(
                RoadSegment.from_geojson(
                    segment_id,
                    feature.get("geometry"),
                    name=properties.get("name"),
                )
            )
        except ValueError as e:
            logger.warning(f"Skipping segment {segment_id}: {e}")

    logger.info(f"Loaded {len(segments)} segments from {path}")
    return segments


def load_request(path: str) -> AnalyzeDriveRequest:
    """Load one drive recording file."""
    with open(path, "r") as f:
        data = json.load(f)
    data.pop("segments", None)
    return AnalyzeDriveRequest.model_validate(data)


def main() -> int:
    parser = argparse.ArgumentParser(description="Analyze exported drive recordings")
    parser.add_argument("recordings", nargs="+", help="Recording JSON files")
    parser.add_argument("--segments", required=True, help="Segment GeoJSON file")
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    args = parser.parse_args()

    settings = load_config(args.config)
    pipeline = AnalysisPipeline(settings, InMemoryStatisticsStore())
    segments = load_segments(args.segments)

    results = []
    failures = 0
    for path in args.recordings:
        request = load_request(path)
        try:
            result = pipeline.analyze(request.to_recording(), segments)
        except RecordingValidationError as e:
            logger.error(f"{path}: {e}")
            failures += 1
            continue

        results.append(result.to_dict())
        roughness = result.roughness
        logger.info("=" * 60)
        logger.info(f"Drive: {result.drive_id}")
        logger.info(f"Matched samples: {result.match_count}")
        logger.info(f"Congestion events: {result.event_count}")
        logger.info(f"Congestion time: {result.total_duration_ms / 1000:.1f}s")
        if roughness is not None:
            logger.info(f"Roughness score: {roughness.score}/100")
            logger.info(f"Breakdown: {roughness.breakdown.model_dump()}")
        else:
            logger.info("Roughness: not enough accelerometer data")

    logger.info("=" * 60)
    logger.info("All-time segment statistics")
    for row in pipeline.store.heatmap():
        logger.info(
            f"  {row.segment_id}: events={row.event_count}, "
            f"score={row.congestion_score:.1f}, "
            f"duration={row.total_duration_ms / 1000:.1f}s"
        )

    if args.json:
        print(json.dumps(results, indent=2))

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
