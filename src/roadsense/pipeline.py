"""
Analysis Pipeline
=================

Batch post-processing of a completed drive.

Stages:
    1. Validate the recording (reject the whole batch on bad input)
    2. Match every GPS sample to its nearest road segment
    3. Detect congestion events on the matched samples
    4. Merge the events into segment statistics
    5. Score road roughness from the accelerometer samples

Stages 2, 3 and 5 are pure functions over in-memory sequences; only
stage 4 touches shared state, and the statistics store serializes it.
Independent drives can therefore be analysed concurrently.

Example:
    from roadsense.config import load_config
    from roadsense.congestion import InMemoryStatisticsStore
    from roadsense.pipeline import AnalysisPipeline

    pipeline = AnalysisPipeline(load_config(), InMemoryStatisticsStore())
    result = pipeline.analyze(recording, segments)
    print(result.event_count, result.roughness)
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence

from roadsense.config import Settings
from roadsense.congestion.calendar import resolve_timezone
from roadsense.congestion.detector import CongestionDetector
from roadsense.congestion.statistics import (
    InMemoryStatisticsStore,
    StatisticsAggregator,
    StatisticsStore,
)
from roadsense.errors import RecordingValidationError
from roadsense.geometry.matcher import SegmentMatcher
from roadsense.models.geometry import RoadSegment
from roadsense.models.recording import DriveAnalysisResult, DriveRecording
from roadsense.models.roughness import RoughnessResult
from roadsense.signals.roughness import RoughnessAnalyzer


logger = logging.getLogger(__name__)


# Stop listing individual problems after this many
_MAX_REPORTED_ERRORS = 20


def validate_recording(recording: DriveRecording) -> None:
    """
    Check a recording before any stage runs.

    Rejects non-finite or out-of-range coordinates, non-finite or
    negative speeds and distances, samples from another drive,
    decreasing timestamps and non-finite accelerometer readings.

    Raises:
        RecordingValidationError: Listing every problem found
    """
    errors: List[str] = []

    def report(message: str) -> None:
        if len(errors) < _MAX_REPORTED_ERRORS:
            errors.append(message)

    previous_ts: Optional[int] = None
    seen_ids = set()
    for index, sample in enumerate(recording.gps_samples):
        where = f"gps[{index}] ({sample.id})"

        if sample.drive_id != recording.drive_id:
            report(f"{where}: belongs to drive {sample.drive_id}")
        if sample.id in seen_ids:
            report(f"{where}: duplicate sample id")
        seen_ids.add(sample.id)

        if not (math.isfinite(sample.latitude) and math.isfinite(sample.longitude)):
            report(f"{where}: non-finite coordinates")
        elif not (-90.0 <= sample.latitude <= 90.0 and -180.0 <= sample.longitude <= 180.0):
            report(f"{where}: coordinates out of range")

        if sample.speed_mps is not None and not (
            math.isfinite(sample.speed_mps) and sample.speed_mps >= 0
        ):
            report(f"{where}: invalid speed {sample.speed_mps}")

        distance = sample.distance_from_prev_meters
        if distance is not None and not (math.isfinite(distance) and distance >= 0):
            report(f"{where}: invalid distance_from_prev {distance}")

        if previous_ts is not None and sample.timestamp_ms < previous_ts:
            report(f"{where}: timestamp {sample.timestamp_ms} before {previous_ts}")
        previous_ts = sample.timestamp_ms

    previous_ts = None
    for index, sample in enumerate(recording.accel_samples):
        where = f"accel[{index}]"
        if not all(math.isfinite(v) for v in (sample.x, sample.y, sample.z)):
            report(f"{where}: non-finite acceleration")
        if previous_ts is not None and sample.timestamp_ms < previous_ts:
            report(f"{where}: timestamp {sample.timestamp_ms} before {previous_ts}")
        previous_ts = sample.timestamp_ms

    if errors:
        raise RecordingValidationError(recording.drive_id, errors)


class AnalysisPipeline:
    """
    Runs the full analysis for completed drives.

    Attributes:
        settings: Loaded configuration
        store: Statistics persistence shared across drives
        detector: Congestion detector
        aggregator: Statistics aggregator
        roughness_analyzer: Roughness analyzer
    """

    def __init__(
        self,
        settings: Settings,
        store: Optional[StatisticsStore] = None,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            settings: Loaded configuration
            store: Statistics store (in-memory if None)

        Raises:
            ConfigurationError: If any stage's parameters are invalid
        """
        self.settings = settings
        self.store = store if store is not None else InMemoryStatisticsStore()

        tz = resolve_timezone(settings.calendar.timezone)
        self.detector = CongestionDetector(
            thresholds=settings.congestion.to_thresholds(),
            tz=tz,
        )
        self.aggregator = StatisticsAggregator(
            self.store, mode=settings.statistics.merge_mode, tz=tz
        )
        self.roughness_analyzer = RoughnessAnalyzer(
            window_size=settings.roughness.window_size,
            tier_thresholds=settings.roughness.tier_thresholds,
            tier_weights=settings.roughness.tier_weights.model_dump(),
        )

        self._drives_processed: int = 0
        self._drives_rejected: int = 0

        logger.info(
            f"AnalysisPipeline initialized: "
            f"threshold={settings.matching.threshold_meters}m, "
            f"strategy={settings.matching.strategy.value}, "
            f"merge_mode={settings.statistics.merge_mode.value}"
        )

    def build_matcher(self, segments: Sequence[RoadSegment]) -> SegmentMatcher:
        """Create a matcher for a segment catalog."""
        return SegmentMatcher(
            segments,
            threshold_meters=self.settings.matching.threshold_meters,
            strategy=self.settings.matching.strategy,
            hysteresis_meters=self.settings.matching.hysteresis_meters,
        )

    def analyze(
        self,
        recording: DriveRecording,
        segments: Sequence[RoadSegment],
    ) -> DriveAnalysisResult:
        """
        Analyze one completed drive.

        Args:
            recording: The drive's samples
            segments: Full road segment catalog

        Returns:
            DriveAnalysisResult. Sparse data yields empty parts, not errors.

        Raises:
            RecordingValidationError: If the recording is malformed; no
                statistics are modified in that case
        """
        try:
            validate_recording(recording)
        except RecordingValidationError as e:
            self._drives_rejected += 1
            logger.warning(
                f"Rejected drive {recording.drive_id}: {len(e.errors)} validation errors"
            )
            raise

        result = DriveAnalysisResult(drive_id=recording.drive_id)

        if recording.gps_samples and segments:
            matcher = self.build_matcher(segments)
            result.matches, result.tagged_samples = matcher.match_samples(
                recording.gps_samples
            )
            result.events = self.detector.detect(result.tagged_samples)

            if result.events:
                updated = self.aggregator.update(result.events, batch_id=recording.drive_id)
                result.statistics_applied = bool(updated)
        else:
            result.tagged_samples = [s.with_segment(None) for s in recording.gps_samples]
            logger.info(
                f"Skipping congestion for drive {recording.drive_id}: "
                f"gps_samples={len(recording.gps_samples)}, segments={len(segments)}"
            )

        result.roughness = self.roughness_analyzer.analyze(recording.accel_samples)

        self._drives_processed += 1
        logger.info(
            f"Drive {recording.drive_id} analysed: matches={result.match_count}, "
            f"events={result.event_count}, "
            f"congestion={result.total_duration_ms}ms, "
            f"roughness={result.roughness.score if result.roughness else None}"
        )
        return result

    def analyze_many(
        self,
        recordings: Sequence[DriveRecording],
        segments: Sequence[RoadSegment],
        max_workers: Optional[int] = None,
    ) -> Dict[str, DriveAnalysisResult]:
        """
        Analyze several independent drives concurrently.

        A drive that fails validation is logged and left out of the
        result; the other drives are unaffected.

        Returns:
            Results keyed by drive id
        """
        workers = max_workers or self.settings.pipeline.max_workers
        results: Dict[str, DriveAnalysisResult] = {}

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="drive") as pool:
            futures = {
                pool.submit(self.analyze, recording, segments): recording.drive_id
                for recording in recordings
            }
            for future, drive_id in futures.items():
                try:
                    results[drive_id] = future.result()
                except RecordingValidationError as e:
                    logger.error(f"Drive {drive_id} skipped: {e}")

        return results

    def backfill_roughness(
        self,
        recordings: Sequence[DriveRecording],
    ) -> Dict[str, Optional[RoughnessResult]]:
        """
        Compute roughness for drives that have no score yet.

        Drives with an existing roughness_score are left out. A drive
        with too few samples maps to None.

        Returns:
            Roughness results keyed by drive id
        """
        pending = [r for r in recordings if r.roughness_score is None]
        logger.info(
            f"Backfilling roughness: {len(pending)} of {len(recordings)} drives"
        )

        results: Dict[str, Optional[RoughnessResult]] = {}
        for recording in pending:
            results[recording.drive_id] = self.roughness_analyzer.analyze(
                recording.accel_samples
            )

        scored = sum(1 for r in results.values() if r is not None)
        logger.info(f"Backfill complete: scored={scored}, insufficient={len(results) - scored}")
        return results

    def get_metrics(self) -> dict:
        """Get pipeline metrics for observability."""
        return {
            "drives_processed": self._drives_processed,
            "drives_rejected": self._drives_rejected,
            "detector": self.detector.get_metrics(),
            "roughness": self.roughness_analyzer.get_metrics(),
        }
