"""
Segment Statistics
==================

Folds congestion events into rolling per-segment aggregates.

Aggregation:
    Each event contributes to five keys of its segment: all-time, per day
    of week, per hour of day, per day×hour, and per ISO week (keyed by
    the Monday 00:00 local that starts the week). Within one batch the
    aggregator computes, per key: event count, summed duration, mean of
    event average speeds, and the severity distribution.

Merge Modes:
    latest_batch (default):
        event_count and total_duration_ms increment; avg_speed_mps, the
        five severity percentages and congestion_score are REPLACED by
        the batch's values. The score therefore describes only the most
        recent batch even though the counters are lifetime totals.
    cumulative:
        Counters increment as above and the speed, percentage and score
        fields are recomputed from lifetime severity counts and speeds.

Score:
    congestion_score = (pf*100 + ps*75 + pc*50 + ph*25 + pg*0) / 100

Concurrency:
    The store serializes merges so that concurrent batches touching the
    same key never lose a counter increment.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Set

from roadsense.congestion import calendar
from roadsense.models.congestion import (
    SEVERITY_WEIGHTS,
    CongestionEvent,
    CongestionSeverity,
    SegmentStatistics,
    StatisticsKey,
)


logger = logging.getLogger(__name__)


class MergeMode(str, Enum):
    """How batch aggregates are merged into existing rows."""

    LATEST_BATCH = "latest_batch"
    CUMULATIVE = "cumulative"


_PCT_FIELDS: Dict[CongestionSeverity, str] = {
    CongestionSeverity.FREE_FLOW: "pct_free_flow",
    CongestionSeverity.SLOW: "pct_slow",
    CongestionSeverity.CONGESTED: "pct_congested",
    CongestionSeverity.HEAVY: "pct_heavy",
    CongestionSeverity.GRIDLOCK: "pct_gridlock",
}


def statistics_keys(
    event: CongestionEvent,
    tz: Optional[tzinfo] = None,
) -> List[StatisticsKey]:
    """
    The five aggregation keys an event contributes to.

    tz is the zone of the weekly key's Monday boundary (None = host local).
    """
    seg = event.segment_id
    return [
        StatisticsKey(seg),
        StatisticsKey(seg, day_of_week=event.day_of_week),
        StatisticsKey(seg, hour_of_day=event.hour_of_day),
        StatisticsKey(seg, day_of_week=event.day_of_week, hour_of_day=event.hour_of_day),
        StatisticsKey(seg, week_start=calendar.week_start(event.start_time, tz)),
    ]


def severity_percentages(counts: Dict[CongestionSeverity, int]) -> Dict[str, float]:
    """Severity distribution as pct_* fields (all 0 for no events)."""
    total = sum(counts.values())
    return {
        name: (counts.get(severity, 0) / total * 100 if total > 0 else 0.0)
        for severity, name in _PCT_FIELDS.items()
    }


def congestion_score(percentages: Dict[str, float]) -> float:
    """Weighted score of a severity distribution, 100 = all free-flow."""
    return sum(
        percentages[name] * SEVERITY_WEIGHTS[severity]
        for severity, name in _PCT_FIELDS.items()
    ) / 100


@dataclass
class BatchAggregate:
    """Per-key totals for one batch of events."""

    key: StatisticsKey
    event_count: int = 0
    total_duration_ms: int = 0
    speeds: List[float] = field(default_factory=list)
    severity_counts: Dict[CongestionSeverity, int] = field(
        default_factory=lambda: {s: 0 for s in CongestionSeverity}
    )

    def add(self, event: CongestionEvent) -> None:
        """Fold one event into the batch totals."""
        self.event_count += 1
        self.total_duration_ms += event.duration_ms
        self.speeds.append(event.avg_speed_mps)
        self.severity_counts[event.severity] += 1

    @property
    def avg_speed_mps(self) -> Optional[float]:
        """Mean event average speed, or None for an empty batch."""
        return sum(self.speeds) / len(self.speeds) if self.speeds else None

    def percentages(self) -> Dict[str, float]:
        """Severity percentages of this batch."""
        return severity_percentages(self.severity_counts)


def aggregate_events(
    events: Iterable[CongestionEvent],
    tz: Optional[tzinfo] = None,
) -> Dict[StatisticsKey, BatchAggregate]:
    """Group a batch of events by every aggregation key they touch."""
    aggregates: Dict[StatisticsKey, BatchAggregate] = {}
    for event in events:
        for key in statistics_keys(event, tz):
            if key not in aggregates:
                aggregates[key] = BatchAggregate(key=key)
            aggregates[key].add(event)
    return aggregates


def merge_row(
    existing: Optional[SegmentStatistics],
    batch: BatchAggregate,
    mode: MergeMode = MergeMode.LATEST_BATCH,
    now: Optional[datetime] = None,
) -> SegmentStatistics:
    """
    Merge one batch aggregate into an existing row.

    Args:
        existing: Current row for the key, or None
        batch: This batch's aggregate for the key
        mode: Merge mode for the speed/percentage/score fields
        now: Update timestamp (defaults to current UTC time)

    Returns:
        New statistics row; existing is not modified
    """
    now = now or datetime.now(timezone.utc)

    event_count = batch.event_count
    total_duration_ms = batch.total_duration_ms
    speed_sum = sum(batch.speeds)
    counts = dict(batch.severity_counts)

    if existing is not None:
        event_count += existing.event_count
        total_duration_ms += existing.total_duration_ms
        speed_sum += existing.speed_sum_mps
        for severity, count in existing.severity_counts.items():
            counts[severity] = counts.get(severity, 0) + count

    if mode is MergeMode.CUMULATIVE:
        percentages = severity_percentages(counts)
        avg_speed = speed_sum / event_count if event_count > 0 else None
    else:
        percentages = batch.percentages()
        avg_speed = batch.avg_speed_mps

    return SegmentStatistics(
        segment_id=batch.key.segment_id,
        day_of_week=batch.key.day_of_week,
        hour_of_day=batch.key.hour_of_day,
        week_start=batch.key.week_start,
        event_count=event_count,
        total_duration_ms=total_duration_ms,
        avg_speed_mps=avg_speed,
        congestion_score=congestion_score(percentages),
        severity_counts=counts,
        speed_sum_mps=speed_sum,
        updated_at=now,
        **percentages,
    )


class StatisticsStore(ABC):
    """
    Persistence boundary for segment statistics.

    Implementations must make merge() atomic per key.
    """

    @abstractmethod
    def get(self, key: StatisticsKey) -> Optional[SegmentStatistics]:
        """Fetch one row, or None."""

    @abstractmethod
    def merge(self, batch: BatchAggregate, mode: MergeMode) -> SegmentStatistics:
        """Atomically merge a batch aggregate into its row."""

    @abstractmethod
    def rows(self) -> List[SegmentStatistics]:
        """All rows."""

    @abstractmethod
    def claim_batch(self, batch_id: str) -> bool:
        """
        Record that a batch is being applied.

        Returns:
            False if the batch was already claimed
        """

    def query(
        self,
        segment_id: Optional[str] = None,
        day_of_week: Optional[int] = None,
        hour_of_day: Optional[int] = None,
        week_start: Optional[datetime] = None,
    ) -> List[SegmentStatistics]:
        """
        Rows matching an exact key slice.

        A None dimension selects rows where that dimension is unset;
        segment_id None selects every segment.
        """
        return [
            row for row in self.rows()
            if (segment_id is None or row.segment_id == segment_id)
            and row.day_of_week == day_of_week
            and row.hour_of_day == hour_of_day
            and row.week_start == week_start
        ]

    def heatmap(
        self,
        day_of_week: Optional[int] = None,
        hour_of_day: Optional[int] = None,
    ) -> List[SegmentStatistics]:
        """Non-weekly rows of every segment for a day/hour slice."""
        return sorted(
            self.query(day_of_week=day_of_week, hour_of_day=hour_of_day),
            key=lambda row: row.segment_id,
        )

    def weekly_trend(self, segment_id: str) -> List[SegmentStatistics]:
        """Weekly rows of one segment ordered by week."""
        weekly = [
            row for row in self.rows()
            if row.segment_id == segment_id and row.week_start is not None
        ]
        return sorted(weekly, key=lambda row: row.week_start)


class InMemoryStatisticsStore(StatisticsStore):
    """
    Thread-safe in-process statistics store.

    A single lock guards both the row map and the applied-batch set, so
    every merge is an atomic read-increment-write.
    """

    def __init__(self) -> None:
        self._rows: Dict[StatisticsKey, SegmentStatistics] = {}
        self._batches: Set[str] = set()
        self._lock = threading.Lock()

    def get(self, key: StatisticsKey) -> Optional[SegmentStatistics]:
        with self._lock:
            return self._rows.get(key)

    def merge(self, batch: BatchAggregate, mode: MergeMode) -> SegmentStatistics:
        with self._lock:
            row = merge_row(self._rows.get(batch.key), batch, mode)
            self._rows[batch.key] = row
            return row

    def rows(self) -> List[SegmentStatistics]:
        with self._lock:
            return list(self._rows.values())

    def claim_batch(self, batch_id: str) -> bool:
        with self._lock:
            if batch_id in self._batches:
                return False
            self._batches.add(batch_id)
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)


class StatisticsAggregator:
    """
    Applies batches of congestion events to a statistics store.

    Attributes:
        store: Statistics persistence
        mode: Merge mode for speed/percentage/score fields
        tz: Zone for weekly bucket boundaries (None = host local time)
    """

    def __init__(
        self,
        store: StatisticsStore,
        mode: MergeMode = MergeMode.LATEST_BATCH,
        tz: Optional[tzinfo] = None,
    ) -> None:
        self.store = store
        self.mode = MergeMode(mode)
        self.tz = tz
        logger.info(f"StatisticsAggregator initialized: mode={self.mode.value}")

    def update(
        self,
        events: Sequence[CongestionEvent],
        batch_id: Optional[str] = None,
    ) -> List[SegmentStatistics]:
        """
        Merge a batch of events into the store.

        Args:
            events: One batch of events (typically one drive)
            batch_id: Identifier used to skip re-application of the same
                batch on retry; None disables the check

        Returns:
            Updated rows, empty if the batch was skipped or had no events
        """
        if not events:
            return []

        if batch_id is not None and not self.store.claim_batch(batch_id):
            logger.warning(
                f"Statistics batch {batch_id} already applied, skipping "
                f"{len(events)} events"
            )
            return []

        aggregates = aggregate_events(events, self.tz)
        updated = [self.store.merge(batch, self.mode) for batch in aggregates.values()]

        segments = {batch.key.segment_id for batch in aggregates.values()}
        logger.info(
            f"Statistics updated: events={len(events)}, keys={len(updated)}, "
            f"segments={len(segments)}"
        )
        return updated


def update_segment_statistics(
    events: Sequence[CongestionEvent],
    store: StatisticsStore,
    mode: MergeMode = MergeMode.LATEST_BATCH,
    tz: Optional[tzinfo] = None,
) -> List[SegmentStatistics]:
    """Merge events into store. See StatisticsAggregator.update."""
    return StatisticsAggregator(store, mode, tz=tz).update(events)
