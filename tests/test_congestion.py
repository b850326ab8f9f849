"""
Congestion Detection Tests
==========================

Scan rules, duration filter, severity tiers and calendar fields.
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from conftest import JAN_1_2024_MS, make_gps
from roadsense.congestion import CongestionDetector, CongestionThresholds, detect_congestion
from roadsense.congestion import calendar
from roadsense.errors import ConfigurationError
from roadsense.models.congestion import CongestionEvent, CongestionSeverity


def run(speeds, step_ms=2000, segment_id="straight", start_ms=JAN_1_2024_MS, offset=0):
    """Samples on one segment at a fixed interval with the given speeds."""
    return [
        make_gps(offset + i, start_ms + i * step_ms, speed, segment_id=segment_id)
        for i, speed in enumerate(speeds)
    ]


class TestDurationFilter:
    """Tests for the minimum-duration filter."""

    def test_just_below_minimum_is_discarded(self, utc):
        """Verify a 29.9 s slow run yields no event."""
        samples = [
            make_gps(0, JAN_1_2024_MS, 1.0, segment_id="straight"),
            make_gps(1, JAN_1_2024_MS + 29900, 1.0, segment_id="straight"),
        ]
        assert detect_congestion(samples, tz=utc) == []

    def test_just_above_minimum_is_kept(self, utc):
        """Verify a 30.1 s slow run yields one GRIDLOCK event."""
        samples = [
            make_gps(0, JAN_1_2024_MS, 1.0, segment_id="straight"),
            make_gps(1, JAN_1_2024_MS + 30100, 1.0, segment_id="straight"),
        ]
        events = detect_congestion(samples, tz=utc)

        assert len(events) == 1
        assert events[0].severity == CongestionSeverity.GRIDLOCK
        assert events[0].duration_ms == 30100

    def test_exactly_minimum_is_kept(self, utc):
        """Verify the minimum duration is inclusive."""
        events = detect_congestion(run([1.0] * 16), tz=utc)
        assert len(events) == 1
        assert events[0].duration_ms == 30000

    def test_heavy_severity(self, utc):
        """Verify 3 m/s for 30.1 s is HEAVY."""
        samples = [
            make_gps(0, JAN_1_2024_MS, 3.0, segment_id="straight"),
            make_gps(1, JAN_1_2024_MS + 30100, 3.0, segment_id="straight"),
        ]
        events = detect_congestion(samples, tz=utc)
        assert [e.severity for e in events] == [CongestionSeverity.HEAVY]

    def test_single_sample_is_discarded(self, utc):
        """Verify zero-duration candidates never become events."""
        thresholds = CongestionThresholds(min_duration_ms=0)
        assert detect_congestion(run([1.0]), thresholds, tz=utc) == []


class TestScanRules:
    """Tests for candidate opening, closing and finalization."""

    def test_fast_sample_closes_event(self, utc):
        """Verify a sample at free-flow speed splits two events."""
        speeds = [1.0] * 20 + [15.0] + [6.0] * 20
        events = detect_congestion(run(speeds), tz=utc)

        assert len(events) == 2
        assert events[0].end_gps_id == "gps_19"
        assert events[1].start_gps_id == "gps_21"
        assert events[1].severity == CongestionSeverity.CONGESTED

    def test_event_open_at_end_of_drive(self, utc):
        """Verify an event still open at the last sample is finalized."""
        speeds = [20.0] * 5 + [2.0] * 20
        events = detect_congestion(run(speeds), tz=utc)

        assert len(events) == 1
        assert events[0].start_gps_id == "gps_5"
        assert events[0].end_gps_id == "gps_24"

    def test_speed_statistics(self, utc):
        """Verify avg/min/max over the event's samples."""
        speeds = [2.0, 4.0, 6.0] * 6
        event = detect_congestion(run(speeds), tz=utc)[0]

        assert event.avg_speed_mps == pytest.approx(4.0)
        assert event.min_speed_mps == 2.0
        assert event.max_speed_mps == 6.0
        assert event.severity == CongestionSeverity.HEAVY

    def test_distance_is_summed(self, utc):
        """Verify distance is the sum of distance_from_prev."""
        samples = [
            make_gps(i, JAN_1_2024_MS + i * 2000, 1.0, segment_id="straight",
                     distance_from_prev=None if i == 0 else 2.5)
            for i in range(20)
        ]
        event = detect_congestion(samples, tz=utc)[0]
        assert event.distance_meters == pytest.approx(19 * 2.5)

    def test_missing_speed_counts_as_stopped(self, utc):
        """Verify a null speed continues the event but is not averaged."""
        speeds = [10.0] * 8 + [None] + [10.0] * 8
        events = detect_congestion(run(speeds), tz=utc)

        assert len(events) == 1
        assert events[0].avg_speed_mps == pytest.approx(10.0)
        assert events[0].severity == CongestionSeverity.SLOW

    def test_all_missing_speeds_discarded(self, utc):
        """Verify a window with no reported speed yields no event."""
        detector = CongestionDetector(tz=utc)
        assert detector.detect(run([None] * 30)) == []
        assert detector.get_metrics()["candidates_without_speed"] == 1

    def test_unmatched_samples_ignored(self, utc):
        """Verify samples without a segment are skipped."""
        samples = run([1.0] * 20, segment_id=None)
        assert detect_congestion(samples, tz=utc) == []

    def test_empty_input(self, utc):
        """Verify no samples yields no events."""
        assert detect_congestion([], tz=utc) == []

    def test_events_never_span_segments(self, utc):
        """Verify adjacent slow runs on two segments stay separate."""
        first = run([1.0] * 10, segment_id="a")
        second = run(
            [1.0] * 10, segment_id="b", start_ms=JAN_1_2024_MS + 20000, offset=10
        )
        events = detect_congestion(first + second, tz=utc)

        # Each run lasts 18 s on its own segment, even though together
        # they span 38 s of continuous slow driving
        assert events == []

    def test_segments_detected_independently(self, utc):
        """Verify each segment's samples are scanned on their own."""
        a = run([1.0] * 20, segment_id="a")
        b = run([6.0] * 20, segment_id="b", offset=100)
        events = detect_congestion(a + b, tz=utc)

        assert {e.segment_id: e.severity for e in events} == {
            "a": CongestionSeverity.GRIDLOCK,
            "b": CongestionSeverity.CONGESTED,
        }

    def test_unsorted_input_is_ordered(self, utc):
        """Verify samples are scanned in timestamp order."""
        samples = run([1.0] * 20)
        events = detect_congestion(list(reversed(samples)), tz=utc)

        assert events[0].start_gps_id == "gps_0"
        assert events[0].end_gps_id == "gps_19"

    def test_free_flow_never_detected(self, utc):
        """Verify the scan cannot produce FREE_FLOW events."""
        speeds = [14.99] * 30
        events = detect_congestion(run(speeds), tz=utc)
        assert [e.severity for e in events] == [CongestionSeverity.SLOW]


class TestSeverity:
    """Tests for severity classification."""

    @pytest.mark.parametrize(
        "speed,expected",
        [
            (15.0, CongestionSeverity.FREE_FLOW),
            (14.99, CongestionSeverity.SLOW),
            (8.0, CongestionSeverity.SLOW),
            (7.99, CongestionSeverity.CONGESTED),
            (5.0, CongestionSeverity.CONGESTED),
            (4.99, CongestionSeverity.HEAVY),
            (2.78, CongestionSeverity.HEAVY),
            (2.77, CongestionSeverity.GRIDLOCK),
            (0.0, CongestionSeverity.GRIDLOCK),
        ],
    )
    def test_inclusive_lower_bounds(self, speed, expected):
        """Verify each tier includes its lower bound."""
        assert CongestionThresholds().classify(speed) == expected


class TestThresholds:
    """Tests for threshold validation."""

    def test_defaults_are_valid(self):
        CongestionThresholds().validate()

    def test_rejects_non_decreasing_speeds(self):
        with pytest.raises(ConfigurationError):
            CongestionDetector(CongestionThresholds(slow=20.0))

    def test_rejects_negative_duration(self):
        with pytest.raises(ConfigurationError):
            CongestionDetector(CongestionThresholds(min_duration_ms=-1))


class TestCalendar:
    """Tests for calendar fields."""

    def test_new_year_2024(self, utc):
        """Verify 2024-01-01 is a Monday in ISO week 1."""
        event = detect_congestion(run([1.0] * 20), tz=utc)[0]

        assert event.day_of_week == 1
        assert event.hour_of_day == 0
        assert event.iso_week == 1
        assert calendar.week_start(event.start_time, utc) == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_sunday_is_zero(self, utc):
        """Verify Sunday maps to day 0."""
        sunday = datetime(2023, 12, 31, 23, 59, tzinfo=utc)
        assert calendar.day_of_week(sunday) == 0
        assert calendar.iso_week(sunday) == 52
        assert calendar.week_start(sunday, utc) == datetime(2023, 12, 25, tzinfo=utc)

    def test_hour_follows_time_zone(self):
        """Verify calendar fields use the configured zone."""
        tz = calendar.resolve_timezone("America/New_York")
        # 2024-01-01T03:00Z is 22:00 on Sunday in New York
        moment = calendar.from_timestamp_ms(JAN_1_2024_MS + 3 * 3600 * 1000, tz)

        assert moment.hour == 22
        assert calendar.day_of_week(moment) == 0

    def test_empty_zone_is_host_local(self):
        """Verify no zone name resolves to host local time."""
        assert calendar.resolve_timezone(None) is None
        assert calendar.from_timestamp_ms(JAN_1_2024_MS).tzinfo is not None


NEW_YORK = "America/New_York"


def utc_ms(*args):
    """Millisecond timestamp of a UTC wall-clock time."""
    return int(datetime(*args, tzinfo=timezone.utc).timestamp() * 1000)


class TestDaylightSaving:
    """Tests for events and week keys around DST changes."""

    def test_event_across_fall_back(self):
        """Verify a crawl through the repeated hour is one 40 s event."""
        tz = calendar.resolve_timezone(NEW_YORK)
        # 01:59:40 EDT .. 01:00:20 EST
        samples = run([1.0] * 21, start_ms=utc_ms(2024, 11, 3, 5, 59, 40))

        events = detect_congestion(samples, tz=tz)

        assert len(events) == 1
        event = events[0]
        assert event.duration_ms == 40000
        assert event.end_time.timestamp() > event.start_time.timestamp()
        assert (event.start_time.hour, event.end_time.hour) == (1, 1)

    def test_event_across_spring_forward(self):
        """Verify a crawl through the skipped hour keeps its real duration."""
        tz = calendar.resolve_timezone(NEW_YORK)
        # 01:59:50 EST .. 03:00:30 EDT
        samples = run([1.0] * 21, start_ms=utc_ms(2024, 3, 10, 6, 59, 50))

        events = detect_congestion(samples, tz=tz)

        assert len(events) == 1
        assert events[0].duration_ms == 40000
        assert events[0].hour_of_day == 1
        assert events[0].end_time.hour == 3

    def test_week_start_stable_across_fall_back(self):
        """Verify both sides of a DST change share one week key."""
        tz = calendar.resolve_timezone(NEW_YORK)
        saturday = calendar.from_timestamp_ms(utc_ms(2024, 11, 2, 16), tz)  # 12:00 EDT
        sunday = calendar.from_timestamp_ms(utc_ms(2024, 11, 3, 17), tz)  # 12:00 EST

        assert calendar.week_start(saturday, tz) == calendar.week_start(sunday, tz)
        monday = calendar.week_start(sunday, tz)
        assert monday.date().isoformat() == "2024-10-28"
        assert monday.utcoffset() == timedelta(hours=-4)

    def test_week_start_converts_into_zone(self, utc):
        """Verify the week is taken in the requested zone, not moment's."""
        tz = calendar.resolve_timezone(NEW_YORK)
        # Monday 03:00 UTC is still Sunday evening in New York
        moment = datetime(2024, 1, 8, 3, 0, tzinfo=utc)

        assert calendar.week_start(moment, tz).date().isoformat() == "2024-01-01"
        assert calendar.week_start(moment, utc).date().isoformat() == "2024-01-08"

    def test_host_local_week_start_across_fall_back(self, new_york_host_time):
        """Verify host-local week keys ignore the offset at the event."""
        saturday = calendar.from_timestamp_ms(utc_ms(2024, 11, 2, 16))
        sunday = calendar.from_timestamp_ms(utc_ms(2024, 11, 3, 17))
        assert saturday.utcoffset() != sunday.utcoffset()

        key_a = calendar.week_start(saturday)
        key_b = calendar.week_start(sunday)

        assert key_a == key_b
        assert hash(key_a) == hash(key_b)
        assert key_a.utcoffset() == timedelta(hours=-4)


class TestCongestionEvent:
    """Tests for event invariants."""

    def _event(self, **overrides):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        data = dict(
            drive_id="d",
            segment_id="s",
            start_time=start,
            end_time=start + timedelta(seconds=40),
            duration_ms=40000,
            day_of_week=1,
            hour_of_day=0,
            iso_week=1,
            severity=CongestionSeverity.HEAVY,
            avg_speed_mps=3.0,
            min_speed_mps=2.0,
            max_speed_mps=4.0,
            start_gps_id="a",
            end_gps_id="b",
        )
        data.update(overrides)
        return CongestionEvent(**data)

    def test_valid_event(self):
        assert self._event().duration_ms == 40000

    def test_rejects_duration_mismatch(self):
        with pytest.raises(ValidationError):
            self._event(duration_ms=39000)

    def test_rejects_speed_ordering(self):
        with pytest.raises(ValidationError):
            self._event(avg_speed_mps=5.0)

    def test_rejects_reversed_times(self):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        with pytest.raises(ValidationError):
            self._event(end_time=start - timedelta(seconds=40))
