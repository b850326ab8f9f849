"""
Roughness Tests
===============

Rolling std-dev, tier classification and scoring.
"""

import numpy as np
import pytest

from roadsense.errors import ConfigurationError
from roadsense.models.samples import AccelSample
from roadsense.signals import RoughnessAnalyzer, analyze_roughness
from roadsense.signals.roughness import rolling_std


def make_accel(z_values, start_ms=0, step_ms=100):
    return [
        AccelSample(x=0.0, y=0.0, z=float(z), timestamp_ms=start_ms + i * step_ms)
        for i, z in enumerate(z_values)
    ]


class TestRollingStd:
    """Tests for the rolling population std-dev."""

    def test_growing_then_sliding_window(self):
        """Verify warm-up windows grow and full windows slide."""
        result = rolling_std(np.array([1.0, 3.0, 5.0]), 2)
        np.testing.assert_allclose(result, [0.0, 1.0, 1.0])

    def test_population_not_sample_std(self):
        """Verify the divisor is n, not n - 1."""
        result = rolling_std(np.array([0.0, 2.0, 0.0, 2.0]), 4)
        assert result[-1] == pytest.approx(1.0)

    def test_empty_input(self):
        """Verify an empty series yields an empty profile."""
        assert rolling_std(np.array([]), 15).shape == (0,)


class TestRoughnessAnalyzer:
    """Tests for drive-level roughness scoring."""

    def test_too_few_samples_returns_none(self):
        """Verify fewer samples than one window yield no result."""
        analyzer = RoughnessAnalyzer(window_size=15)
        assert analyzer.analyze(make_accel([9.81] * 14)) is None
        assert analyzer.get_metrics()["drives_skipped"] == 1

    def test_exactly_one_window(self):
        """Verify a single full window is scored."""
        result = analyze_roughness(make_accel([9.81] * 15))
        assert result is not None
        assert result.sample_count == 1

    def test_constant_signal_is_perfectly_smooth(self):
        """Verify constant Z scores 100 with everything smooth."""
        result = analyze_roughness(make_accel([9.81] * 200))

        assert result.score == 100
        assert result.breakdown.smooth == 100
        assert result.avg_roughness == pytest.approx(0.0, abs=1e-9)
        assert result.sample_count == 200 - 14

    def test_warmup_values_are_discarded(self):
        """Verify a spike before the first full window does not count."""
        # Index 1 is a warm-up value; only indices 2..4 are retained
        analyzer = RoughnessAnalyzer(window_size=3)
        profile = analyzer.roughness_profile(make_accel([0.0, 10.0, 10.0, 10.0, 10.0]))
        result = analyzer.analyze(make_accel([0.0, 10.0, 10.0, 10.0, 10.0]))

        assert profile[1] == pytest.approx(5.0)
        assert result.sample_count == 3
        assert result.max_roughness == pytest.approx(profile[2])

    def test_violent_signal_scores_zero(self):
        """Verify a large alternating Z is entirely very_rough."""
        z = [9.81 + (10.0 if i % 2 else -10.0) for i in range(100)]
        result = analyze_roughness(make_accel(z))

        assert result.score == 0
        assert result.breakdown.very_rough == 100

    @pytest.mark.parametrize(
        "std_dev,expected",
        [
            (0.0, "smooth"),
            (0.4999, "smooth"),
            (0.5, "light"),
            (1.5, "moderate"),
            (3.0, "rough"),
            (4.9999, "rough"),
            (5.0, "very_rough"),
            (50.0, "very_rough"),
        ],
    )
    def test_tier_boundaries(self, std_dev, expected):
        """Verify tier upper bounds are exclusive."""
        assert RoughnessAnalyzer().classify(std_dev) == expected

    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4, 5, 6, 7])
    def test_breakdown_sums_to_100(self, seed):
        """Verify percentages always sum to exactly 100."""
        rng = np.random.default_rng(seed)
        # Mix of calm and bumpy stretches to populate several tiers
        amplitude = rng.choice([0.1, 1.0, 3.0, 8.0], size=400)
        z = 9.81 + rng.normal(0.0, 1.0, size=400) * amplitude
        result = analyze_roughness(make_accel(z))

        breakdown = result.breakdown.model_dump()
        assert sum(breakdown.values()) == 100
        assert 0 <= result.score <= 100

    def test_residual_goes_to_earliest_largest_tier(self):
        """Verify three equal tiers round to 34/33/33."""
        pct = RoughnessAnalyzer._to_percentages(
            {"smooth": 1, "light": 1, "moderate": 1, "rough": 0, "very_rough": 0}, 3
        )
        assert pct == {"smooth": 34, "light": 33, "moderate": 33, "rough": 0, "very_rough": 0}

    def test_negative_residual(self):
        """Verify over-rounding is taken back from the largest tier."""
        pct = RoughnessAnalyzer._to_percentages(
            {"smooth": 3, "light": 3, "moderate": 1, "rough": 1, "very_rough": 0}, 8
        )
        assert pct == {"smooth": 36, "light": 38, "moderate": 13, "rough": 13, "very_rough": 0}

    def test_custom_weights(self):
        """Verify configured weights drive the score."""
        analyzer = RoughnessAnalyzer(
            tier_weights={"smooth": 90, "light": 60, "moderate": 40, "rough": 20, "very_rough": 0}
        )
        assert analyzer.analyze(make_accel([9.81] * 30)).score == 90


class TestRoughnessValidation:
    """Tests for parameter validation."""

    def test_rejects_small_window(self):
        with pytest.raises(ConfigurationError):
            RoughnessAnalyzer(window_size=1)

    def test_rejects_unordered_thresholds(self):
        with pytest.raises(ConfigurationError):
            RoughnessAnalyzer(tier_thresholds=(0.5, 3.0, 1.5, 5.0))

    def test_rejects_wrong_threshold_count(self):
        with pytest.raises(ConfigurationError):
            RoughnessAnalyzer(tier_thresholds=(0.5, 1.5, 3.0))

    def test_rejects_missing_weight(self):
        with pytest.raises(ConfigurationError):
            RoughnessAnalyzer(tier_weights={"smooth": 100})
