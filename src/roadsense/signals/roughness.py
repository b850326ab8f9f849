"""
Roughness Analyzer
==================

Scores road-surface roughness from vertical acceleration variability.

This analyzer:
    - Takes a drive's accelerometer samples in time order
    - Computes a rolling population std-dev of Z per sample
    - Drops warm-up values whose window is not yet full
    - Buckets the remaining values into five tiers
    - Reduces the tier distribution to a 0-100 score

Tiers (std-dev of Z, m/s²):
    smooth      < 0.5
    light       < 1.5
    moderate    < 3.0
    rough       < 5.0
    very_rough >= 5.0

Score:
    score = round(Σ pct_tier × weight_tier / 100)
    weights = {smooth: 100, light: 75, moderate: 50, rough: 25, very_rough: 0}

Assumptions:
    - The device is mounted with Z roughly vertical; no orientation
      correction is applied, so a tilted mount spreads road vibration
      across X/Y and under-reports roughness.
    - No speed normalisation: the same road driven faster reads rougher.
"""

import logging
import math
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from roadsense.errors import ConfigurationError
from roadsense.models.roughness import RoughnessBreakdown, RoughnessResult
from roadsense.models.samples import AccelSample


logger = logging.getLogger(__name__)


TIERS: Tuple[str, ...] = ("smooth", "light", "moderate", "rough", "very_rough")

DEFAULT_TIER_THRESHOLDS: Tuple[float, float, float, float] = (0.5, 1.5, 3.0, 5.0)

DEFAULT_TIER_WEIGHTS: Dict[str, int] = {
    "smooth": 100,
    "light": 75,
    "moderate": 50,
    "rough": 25,
    "very_rough": 0,
}


def _round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def rolling_std(values: np.ndarray, window_size: int) -> np.ndarray:
    """
    Rolling population standard deviation, one value per input.

    The window grows from 1 to window_size over the first samples and
    then slides. Single-element windows yield 0.

    Args:
        values: 1-D array of samples
        window_size: Full window length

    Returns:
        Array of the same length as values
    """
    n = values.shape[0]
    out = np.zeros(n, dtype=float)
    if n == 0:
        return out

    warmup = min(window_size - 1, n)
    for i in range(warmup):
        out[i] = float(np.std(values[: i + 1]))

    if n >= window_size:
        windows = np.lib.stride_tricks.sliding_window_view(values, window_size)
        out[window_size - 1:] = windows.std(axis=1)

    return out


class RoughnessAnalyzer:
    """
    Batch roughness analysis for one drive.

    Attributes:
        window_size: Rolling window length (samples)
        tier_thresholds: Upper bounds of smooth, light, moderate, rough
        tier_weights: Score points per tier

    Example:
        analyzer = RoughnessAnalyzer(window_size=15)
        result = analyzer.analyze(accel_samples)
        if result is not None:
            print(f"Score: {result.score}")
    """

    def __init__(
        self,
        window_size: int = 15,
        tier_thresholds: Sequence[float] = DEFAULT_TIER_THRESHOLDS,
        tier_weights: Optional[Dict[str, int]] = None,
    ) -> None:
        """
        Initialize roughness analyzer.

        Args:
            window_size: Rolling window length, >= 2
            tier_thresholds: Four strictly increasing std-dev bounds
            tier_weights: Points per tier (defaults to 100/75/50/25/0)

        Raises:
            ConfigurationError: If parameters are invalid
        """
        weights = dict(DEFAULT_TIER_WEIGHTS if tier_weights is None else tier_weights)
        self._validate_parameters(window_size, tuple(tier_thresholds), weights)

        self.window_size = window_size
        self.tier_thresholds = tuple(float(t) for t in tier_thresholds)
        self.tier_weights = weights

        self._drives_analyzed: int = 0
        self._drives_skipped: int = 0

        logger.info(
            f"RoughnessAnalyzer initialized: window={window_size}, "
            f"thresholds={self.tier_thresholds}"
        )

    @staticmethod
    def _validate_parameters(
        window_size: int,
        thresholds: Tuple[float, ...],
        weights: Dict[str, int],
    ) -> None:
        """Validate parameters at startup. Fail fast."""
        errors = []

        if window_size < 2:
            errors.append(f"window_size must be >= 2, got {window_size}")
        if len(thresholds) != 4:
            errors.append(f"tier_thresholds must have 4 values, got {len(thresholds)}")
        elif any(b <= a for a, b in zip(thresholds, thresholds[1:])) or thresholds[0] <= 0:
            errors.append(f"tier_thresholds must be positive and increasing, got {thresholds}")
        if set(weights) != set(TIERS):
            errors.append(f"tier_weights must define {TIERS}, got {sorted(weights)}")
        elif any(not 0 <= w <= 100 for w in weights.values()):
            errors.append(f"tier_weights must be in [0, 100], got {weights}")

        if errors:
            raise ConfigurationError(
                "Roughness parameter validation failed:\n" + "\n".join(errors)
            )

    def classify(self, std_dev: float) -> str:
        """Map a std-dev value to its tier name."""
        for tier, bound in zip(TIERS, self.tier_thresholds):
            if std_dev < bound:
                return tier
        return "very_rough"

    def roughness_profile(self, samples: Sequence[AccelSample]) -> np.ndarray:
        """Rolling Z std-dev for every sample, warm-up values included."""
        z = np.fromiter((s.z for s in samples), dtype=float, count=len(samples))
        return rolling_std(z, self.window_size)

    def analyze(self, samples: Sequence[AccelSample]) -> Optional[RoughnessResult]:
        """
        Analyze a drive's accelerometer samples.

        Args:
            samples: Accelerometer samples in time order

        Returns:
            RoughnessResult, or None if there are fewer samples than one
            full window
        """
        if len(samples) < self.window_size:
            self._drives_skipped += 1
            logger.info(
                f"Not enough accelerometer data for roughness: "
                f"{len(samples)} < {self.window_size} samples"
            )
            return None

        profile = self.roughness_profile(samples)
        retained = profile[self.window_size - 1:]
        total = retained.shape[0]

        counts = {tier: 0 for tier in TIERS}
        for value in retained:
            counts[self.classify(float(value))] += 1

        breakdown = self._to_percentages(counts, total)
        score = _round_half_up(
            sum(breakdown[tier] * self.tier_weights[tier] for tier in TIERS) / 100
        )

        self._drives_analyzed += 1
        result = RoughnessResult(
            score=score,
            breakdown=RoughnessBreakdown(**breakdown),
            avg_roughness=float(np.mean(retained)),
            max_roughness=float(np.max(retained)),
            sample_count=total,
        )

        logger.debug(
            f"Roughness: score={result.score}, avg={result.avg_roughness:.3f}, "
            f"max={result.max_roughness:.3f}, windows={total}"
        )
        return result

    @staticmethod
    def _to_percentages(counts: Dict[str, int], total: int) -> Dict[str, int]:
        """
        Convert tier counts to integer percentages summing to 100.

        Each tier is rounded half-up; any residual is added once to the
        largest tier (earliest tier wins ties).
        """
        pct = {tier: _round_half_up(counts[tier] / total * 100) for tier in TIERS}

        residual = 100 - sum(pct.values())
        if residual != 0:
            largest = max(TIERS, key=lambda tier: pct[tier])
            pct[largest] += residual

        return pct

    def get_metrics(self) -> dict:
        """Get analyzer metrics for observability."""
        return {
            "drives_analyzed": self._drives_analyzed,
            "drives_skipped": self._drives_skipped,
            "window_size": self.window_size,
        }


def analyze_roughness(
    samples: Sequence[AccelSample],
    window_size: int = 15,
) -> Optional[RoughnessResult]:
    """Analyze roughness with default tiers. See RoughnessAnalyzer.analyze."""
    return RoughnessAnalyzer(window_size=window_size).analyze(samples)
