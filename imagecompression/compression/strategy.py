"""Compression strategy selection.

Maps sampled image metrics to one of four named strategies:

high_quality: detailed or edge-heavy images, preserve detail.
aggressive: noisy images, where noise hides compression artifacts.
efficient: flat, simple images that compress well.
balanced: everything else.
"""

from dataclasses import dataclass
from typing import Dict

from ..metrics import ImageMetricsResult
from .result import CompressionMethod

HIGH_QUALITY = "high_quality"
AGGRESSIVE = "aggressive"
EFFICIENT = "efficient"
BALANCED = "balanced"

STRATEGIES = (HIGH_QUALITY, AGGRESSIVE, EFFICIENT, BALANCED)

# Decision thresholds (all comparisons are strict)
HIGH_COMPLEXITY = 0.7
HIGH_EDGE_DENSITY = 0.6
HIGH_NOISE = 0.5
LOW_COMPLEXITY = 0.3
LOW_EDGE_DENSITY = 0.3


@dataclass(frozen=True)
class StrategyProfile:
    """Recommended settings for a strategy.

    Attributes:
        name: Strategy tag
        quality: Recommended encoding quality
        method: Recommended compression method
        format: Recommended output format for opaque images
    """
    name: str
    quality: int
    method: CompressionMethod
    format: str


STRATEGY_PROFILES: Dict[str, StrategyProfile] = {
    HIGH_QUALITY: StrategyProfile(HIGH_QUALITY, 90, CompressionMethod.DIRECT, "jpeg"),
    BALANCED: StrategyProfile(BALANCED, 80, CompressionMethod.PREDICTED, "jpeg"),
    EFFICIENT: StrategyProfile(EFFICIENT, 70, CompressionMethod.PREDICTED, "webp"),
    AGGRESSIVE: StrategyProfile(AGGRESSIVE, 60, CompressionMethod.HYBRID, "jpeg"),
}


class StrategySelector:
    """Deterministic decision table over ImageMetricsResult.

    Rules are evaluated in order and the first match wins, since an image
    can satisfy several of them.
    """

    def select(self, metrics: ImageMetricsResult) -> str:
        """Pick the strategy tag for the given metrics.

        Args:
            metrics: Sampled image metrics

        Returns:
            One of high_quality, aggressive, efficient, balanced
        """
        if metrics.complexity > HIGH_COMPLEXITY or metrics.edge_density > HIGH_EDGE_DENSITY:
            return HIGH_QUALITY
        if metrics.noise_level > HIGH_NOISE:
            return AGGRESSIVE
        if metrics.complexity < LOW_COMPLEXITY and metrics.edge_density < LOW_EDGE_DENSITY:
            return EFFICIENT
        return BALANCED

    def profile(self, metrics: ImageMetricsResult) -> StrategyProfile:
        """Get the recommended settings for the strategy the metrics select."""
        return STRATEGY_PROFILES[self.select(metrics)]
