"""Pixel-sampling image metrics.

Complexity, noise, edge density and dominant colors are computed on strided
grids of the decoded image (see sampling.py). Entropy is computed over the
raw encoded bytes. Each metric only reads the decoded image, so they can
run concurrently.
"""

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field, asdict
from typing import List, Optional, Tuple

import numpy as np

from .sampling import (
    PixelSampler,
    COMPLEXITY_STRIDE,
    NOISE_STRIDE,
    HISTOGRAM_STRIDE,
    EDGE_STRIDE,
)
from .utils import DecodedImage

logger = logging.getLogger(__name__)

# Normalizer for summed squared channel differences
MAX_CHANNEL_VARIANCE = 255 * 255 * 3

# Gradient magnitude above which a sampled pixel counts as an edge
EDGE_THRESHOLD = 100

# Quantization step for the dominant color histogram (8 levels per channel)
COLOR_BUCKET = 32
MAX_DOMINANT_COLORS = 5

# Neutral values used when a metric has no samples
DEFAULT_COMPLEXITY = 0.5
DEFAULT_NOISE_LEVEL = 0.3
DEFAULT_EDGE_DENSITY = 0.4

MAX_ENTROPY = 8.0


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return float(max(low, min(high, value)))


@dataclass(frozen=True)
class ImageMetricsResult:
    """Sampled image characteristics.

    Attributes:
        complexity: Normalized color variance (0-1)
        noise_level: Normalized local-neighborhood variance (0-1)
        edge_density: Fraction of sampled pixels on an edge (0-1)
        dominant_colors: Up to 5 "#RRGGBB" strings, most frequent first
        entropy: Shannon entropy of the encoded bytes (0-8 bits)
    """
    complexity: float = DEFAULT_COMPLEXITY
    noise_level: float = DEFAULT_NOISE_LEVEL
    edge_density: float = DEFAULT_EDGE_DENSITY
    dominant_colors: Tuple[str, ...] = field(default_factory=tuple)
    entropy: float = 0.0

    def __post_init__(self):
        # Clamp bounded fields into their ranges
        object.__setattr__(self, 'complexity', _clamp(self.complexity))
        object.__setattr__(self, 'noise_level', _clamp(self.noise_level))
        object.__setattr__(self, 'edge_density', _clamp(self.edge_density))
        object.__setattr__(self, 'entropy', _clamp(self.entropy, 0.0, MAX_ENTROPY))
        object.__setattr__(
            self, 'dominant_colors', tuple(self.dominant_colors)[:MAX_DOMINANT_COLORS]
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data['dominant_colors'] = list(self.dominant_colors)
        return data


def shannon_entropy(data: bytes) -> float:
    """
    Shannon entropy of a byte buffer's value distribution.

    H = -sum(p(b) * log2(p(b))) over the 256 byte values, using the
    empirical frequencies of the whole buffer.

    Args:
        data: Any byte buffer

    Returns:
        Entropy in bits (0-8); 0 for an empty buffer
    """
    if not data:
        return 0.0

    counts = np.bincount(np.frombuffer(data, dtype=np.uint8), minlength=256)
    probabilities = counts[counts > 0] / len(data)
    entropy = -float(np.sum(probabilities * np.log2(probabilities)))
    return _clamp(entropy, 0.0, MAX_ENTROPY)


class ImageMetrics:
    """Computes sampled metrics for a decoded image."""

    def complexity(self, image: DecodedImage) -> float:
        """Mean color variance of sampled pixels, normalized to 0-1."""
        pixels = PixelSampler(image, COMPLEXITY_STRIDE).sample_flat()
        if len(pixels) == 0:
            return DEFAULT_COMPLEXITY

        mean = pixels.mean(axis=0)
        variance = np.square(pixels - mean).sum(axis=1).mean() / MAX_CHANNEL_VARIANCE
        return _clamp(variance)

    def noise_level(self, image: DecodedImage) -> float:
        """Average deviation of interior pixels from their 4-neighbor mean, 0-1."""
        sampler = PixelSampler(image, NOISE_STRIDE, margin=1)
        center = sampler.sample_flat()
        if len(center) == 0:
            return DEFAULT_NOISE_LEVEL

        neighbor_mean = (
            sampler.sample_flat(-1, 0)
            + sampler.sample_flat(1, 0)
            + sampler.sample_flat(0, -1)
            + sampler.sample_flat(0, 1)
        ) / 4.0

        variance = np.square(center - neighbor_mean).sum(axis=1).mean()
        return _clamp(variance / MAX_CHANNEL_VARIANCE)

    def edge_density(self, image: DecodedImage) -> float:
        """Fraction of sampled interior pixels whose gradient exceeds the threshold."""
        sampler = PixelSampler(image, EDGE_STRIDE, margin=1)
        center = sampler.sample_flat()
        if len(center) == 0:
            return DEFAULT_EDGE_DENSITY

        grad_x = np.abs(center - sampler.sample_flat(1, 0)).sum(axis=1)
        grad_y = np.abs(center - sampler.sample_flat(0, 1)).sum(axis=1)
        gradient = np.sqrt(grad_x.astype(np.float64) ** 2 + grad_y.astype(np.float64) ** 2)

        edges = int(np.count_nonzero(gradient > EDGE_THRESHOLD))
        return _clamp(edges / len(center))

    def dominant_colors(self, image: DecodedImage) -> List[str]:
        """Most frequent quantized colors as "#RRGGBB" strings.

        Ties keep the order in which buckets were first met during the walk.
        """
        pixels = PixelSampler(image, HISTOGRAM_STRIDE).sample_flat()
        if len(pixels) == 0:
            return []

        quantized = (pixels // COLOR_BUCKET) * COLOR_BUCKET
        keys = (quantized[:, 0] << 16) | (quantized[:, 1] << 8) | quantized[:, 2]

        buckets, first_seen, counts = np.unique(keys, return_index=True, return_counts=True)
        order = np.lexsort((first_seen, -counts))[:MAX_DOMINANT_COLORS]

        return [f"#{int(buckets[i]):06X}" for i in order]

    def entropy(self, data: bytes) -> float:
        """Shannon entropy of the encoded bytes."""
        return shannon_entropy(data)

    def compute(
        self,
        image: DecodedImage,
        data: bytes,
        executor: Optional[Executor] = None,
    ) -> ImageMetricsResult:
        """Compute every metric, running them concurrently.

        Args:
            image: Decoded image
            data: Encoded bytes the image was decoded from
            executor: Executor to submit to (a private pool is used if None)

        Returns:
            ImageMetricsResult with all fields populated
        """
        if executor is None:
            with ThreadPoolExecutor(max_workers=4, thread_name_prefix="metrics") as pool:
                return self.compute(image, data, executor=pool)

        complexity = executor.submit(self.complexity, image)
        noise = executor.submit(self.noise_level, image)
        edges = executor.submit(self.edge_density, image)
        colors = executor.submit(self.dominant_colors, image)
        entropy = executor.submit(self.entropy, data)

        result = ImageMetricsResult(
            complexity=complexity.result(),
            noise_level=noise.result(),
            edge_density=edges.result(),
            dominant_colors=tuple(colors.result()),
            entropy=entropy.result(),
        )

        logger.debug(
            "Metrics for %dx%d image: complexity=%.3f noise=%.3f edges=%.3f entropy=%.3f",
            image.width, image.height,
            result.complexity, result.noise_level, result.edge_density, result.entropy,
        )
        return result
