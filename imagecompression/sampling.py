"""Strided pixel sampling over a decoded image.

Every metric walks the image on a coarse grid instead of visiting every
pixel, so cost stays bounded on large images.
"""

from typing import Iterator, Tuple

import numpy as np

from .utils import DecodedImage

# Grid strides used by the metrics
COMPLEXITY_STRIDE = 10
NOISE_STRIDE = 10
HISTOGRAM_STRIDE = 20
EDGE_STRIDE = 5


class PixelSampler:
    """Row-major grid of pixel coordinates with a fixed stride.

    Coordinates run x = margin, margin+S, ... and y = margin, margin+S, ...
    while staying at least `margin` pixels away from the far edges. With
    margin 0 the origin pixel is always included for a non-empty image;
    margin 1 restricts the walk to interior pixels that have a neighbor on
    every side.

    Iterating the sampler is restartable: each iteration starts a fresh walk.
    """

    def __init__(self, image: DecodedImage, stride: int, margin: int = 0):
        """Initialize sampler.

        Args:
            image: Decoded image to walk
            stride: Step between sampled rows and columns (>= 1)
            margin: Border width excluded on every side
        """
        if stride < 1:
            raise ValueError(f"stride must be >= 1, got {stride}")
        if margin < 0:
            raise ValueError(f"margin must be >= 0, got {margin}")

        self.image = image
        self.stride = stride
        self.margin = margin

    @property
    def xs(self) -> range:
        """Sampled column indices."""
        return range(self.margin, self.image.width - self.margin, self.stride)

    @property
    def ys(self) -> range:
        """Sampled row indices."""
        return range(self.margin, self.image.height - self.margin, self.stride)

    def __iter__(self) -> Iterator[Tuple[int, int]]:
        xs = self.xs
        for y in self.ys:
            for x in xs:
                yield (x, y)

    def __len__(self) -> int:
        return len(self.xs) * len(self.ys)

    def sample(self, dx: int = 0, dy: int = 0) -> np.ndarray:
        """Gather the sampled pixels, optionally shifted by (dx, dy).

        The shift lets callers read neighbors of every sampled pixel in one
        vectorised slice. Shifts must stay within the margin.

        Args:
            dx: Horizontal offset applied to every coordinate
            dy: Vertical offset applied to every coordinate

        Returns:
            (rows, cols, 3) int32 array in sampling order
        """
        if abs(dx) > self.margin or abs(dy) > self.margin:
            raise ValueError(f"offset ({dx}, {dy}) exceeds margin {self.margin}")

        xs, ys = self.xs, self.ys
        if len(xs) == 0 or len(ys) == 0:
            return np.empty((0, 0, 3), dtype=np.int32)

        grid = self.image.pixels[
            ys.start + dy:ys.stop + dy:ys.step,
            xs.start + dx:xs.stop + dx:xs.step,
        ]
        return grid.astype(np.int32)

    def sample_flat(self, dx: int = 0, dy: int = 0) -> np.ndarray:
        """Sampled pixels as an (n, 3) array in row-major walk order."""
        return self.sample(dx, dy).reshape(-1, 3)
