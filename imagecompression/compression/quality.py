"""Post-compression quality estimates.

PSNR, SSIM and MSE here are coarse proxies computed from the size ratio of
the compressed and original buffers. They are not signal measurements.
Histogram similarity and edge preservation are fixed placeholder values.
A real SSIM is added as measured_ssim when scikit-image is installed.
"""

import logging
from typing import Optional

from PIL import Image

from .encoders import SSIM_AVAILABLE, calculate_ssim_inmemory
from .result import QualityAnalysisResult
from ..errors import DecodeFailure
from ..metrics import shannon_entropy
from ..utils import open_image

logger = logging.getLogger(__name__)

HISTOGRAM_SIMILARITY_PLACEHOLDER = 0.90
EDGE_PRESERVATION_PLACEHOLDER = 0.88


class QualityAnalyzer:
    """Compares an original buffer with its compressed version."""

    def __init__(self, measure_ssim: bool = True):
        """
        Args:
            measure_ssim: Also compute a real SSIM when scikit-image is available
        """
        self.measure_ssim = measure_ssim and SSIM_AVAILABLE

    def analyze(
        self,
        original: bytes,
        compressed: bytes,
        original_image: Optional[Image.Image] = None,
    ) -> QualityAnalysisResult:
        """Estimate quality statistics for a compressed buffer.

        Args:
            original: Original encoded bytes
            compressed: Compressed bytes
            original_image: Decoded original, reused for measured SSIM

        Returns:
            QualityAnalysisResult
        """
        ratio = len(compressed) / len(original) if original else 0.0

        return QualityAnalysisResult(
            psnr=30.0 + 20.0 * ratio,
            ssim=0.85 + 0.15 * ratio,
            mse=100.0 - 50.0 * ratio,
            entropy=shannon_entropy(compressed),
            color_histogram_similarity=HISTOGRAM_SIMILARITY_PLACEHOLDER,
            edge_preservation=EDGE_PRESERVATION_PLACEHOLDER,
            measured_ssim=self._measured_ssim(original, compressed, original_image),
        )

    def _measured_ssim(
        self,
        original: bytes,
        compressed: bytes,
        original_image: Optional[Image.Image],
    ) -> Optional[float]:
        if not self.measure_ssim:
            return None

        try:
            if original_image is None:
                original_image = open_image(original)
            compressed_image = open_image(compressed)
        except DecodeFailure as ex:
            logger.debug("Skipping measured SSIM: %s", ex)
            return None

        return calculate_ssim_inmemory(original_image, compressed_image)
