"""Image compression service.

Entry points used by callers: compress(), analyze(), supported_formats()
and validate(). Everything else in the package sits behind this class.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import FrozenSet, List, Optional

import numpy as np

from . import __version__
from .compression import (
    CompressionEngine,
    CompressionMethod,
    CompressionOptions,
    CompressionResult,
    FormatAdvisor,
    QualityAnalyzer,
    StrategySelector,
    STRATEGY_PROFILES,
)
from .compression.encoders import get_encoder_capabilities
from .config import CompressorConfig
from .metrics import ImageMetrics, ImageMetricsResult
from .predictor import CompressionPrediction, CompressionPredictor, ImageFeatures, ModelInfo
from .remote import HttpCompressor, RemoteCompressor, UnavailableCompressor
from .utils import SUPPORTED_FORMATS, ValidationReport, check_image, decode_image

logger = logging.getLogger(__name__)

# Pixel-count bands for the complexity level
LOW_COMPLEXITY_PIXELS = 100_000
MEDIUM_COMPLEXITY_PIXELS = 1_000_000


@dataclass(frozen=True)
class ImageAnalysis:
    """Analysis of an image without compressing it.

    Attributes:
        width: Image width
        height: Image height
        format: Source format name
        file_size: Encoded size in bytes
        color_depth: Bits per pixel of the source mode
        has_transparency: Whether the source has an alpha channel
        entropy: Shannon entropy of the encoded bytes
        mean_intensity: Mean luminance (0-255)
        standard_deviation: Luminance standard deviation
        metrics: Sampled image metrics
        complexity: Size-based complexity level (low, medium, high)
        strategy: Strategy selected from the metrics
        recommended_method: Suggested compression method tag
        recommended_quality: Suggested quality
        recommended_format: Suggested output format tag
        potential_savings: Estimated percent saved at the recommended quality
        recommendation: Human-readable advice
    """
    width: int
    height: int
    format: str
    file_size: int
    color_depth: int
    has_transparency: bool
    entropy: float
    mean_intensity: float
    standard_deviation: float
    metrics: ImageMetricsResult
    complexity: str
    strategy: str
    recommended_method: str
    recommended_quality: int
    recommended_format: str
    potential_savings: float
    recommendation: str = ""

    @property
    def dominant_colors(self) -> List[str]:
        return list(self.metrics.dominant_colors)

    def to_dict(self) -> dict:
        return {
            'width': self.width,
            'height': self.height,
            'format': self.format,
            'file_size': self.file_size,
            'color_depth': self.color_depth,
            'has_transparency': self.has_transparency,
            'entropy': self.entropy,
            'mean_intensity': self.mean_intensity,
            'standard_deviation': self.standard_deviation,
            'dominant_colors': self.dominant_colors,
            'metrics': self.metrics.to_dict(),
            'complexity': self.complexity,
            'strategy': self.strategy,
            'recommended_method': self.recommended_method,
            'recommended_quality': self.recommended_quality,
            'recommended_format': self.recommended_format,
            'potential_savings': self.potential_savings,
            'recommendation': self.recommendation,
        }


def complexity_level(pixel_count: int) -> str:
    """Size-based complexity level: low, medium or high."""
    if pixel_count < LOW_COMPLEXITY_PIXELS:
        return "low"
    if pixel_count < MEDIUM_COMPLEXITY_PIXELS:
        return "medium"
    return "high"


def build_recommendation(
    file_size: int,
    complexity: str,
    has_transparency: bool,
    large_file_bytes: int,
) -> str:
    """Concatenate the advisory phrases that apply to an image."""
    phrases = []

    if file_size > large_file_bytes:
        phrases.append("Large file size detected.")

    if complexity == "high":
        phrases.append("High complexity image - consider predicted compression for better results.")
    elif complexity == "low":
        phrases.append("Simple image - direct compression should work well.")

    if has_transparency:
        phrases.append("Image has transparency - PNG format recommended.")
    else:
        phrases.append("No transparency detected - JPEG compression recommended.")

    return " ".join(phrases)


class ImageCompressionService:
    """Compression and analysis facade.

    The predictor is shared by every call on the service and is built once.
    The service owns a thread pool for parallel metrics; call close() (or
    use it as a context manager) to release it.
    """

    def __init__(
        self,
        config: Optional[CompressorConfig] = None,
        predictor: Optional[CompressionPredictor] = None,
        remote: Optional[RemoteCompressor] = None,
    ):
        """Initialize service.

        Args:
            config: Service configuration (defaults if None)
            predictor: Shared predictor (built from config if None)
            remote: Hybrid compressor (built from config.remote_url if None)
        """
        self.config = config or CompressorConfig()

        if remote is None:
            if self.config.remote_url:
                remote = HttpCompressor(self.config.remote_url, timeout=self.config.remote_timeout)
            else:
                remote = UnavailableCompressor()

        self.predictor = predictor or CompressionPredictor(model_path=self.config.model_path)
        self.metrics = ImageMetrics()
        self.selector = StrategySelector()
        self.advisor = FormatAdvisor()
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.analysis_workers,
            thread_name_prefix="imagecompression",
        )
        self.engine = CompressionEngine(
            predictor=self.predictor,
            remote=remote,
            analyzer=QualityAnalyzer(measure_ssim=self.config.measure_ssim),
            metrics=self.metrics,
            selector=self.selector,
            executor=self._executor,
        )

    def __enter__(self) -> 'ImageCompressionService':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        """Shut down the metrics thread pool."""
        self._executor.shutdown(wait=True)

    def compress(
        self,
        data: bytes,
        options: Optional[CompressionOptions] = None,
        filename: str = "image.jpg",
    ) -> CompressionResult:
        """Compress image bytes.

        Args:
            data: Encoded image bytes
            options: Compression options (defaults if None)
            filename: Original filename hint

        Returns:
            CompressionResult

        Raises:
            DecodeFailure: If data is not a readable image
            EncodeFailure: If the output cannot be encoded
        """
        if options is None:
            options = CompressionOptions(quality=self.config.clamp_quality(self.config.default_quality))
        else:
            options = replace(options, quality=self.config.clamp_quality(options.quality))

        try:
            return self.engine.compress(data, options, filename)
        except Exception:
            logger.exception("Error compressing image %s", filename)
            raise

    def analyze(self, data: bytes, filename: str = "image.jpg") -> ImageAnalysis:
        """Analyze image bytes and recommend compression settings.

        Raises:
            DecodeFailure: If data is not a readable image
        """
        try:
            image = decode_image(data)
        except Exception:
            logger.exception("Error analyzing image %s", filename)
            raise

        metrics = self.metrics.compute(image, data, executor=self._executor)
        strategy = self.selector.select(metrics)
        profile = STRATEGY_PROFILES[strategy]
        complexity = complexity_level(image.pixel_count)
        has_transparency = image.has_transparency

        luminance = np.asarray(image.source.convert('L'), dtype=np.float64)

        analysis = ImageAnalysis(
            width=image.width,
            height=image.height,
            format=image.format,
            file_size=len(data),
            color_depth=image.color_depth,
            has_transparency=has_transparency,
            entropy=metrics.entropy,
            mean_intensity=float(luminance.mean()) if luminance.size else 0.0,
            standard_deviation=float(luminance.std()) if luminance.size else 0.0,
            metrics=metrics,
            complexity=complexity,
            strategy=strategy,
            recommended_method=profile.method.value,
            recommended_quality=profile.quality,
            recommended_format=self.advisor.recommend_format(strategy, has_transparency),
            potential_savings=float(max(0, min(100, 100 - profile.quality))),
            recommendation=build_recommendation(
                len(data), complexity, has_transparency, self.config.large_file_bytes
            ),
        )

        logger.info("Analyzed %s: %s, strategy %s", filename, complexity, strategy)
        return analysis

    def predict(self, data: bytes) -> CompressionPrediction:
        """Predict compression settings for image bytes.

        Raises:
            DecodeFailure: If data is not a readable image
        """
        image = decode_image(data)
        return self.predictor.predict(ImageFeatures.from_image(image, len(data)))

    def supported_formats(self) -> FrozenSet[str]:
        """Output format tags accepted by compress()."""
        return SUPPORTED_FORMATS

    def check_image(self, data: bytes, filename: str = "image.jpg") -> ValidationReport:
        """Validate image bytes, reporting why they were rejected."""
        return check_image(data, filename, max_size=self.config.max_file_size_bytes)

    def validate(self, data: bytes, filename: str = "image.jpg") -> bool:
        """True if data is non-empty, within the size limit and decodable."""
        return self.check_image(data, filename).valid

    def model_info(self) -> ModelInfo:
        """Information about the predictor model."""
        return self.predictor.model_info()

    def info(self) -> dict:
        """Service capabilities."""
        return {
            'supported_methods': [method.value for method in CompressionMethod],
            'supported_formats': sorted(SUPPORTED_FORMATS),
            'max_file_size_bytes': self.config.max_file_size_bytes,
            'encoders': get_encoder_capabilities(),
            'version': __version__,
        }


_default_service: Optional[ImageCompressionService] = None
_default_lock = threading.Lock()


def get_service() -> ImageCompressionService:
    """Get or create the shared default service."""
    global _default_service
    if _default_service is None:
        with _default_lock:
            if _default_service is None:
                _default_service = ImageCompressionService()
    return _default_service
