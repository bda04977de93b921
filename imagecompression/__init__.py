"""Adaptive image compression and analysis"""

__version__ = "1.0.0"

from .errors import (
    ImageCompressionError,
    DecodeFailure,
    EncodeFailure,
    ExternalServiceFailure,
    PredictorUnavailable,
    ValidationFailure,
)
from .config import CompressorConfig
from .logger import configure_logging
from .utils import DecodedImage, ValidationReport, decode_image
from .sampling import PixelSampler
from .metrics import ImageMetrics, ImageMetricsResult, shannon_entropy
from .predictor import (
    CompressionPrediction,
    CompressionPredictor,
    ImageFeatures,
    ModelInfo,
    RegressionPredictor,
    RuleBasedPredictor,
)
from .remote import RemoteCompressor, HttpCompressor
from .compression import (
    CompressionEngine,
    CompressionMethod,
    CompressionOptions,
    CompressionResult,
    QualityAnalysisResult,
    QualityAnalyzer,
    StrategySelector,
)
from .service import ImageAnalysis, ImageCompressionService, get_service


def compress(data: bytes, options: CompressionOptions = None, filename: str = "image.jpg") -> CompressionResult:
    """Compress image bytes with the shared default service."""
    return get_service().compress(data, options, filename)


def analyze(data: bytes, filename: str = "image.jpg") -> ImageAnalysis:
    """Analyze image bytes with the shared default service."""
    return get_service().analyze(data, filename)


def supported_formats():
    """Output format tags accepted by compress()."""
    return get_service().supported_formats()


def validate(data: bytes, filename: str = "image.jpg") -> bool:
    """True if data is a non-empty, size-limited, decodable image."""
    return get_service().validate(data, filename)


__all__ = [
    'compress',
    'analyze',
    'supported_formats',
    'validate',
    'ImageCompressionError',
    'DecodeFailure',
    'EncodeFailure',
    'ExternalServiceFailure',
    'PredictorUnavailable',
    'ValidationFailure',
    'CompressorConfig',
    'configure_logging',
    'DecodedImage',
    'ValidationReport',
    'decode_image',
    'PixelSampler',
    'ImageMetrics',
    'ImageMetricsResult',
    'shannon_entropy',
    'CompressionPrediction',
    'CompressionPredictor',
    'ImageFeatures',
    'ModelInfo',
    'RegressionPredictor',
    'RuleBasedPredictor',
    'RemoteCompressor',
    'HttpCompressor',
    'CompressionEngine',
    'CompressionMethod',
    'CompressionOptions',
    'CompressionResult',
    'QualityAnalysisResult',
    'QualityAnalyzer',
    'StrategySelector',
    'ImageAnalysis',
    'ImageCompressionService',
    'get_service',
]
