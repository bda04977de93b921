"""Image compression package with format-specific encoders and strategies."""

from .result import (
    CompressionMethod,
    CompressionOptions,
    CompressionResult,
    EncoderOptions,
    QualityAnalysisResult,
    clamp_quality,
    compression_ratio,
)
from .encoders import (
    MOZJPEG_AVAILABLE,
    SSIM_AVAILABLE,
    get_encoder,
    get_available_formats,
    calculate_ssim_inmemory,
)
from .strategy import StrategySelector, StrategyProfile, STRATEGY_PROFILES
from .format_advisor import FormatAdvisor
from .quality import QualityAnalyzer
from .engine import CompressionEngine

__all__ = [
    'CompressionMethod',
    'CompressionOptions',
    'CompressionResult',
    'EncoderOptions',
    'QualityAnalysisResult',
    'clamp_quality',
    'compression_ratio',
    'CompressionEngine',
    'StrategySelector',
    'StrategyProfile',
    'STRATEGY_PROFILES',
    'FormatAdvisor',
    'QualityAnalyzer',
    'MOZJPEG_AVAILABLE',
    'SSIM_AVAILABLE',
    'get_encoder',
    'get_available_formats',
    'calculate_ssim_inmemory',
]
