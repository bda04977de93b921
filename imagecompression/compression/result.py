"""Compression options and result dataclasses."""

import base64
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..errors import ValidationFailure
from ..utils import SUPPORTED_FORMATS, normalize_format

MIN_QUALITY = 10
MAX_QUALITY = 100
DEFAULT_QUALITY = 80


def clamp_quality(quality: int, low: int = MIN_QUALITY, high: int = MAX_QUALITY) -> int:
    """Clamp a quality value into [low, high]."""
    return max(low, min(high, int(quality)))


class CompressionMethod(str, Enum):
    """Compression method applied by the engine."""
    DIRECT = "direct"
    PREDICTED = "predicted"
    HYBRID = "hybrid"

    @classmethod
    def parse(cls, value: Optional[str]) -> 'CompressionMethod':
        """Parse a method tag, falling back to DIRECT for unknown values.

        Accepts the legacy tags "traditional" and "ml".
        """
        if isinstance(value, cls):
            return value
        tag = (value or "").strip().lower()
        tag = _METHOD_ALIASES.get(tag, tag)
        try:
            return cls(tag)
        except ValueError:
            return cls.DIRECT


_METHOD_ALIASES = {
    'traditional': 'direct',
    'ml': 'predicted',
}


@dataclass
class CompressionOptions:
    """Options for a single compression request.

    Attributes:
        method: Compression method (direct, predicted, hybrid)
        quality: Encoding quality, clamped to 10-100
        target_size_kb: Optional size target for the hybrid method
        enable_analysis: Attach a QualityAnalysisResult to the result
        max_width: Optional resize bound
        max_height: Optional resize bound
        output_format: One of jpeg, jpg, png, webp
    """
    method: CompressionMethod = CompressionMethod.DIRECT
    quality: int = DEFAULT_QUALITY
    target_size_kb: Optional[int] = None
    enable_analysis: bool = True
    max_width: Optional[int] = None
    max_height: Optional[int] = None
    output_format: str = "jpeg"

    def __post_init__(self):
        """Validate and normalize options."""
        self.method = CompressionMethod.parse(self.method)
        self.quality = clamp_quality(self.quality)

        if self.target_size_kb is not None and self.target_size_kb <= 0:
            raise ValidationFailure(f"target_size_kb must be positive, got {self.target_size_kb}")
        if self.max_width is not None and self.max_width <= 0:
            raise ValidationFailure(f"max_width must be positive, got {self.max_width}")
        if self.max_height is not None and self.max_height <= 0:
            raise ValidationFailure(f"max_height must be positive, got {self.max_height}")

        self.output_format = (self.output_format or "").lower().lstrip('.')
        if self.output_format not in SUPPORTED_FORMATS:
            raise ValidationFailure(
                f"Unsupported output format: {self.output_format}. "
                f"Available: {sorted(SUPPORTED_FORMATS)}"
            )

    @property
    def format_name(self) -> str:
        """Pillow format name for output_format."""
        return normalize_format(self.output_format)

    @property
    def target_bytes(self) -> Optional[int]:
        """Convert target_size_kb to bytes."""
        if self.target_size_kb is None:
            return None
        return self.target_size_kb * 1024

    @property
    def has_resize_bounds(self) -> bool:
        return self.max_width is not None or self.max_height is not None


@dataclass(frozen=True)
class QualityAnalysisResult:
    """Comparison statistics between original and compressed bytes.

    psnr, ssim and mse are coarse proxies derived from the size ratio of
    the two buffers, not signal measurements. measured_ssim is a real SSIM
    and is only present when scikit-image is available.
    """
    psnr: Optional[float] = None
    ssim: Optional[float] = None
    mse: Optional[float] = None
    entropy: Optional[float] = None
    color_histogram_similarity: Optional[float] = None
    edge_preservation: Optional[float] = None
    measured_ssim: Optional[float] = None

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {
            'psnr': self.psnr,
            'ssim': self.ssim,
            'mse': self.mse,
            'entropy': self.entropy,
            'color_histogram_similarity': self.color_histogram_similarity,
            'edge_preservation': self.edge_preservation,
            'measured_ssim': self.measured_ssim,
        }


def compression_ratio(original_size: int, compressed_size: int) -> float:
    """Percent saved: round((1 - compressed/original) * 100, 2), 0 for empty originals."""
    if original_size <= 0:
        return 0.0
    return round((1.0 - compressed_size / original_size) * 100, 2)


@dataclass(frozen=True)
class CompressionResult:
    """Result of a compression operation.

    Attributes:
        original_size: Size of the input bytes
        compressed_size: Exact length of compressed_bytes
        quality_used: Quality the final bytes were encoded at
        processing_time_ms: Wall time of the whole operation, retries included
        method: Method tag that produced the result
        compressed_bytes: The compressed image data
        format_used: Pillow format name of the output
        dimensions: Encoded image (width, height)
        analysis: Quality analysis (None when disabled)
        strategy: StrategySelector tag (predicted method only)
        model_used: Predictor backend name (predicted method only)
        metadata: Extra details such as remote_used and retried
    """
    original_size: int
    compressed_size: int
    quality_used: int
    processing_time_ms: int
    method: str
    compressed_bytes: bytes = field(repr=False)
    format_used: str = "JPEG"
    dimensions: Tuple[int, int] = (0, 0)
    original_filename: str = "image.jpg"
    compressed_filename: str = "compressed_image.jpg"
    content_type: str = "image/jpeg"
    analysis: Optional[QualityAnalysisResult] = None
    strategy: Optional[str] = None
    model_used: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def compression_ratio(self) -> float:
        """Percent of the original size saved."""
        return compression_ratio(self.original_size, self.compressed_size)

    @property
    def processing_time(self) -> float:
        """Processing time in seconds."""
        return self.processing_time_ms / 1000.0

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly mapping; the image data is base64 encoded."""
        return {
            'id': self.id,
            'original_filename': self.original_filename,
            'compressed_filename': self.compressed_filename,
            'original_size': self.original_size,
            'compressed_size': self.compressed_size,
            'compression_ratio': self.compression_ratio,
            'quality': self.quality_used,
            'processing_time': self.processing_time,
            'processing_time_ms': self.processing_time_ms,
            'method': self.method,
            'format': self.format_used,
            'content_type': self.content_type,
            'dimensions': list(self.dimensions),
            'strategy': self.strategy,
            'model_used': self.model_used,
            'completed_at': self.completed_at.isoformat(),
            'compressed_image_data': base64.b64encode(self.compressed_bytes).decode('ascii'),
            'analysis': self.analysis.to_dict() if self.analysis else None,
            'metadata': dict(self.metadata),
        }


@dataclass
class EncoderOptions:
    """Options for format-specific encoding.

    Attributes:
        quality: Compression quality (1-100)
        chroma_subsampling: JPEG chroma mode (0=4:4:4, 1=4:2:2, 2=4:2:0)
        progressive: Enable progressive encoding
        use_mozjpeg: Apply MozJPEG lossless optimization
        effort: WebP effort level (0-6, higher = slower/better)
    """
    quality: int = DEFAULT_QUALITY
    chroma_subsampling: int = 2
    progressive: bool = False
    use_mozjpeg: bool = True
    effort: int = 4

    def __post_init__(self):
        """Validate options."""
        if not 1 <= self.quality <= 100:
            raise ValidationFailure(f"quality must be 1-100, got {self.quality}")
        if self.chroma_subsampling not in (0, 1, 2):
            raise ValidationFailure("chroma_subsampling must be 0, 1, or 2")
        if not 0 <= self.effort <= 6:
            raise ValidationFailure(f"effort must be 0-6, got {self.effort}")
