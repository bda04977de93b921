"""Compression engine applying the direct, predicted and hybrid methods."""

import logging
import time
from concurrent.futures import Executor
from io import BytesIO
from pathlib import PurePath
from typing import Any, Dict, Optional, Tuple

from PIL import Image

from ..errors import DecodeFailure, EncodeFailure, ExternalServiceFailure
from ..metrics import ImageMetrics
from ..predictor import CompressionPredictor, ImageFeatures
from ..remote import RemoteCompressor, UnavailableCompressor
from ..utils import (
    CONTENT_TYPES,
    EXTENSIONS,
    DecodedImage,
    calculate_bounded_size,
    decode_image,
    open_image,
)
from .encoders import get_encoder
from .format_advisor import FormatAdvisor
from .result import (
    MIN_QUALITY,
    CompressionMethod,
    CompressionOptions,
    CompressionResult,
    EncoderOptions,
    clamp_quality,
)
from .quality import QualityAnalyzer
from .strategy import StrategySelector

logger = logging.getLogger(__name__)

# Quality step for the hybrid size-target retry
RETRY_QUALITY_STEP = 10


class CompressionEngine:
    """Core compression engine.

    Methods:
    - direct: decode, then re-encode at the requested quality
    - predicted: quality from CompressionPredictor, then direct encoding
    - hybrid: remote compressor first, local fallback, and a single retry
      at lower quality when the result misses the size target
    """

    def __init__(
        self,
        predictor: Optional[CompressionPredictor] = None,
        remote: Optional[RemoteCompressor] = None,
        analyzer: Optional[QualityAnalyzer] = None,
        metrics: Optional[ImageMetrics] = None,
        selector: Optional[StrategySelector] = None,
        executor: Optional[Executor] = None,
    ):
        """Initialize engine with its collaborators.

        Args:
            predictor: Quality predictor for the predicted method
            remote: External compressor for the hybrid method
            analyzer: Quality analyzer for enable_analysis
            metrics: Metric computer for the predicted method's strategy
            selector: Strategy selector
            executor: Executor for parallel metrics (private pool if None)
        """
        self.predictor = predictor or CompressionPredictor()
        self.remote = remote or UnavailableCompressor()
        self.analyzer = analyzer or QualityAnalyzer()
        self.metrics = metrics or ImageMetrics()
        self.selector = selector or StrategySelector()
        self.advisor = FormatAdvisor()
        self.executor = executor

    def compress(
        self,
        data: bytes,
        options: CompressionOptions,
        filename: str = "image.jpg",
    ) -> CompressionResult:
        """Compress image bytes with the method named in options.

        Args:
            data: Encoded image bytes
            options: Compression options
            filename: Original filename hint

        Returns:
            CompressionResult for the final encoded bytes

        Raises:
            DecodeFailure: If data is not a readable image
            EncodeFailure: If the output format cannot be written
        """
        start_time = time.perf_counter()

        image = decode_image(data)
        source = self._apply_resize(image.source, options)
        quality = clamp_quality(options.quality)

        if image.has_transparency and not self.advisor.keeps_transparency(options.output_format):
            logger.info("Transparency in %s will be flattened for %s output", filename, options.format_name)

        strategy = None
        model_used = None
        metadata: Dict[str, Any] = {}

        if options.method == CompressionMethod.PREDICTED:
            metrics = self.metrics.compute(image, data, executor=self.executor)
            strategy = self.selector.select(metrics)
            prediction = self.predictor.predict(ImageFeatures.from_image(image, len(data)))
            quality = prediction.optimal_quality
            model_used = prediction.backend
            metadata['confidence'] = prediction.confidence
            metadata['predicted_compression_ratio'] = prediction.predicted_compression_ratio
            encoded = self._encode(source, options.format_name, quality)
        elif options.method == CompressionMethod.HYBRID:
            encoded, quality, metadata = self._compress_hybrid(
                data, image, source, options, quality, filename
            )
        else:
            encoded = self._encode(source, options.format_name, quality)

        processing_time_ms = int((time.perf_counter() - start_time) * 1000)

        format_used, dimensions = self._describe_output(encoded, options.format_name, source.size)

        analysis = None
        if options.enable_analysis:
            analysis = self.analyzer.analyze(data, encoded, image.source)

        logger.info(
            "Compressed %s with %s: %d -> %d bytes at quality %d in %d ms",
            filename, options.method.value, len(data), len(encoded), quality, processing_time_ms,
        )

        return CompressionResult(
            original_size=len(data),
            compressed_size=len(encoded),
            quality_used=quality,
            processing_time_ms=processing_time_ms,
            method=options.method.value,
            compressed_bytes=encoded,
            format_used=format_used,
            dimensions=dimensions,
            original_filename=filename,
            compressed_filename=self._compressed_filename(filename, format_used),
            content_type=CONTENT_TYPES.get(format_used, "application/octet-stream"),
            analysis=analysis,
            strategy=strategy,
            model_used=model_used,
            metadata=metadata,
        )

    def _compress_hybrid(
        self,
        data: bytes,
        image: DecodedImage,
        source: Image.Image,
        options: CompressionOptions,
        quality: int,
        filename: str,
    ) -> Tuple[bytes, int, Dict[str, Any]]:
        """Remote compressor with local fallback and one size-target retry.

        Returns:
            Tuple of (encoded_bytes, quality_used, metadata)
        """
        metadata: Dict[str, Any] = {'remote_used': False, 'retried': False}

        try:
            payload = data if source is image.source else self._lossless_payload(source)
            encoded = self.remote.compress(payload, quality, filename)
            self._check_remote_output(encoded)
            metadata['remote_used'] = True
        except ExternalServiceFailure as ex:
            logger.warning("Remote compression failed, falling back to direct: %s", ex)
            encoded = self._encode(source, options.format_name, quality)

        target_bytes = options.target_bytes
        if target_bytes is not None and len(encoded) > target_bytes:
            retry_quality = max(MIN_QUALITY, quality - RETRY_QUALITY_STEP)
            logger.debug(
                "Hybrid result %d bytes exceeds target %d, retrying at quality %d",
                len(encoded), target_bytes, retry_quality,
            )
            encoded = self._encode(source, options.format_name, retry_quality)
            quality = retry_quality
            metadata['retried'] = True

        return encoded, quality, metadata

    def _check_remote_output(self, encoded: bytes):
        """Reject remote responses that are not images."""
        try:
            open_image(encoded)
        except DecodeFailure as ex:
            raise ExternalServiceFailure(f"Remote compressor returned invalid image data: {ex}") from ex

    def _lossless_payload(self, image: Image.Image) -> bytes:
        """Encode a resized image losslessly for the remote compressor."""
        buffer = BytesIO()
        try:
            image.save(buffer, format='PNG')
        except (OSError, ValueError) as ex:
            raise ExternalServiceFailure(f"Unable to prepare remote payload: {ex}") from ex
        return buffer.getvalue()

    def _encode(self, image: Image.Image, format_name: str, quality: int) -> bytes:
        """Encode image at quality with the encoder for format_name."""
        encoder = get_encoder(format_name)
        if encoder is None:
            raise EncodeFailure(f"Unsupported format: {format_name}")

        encoded = encoder.encode(image, EncoderOptions(quality=clamp_quality(quality)))
        logger.debug("Encoded %s at quality %d: %d bytes", encoder.format_name, quality, len(encoded))
        return encoded

    def _apply_resize(self, image: Image.Image, options: CompressionOptions) -> Image.Image:
        """Downscale to fit max_width/max_height, keeping aspect ratio."""
        if not options.has_resize_bounds:
            return image

        size = calculate_bounded_size(image.width, image.height, options.max_width, options.max_height)
        if size == image.size:
            return image

        logger.debug("Resizing %dx%d to %dx%d", image.width, image.height, *size)
        return image.resize(size, Image.Resampling.LANCZOS)

    def _describe_output(
        self,
        encoded: bytes,
        requested_format: str,
        fallback_size: Tuple[int, int],
    ) -> Tuple[str, Tuple[int, int]]:
        """Format name and dimensions of the encoded bytes."""
        try:
            with Image.open(BytesIO(encoded)) as output:
                return (output.format or requested_format, output.size)
        except (OSError, ValueError):
            return (requested_format, fallback_size)

    @staticmethod
    def _compressed_filename(filename: str, format_used: str) -> str:
        stem = PurePath(filename).stem or "image"
        return f"compressed_{stem}{EXTENSIONS.get(format_used, '.bin')}"
