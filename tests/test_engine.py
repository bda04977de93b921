"""Tests for the compression engine methods."""

import io

import numpy as np
import pytest
from PIL import Image

from imagecompression.compression.engine import CompressionEngine
from imagecompression.compression.result import CompressionOptions, CompressionResult
from imagecompression.compression.strategy import STRATEGIES
from imagecompression.errors import DecodeFailure
from imagecompression.predictor import CompressionPrediction, CompressionPredictor, PredictorBackend
from imagecompression.utils import decode_image


class FixedBackend(PredictorBackend):
    name = "fixed"

    def __init__(self, quality):
        self.quality = quality

    def predict(self, features):
        return CompressionPrediction(self.quality, 0.5, 0.9, "jpeg", self.name)


class CountingEngine(CompressionEngine):
    """Engine recording every local encode quality."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.encoded_qualities = []

    def _encode(self, image, format_name, quality):
        self.encoded_qualities.append(quality)
        return super()._encode(image, format_name, quality)


def _open(data):
    return Image.open(io.BytesIO(data))


def test_direct_reencodes_at_requested_quality(gradient_png):
    engine = CountingEngine()
    result = engine.compress(gradient_png, CompressionOptions(quality=65), "photo.png")

    assert engine.encoded_qualities == [65]
    assert result.method == "direct"
    assert result.quality_used == 65
    assert result.compressed_size == len(result.compressed_bytes)
    assert result.original_size == len(gradient_png)
    assert result.format_used == "JPEG"
    assert result.content_type == "image/jpeg"
    assert result.compressed_filename == "compressed_photo.jpg"
    assert result.dimensions == (128, 96)
    assert result.processing_time_ms >= 0
    assert _open(result.compressed_bytes).format == "JPEG"


def test_compression_ratio_formula():
    result = CompressionResult(
        original_size=1000,
        compressed_size=400,
        quality_used=80,
        processing_time_ms=1,
        method="direct",
        compressed_bytes=b"x" * 400,
    )
    assert result.compression_ratio == 60.0

    empty = CompressionResult(0, 0, 80, 1, "direct", b"")
    assert empty.compression_ratio == 0


def test_results_have_unique_ids(gradient_png):
    engine = CompressionEngine()
    first = engine.compress(gradient_png, CompressionOptions())
    second = engine.compress(gradient_png, CompressionOptions())
    assert first.id != second.id


def test_undecodable_bytes_raise():
    with pytest.raises(DecodeFailure):
        CompressionEngine().compress(b"definitely not an image", CompressionOptions())
    with pytest.raises(DecodeFailure):
        CompressionEngine().compress(b"", CompressionOptions())


def test_predicted_uses_predictor_quality(gradient_png):
    engine = CountingEngine(predictor=CompressionPredictor(primary=FixedBackend(42)))
    result = engine.compress(gradient_png, CompressionOptions(method="predicted", quality=90))

    assert engine.encoded_qualities == [42]
    assert result.method == "predicted"
    assert result.quality_used == 42
    assert result.model_used == "fixed"
    assert result.strategy in STRATEGIES


def test_hybrid_falls_back_when_remote_fails(gradient_png, failing_remote):
    engine = CountingEngine(remote=failing_remote)
    result = engine.compress(gradient_png, CompressionOptions(method="hybrid", quality=80))

    assert failing_remote.calls == 1
    assert engine.encoded_qualities == [80]
    assert result.metadata == {'remote_used': False, 'retried': False}
    assert result.quality_used == 80


def test_hybrid_retries_once_when_over_target(noise_png, failing_remote):
    engine = CountingEngine(remote=failing_remote)
    options = CompressionOptions(method="hybrid", quality=80, target_size_kb=1)
    result = engine.compress(noise_png, options)

    assert engine.encoded_qualities == [80, 70]
    assert result.quality_used == 70
    assert result.metadata['retried'] is True
    # Still over target after the retry, accepted as final
    assert result.compressed_size > 1024


def test_hybrid_retry_quality_floor(noise_png, failing_remote):
    engine = CountingEngine(remote=failing_remote)
    options = CompressionOptions(method="hybrid", quality=15, target_size_kb=1)
    result = engine.compress(noise_png, options)

    assert engine.encoded_qualities == [15, 10]
    assert result.quality_used == 10


def test_hybrid_without_target_never_retries(noise_png, failing_remote):
    engine = CountingEngine(remote=failing_remote)
    engine.compress(noise_png, CompressionOptions(method="hybrid", quality=80))
    assert engine.encoded_qualities == [80]


def test_hybrid_uses_remote_result(gradient_png, flat_png, fixed_remote_factory):
    remote = fixed_remote_factory(flat_png)
    engine = CountingEngine(remote=remote)
    options = CompressionOptions(method="hybrid", quality=75, target_size_kb=100)
    result = engine.compress(gradient_png, options, "photo.png")

    assert remote.calls == [(len(gradient_png), 75, "photo.png")]
    assert engine.encoded_qualities == []
    assert result.compressed_bytes == flat_png
    assert result.format_used == "PNG"
    assert result.metadata == {'remote_used': True, 'retried': False}


def test_hybrid_retries_oversized_remote_result(gradient_png, noise_png, fixed_remote_factory):
    engine = CountingEngine(remote=fixed_remote_factory(noise_png))
    options = CompressionOptions(method="hybrid", quality=80, target_size_kb=1)
    result = engine.compress(gradient_png, options)

    assert engine.encoded_qualities == [70]
    assert result.metadata == {'remote_used': True, 'retried': True}
    assert result.format_used == "JPEG"


def test_hybrid_rejects_invalid_remote_data(gradient_png, fixed_remote_factory):
    engine = CountingEngine(remote=fixed_remote_factory(b"<html>502</html>"))
    result = engine.compress(gradient_png, CompressionOptions(method="hybrid"))

    assert engine.encoded_qualities == [80]
    assert result.metadata['remote_used'] is False
    assert result.format_used == "JPEG"


def test_resize_bounds_keep_aspect_ratio(gradient_png):
    options = CompressionOptions(max_width=32)
    result = CompressionEngine().compress(gradient_png, options)
    assert result.dimensions == (32, 24)


def test_resize_never_upscales(gradient_png):
    options = CompressionOptions(max_width=1000, max_height=1000)
    result = CompressionEngine().compress(gradient_png, options)
    assert result.dimensions == (128, 96)


def test_png_output_keeps_alpha(transparent_png):
    options = CompressionOptions(output_format="png")
    result = CompressionEngine().compress(transparent_png, options, "logo.png")

    assert result.format_used == "PNG"
    assert result.content_type == "image/png"
    assert result.compressed_filename == "compressed_logo.png"
    assert _open(result.compressed_bytes).mode == "RGBA"


def test_webp_output(gradient_png):
    result = CompressionEngine().compress(gradient_png, CompressionOptions(output_format="webp"))
    assert result.format_used == "WEBP"
    assert result.content_type == "image/webp"


def test_analysis_toggle(gradient_png):
    engine = CompressionEngine()

    without = engine.compress(gradient_png, CompressionOptions(enable_analysis=False))
    assert without.analysis is None

    with_analysis = engine.compress(gradient_png, CompressionOptions(enable_analysis=True))
    ratio = with_analysis.compressed_size / with_analysis.original_size
    assert with_analysis.analysis.psnr == pytest.approx(30 + 20 * ratio)
    assert with_analysis.analysis.edge_preservation == 0.88


def test_to_dict_encodes_bytes(gradient_png):
    result = CompressionEngine().compress(gradient_png, CompressionOptions())
    data = result.to_dict()
    assert data['compressed_size'] == result.compressed_size
    assert data['compression_ratio'] == result.compression_ratio
    assert data['method'] == "direct"
    assert isinstance(data['compressed_image_data'], str)


def test_webp_output_keeps_grayscale_alpha(encode):
    array = np.zeros((24, 24, 2), dtype=np.uint8)
    array[..., 0] = 90
    array[..., 1] = 100
    data = encode(array)

    result = CompressionEngine().compress(data, CompressionOptions(output_format="webp"))

    with _open(result.compressed_bytes) as decoded:
        assert decoded.mode == "RGBA"


def test_palette_transparency_is_detected():
    image = Image.new('P', (16, 16), 0)
    image.putpalette([10, 20, 30] * 256)
    buffer = io.BytesIO()
    image.save(buffer, format='PNG', transparency=0)

    decoded = decode_image(buffer.getvalue())
    assert decoded.has_transparency
