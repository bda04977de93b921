"""Tests for the compression service facade."""

import pytest

import imagecompression
from imagecompression.compression.result import CompressionOptions
from imagecompression.compression.strategy import STRATEGIES
from imagecompression.config import CompressorConfig
from imagecompression.errors import DecodeFailure
from imagecompression.service import ImageCompressionService, build_recommendation, complexity_level


@pytest.fixture
def service():
    with ImageCompressionService() as service:
        yield service


def test_validate(service, gradient_png):
    assert service.validate(gradient_png)
    assert not service.validate(b"")
    assert not service.validate(b"plain text, not an image")


def test_validate_size_limit(gradient_png):
    with ImageCompressionService(CompressorConfig(max_file_size_bytes=10)) as service:
        report = service.check_image(gradient_png, "big.png")
    assert not report
    assert "exceeds" in report.reason


def test_check_image_reasons(service):
    assert service.check_image(b"").reason == "No image data provided"
    assert "Unable to decode" in service.check_image(b"garbage").reason


def test_supported_formats(service):
    assert service.supported_formats() == {'jpeg', 'jpg', 'png', 'webp'}


def test_info(service):
    info = service.info()
    assert info['supported_methods'] == ['direct', 'predicted', 'hybrid']
    assert info['supported_formats'] == ['jpeg', 'jpg', 'png', 'webp']
    assert info['version'] == imagecompression.__version__


def test_analyze_simple_image(service, gradient_png):
    analysis = service.analyze(gradient_png, "gradient.png")

    assert (analysis.width, analysis.height) == (128, 96)
    assert analysis.format == "PNG"
    assert analysis.file_size == len(gradient_png)
    assert analysis.color_depth == 24
    assert not analysis.has_transparency
    assert analysis.complexity == "low"
    assert analysis.strategy in STRATEGIES
    assert analysis.recommended_quality + analysis.potential_savings == 100
    assert analysis.recommendation == (
        "Simple image - direct compression should work well. "
        "No transparency detected - JPEG compression recommended."
    )
    assert 0 < analysis.mean_intensity < 255
    assert analysis.to_dict()['dominant_colors'] == analysis.dominant_colors


def test_analyze_transparent_image(service, transparent_png):
    analysis = service.analyze(transparent_png)

    assert analysis.has_transparency
    assert analysis.color_depth == 32
    assert analysis.recommended_format == "png"
    assert "Image has transparency - PNG format recommended." in analysis.recommendation


def test_analyze_large_file_phrase(gradient_png):
    with ImageCompressionService(CompressorConfig(large_file_bytes=10)) as service:
        analysis = service.analyze(gradient_png)
    assert analysis.recommendation.startswith("Large file size detected.")


def test_analyze_rejects_garbage(service):
    with pytest.raises(DecodeFailure):
        service.analyze(b"\x00\x01\x02")


def test_compress_applies_config_quality_bounds(gradient_png):
    config = CompressorConfig(min_quality=30, default_quality=60)
    with ImageCompressionService(config) as service:
        assert service.compress(gradient_png).quality_used == 60
        assert service.compress(gradient_png, CompressionOptions(quality=10)).quality_used == 30


def test_compress_rejects_garbage(service):
    with pytest.raises(DecodeFailure):
        service.compress(b"nope")


def test_hybrid_without_remote_falls_back(service, gradient_png):
    result = service.compress(gradient_png, CompressionOptions(method="hybrid"))
    assert result.method == "hybrid"
    assert result.metadata['remote_used'] is False


@pytest.mark.parametrize("pixels, level", [
    (99_999, "low"),
    (100_000, "medium"),
    (999_999, "medium"),
    (1_000_000, "high"),
])
def test_complexity_level(pixels, level):
    assert complexity_level(pixels) == level


def test_recommendation_phrases():
    text = build_recommendation(10_000_000, "high", False, 5_000_000)
    assert text == (
        "Large file size detected. "
        "High complexity image - consider predicted compression for better results. "
        "No transparency detected - JPEG compression recommended."
    )
    assert build_recommendation(10, "medium", True, 100) == "Image has transparency - PNG format recommended."


def test_module_level_entry_points(gradient_png):
    assert imagecompression.validate(gradient_png)
    assert 'webp' in imagecompression.supported_formats()
    assert imagecompression.compress(gradient_png).compressed_size > 0
    assert imagecompression.analyze(gradient_png).width == 128
