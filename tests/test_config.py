"""Tests for INI configuration loading."""

from pathlib import Path

import pytest

from imagecompression.config import MAX_FILE_SIZE_BYTES, CompressorConfig
from imagecompression.errors import ValidationFailure


def test_missing_file_gives_defaults(tmp_path):
    config = CompressorConfig.from_file(tmp_path / "absent.ini")
    assert config == CompressorConfig()
    assert config.max_file_size_bytes == MAX_FILE_SIZE_BYTES
    assert config.remote_url is None


def test_loads_sections(tmp_path):
    config_path = tmp_path / "config.ini"
    config_path.write_text(
        "[Compression]\n"
        "Max_File_Size_Bytes = 1024\n"
        "Default_Quality = 70\n"
        "Min_Quality = 20\n"
        "Max_Quality = 90\n"
        "\n"
        "[Predictor]\n"
        "Model_Path = models/quality.joblib\n"
        "\n"
        "[Remote]\n"
        "Url = http://localhost:5000/api/compress\n"
        "Timeout = 3.5\n"
        "\n"
        "[Analysis]\n"
        "Workers = 2\n"
        "Measure_SSIM = false\n",
        encoding='utf-8',
    )

    config = CompressorConfig.from_file(config_path)

    assert config.max_file_size_bytes == 1024
    assert config.default_quality == 70
    assert config.model_path == Path("models/quality.joblib")
    assert config.remote_url == "http://localhost:5000/api/compress"
    assert config.remote_timeout == 3.5
    assert config.analysis_workers == 2
    assert config.measure_ssim is False
    assert config.clamp_quality(5) == 20
    assert config.clamp_quality(99) == 90


def test_invalid_value_raises(tmp_path):
    config_path = tmp_path / "config.ini"
    config_path.write_text("[Analysis]\nWorkers = many\n", encoding='utf-8')

    with pytest.raises(ValidationFailure):
        CompressorConfig.from_file(config_path)


def test_out_of_range_value_raises(tmp_path):
    config_path = tmp_path / "config.ini"
    config_path.write_text("[Compression]\nMin_Quality = 90\nMax_Quality = 50\n", encoding='utf-8')

    with pytest.raises(ValidationFailure):
        CompressorConfig.from_file(config_path)


def test_constructor_validation():
    with pytest.raises(ValidationFailure):
        CompressorConfig(max_file_size_bytes=0)
    with pytest.raises(ValidationFailure):
        CompressorConfig(analysis_workers=0)
    assert CompressorConfig(model_path="m.joblib").model_path == Path("m.joblib")


@pytest.mark.parametrize("bounds", [{'min_quality': 5}, {'max_quality': 101}, {'min_quality': 60, 'max_quality': 50}])
def test_quality_bounds_outside_option_range_rejected(bounds):
    with pytest.raises(ValidationFailure):
        CompressorConfig(**bounds)
