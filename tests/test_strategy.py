"""Tests for strategy selection and format advice."""

import pytest

from imagecompression.compression.format_advisor import FormatAdvisor
from imagecompression.compression.result import CompressionMethod
from imagecompression.compression.strategy import (
    AGGRESSIVE,
    BALANCED,
    EFFICIENT,
    HIGH_QUALITY,
    StrategySelector,
)
from imagecompression.metrics import ImageMetricsResult


@pytest.fixture
def selector():
    return StrategySelector()


def _metrics(complexity=0.5, noise=0.0, edges=0.5):
    return ImageMetricsResult(complexity=complexity, noise_level=noise, edge_density=edges)


@pytest.mark.parametrize("complexity, noise, edges, expected", [
    (0.8, 0.0, 0.0, HIGH_QUALITY),
    (0.1, 0.0, 0.65, HIGH_QUALITY),
    (0.5, 0.6, 0.5, AGGRESSIVE),
    (0.2, 0.1, 0.2, EFFICIENT),
    (0.5, 0.1, 0.5, BALANCED),
])
def test_decision_table(selector, complexity, noise, edges, expected):
    assert selector.select(_metrics(complexity, noise, edges)) == expected


def test_thresholds_are_strict(selector):
    assert selector.select(_metrics(complexity=0.7, edges=0.6)) == BALANCED
    assert selector.select(_metrics(complexity=0.71, edges=0.6)) == HIGH_QUALITY
    assert selector.select(_metrics(complexity=0.5, noise=0.5)) == BALANCED
    assert selector.select(_metrics(complexity=0.3, edges=0.1)) == BALANCED


def test_detail_wins_over_noise(selector):
    assert selector.select(_metrics(complexity=0.9, noise=0.9, edges=0.0)) == HIGH_QUALITY


def test_noise_wins_over_simplicity(selector):
    assert selector.select(_metrics(complexity=0.1, noise=0.6, edges=0.1)) == AGGRESSIVE


def test_selection_is_pure(selector):
    metrics = _metrics(0.42, 0.17, 0.33)
    assert {selector.select(metrics) for _ in range(10)} == {BALANCED}


def test_profile_for_flat_metrics(selector):
    profile = selector.profile(_metrics(0.1, 0.0, 0.1))
    assert profile.name == EFFICIENT
    assert profile.quality == 70
    assert profile.method == CompressionMethod.PREDICTED


def test_format_advice():
    advisor = FormatAdvisor()
    assert advisor.recommend_format(EFFICIENT) == "webp"
    assert advisor.recommend_format(HIGH_QUALITY) == "jpeg"
    assert advisor.recommend_format(HIGH_QUALITY, has_transparency=True) == "png"
    assert advisor.recommend_format("unknown") == "jpeg"
    assert advisor.keeps_transparency("png")
    assert advisor.keeps_transparency("webp")
    assert not advisor.keeps_transparency("jpg")
