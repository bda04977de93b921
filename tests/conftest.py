"""Shared fixtures: small synthetic images encoded in memory."""

import io

import numpy as np
import pytest
from PIL import Image

from imagecompression.errors import ExternalServiceFailure
from imagecompression.remote import RemoteCompressor


def encode_array(array: np.ndarray, fmt: str = 'PNG', **kwargs) -> bytes:
    buffer = io.BytesIO()
    Image.fromarray(array).save(buffer, format=fmt, **kwargs)
    return buffer.getvalue()


@pytest.fixture
def encode():
    """Encode a numpy array to image bytes."""
    return encode_array


@pytest.fixture
def gradient_array():
    array = np.zeros((96, 128, 3), dtype=np.uint8)
    array[..., 0] = np.linspace(0, 255, 128, dtype=np.uint8)[None, :]
    array[..., 1] = np.linspace(0, 255, 96, dtype=np.uint8)[:, None]
    array[..., 2] = 128
    return array


@pytest.fixture
def gradient_png(gradient_array):
    return encode_array(gradient_array)


@pytest.fixture
def noise_png():
    rng = np.random.default_rng(7)
    return encode_array(rng.integers(0, 256, (256, 256, 3), dtype=np.uint8))


@pytest.fixture
def flat_png():
    array = np.zeros((64, 64, 3), dtype=np.uint8)
    array[...] = (200, 100, 50)
    return encode_array(array)


@pytest.fixture
def checkerboard_png():
    yy, xx = np.mgrid[0:40, 0:40]
    board = ((xx + yy) % 2 * 255).astype(np.uint8)
    return encode_array(np.stack([board] * 3, axis=-1))


@pytest.fixture
def transparent_png():
    array = np.zeros((32, 32, 4), dtype=np.uint8)
    array[..., 0] = 255
    array[..., 3] = 128
    return encode_array(array)


class FailingRemote(RemoteCompressor):
    """Remote compressor that always fails."""

    def __init__(self):
        self.calls = 0

    def compress(self, data, quality, filename="image.jpg"):
        self.calls += 1
        raise ExternalServiceFailure("connection refused")


class FixedRemote(RemoteCompressor):
    """Remote compressor that returns canned bytes."""

    def __init__(self, payload: bytes):
        self.payload = payload
        self.calls = []

    def compress(self, data, quality, filename="image.jpg"):
        self.calls.append((len(data), quality, filename))
        return self.payload


@pytest.fixture
def failing_remote():
    return FailingRemote()


@pytest.fixture
def fixed_remote_factory():
    return FixedRemote
