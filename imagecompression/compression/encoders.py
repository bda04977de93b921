"""JPEG, WebP and PNG encoders behind a registry keyed by Pillow format name.

MozJPEG repacking and measured SSIM are enabled only when their optional
packages are installed.
"""

import logging
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Optional, Dict, Tuple, List

import numpy as np
from PIL import Image

from ..errors import EncodeFailure
from ..utils import has_alpha, normalize_format
from .result import EncoderOptions

logger = logging.getLogger(__name__)


# Optional dependency checks
SSIM_AVAILABLE = False
try:
    from skimage.metrics import structural_similarity
    SSIM_AVAILABLE = True
except ImportError:
    pass

MOZJPEG_AVAILABLE = False
try:
    import mozjpeg_lossless_optimization
    MOZJPEG_AVAILABLE = True
except ImportError:
    pass


class BaseEncoder(ABC):
    """Writes a PIL image in one output format."""

    format_name: str
    supports_transparency: bool = False

    def encode(self, image: Image.Image, options: EncoderOptions) -> bytes:
        """Encode image to bytes.

        Args:
            image: PIL Image to encode
            options: Encoding options

        Returns:
            Encoded image bytes

        Raises:
            EncodeFailure: If Pillow cannot write the image
        """
        try:
            return self._encode(self.prepare_image(image), options)
        except (OSError, ValueError, KeyError) as ex:
            raise EncodeFailure(f"{self.format_name} encoding failed: {ex}") from ex

    @abstractmethod
    def _encode(self, image: Image.Image, options: EncoderOptions) -> bytes:
        pass

    def get_quality_range(self) -> Tuple[int, int]:
        """(min, max) quality accepted by the format."""
        return (1, 100)

    def prepare_image(self, image: Image.Image) -> Image.Image:
        """Convert image to a mode the format can store."""
        return image


class JpegEncoder(BaseEncoder):
    """Baseline or progressive JPEG, optionally repacked by MozJPEG."""

    format_name = "JPEG"
    supports_transparency = False

    def _encode(self, image: Image.Image, options: EncoderOptions) -> bytes:
        buffer = BytesIO()
        image.save(
            buffer,
            format='JPEG',
            quality=options.quality,
            optimize=True,
            progressive=options.progressive,
            subsampling=options.chroma_subsampling,
        )
        data = buffer.getvalue()

        if options.use_mozjpeg and MOZJPEG_AVAILABLE:
            try:
                data = mozjpeg_lossless_optimization.optimize(data)
            except Exception as ex:
                logger.warning("MozJPEG optimization failed, keeping Pillow output: %s", ex)

        return data

    def prepare_image(self, image: Image.Image) -> Image.Image:
        """Flatten transparency onto white, then convert to RGB."""
        if has_alpha(image):
            rgba = image.convert('RGBA')
            background = Image.new('RGB', rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.getchannel('A'))
            return background
        if image.mode != 'RGB':
            return image.convert('RGB')
        return image


class WebpEncoder(BaseEncoder):
    """Lossy WebP with alpha support."""

    format_name = "WEBP"
    supports_transparency = True

    def _encode(self, image: Image.Image, options: EncoderOptions) -> bytes:
        buffer = BytesIO()
        image.save(buffer, format='WEBP', quality=options.quality, method=options.effort)
        return buffer.getvalue()

    def prepare_image(self, image: Image.Image) -> Image.Image:
        """RGBA for any transparent input, RGB otherwise."""
        target = 'RGBA' if has_alpha(image) else 'RGB'
        if image.mode != target:
            return image.convert(target)
        return image


class PngEncoder(BaseEncoder):
    """Lossless PNG. Quality is ignored."""

    format_name = "PNG"
    supports_transparency = True

    # Modes PNG stores natively
    NATIVE_MODES = ('1', 'L', 'LA', 'P', 'RGB', 'RGBA', 'I', 'I;16')

    def _encode(self, image: Image.Image, options: EncoderOptions) -> bytes:
        buffer = BytesIO()
        image.save(buffer, format='PNG', optimize=True)
        return buffer.getvalue()

    def prepare_image(self, image: Image.Image) -> Image.Image:
        if image.mode in self.NATIVE_MODES:
            return image
        return image.convert('RGBA' if has_alpha(image) else 'RGB')

    def get_quality_range(self) -> Tuple[int, int]:
        return (100, 100)


# Pillow format name -> encoder
_ENCODERS: Dict[str, BaseEncoder] = {
    'JPEG': JpegEncoder(),
    'WEBP': WebpEncoder(),
    'PNG': PngEncoder(),
}


def get_encoder(format_name: str) -> Optional[BaseEncoder]:
    """Look up the encoder for a format tag or Pillow format name.

    Args:
        format_name: JPEG, jpg, webp, PNG, ...

    Returns:
        Encoder instance, or None for unsupported formats
    """
    name = normalize_format(format_name)
    if name is None:
        return None
    return _ENCODERS.get(name)


def get_available_formats() -> List[str]:
    """Pillow format names with a registered encoder."""
    return list(_ENCODERS)


def calculate_ssim_inmemory(original: Image.Image, compressed: Image.Image) -> Optional[float]:
    """Structural similarity between a decoded original and its compressed copy.

    The compressed image is resized to the original's size and both are
    compared as RGB.

    Returns:
        SSIM score, or None when scikit-image is missing or either side
        is smaller than the 7x7 comparison window
    """
    if not SSIM_AVAILABLE:
        return None

    if original.size != compressed.size:
        compressed = compressed.resize(original.size, Image.Resampling.LANCZOS)

    reference = np.asarray(original.convert('RGB'))
    candidate = np.asarray(compressed.convert('RGB'))

    if min(reference.shape[:2]) < 7:
        return None

    return float(structural_similarity(reference, candidate, data_range=255, channel_axis=-1))


def get_encoder_capabilities() -> dict:
    """Optional features and formats available in this installation."""
    return {
        'ssim_validation': SSIM_AVAILABLE,
        'mozjpeg_optimization': MOZJPEG_AVAILABLE,
        'formats': get_available_formats(),
    }
