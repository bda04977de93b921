"""Utility functions for decoding and validating images"""

import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import Optional, Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from .config import MAX_FILE_SIZE_BYTES
from .errors import DecodeFailure

logger = logging.getLogger(__name__)

# Output format tags accepted by the compression engine
SUPPORTED_FORMATS = frozenset({'jpeg', 'jpg', 'png', 'webp'})

# Tag -> Pillow format name
FORMAT_NAMES = {
    'jpeg': 'JPEG',
    'jpg': 'JPEG',
    'png': 'PNG',
    'webp': 'WEBP',
}

CONTENT_TYPES = {
    'JPEG': 'image/jpeg',
    'PNG': 'image/png',
    'WEBP': 'image/webp',
}

EXTENSIONS = {
    'JPEG': '.jpg',
    'PNG': '.png',
    'WEBP': '.webp',
}

# Bits per pixel for common Pillow modes
MODE_BIT_DEPTH = {
    '1': 1,
    'L': 8,
    'P': 8,
    'LA': 16,
    'PA': 16,
    'I;16': 16,
    'RGB': 24,
    'YCbCr': 24,
    'LAB': 24,
    'HSV': 24,
    'RGBA': 32,
    'CMYK': 32,
    'I': 32,
    'F': 32,
}


def has_alpha(image: Image.Image) -> bool:
    """True if the image has an alpha band or palette/colour-key transparency."""
    return 'A' in image.getbands() or 'transparency' in image.info


@dataclass(frozen=True)
class DecodedImage:
    """Decoded pixel grid shared read-only by every metric.

    Attributes:
        width: Image width in pixels
        height: Image height in pixels
        pixels: (height, width, 3) uint8 RGB array, write-protected
        source: The decoded PIL image in its original mode
        format: Source container format reported by Pillow (or "Unknown")
        mode: Source PIL mode before RGB conversion
    """
    width: int
    height: int
    pixels: np.ndarray = field(repr=False)
    source: Image.Image = field(repr=False, compare=False)
    format: str = "Unknown"
    mode: str = "RGB"

    @property
    def pixel_count(self) -> int:
        """Total number of pixels."""
        return self.width * self.height

    @property
    def has_transparency(self) -> bool:
        """Check if the source image carries an alpha channel or transparency info."""
        return has_alpha(self.source)

    @property
    def color_depth(self) -> int:
        """Bits per pixel of the source mode."""
        return MODE_BIT_DEPTH.get(self.mode, 24)


def open_image(data: bytes) -> Image.Image:
    """
    Open bytes with Pillow and fully load pixel data into memory.

    Args:
        data: Encoded image bytes

    Returns:
        Loaded PIL Image

    Raises:
        DecodeFailure: If the bytes are empty or not a readable image
    """
    if not data:
        raise DecodeFailure("Empty image buffer")

    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError, Image.DecompressionBombError) as ex:
        raise DecodeFailure(f"Unable to decode image: {ex}") from ex

    return image


def decode_image(data: bytes) -> DecodedImage:
    """
    Decode bytes into a read-only RGB pixel grid.

    Args:
        data: Encoded image bytes

    Returns:
        DecodedImage holding the RGB pixels and the source image

    Raises:
        DecodeFailure: If the bytes cannot be decoded
    """
    image = open_image(data)

    try:
        rgb = image.convert('RGB') if image.mode != 'RGB' else image
        pixels = np.asarray(rgb, dtype=np.uint8).copy()
    except (OSError, ValueError) as ex:
        raise DecodeFailure(f"Unable to convert image to RGB: {ex}") from ex

    pixels.setflags(write=False)

    return DecodedImage(
        width=image.width,
        height=image.height,
        pixels=pixels,
        source=image,
        format=image.format or "Unknown",
        mode=image.mode,
    )


@dataclass(frozen=True)
class ValidationReport:
    """Structured outcome of image validation.

    Attributes:
        valid: True if the buffer is an acceptable image
        reason: Why the buffer was rejected (empty when valid)
    """
    valid: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.valid


def check_image(
    data: Optional[bytes],
    filename: str = "image.jpg",
    max_size: int = MAX_FILE_SIZE_BYTES,
) -> ValidationReport:
    """
    Validate that bytes are a non-empty, size-limited, decodable image.

    Args:
        data: Encoded image bytes
        filename: Filename hint, used in log messages only
        max_size: Maximum accepted buffer size in bytes

    Returns:
        ValidationReport describing the outcome
    """
    if not data:
        return ValidationReport(False, "No image data provided")

    if len(data) > max_size:
        return ValidationReport(
            False,
            f"File size exceeds {max_size // (1024 * 1024)}MB limit",
        )

    try:
        open_image(data)
    except DecodeFailure as ex:
        logger.debug("Rejected %s: %s", filename, ex)
        return ValidationReport(False, str(ex))

    return ValidationReport(True)


def normalize_format(format_tag: str) -> Optional[str]:
    """
    Map an output format tag to its Pillow format name.

    Args:
        format_tag: Tag such as "jpeg", "jpg", "png" or "webp"

    Returns:
        Pillow format name or None if not supported
    """
    if not format_tag:
        return None
    return FORMAT_NAMES.get(format_tag.lower().lstrip('.'))


def get_aspect_ratio(width: int, height: int) -> float:
    """
    Calculate aspect ratio.

    Args:
        width: Image width
        height: Image height

    Returns:
        Aspect ratio (width/height)
    """
    if height == 0:
        return 1.0
    return width / height


def calculate_bounded_size(
    current_w: int,
    current_h: int,
    max_w: Optional[int] = None,
    max_h: Optional[int] = None,
) -> Tuple[int, int]:
    """
    Calculate the largest size fitting inside the bounds, keeping aspect ratio.

    Images already inside the bounds keep their size (no upscaling).

    Args:
        current_w: Current width
        current_h: Current height
        max_w: Maximum width (None = unbounded)
        max_h: Maximum height (None = unbounded)

    Returns:
        Tuple of (final_width, final_height)
    """
    scale = 1.0
    if max_w is not None and current_w > max_w:
        scale = min(scale, max_w / current_w)
    if max_h is not None and current_h > max_h:
        scale = min(scale, max_h / current_h)

    if scale >= 1.0:
        return (current_w, current_h)

    return (max(1, int(current_w * scale)), max(1, int(current_h * scale)))
