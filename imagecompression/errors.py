"""Exception types raised by the image compression core.

Only DecodeFailure and EncodeFailure escape compress() and analyze().
The remaining types are raised internally and recovered from.
"""


class ImageCompressionError(Exception):
    """Base class for all image compression errors."""


class DecodeFailure(ImageCompressionError):
    """Raised when bytes cannot be decoded as an image."""


class EncodeFailure(ImageCompressionError):
    """Raised when an image cannot be encoded to the requested format."""


class ExternalServiceFailure(ImageCompressionError):
    """Raised when the remote hybrid compressor fails or times out."""


class PredictorUnavailable(ImageCompressionError):
    """Raised when the regression predictor cannot be loaded or used."""


class ValidationFailure(ImageCompressionError, ValueError):
    """Raised for invalid options or configuration values."""
