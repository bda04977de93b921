"""Remote compressor used by the hybrid method.

The hybrid method asks an external service to compress the image first.
The service receives a multipart POST with an "image" file part and a
"quality" field and answers with the compressed bytes.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests

from .errors import ExternalServiceFailure

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class RemoteCompressor(ABC):
    """Compresses bytes somewhere else. May fail."""

    @abstractmethod
    def compress(self, data: bytes, quality: int, filename: str = "image.jpg") -> bytes:
        """Compress image bytes remotely.

        Args:
            data: Encoded image bytes
            quality: Requested quality
            filename: Filename sent with the file part

        Returns:
            Compressed image bytes

        Raises:
            ExternalServiceFailure: On any network, HTTP or protocol error
        """
        pass


class UnavailableCompressor(RemoteCompressor):
    """Placeholder used when no remote endpoint is configured."""

    def compress(self, data: bytes, quality: int, filename: str = "image.jpg") -> bytes:
        raise ExternalServiceFailure("No remote compressor configured")


class HttpCompressor(RemoteCompressor):
    """Remote compressor reached over HTTP with a bounded timeout."""

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            url: Endpoint accepting the multipart POST
            timeout: Seconds before the request is abandoned
            session: Optional requests session to reuse connections
        """
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def compress(self, data: bytes, quality: int, filename: str = "image.jpg") -> bytes:
        try:
            response = self.session.post(
                self.url,
                files={'image': (filename, data)},
                data={'quality': str(quality)},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as ex:
            raise ExternalServiceFailure(f"Remote compressor at {self.url} failed: {ex}") from ex

        if not response.content:
            raise ExternalServiceFailure(f"Remote compressor at {self.url} returned no data")

        logger.debug("Remote compressor returned %d bytes", len(response.content))
        return response.content
