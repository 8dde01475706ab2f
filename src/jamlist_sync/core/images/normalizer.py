"""Cover image normalization for Spotify playlist uploads.

Spotify accepts square JPEG covers whose decoded size stays below a fixed
byte budget. The normalizer turns an arbitrary source image into such an
artifact or refuses with ``UnprocessableImageError``.
"""

import base64
import binascii
import io
import logging
import re
from dataclasses import dataclass
from typing import Optional, Union

import requests
from PIL import Image, ImageOps, UnidentifiedImageError

from ..errors import JamlistSyncError

logger = logging.getLogger(__name__)

DEFAULT_SIZE = 640
DEFAULT_MAX_BYTES = 256 * 1024

START_QUALITY = 90
QUALITY_STEP = 10
MIN_QUALITY = 30

_DATA_URI_PATTERN = re.compile(r"^data:image/[\w.+-]+;base64,", re.IGNORECASE)


class UnprocessableImageError(JamlistSyncError):
    """Raised when an image cannot be turned into an uploadable cover."""

    pass


@dataclass(frozen=True)
class CompliantImage:
    """A square JPEG cover that fits the upload budget."""

    data: bytes
    quality: int
    width: int
    height: int

    @property
    def size_bytes(self) -> int:
        """Size of the encoded JPEG in bytes."""
        return len(self.data)

    def to_base64(self) -> str:
        """Encode the image as the raw base64 body Spotify expects."""
        return base64.b64encode(self.data).decode("ascii")


class ImageNormalizer:
    """Produces compliant cover images from URLs, data URIs or raw bytes."""

    def __init__(
        self,
        size: int = DEFAULT_SIZE,
        max_bytes: int = DEFAULT_MAX_BYTES,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialize the normalizer.

        Args:
            size: Edge length of the square output in pixels
            max_bytes: Hard limit for the encoded JPEG
            timeout: Timeout in seconds for fetching remote images
            session: Optional HTTP session used to fetch remote images
        """
        self.size = size
        self.max_bytes = max_bytes
        self.timeout = timeout
        self.session = session or requests.Session()

    def normalize(self, source: Union[str, bytes]) -> CompliantImage:
        """Normalize an image given as URL, data URI or raw bytes.

        Args:
            source: ``http(s)`` URL, ``data:image/...;base64,`` URI or image bytes

        Returns:
            CompliantImage within the byte budget

        Raises:
            UnprocessableImageError: If the source cannot be read, decoded or
                compressed below the budget
        """
        return self.normalize_bytes(self._load_source(source))

    def normalize_bytes(self, raw: bytes) -> CompliantImage:
        """Normalize raw image bytes without any I/O."""
        image = self._decode(raw)
        image = ImageOps.exif_transpose(image)
        image = self._flatten(image)
        image = ImageOps.fit(
            image,
            (self.size, self.size),
            method=Image.Resampling.LANCZOS,
            centering=(0.5, 0.5),
        )

        quality = START_QUALITY
        encoded = b""
        while quality >= MIN_QUALITY:
            encoded = self._encode(image, quality)
            logger.debug("JPEG at quality %d: %d bytes", quality, len(encoded))
            if len(encoded) <= self.max_bytes:
                return CompliantImage(
                    data=encoded, quality=quality, width=self.size, height=self.size
                )
            quality -= QUALITY_STEP

        raise UnprocessableImageError(
            f"Image is {len(encoded)} bytes at minimum quality {MIN_QUALITY}, "
            f"budget is {self.max_bytes} bytes"
        )

    def _load_source(self, source: Union[str, bytes]) -> bytes:
        if isinstance(source, (bytes, bytearray)):
            return bytes(source)

        if not isinstance(source, str) or not source:
            raise UnprocessableImageError("Empty image source")

        if _DATA_URI_PATTERN.match(source):
            payload = _DATA_URI_PATTERN.sub("", source, count=1)
            try:
                return base64.b64decode(payload, validate=True)
            except (binascii.Error, ValueError) as e:
                raise UnprocessableImageError(f"Invalid base64 image data: {e}") from e

        if source.startswith(("http://", "https://")):
            return self._fetch(source)

        raise UnprocessableImageError("Unsupported image source")

    def _fetch(self, url: str) -> bytes:
        logger.debug("Fetching image from %s", url)
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise UnprocessableImageError(f"Failed to fetch image: {e}") from e

        logger.debug("Fetched image size: %d bytes", len(response.content))
        return response.content

    @staticmethod
    def _decode(raw: bytes) -> Image.Image:
        if not raw:
            raise UnprocessableImageError("Image data is empty")
        try:
            image = Image.open(io.BytesIO(raw))
            image.load()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise UnprocessableImageError(f"Cannot decode image: {e}") from e
        return image

    @staticmethod
    def _flatten(image: Image.Image) -> Image.Image:
        """Composite transparent images onto white, JPEG has no alpha."""
        if image.mode in ("RGBA", "LA") or (
            image.mode == "P" and "transparency" in image.info
        ):
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[-1])
            return background
        if image.mode != "RGB":
            return image.convert("RGB")
        return image

    @staticmethod
    def _encode(image: Image.Image, quality: int) -> bytes:
        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=quality, optimize=True)
        return buffer.getvalue()
