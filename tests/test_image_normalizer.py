"""Tests for cover image normalization."""

import base64
import io
import os
from unittest.mock import Mock

import pytest
import requests
from PIL import Image

from jamlist_sync.core.images.normalizer import (
    DEFAULT_MAX_BYTES,
    ImageNormalizer,
    UnprocessableImageError,
)


def encode(image, fmt="PNG"):
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def gradient(width=1200, height=800):
    return Image.linear_gradient("L").resize((width, height)).convert("RGB")


def noise(width, height):
    return Image.frombytes("RGB", (width, height), os.urandom(width * height * 3))


@pytest.fixture
def normalizer():
    """Create a normalizer with default settings."""
    return ImageNormalizer()


class TestNormalizeBytes:
    """Test the pure normalization pipeline."""

    def test_produces_square_jpeg_within_budget(self, normalizer):
        """Test a typical image."""
        result = normalizer.normalize_bytes(encode(gradient()))

        assert result.width == result.height == 640
        assert result.size_bytes <= DEFAULT_MAX_BYTES
        assert result.quality == 90
        decoded = Image.open(io.BytesIO(result.data))
        assert decoded.format == "JPEG"
        assert decoded.size == (640, 640)

    def test_crop_to_center_does_not_stretch(self, normalizer):
        """Test that a wide image is cropped instead of squashed."""
        image = Image.new("RGB", (1200, 600), (0, 0, 255))
        image.paste((255, 0, 0), (0, 0, 300, 600))

        result = normalizer.normalize_bytes(encode(image))

        decoded = Image.open(io.BytesIO(result.data)).convert("RGB")
        red, green, blue = decoded.getpixel((5, 320))
        assert blue > 200 and red < 60

    def test_transparency_is_flattened_to_white(self, normalizer):
        """Test RGBA input."""
        image = Image.new("RGBA", (300, 300), (0, 0, 0, 0))

        result = normalizer.normalize_bytes(encode(image))

        decoded = Image.open(io.BytesIO(result.data)).convert("RGB")
        assert all(channel > 240 for channel in decoded.getpixel((320, 320)))

    def test_large_noisy_input_never_exceeds_budget(self, normalizer):
        """Test that a 2MB input is compressed below budget or refused."""
        raw = encode(noise(1000, 700))
        assert len(raw) > 2 * 1024 * 1024 * 0.9

        try:
            result = normalizer.normalize_bytes(raw)
        except UnprocessableImageError:
            return
        assert result.size_bytes <= DEFAULT_MAX_BYTES

    def test_quality_is_lowered_until_budget_fits(self):
        """Test the quality step-down."""
        raw = encode(noise(640, 640))
        generous = ImageNormalizer(max_bytes=10 * 1024 * 1024).normalize_bytes(raw)
        budget = generous.size_bytes - 1

        result = ImageNormalizer(max_bytes=budget).normalize_bytes(raw)

        assert result.quality < 90
        assert result.size_bytes <= budget

    def test_unreachable_budget_is_unprocessable(self):
        """Test that the quality floor ends the search."""
        with pytest.raises(UnprocessableImageError):
            ImageNormalizer(max_bytes=1000).normalize_bytes(encode(noise(640, 640)))

    def test_deterministic(self, normalizer):
        """Test identical output for identical input."""
        raw = encode(gradient())
        assert normalizer.normalize_bytes(raw).data == normalizer.normalize_bytes(raw).data

    @pytest.mark.parametrize("raw", [b"", b"not an image"])
    def test_undecodable_input(self, normalizer, raw):
        """Test garbage input."""
        with pytest.raises(UnprocessableImageError):
            normalizer.normalize_bytes(raw)


class TestSources:
    """Test loading from the supported source kinds."""

    def test_data_uri(self, normalizer):
        """Test inline base64 images."""
        payload = base64.b64encode(encode(gradient(200, 200))).decode()

        result = normalizer.normalize(f"data:image/png;base64,{payload}")

        assert result.size_bytes > 0

    def test_invalid_data_uri(self, normalizer):
        """Test malformed base64."""
        with pytest.raises(UnprocessableImageError):
            normalizer.normalize("data:image/png;base64,***")

    def test_url_is_fetched(self):
        """Test remote images."""
        session = Mock(spec=requests.Session)
        response = Mock()
        response.content = encode(gradient(200, 200), fmt="JPEG")
        session.get.return_value = response
        normalizer = ImageNormalizer(timeout=5, session=session)

        result = normalizer.normalize("https://images.example/cover.jpg")

        session.get.assert_called_once_with("https://images.example/cover.jpg", timeout=5)
        assert result.width == 640

    def test_failed_fetch_is_unprocessable(self):
        """Test network failures while fetching."""
        session = Mock(spec=requests.Session)
        session.get.side_effect = requests.ConnectionError("down")

        with pytest.raises(UnprocessableImageError):
            ImageNormalizer(session=session).normalize("https://images.example/x.jpg")

    def test_unsupported_source(self, normalizer):
        """Test strings that are neither URL nor data URI."""
        with pytest.raises(UnprocessableImageError):
            normalizer.normalize("/tmp/cover.png")

    def test_to_base64(self, normalizer):
        """Test the upload encoding."""
        result = normalizer.normalize_bytes(encode(gradient(100, 100)))
        assert base64.b64decode(result.to_base64()) == result.data
