"""Unit tests for image payload preparation.

Tests cover:
- Image format validation (JPEG/PNG only, by magic bytes)
- Image size validation
- URL / data URI / base64 / bytes / file path inputs
"""

import base64
from unittest.mock import patch

import pytest

from companion.models.errors import ValidationError
from companion.services.images import (
    decode_image_string,
    detect_mime_type,
    encode_image,
    encode_image_bytes,
    validate_image_size,
)

# JPEG magic bytes: FF D8 FF
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01"
# PNG magic bytes: 89 50 4E 47 0D 0A 1A 0A
PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"
GIF_BYTES = b"GIF89a\x01\x00\x01\x00"


class TestDetectMimeType:
    """Test image format detection."""

    def test_jpeg(self):
        assert detect_mime_type(JPEG_BYTES) == "image/jpeg"

    def test_png(self):
        assert detect_mime_type(PNG_BYTES) == "image/png"

    def test_gif_rejected(self):
        assert detect_mime_type(GIF_BYTES) is None

    def test_unknown_bytes_rejected(self):
        assert detect_mime_type(b"hello world") is None


class TestValidateImageSize:
    """Test image size validation."""

    def test_valid_size(self):
        assert validate_image_size(b"x" * (1024 * 1024)) is True

    def test_exactly_at_limit(self):
        """Images exactly at size limit should be valid."""
        assert validate_image_size(b"x" * (5 * 1024 * 1024)) is True

    def test_over_limit(self):
        with patch("companion.services.images.config") as mock_config:
            mock_config.MAX_IMAGE_SIZE_MB = 1
            assert validate_image_size(b"x" * (1024 * 1024 + 1)) is False


class TestEncodeImage:
    """Test building the image request field."""

    def test_url_passes_through(self):
        assert encode_image(" https://example.com/fridge.jpg ") == "https://example.com/fridge.jpg"

    def test_bytes_become_data_uri(self):
        encoded = encode_image(PNG_BYTES)
        assert encoded.startswith("data:image/png;base64,")
        assert base64.b64decode(encoded.split(",", 1)[1]) == PNG_BYTES

    def test_data_uri_mime_is_redetected(self):
        # Declared as PNG, actually JPEG
        source = "data:image/png;base64," + base64.b64encode(JPEG_BYTES).decode()
        assert encode_image(source).startswith("data:image/jpeg;base64,")

    def test_plain_base64(self):
        assert encode_image(base64.b64encode(JPEG_BYTES).decode()).startswith("data:image/jpeg;base64,")

    def test_file_path(self, tmp_path):
        path = tmp_path / "pasta.png"
        path.write_bytes(PNG_BYTES)
        assert encode_image(path).startswith("data:image/png;base64,")

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValidationError) as exc:
            encode_image(tmp_path / "missing.jpg")
        assert exc.value.field == "image"

    def test_gif_rejected(self):
        with pytest.raises(ValidationError, match="only JPEG and PNG"):
            encode_image(GIF_BYTES)

    def test_empty_rejected(self):
        with pytest.raises(ValidationError, match="empty"):
            encode_image("   ")
        with pytest.raises(ValidationError, match="empty"):
            encode_image_bytes(b"")

    def test_invalid_base64_rejected(self):
        with pytest.raises(ValidationError) as exc:
            decode_image_string("not base64 at all!")
        assert exc.value.field == "image"

    def test_too_large_rejected(self):
        with patch("companion.services.images.config") as mock_config:
            mock_config.MAX_IMAGE_SIZE_MB = 1
            with pytest.raises(ValidationError, match="too large"):
                encode_image_bytes(JPEG_BYTES + b"\x00" * (1024 * 1024))

    def test_unsupported_type(self):
        with pytest.raises(ValidationError, match="unsupported image source"):
            encode_image(12345)
