"""Image payload preparation for the /caption and /scan endpoints.

Both endpoints take an ``image`` string: either a URL the edge function can
fetch, or the image itself as a data URI. This module turns what the UI hands
over (URL, data URI, plain base64, raw bytes, a local file) into that string:

- http(s) URLs pass through untouched (the edge function fetches them)
- data URIs, base64 strings and raw bytes are decoded and checked:
  - format: JPEG or PNG only, detected from magic bytes with filetype
  - size: at most MAX_IMAGE_SIZE_MB
- accepted bytes are (re-)encoded as ``data:<mime>;base64,<data>``

Invalid images raise ValidationError("image") before any request is sent.
"""

import base64
import binascii
from pathlib import Path
from typing import Optional, Union

import filetype

from companion.models.errors import ValidationError
from companion.utils.config import config
from companion.utils.logger import logger


ALLOWED_MIME_TYPES = {"jpg": "image/jpeg", "jpeg": "image/jpeg", "png": "image/png"}


def detect_mime_type(image_bytes: bytes) -> Optional[str]:
    """Return the MIME type for JPEG/PNG bytes, None for anything else.

    Uses filetype to detect the actual format from magic bytes, not from extension.
    """
    kind = filetype.guess(image_bytes)
    if kind is None or kind.extension not in ALLOWED_MIME_TYPES:
        logger.warning(f"Invalid image format: {kind.mime if kind else None}. Only JPEG and PNG supported.")
        return None
    return ALLOWED_MIME_TYPES[kind.extension]


def validate_image_size(image_bytes: bytes) -> bool:
    """Validate image size against MAX_IMAGE_SIZE_MB."""
    size_mb = len(image_bytes) / (1024 * 1024)
    if size_mb > config.MAX_IMAGE_SIZE_MB:
        logger.warning(f"Image size {size_mb:.2f}MB exceeds limit of {config.MAX_IMAGE_SIZE_MB}MB")
        return False
    return True


def decode_image_string(image: str) -> bytes:
    """Decode a data URI or plain base64 string to bytes.

    Raises:
        ValidationError: If the string is not valid base64.
    """
    encoded = image.split(",", 1)[1] if image.startswith("data:") and "," in image else image
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("image", "not a URL, data URI or base64-encoded image") from e


def encode_image_bytes(image_bytes: bytes) -> str:
    """Validate raw image bytes and wrap them in a data URI.

    Raises:
        ValidationError: If the image is empty, not JPEG/PNG, or too large.
    """
    if not image_bytes:
        raise ValidationError("image", "image is empty")
    mime_type = detect_mime_type(image_bytes)
    if mime_type is None:
        raise ValidationError("image", "invalid image format, only JPEG and PNG are supported")
    if not validate_image_size(image_bytes):
        raise ValidationError("image", f"image too large, maximum size is {config.MAX_IMAGE_SIZE_MB}MB")
    encoded = base64.b64encode(image_bytes).decode("ascii")
    logger.debug(f"Encoded {mime_type} image ({len(encoded) / 1024:.1f} KB base64)")
    return f"data:{mime_type};base64,{encoded}"


def encode_image(source: Union[str, bytes, Path]) -> str:
    """Build the ``image`` request field from a URL, data URI, base64 string, bytes or file path.

    Example:
        >>> encode_image("https://example.com/fridge.jpg")
        'https://example.com/fridge.jpg'
        >>> encode_image(Path("fridge.png"))  # doctest: +SKIP
        'data:image/png;base64,iVBORw0...'

    Raises:
        ValidationError: If the image cannot be used.
    """
    if isinstance(source, Path):
        if not source.is_file():
            raise ValidationError("image", f"image file not found: {source}")
        return encode_image_bytes(source.read_bytes())

    if isinstance(source, (bytes, bytearray)):
        return encode_image_bytes(bytes(source))

    if isinstance(source, str):
        image = source.strip()
        if not image:
            raise ValidationError("image", "image is empty")
        if image.startswith(("http://", "https://")):
            return image
        return encode_image_bytes(decode_image_string(image))

    raise ValidationError("image", f"unsupported image source: {type(source).__name__}")
