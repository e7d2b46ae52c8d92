"""Pillow decode/encode helpers and PNG data URIs.

The core passes images around as encoded bytes (what the remote endpoint
returns and what downloads need) and only decodes to :class:`PIL.Image.Image`
at the composition boundary.  All decoding goes through :func:`decode_image`
so malformed input surfaces as a single :class:`DecodeError`.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging

from PIL import Image, UnidentifiedImageError

from pictureme.core.errors import DecodeError

logger = logging.getLogger(__name__)

PNG_MIME_TYPE = "image/png"


def split_data_uri(value: str) -> tuple[str | None, str]:
    """Split ``data:<mime>;base64,<payload>`` into ``(mime, payload)``.

    Plain base64 strings are returned unchanged with a ``None`` MIME type.
    """
    if value.startswith("data:") and "," in value:
        header, payload = value.split(",", 1)
        mime_type = header[len("data:") :].split(";", 1)[0] or None
        return mime_type, payload
    return None, value


def b64decode(value: str) -> bytes:
    """Decode a base64 string or data URI, raising :class:`DecodeError` on garbage."""
    _, payload = split_data_uri(value.strip())
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Invalid base64 image data: {e}") from e


def to_data_uri(data: bytes, mime_type: str = PNG_MIME_TYPE) -> str:
    """Encode raw bytes as a ``data:`` URI."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def decode_image(data: bytes | str | Image.Image) -> Image.Image:
    """Decode image bytes (or a base64 / data URI string) into a loaded PIL image.

    Args:
        data: Encoded image bytes, a base64 string, a data URI, or an
            already-decoded image (returned as-is).

    Returns:
        Fully loaded :class:`PIL.Image.Image`.

    Raises:
        DecodeError: If the data is empty or not a recognisable image.
    """
    if isinstance(data, Image.Image):
        return data
    if isinstance(data, str):
        data = b64decode(data)
    if not data:
        raise DecodeError("Image data is empty")

    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.warning(f"Could not decode image ({len(data)} bytes): {e}")
        raise DecodeError(f"Could not decode image: {e}") from e
    return image


def encode_png(image: Image.Image) -> bytes:
    """Encode a PIL image as PNG bytes."""
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
