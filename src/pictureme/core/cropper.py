"""Deterministic center crop to a target aspect ratio."""

from __future__ import annotations

import logging

from PIL import Image

from pictureme.core.images import decode_image

logger = logging.getLogger(__name__)


def parse_aspect_ratio(aspect_ratio: str) -> tuple[int, int]:
    """Parse ``"W:H"`` into positive integers.

    Raises:
        ValueError: If the string is not two positive integers separated by ``:``.
    """
    try:
        w_str, h_str = aspect_ratio.split(":")
        w, h = int(w_str), int(h_str)
    except (AttributeError, ValueError) as e:
        raise ValueError(f"Aspect ratio must look like 'W:H', got {aspect_ratio!r}") from e
    if w <= 0 or h <= 0:
        raise ValueError(f"Aspect ratio terms must be positive, got {aspect_ratio!r}")
    return w, h


def crop_box(width: int, height: int, aspect_ratio: str) -> tuple[int, int, int, int]:
    """Compute the centered ``(left, top, right, bottom)`` crop box.

    When the source is relatively wider than the target the full height is
    kept and the width trimmed; otherwise the full width is kept and the
    height trimmed.  Sizes are truncated to whole pixels.
    """
    target_w, target_h = parse_aspect_ratio(aspect_ratio)
    target_aspect = target_w / target_h
    original_aspect = width / height

    if original_aspect > target_aspect:
        crop_height = height
        crop_width = min(width, max(1, int(height * target_aspect)))
        x = (width - crop_width) // 2
        y = 0
    else:
        crop_width = width
        crop_height = min(height, max(1, int(width / target_aspect)))
        x = 0
        y = (height - crop_height) // 2

    return x, y, x + crop_width, y + crop_height


def crop(image: Image.Image | bytes | str, aspect_ratio: str) -> Image.Image:
    """Center-crop ``image`` to ``aspect_ratio``.

    Args:
        image: PIL image, encoded bytes, base64 string, or data URI.
        aspect_ratio: Target ratio as ``"W:H"``.

    Returns:
        New image whose size equals the crop box.

    Raises:
        DecodeError: The source could not be decoded.
        ValueError: The aspect ratio is malformed.
    """
    source = decode_image(image)
    box = crop_box(source.width, source.height, aspect_ratio)
    logger.debug(f"Cropping {source.size} to {aspect_ratio}: box={box}")
    return source.crop(box)
