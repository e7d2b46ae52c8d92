"""Export composition: framed single images and album sheets.

Both exports start from :func:`pictureme.core.cropper.crop` and draw onto a
Pillow canvas.  The geometry is computed up front by :func:`frame_layout`
and :func:`album_layout` so it can be inspected (and tested) without
rendering anything.

Frame
-----
The cropped image is inset on a dark ``#111827`` panel with 4% side and top
padding and an 18% bottom band (24% when a label is drawn), all relative to
the cropped width.  The optional label sits in the caption band; two fixed
credit lines are always drawn near the bottom edge.

Album
-----
Successful items are cropped in parallel, optionally captioned with their
id, stitched row-major into a white grid (``3`` columns for more than four
images, else ``2``), and wrapped in a dark panel with a title band above and
the two credit lines below.

Fonts
-----
Labels and titles use a script face, credit lines a sans-serif face.  Paths
come from :class:`FontSet`; when a path is missing or unreadable Pillow's
built-in scalable font is used so rendering never fails on a bare system.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from pictureme.core.cropper import crop
from pictureme.core.errors import EmptyAlbum
from pictureme.core.images import decode_image, encode_png
from pictureme.core.models import CompositionSpec, GenerationItem, ItemStatus

logger = logging.getLogger(__name__)

PANEL_COLOR = (17, 24, 39)  # #111827
GRID_BACKDROP_COLOR = (255, 255, 255)

CREDIT_LINE = "Made with Gemini"
ATTRIBUTION_LINE = "Edit your images with Nano Banana at gemini.google"

FRAME_LABEL_FILL = (255, 255, 255, 230)
FRAME_FOOTER_FILL = (255, 255, 255, 102)
CAPTION_FILL = (0, 0, 0, 204)
ALBUM_TITLE_FILL = (255, 255, 255, 230)
ALBUM_FOOTER_FILL = (255, 255, 255, 128)


# ---------------------------------------------------------------------------
# Fonts.
# ---------------------------------------------------------------------------


@lru_cache(maxsize=64)
def _load_font(path: str | None, size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    if path:
        try:
            return ImageFont.truetype(path, size)
        except OSError as e:
            logger.warning(f"Could not load font {path}: {e}. Using default font.")
    return ImageFont.load_default(size=size)


@dataclass(frozen=True)
class FontSet:
    """Font files used for rendering; ``None`` selects Pillow's default font."""

    script_path: Path | None = None
    sans_path: Path | None = None

    def script(self, size: int):
        return _load_font(str(self.script_path) if self.script_path else None, size)

    def sans(self, size: int):
        return _load_font(str(self.sans_path) if self.sans_path else None, size)


DEFAULT_FONTS = FontSet()


# ---------------------------------------------------------------------------
# Layout.
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FrameLayout:
    """Geometry of a framed single export, relative to the cropped image."""

    image_width: int
    image_height: int
    side_padding: float
    top_padding: float
    bottom_padding: float
    label_font_size: int
    credit_font_size: int
    attribution_font_size: int

    @property
    def canvas_width(self) -> int:
        return int(self.image_width + self.side_padding * 2)

    @property
    def canvas_height(self) -> int:
        return int(self.image_height + self.top_padding + self.bottom_padding)

    @property
    def label_y(self) -> float:
        return (
            self.image_height
            + self.top_padding
            + (self.bottom_padding - self.image_width * 0.1) / 2
        )

    @property
    def credit_y(self) -> float:
        return self.canvas_height - self.image_width * 0.11

    @property
    def attribution_y(self) -> float:
        return self.canvas_height - self.image_width * 0.05


def frame_layout(width: int, height: int, has_label: bool) -> FrameLayout:
    """Compute frame padding and font sizes for a ``width`` x ``height`` crop."""
    return FrameLayout(
        image_width=width,
        image_height=height,
        side_padding=width * 0.04,
        top_padding=width * 0.04,
        bottom_padding=width * (0.24 if has_label else 0.18),
        label_font_size=max(24, math.floor(width * 0.08)),
        credit_font_size=max(12, math.floor(width * 0.05)),
        attribution_font_size=max(8, math.floor(width * 0.035)),
    )


@dataclass(frozen=True)
class AlbumLayout:
    """Geometry of an album sheet for ``count`` cells of one size."""

    count: int
    cols: int
    rows: int
    cell_width: int
    cell_height: int
    padding: int

    @property
    def grid_width(self) -> int:
        return self.cols * self.cell_width + (self.cols + 1) * self.padding

    @property
    def grid_height(self) -> int:
        return self.rows * self.cell_height + (self.rows + 1) * self.padding

    @property
    def outer_padding(self) -> float:
        return self.grid_width * 0.05

    @property
    def title_font_size(self) -> int:
        return max(48, math.floor(self.grid_width * 0.07))

    @property
    def credit_font_size(self) -> int:
        return max(24, math.floor(self.grid_width * 0.025))

    @property
    def attribution_font_size(self) -> int:
        return max(18, math.floor(self.grid_width * 0.022))

    @property
    def title_band(self) -> float:
        return self.title_font_size * 1.5

    @property
    def footer_band(self) -> float:
        return self.credit_font_size * 4.0

    @property
    def canvas_width(self) -> int:
        return int(self.grid_width + self.outer_padding * 2)

    @property
    def canvas_height(self) -> int:
        return int(
            self.grid_height + self.outer_padding * 2 + self.title_band + self.footer_band
        )

    def cell_origin(self, index: int) -> tuple[int, int]:
        """Top-left corner of cell ``index`` inside the grid (row-major)."""
        row, col = divmod(index, self.cols)
        return (
            self.padding + col * (self.cell_width + self.padding),
            self.padding + row * (self.cell_height + self.padding),
        )


def album_layout(count: int, cell_width: int, cell_height: int) -> AlbumLayout:
    """Compute the grid for ``count`` images of ``cell_width`` x ``cell_height``."""
    if count < 1:
        raise EmptyAlbum()
    cols = 3 if count > 4 else 2
    return AlbumLayout(
        count=count,
        cols=cols,
        rows=math.ceil(count / cols),
        cell_width=cell_width,
        cell_height=cell_height,
        padding=math.floor(cell_width * 0.05),
    )


# ---------------------------------------------------------------------------
# Rendering.
# ---------------------------------------------------------------------------


def _paste(canvas: Image.Image, image: Image.Image, xy: tuple[int, int]) -> None:
    if image.mode in ("RGBA", "LA", "P"):
        rgba = image.convert("RGBA")
        canvas.paste(rgba, xy, rgba)
    else:
        canvas.paste(image.convert(canvas.mode), xy)


def frame_image(
    image: Image.Image | bytes | str,
    aspect_ratio: str,
    label: str | None = None,
    fonts: FontSet = DEFAULT_FONTS,
) -> bytes:
    """Crop ``image`` and frame it with an optional label and the credit lines.

    Args:
        image: Source image (PIL image, bytes, base64, or data URI).
        aspect_ratio: Crop ratio as ``"W:H"``.
        label: Caption drawn in the bottom band; ``None`` or empty to skip.
        fonts: Fonts for the label and credit lines.

    Returns:
        PNG bytes of the framed image.

    Raises:
        DecodeError: The source could not be decoded.
    """
    cropped = crop(image, aspect_ratio)
    layout = frame_layout(cropped.width, cropped.height, bool(label))

    canvas = Image.new("RGB", (layout.canvas_width, layout.canvas_height), PANEL_COLOR)
    _paste(canvas, cropped, (int(layout.side_padding), int(layout.top_padding)))

    draw = ImageDraw.Draw(canvas, "RGBA")
    center_x = layout.canvas_width / 2

    if label:
        draw.text(
            (center_x, layout.label_y),
            label,
            font=fonts.script(layout.label_font_size),
            fill=FRAME_LABEL_FILL,
            anchor="mm",
        )

    draw.text(
        (center_x, layout.credit_y),
        CREDIT_LINE,
        font=fonts.sans(layout.credit_font_size),
        fill=FRAME_FOOTER_FILL,
        anchor="mm",
    )
    draw.text(
        (center_x, layout.attribution_y),
        ATTRIBUTION_LINE,
        font=fonts.sans(layout.attribution_font_size),
        fill=FRAME_FOOTER_FILL,
        anchor="mm",
    )

    logger.info(f"Framed {cropped.size} -> {canvas.size} (label={label!r})")
    return encode_png(canvas)


def caption_image(image: Image.Image, caption: str, fonts: FontSet = DEFAULT_FONTS) -> Image.Image:
    """Add a transparent caption band (14% of width) below ``image``.

    The result is encoded and decoded again so the stitching stage only ever
    sees fully rendered images.
    """
    bottom_padding = image.width * 0.14
    canvas = Image.new("RGBA", (image.width, int(image.height + bottom_padding)), (0, 0, 0, 0))
    _paste(canvas, image, (0, 0))

    draw = ImageDraw.Draw(canvas)
    draw.text(
        (image.width / 2, image.height + bottom_padding / 2),
        caption,
        font=fonts.script(max(24, math.floor(image.width * 0.08))),
        fill=CAPTION_FILL,
        anchor="mm",
    )
    return decode_image(encode_png(canvas))


def _crop_all(images: list[Image.Image], aspect_ratio: str, max_workers: int | None) -> list[Image.Image]:
    # Independent per image; fan out, then wait for all before stitching.
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(lambda img: crop(img, aspect_ratio), images))


def compose_album(
    items: list[GenerationItem],
    aspect_ratio: str,
    title: str,
    add_captions: bool,
    fonts: FontSet = DEFAULT_FONTS,
    max_workers: int | None = None,
) -> bytes:
    """Stitch the successful ``items`` into a titled album sheet.

    Args:
        items: Batch items; anything not ``success`` is ignored.
        aspect_ratio: Crop ratio for every cell.
        title: Text drawn in the title band.
        add_captions: Draw each item's id beneath its image.
        fonts: Fonts for captions, title, and credit lines.
        max_workers: Thread pool size for the crop stage.

    Returns:
        PNG bytes of the album sheet.

    Raises:
        EmptyAlbum: No successful item with an image.
        DecodeError: An item image could not be decoded.
    """
    # Items may be regenerated while this runs; read each image exactly once.
    snapshot = []
    for item in items:
        image = item.image
        if item.status is ItemStatus.SUCCESS and image is not None:
            snapshot.append((item.id, image))
    if not snapshot:
        raise EmptyAlbum()

    sources = [image.to_pil() for _, image in snapshot]
    cells = _crop_all(sources, aspect_ratio, max_workers)

    if add_captions:
        cells = [caption_image(cell, item_id, fonts) for cell, (item_id, _) in zip(cells, snapshot)]

    cell_width, cell_height = cells[0].size
    layout = album_layout(len(cells), cell_width, cell_height)

    grid = Image.new("RGB", (layout.grid_width, layout.grid_height), GRID_BACKDROP_COLOR)
    for index, cell in enumerate(cells):
        if cell.size != (cell_width, cell_height):
            cell = cell.resize((cell_width, cell_height), Image.Resampling.LANCZOS)
        _paste(grid, cell, layout.cell_origin(index))

    sheet = Image.new("RGB", (layout.canvas_width, layout.canvas_height), PANEL_COLOR)
    draw = ImageDraw.Draw(sheet, "RGBA")
    center_x = layout.canvas_width / 2

    draw.text(
        (center_x, layout.outer_padding + layout.title_band / 2),
        title,
        font=fonts.script(layout.title_font_size),
        fill=ALBUM_TITLE_FILL,
        anchor="mm",
    )

    sheet.paste(grid, (int(layout.outer_padding), int(layout.outer_padding + layout.title_band)))

    draw.text(
        (center_x, layout.canvas_height - layout.footer_band * 0.66),
        CREDIT_LINE,
        font=fonts.sans(layout.credit_font_size),
        fill=ALBUM_FOOTER_FILL,
        anchor="mm",
    )
    draw.text(
        (center_x, layout.canvas_height - layout.footer_band * 0.33),
        ATTRIBUTION_LINE,
        font=fonts.sans(layout.attribution_font_size),
        fill=ALBUM_FOOTER_FILL,
        anchor="mm",
    )

    logger.info(
        f"Composed album of {layout.count} images "
        f"({layout.cols}x{layout.rows}) -> {sheet.size}"
    )
    return encode_png(sheet)


def render_export(
    spec: CompositionSpec,
    items: list[GenerationItem],
    title: str = "",
    fonts: FontSet = DEFAULT_FONTS,
) -> bytes:
    """Render the export described by ``spec``.

    A single export frames the image of ``items[0]``; an album stitches every
    successful item under ``title``.

    Raises:
        ValueError: Single export requested without a successful item.
        EmptyAlbum: Album requested with no successful items.
        DecodeError: An item image could not be decoded.
    """
    if spec.is_album:
        return compose_album(items, spec.aspect_ratio, title, spec.add_captions, fonts)

    image = items[0].image if items else None
    if image is None or items[0].status is not ItemStatus.SUCCESS:
        raise ValueError("A single export needs one successful item")
    return frame_image(image.data, spec.aspect_ratio, spec.label, fonts)
