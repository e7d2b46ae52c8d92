"""Tests for pictureme.core.compositor — frame and album exports."""

from __future__ import annotations

import io

import pytest
from PIL import Image

from pictureme.core.compositor import (
    GRID_BACKDROP_COLOR,
    PANEL_COLOR,
    FontSet,
    album_layout,
    caption_image,
    compose_album,
    frame_image,
    frame_layout,
    render_export,
)
from pictureme.core.errors import DecodeError, EmptyAlbum
from pictureme.core.models import CompositionSpec, GeneratedImage, GenerationItem, ItemStatus

RED = (255, 0, 0)


def open_png(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    assert image.format == "PNG"
    return image


def success_item(item_id: str, data: bytes) -> GenerationItem:
    item = GenerationItem(id=item_id)
    item.mark_success(GeneratedImage(data=data))
    return item


class TestFrameLayout:
    def test_labelled_padding(self):
        layout = frame_layout(1000, 1000, has_label=True)
        assert layout.side_padding == 40
        assert layout.top_padding == 40
        assert layout.bottom_padding == 240
        assert (layout.canvas_width, layout.canvas_height) == (1080, 1280)

    def test_unlabelled_padding(self):
        layout = frame_layout(1000, 1000, has_label=False)
        assert layout.bottom_padding == 180
        assert layout.canvas_height == 1220

    def test_padding_follows_width_not_height(self):
        layout = frame_layout(500, 2000, has_label=False)
        assert layout.top_padding == 20
        assert layout.bottom_padding == 90

    def test_credit_lines_sit_inside_bottom_band(self):
        layout = frame_layout(1000, 1000, has_label=True)
        image_bottom = layout.top_padding + layout.image_height
        assert image_bottom < layout.label_y < layout.credit_y < layout.attribution_y
        assert layout.attribution_y < layout.canvas_height

    def test_font_size_floors(self):
        layout = frame_layout(100, 100, has_label=True)
        assert layout.label_font_size == 24
        assert layout.credit_font_size == 12
        assert layout.attribution_font_size == 8


class TestFrameImage:
    def test_labelled_square_export(self, png_factory):
        data = frame_image(png_factory((1000, 1000), RED), "1:1", label="1950s")
        image = open_png(data)

        assert image.size == (1080, 1280)
        assert image.getpixel((0, 0))[:3] == PANEL_COLOR
        assert image.getpixel((40, 40))[:3] == RED
        assert image.getpixel((1039, 1039))[:3] == RED

    def test_crops_before_framing(self, png_factory):
        data = frame_image(png_factory((1000, 500), RED), "1:1")
        image = open_png(data)

        # 500x500 crop: 20 px sides and top, 90 px bottom band.
        assert image.size == (540, 610)

    def test_portrait_ratio(self, png_factory):
        data = frame_image(png_factory((900, 1600), RED), "9:16", label=None)
        assert open_png(data).size == (972, 1600 + 36 + 162)

    def test_empty_label_is_unlabelled(self, png_factory):
        source = png_factory((200, 200), RED)
        assert open_png(frame_image(source, "1:1", label="")).size == open_png(
            frame_image(source, "1:1")
        ).size

    def test_missing_font_file_falls_back(self, png_factory, tmp_path):
        fonts = FontSet(script_path=tmp_path / "missing.ttf", sans_path=tmp_path / "nope.ttf")
        data = frame_image(png_factory((200, 200), RED), "1:1", label="Hello", fonts=fonts)
        assert open_png(data).size == (216, 256)

    def test_undecodable_source(self):
        with pytest.raises(DecodeError):
            frame_image(b"garbage", "1:1")


class TestAlbumLayout:
    @pytest.mark.parametrize(
        "count, cols, rows",
        [(1, 2, 1), (2, 2, 1), (4, 2, 2), (5, 3, 2), (6, 3, 2), (7, 3, 3)],
    )
    def test_grid_shape(self, count, cols, rows):
        layout = album_layout(count, 100, 100)
        assert (layout.cols, layout.rows) == (cols, rows)

    def test_dimensions(self):
        layout = album_layout(5, 100, 100)
        assert layout.padding == 5
        assert (layout.grid_width, layout.grid_height) == (320, 215)
        assert layout.outer_padding == 16
        assert layout.title_font_size == 48
        assert layout.title_band == 72
        assert layout.credit_font_size == 24
        assert layout.footer_band == 96
        assert (layout.canvas_width, layout.canvas_height) == (352, 415)

    def test_large_grid_scales_fonts(self):
        layout = album_layout(6, 1000, 1000)
        assert layout.grid_width == 3000 + 4 * 50
        assert layout.title_font_size == 224
        assert layout.credit_font_size == 80
        assert layout.attribution_font_size == 70

    def test_cells_are_row_major(self):
        layout = album_layout(5, 100, 100)
        assert layout.cell_origin(0) == (5, 5)
        assert layout.cell_origin(2) == (215, 5)
        assert layout.cell_origin(3) == (5, 110)

    def test_zero_count(self):
        with pytest.raises(EmptyAlbum):
            album_layout(0, 100, 100)


class TestCaptionImage:
    def test_adds_band_of_fourteen_percent(self):
        cell = caption_image(Image.new("RGB", (100, 100), RED), "1970s")
        assert cell.size == (100, 114)
        assert cell.mode == "RGBA"
        assert cell.getpixel((50, 10)) == RED + (255,)
        assert cell.getpixel((0, 113))[3] == 0


class TestComposeAlbum:
    def test_five_images(self, png_factory):
        items = [success_item(f"item-{i}", png_factory((200, 100), RED)) for i in range(5)]

        sheet = open_png(compose_album(items, "1:1", "My Album", add_captions=False))

        assert sheet.size == (352, 415)
        assert sheet.getpixel((0, 0))[:3] == PANEL_COLOR
        # Grid starts at (outer, outer + title band); first cell is inset by padding.
        assert sheet.getpixel((16, 88))[:3] == GRID_BACKDROP_COLOR
        assert sheet.getpixel((21, 93))[:3] == RED

    def test_captions_grow_cells(self, png_factory):
        items = [success_item(f"item-{i}", png_factory((100, 100), RED)) for i in range(2)]

        plain = open_png(compose_album(items, "1:1", "T", add_captions=False))
        captioned = open_png(compose_album(items, "1:1", "T", add_captions=True))

        assert captioned.width == plain.width
        assert captioned.height > plain.height

    def test_only_successful_items_are_used(self, png_factory):
        good = [success_item(f"ok-{i}", png_factory((100, 100), RED)) for i in range(4)]
        failed = GenerationItem(id="bad")
        failed.mark_failed("boom")
        pending = GenerationItem(id="waiting")

        sheet = open_png(compose_album(good + [failed, pending], "1:1", "T", add_captions=False))
        expected = album_layout(4, 100, 100)

        assert sheet.size == (expected.canvas_width, expected.canvas_height)

    def test_mismatched_sources_are_resized(self, png_factory):
        items = [
            success_item("a", png_factory((100, 100), RED)),
            success_item("b", png_factory((300, 300), (0, 0, 255))),
        ]
        sheet = open_png(compose_album(items, "1:1", "T", add_captions=False))
        expected = album_layout(2, 100, 100)
        assert sheet.size == (expected.canvas_width, expected.canvas_height)

    def test_no_items(self):
        with pytest.raises(EmptyAlbum, match="no successful images"):
            compose_album([], "1:1", "T", add_captions=True)

    def test_only_failed_items(self):
        failed = GenerationItem(id="bad")
        failed.mark_failed("boom")
        with pytest.raises(EmptyAlbum):
            compose_album([failed], "1:1", "T", add_captions=True)

    def test_undecodable_item_image(self):
        item = GenerationItem(id="corrupt")
        item.mark_success(GeneratedImage(data=b"not a png"))
        with pytest.raises(DecodeError):
            compose_album([item], "1:1", "T", add_captions=False)

    def test_item_status_is_not_mutated(self, png_factory):
        items = [success_item("a", png_factory((50, 50), RED))]
        compose_album(items, "1:1", "T", add_captions=True)
        assert items[0].status is ItemStatus.SUCCESS


class TestRenderExport:
    def test_single_export_frames_first_item(self, png_factory):
        item = success_item("1950s", png_factory((100, 100), RED))

        data = render_export(CompositionSpec(aspect_ratio="1:1", label="1950s"), [item])

        assert open_png(data).size == (108, 128)

    def test_album_export(self, png_factory):
        items = [success_item(f"item-{i}", png_factory((200, 100), RED)) for i in range(5)]

        data = render_export(CompositionSpec(aspect_ratio="1:1", is_album=True), items, title="T")

        assert open_png(data).size == (352, 415)

    def test_single_export_needs_success(self):
        failed = GenerationItem(id="bad")
        failed.mark_failed("boom")
        with pytest.raises(ValueError):
            render_export(CompositionSpec(), [failed])

    def test_empty_album(self):
        with pytest.raises(EmptyAlbum):
            render_export(CompositionSpec(is_album=True), [])


class TestConcurrentRegeneration:
    def test_album_survives_item_reset_mid_render(self, png_factory):
        items = [success_item(f"item-{i}", png_factory((100, 100), RED)) for i in range(2)]

        class RegeneratedDuringRender(GeneratedImage):
            def to_pil(self):
                # A regeneration on the event loop resets a sibling mid-export.
                items[1].mark_pending()
                return super().to_pil()

        items[0].mark_success(RegeneratedDuringRender(data=png_factory((100, 100), RED)))

        sheet = open_png(compose_album(items, "1:1", "T", add_captions=True))

        assert items[1].image is None
        expected = album_layout(2, 100, 114)
        assert sheet.size == (expected.canvas_width, expected.canvas_height)
