"""Tests for pictureme.core.models and pictureme.core.images."""

from __future__ import annotations

import base64

import pytest

from pictureme.core.errors import DecodeError
from pictureme.core.images import decode_image, split_data_uri
from pictureme.core.models import (
    Batch,
    BatchPlan,
    GeneratedImage,
    GenerationItem,
    ItemStatus,
    ReferenceImage,
)


class TestReferenceImage:
    def test_from_plain_base64_defaults_to_png(self, png_bytes):
        ref = ReferenceImage.from_base64(base64.b64encode(png_bytes).decode())
        assert ref.data == png_bytes
        assert ref.mime_type == "image/png"

    def test_data_uri_mime_type_wins(self, png_bytes):
        uri = "data:image/jpeg;base64," + base64.b64encode(png_bytes).decode()
        ref = ReferenceImage.from_base64(uri, mime_type="image/webp")
        assert ref.mime_type == "image/jpeg"
        assert ref.data == png_bytes

    def test_explicit_mime_type_for_plain_base64(self, png_bytes):
        ref = ReferenceImage.from_base64(base64.b64encode(png_bytes).decode(), "image/webp")
        assert ref.mime_type == "image/webp"

    def test_invalid_base64(self):
        with pytest.raises(DecodeError):
            ReferenceImage.from_base64("this is !!! not base64")


class TestGeneratedImage:
    def test_data_uri(self, png_bytes):
        image = GeneratedImage(data=png_bytes)
        mime, payload = split_data_uri(image.data_uri)
        assert mime == "image/png"
        assert base64.b64decode(payload) == png_bytes

    def test_to_pil(self, png_bytes):
        assert GeneratedImage(data=png_bytes).to_pil().size == (120, 80)


class TestDecodeImage:
    def test_accepts_data_uri(self, png_bytes):
        uri = GeneratedImage(data=png_bytes).data_uri
        assert decode_image(uri).size == (120, 80)

    @pytest.mark.parametrize("data", [b"", b"\x89PNG broken", "@@@"])
    def test_rejects_garbage(self, data):
        with pytest.raises(DecodeError):
            decode_image(data)


class TestGenerationItem:
    def test_transitions_clear_stale_fields(self, png_bytes):
        item = GenerationItem(id="x")
        item.mark_failed("boom")
        assert (item.status, item.error, item.image) == (ItemStatus.FAILED, "boom", None)

        item.mark_success(GeneratedImage(data=png_bytes))
        assert item.status is ItemStatus.SUCCESS
        assert item.error is None

        item.mark_pending()
        assert item.image is None
        assert item.status is ItemStatus.PENDING


class TestBatch:
    def test_empty_batch_progress(self, reference_image):
        batch = Batch(plan=BatchPlan(prompts=(), reference=reference_image), items=[])
        assert batch.progress == 0.0
        assert batch.total == 0

    def test_progress_counts_settled_items(self, simple_plan):
        items = [GenerationItem(id=p.id) for p in simple_plan.prompts]
        batch = Batch(plan=simple_plan, items=items)

        items[0].mark_failed("x")
        assert batch.completed == 1
        assert batch.progress == pytest.approx(1 / 3)
        assert batch.successful_items() == []

    def test_ids_are_unique(self, simple_plan):
        assert Batch(plan=simple_plan, items=[]).id != Batch(plan=simple_plan, items=[]).id

    def test_repr(self, simple_plan):
        batch = Batch(plan=simple_plan, items=[GenerationItem(id="alpha")])
        assert "completed=0/1" in repr(batch)
