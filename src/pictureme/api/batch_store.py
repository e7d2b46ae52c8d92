"""In-memory batch registry for the PictureMe API.

Batches live only for the lifetime of the process.  Starting a new batch or
deleting one replaces it wholesale; nothing is written to disk.

This module also holds the small helpers that turn a batch into JSON and
derive download filenames, so route handlers in :mod:`pictureme.api.main`
can focus on HTTP concerns.
"""

from __future__ import annotations

import re

from pictureme.core.models import Batch


class BatchStore:
    """Batches keyed by id, plus the ids whose main run is still going."""

    def __init__(self) -> None:
        self._batches: dict[str, Batch] = {}
        self._running: set[str] = set()

    def add(self, batch: Batch) -> None:
        self._batches[batch.id] = batch

    def get(self, batch_id: str) -> Batch | None:
        return self._batches.get(batch_id)

    def remove(self, batch_id: str) -> bool:
        self._running.discard(batch_id)
        return self._batches.pop(batch_id, None) is not None

    def mark_running(self, batch_id: str, running: bool) -> None:
        if running:
            self._running.add(batch_id)
        else:
            self._running.discard(batch_id)

    def is_running(self, batch_id: str) -> bool:
        return batch_id in self._running

    def __len__(self) -> int:
        return len(self._batches)


def serialize_batch(batch: Batch, *, running: bool = False, include_images: bool = True) -> dict:
    """Build the JSON snapshot of a batch.

    Args:
        batch: Batch to serialise.
        running: Whether the main run is still in progress.
        include_images: Embed successful images as PNG data URIs.

    Returns:
        Dictionary with ``id``, ``theme_id``, ``album_title``, ``album_style``,
        ``running``, ``progress``, ``completed``, ``total``, and ``items``.
    """
    items = []
    for index, item in enumerate(batch.items):
        entry = {
            "index": index,
            "id": item.id,
            "status": item.status.value,
            "error": item.error,
        }
        if include_images:
            entry["image_url"] = item.image.data_uri if item.image else None
        items.append(entry)

    return {
        "id": batch.id,
        "theme_id": batch.plan.theme_id,
        "album_title": batch.plan.album_title,
        "album_style": batch.album_style,
        "running": running,
        "progress": batch.progress,
        "completed": batch.completed,
        "total": batch.total,
        "items": items,
    }


def _slug(text: str) -> str:
    return re.sub(r"\s+", "-", text.strip().lower())


def download_filename(label: str, aspect_ratio: str) -> str:
    """``picture-me-{label}-{WxH}.png`` for a single framed image."""
    return f"picture-me-{_slug(label)}-{aspect_ratio.replace(':', 'x')}.png"


def album_filename(aspect_ratio: str) -> str:
    """``picture-me-album-{WxH}.png`` for an album sheet."""
    return f"picture-me-album-{aspect_ratio.replace(':', 'x')}.png"
