"""Data model for generation batches and composition requests.

These are plain dataclasses: the batch and its items are mutated in place by
:class:`~pictureme.core.batch.BatchOrchestrator`, while prompts, payloads,
reference images, and generated artifacts are frozen once created.
"""

from __future__ import annotations

import base64
import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from PIL import Image

from pictureme.core.images import PNG_MIME_TYPE, b64decode, decode_image, split_data_uri, to_data_uri

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PromptSpec:
    """One themed prompt: ``id`` doubles as the item label, ``base`` feeds the instruction."""

    id: str
    base: str


@dataclass(frozen=True)
class ReferenceImage:
    """The user's reference photo, shared read-only by every payload of a batch."""

    data: bytes
    mime_type: str = PNG_MIME_TYPE

    @classmethod
    def from_base64(cls, value: str, mime_type: str | None = None) -> ReferenceImage:
        """Build from a base64 string or a ``data:`` URI.

        The MIME type declared by a data URI wins over ``mime_type``; plain
        base64 defaults to PNG.
        """
        declared, _ = split_data_uri(value.strip())
        return cls(data=b64decode(value), mime_type=declared or mime_type or PNG_MIME_TYPE)

    @property
    def b64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


@dataclass(frozen=True)
class GenerationPayload:
    """Fully resolved request body for one generation call."""

    instruction: str
    reference: ReferenceImage | None = None

    def to_request_body(self) -> dict:
        """Serialise to the ``generateContent`` JSON body.

        Returns:
            ``{"contents": [{"parts": [{"text": ...}, {"inlineData": {...}}]}]}``
            (the inline part is omitted for text-only requests).
        """
        parts: list[dict] = [{"text": self.instruction}]
        if self.reference is not None:
            parts.append(
                {
                    "inlineData": {
                        "mimeType": self.reference.mime_type,
                        "data": self.reference.b64,
                    }
                }
            )
        return {"contents": [{"parts": parts}]}


@dataclass(frozen=True)
class GeneratedImage:
    """A decoded generation result, always tagged as PNG."""

    data: bytes
    mime_type: str = PNG_MIME_TYPE

    @property
    def data_uri(self) -> str:
        return to_data_uri(self.data, self.mime_type)

    def to_pil(self) -> Image.Image:
        return decode_image(self.data)


class ItemStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class GenerationItem:
    """One unit of batch work, addressed by its index in the batch."""

    id: str
    status: ItemStatus = ItemStatus.PENDING
    image: GeneratedImage | None = None
    error: str | None = None

    def mark_pending(self) -> None:
        self.status = ItemStatus.PENDING
        self.image = None
        self.error = None

    def mark_success(self, image: GeneratedImage) -> None:
        self.status = ItemStatus.SUCCESS
        self.image = image
        self.error = None

    def mark_failed(self, error: str) -> None:
        self.status = ItemStatus.FAILED
        self.image = None
        self.error = error


# (prompt, album_style) -> instruction text
InstructionBuilder = Callable[[PromptSpec, str], str]


def _default_instruction(prompt: PromptSpec, album_style: str) -> str:
    return f"Create an image based on the reference photo and this prompt: {prompt.base}"


@dataclass(frozen=True)
class BatchPlan:
    """Everything needed to start a batch, snapshotted for its whole lifetime.

    Regeneration re-derives an item's instruction from this snapshot, never
    from the caller's current theme selection, so a regenerated item always
    targets the prompt it was created with.

    Attributes:
        prompts: Ordered, index-aligned prompts; one item is created per prompt.
        reference: Reference photo, or ``None`` when the caller has none yet
            (rejected by ``BatchOrchestrator.start``).
        build_instruction: Builds the instruction for one prompt given the
            batch-wide album style (empty string when no priming happened).
        priming_description: When set, a shared style is generated from this
            description before any item runs.
        theme_id: Theme the plan was built from, if any.
        album_title: Title drawn on album exports.
        label_results: Whether exports are captioned with the item id.
    """

    prompts: tuple[PromptSpec, ...]
    reference: ReferenceImage | None
    build_instruction: InstructionBuilder = _default_instruction
    priming_description: str | None = None
    theme_id: str | None = None
    album_title: str = "My PictureMe Album"
    label_results: bool = True


@dataclass
class Batch:
    """Ordered generation items plus the plan they were built from."""

    plan: BatchPlan
    items: list[GenerationItem]
    album_style: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: float = field(default_factory=time.time)

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def completed(self) -> int:
        return sum(1 for item in self.items if item.status is not ItemStatus.PENDING)

    @property
    def progress(self) -> float:
        """Fraction of items that are no longer pending (0.0 for an empty batch)."""
        if not self.items:
            return 0.0
        return self.completed / self.total

    def successful_items(self) -> list[GenerationItem]:
        return [item for item in self.items if item.status is ItemStatus.SUCCESS]

    def __repr__(self) -> str:
        return (
            f"Batch(id={self.id[:8]}, theme={self.plan.theme_id}, "
            f"completed={self.completed}/{self.total})"
        )


@dataclass(frozen=True)
class CompositionSpec:
    """Export request.

    ``label`` captions a single framed export; ``add_captions`` draws each
    item id beneath its cell in an album.
    """

    aspect_ratio: str = "1:1"
    label: str | None = None
    is_album: bool = False
    add_captions: bool = False
