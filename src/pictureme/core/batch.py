"""Batch orchestration: sequential generation with per-item status tracking.

:class:`BatchOrchestrator` owns the lifecycle of a :class:`Batch`:

- **start** — validate the plan, run the optional batch-wide style priming,
  and create one ``pending`` item per prompt.
- **run** — walk the items strictly in order, one remote call at a time,
  recording ``success`` (with image) or ``failed`` into that item's slot
  only.  A failed item never stops the loop.
- **regenerate** — re-run a single item by index, independently of the main
  loop and of its siblings.

Items and prompts are index-aligned for the lifetime of the batch.  The plan
(prompts, reference image, instruction builder) is snapshotted when the batch
is created, so regeneration always re-derives the same prompt the item was
originally generated from.
"""

from __future__ import annotations

import logging

from pictureme.core.errors import PrimingError, RegenerationInFlight, ValidationError
from pictureme.core.generation import GenerationClient, build_payload
from pictureme.core.models import Batch, BatchPlan, GenerationItem

logger = logging.getLogger(__name__)


def validate_plan(plan: BatchPlan) -> None:
    """Check the preconditions for starting a batch.

    Raises:
        ValidationError: Missing reference image, no prompts, or duplicate
            prompt ids.
    """
    if plan.reference is None or not plan.reference.data:
        raise ValidationError("Please upload a photo to get started!")
    if not plan.prompts:
        raise ValidationError("There was an issue preparing the creative ideas. Please try again.")

    seen: set[str] = set()
    for prompt in plan.prompts:
        if prompt.id in seen:
            raise ValidationError(f"Duplicate prompt id in batch: {prompt.id}")
        seen.add(prompt.id)


class BatchOrchestrator:
    """Drives generation for batches of themed prompts.

    Attributes:
        _client: Generation client shared by every item.
        total_attempts: Attempt budget handed to the client per item.
    """

    def __init__(self, client: GenerationClient, *, total_attempts: int | None = None) -> None:
        self._client = client
        self.total_attempts = total_attempts
        # (batch id, index) pairs with an attempt currently running.
        self._in_flight: set[tuple[str, int]] = set()

    async def start(self, plan: BatchPlan) -> Batch:
        """Validate ``plan``, prime the album style if needed, and create the batch.

        Args:
            plan: Prompts, reference image, and instruction builder.

        Returns:
            A new batch with every item ``pending`` and progress 0.

        Raises:
            ValidationError: The plan cannot start.
            PrimingError: The shared style could not be generated; no batch
                is created.
        """
        validate_plan(plan)

        album_style = ""
        if plan.priming_description:
            logger.info(f"Priming album style for theme {plan.theme_id!r}")
            try:
                album_style = await self._client.generate_text(
                    plan.priming_description, self.total_attempts
                )
            except Exception as e:
                logger.error(f"Style priming failed: {e}", exc_info=True)
                raise PrimingError("We couldn't generate a photoshoot style. Please try again.") from e
            logger.info(f"Album style: {album_style}")

        batch = Batch(
            plan=plan,
            items=[GenerationItem(id=prompt.id) for prompt in plan.prompts],
            album_style=album_style,
        )
        logger.info(f"Started {batch!r}")
        return batch

    async def run(self, batch: Batch) -> Batch:
        """Generate every item of ``batch`` in order, one call at a time.

        Item failures are recorded on the item and never abort the loop.

        Returns:
            The same batch, with every item ``success`` or ``failed``.
        """
        for index in range(len(batch.items)):
            if self.is_in_flight(batch, index):
                # A regeneration already owns this item; it will land the status.
                logger.info(f"Skipping item {index}: regeneration in flight")
                continue
            await self._generate_item(batch, index)

        logger.info(
            f"Batch {batch.id[:8]} finished: "
            f"{len(batch.successful_items())}/{batch.total} succeeded"
        )
        return batch

    async def generate(self, plan: BatchPlan) -> Batch:
        """Start a batch from ``plan`` and run it to completion."""
        batch = await self.start(plan)
        return await self.run(batch)

    async def regenerate(self, batch: Batch, index: int) -> GenerationItem:
        """Re-run the item at ``index`` without touching any other item.

        Args:
            batch: Batch that owns the item.
            index: Position of the item.

        Returns:
            The regenerated item (``success`` or ``failed``).

        Raises:
            IndexError: No item exists at ``index``.
            RegenerationInFlight: The item already has an attempt running.
        """
        if index < 0 or index >= len(batch.items):
            raise IndexError(f"No item at index {index} (batch has {len(batch.items)})")
        if (batch.id, index) in self._in_flight:
            raise RegenerationInFlight(f"Item {index} is already being generated")

        batch.items[index].mark_pending()
        return await self._generate_item(batch, index)

    def is_in_flight(self, batch: Batch, index: int) -> bool:
        return (batch.id, index) in self._in_flight

    async def _generate_item(self, batch: Batch, index: int) -> GenerationItem:
        item = batch.items[index]
        prompt = batch.plan.prompts[index]
        key = (batch.id, index)

        self._in_flight.add(key)
        try:
            instruction = batch.plan.build_instruction(prompt, batch.album_style)
            payload = build_payload(instruction, batch.plan.reference)
            image = await self._client.generate(payload, self.total_attempts)
        except Exception as e:
            logger.error(f"Failed to generate image for {prompt.id} after all retries: {e}", exc_info=True)
            item.mark_failed(str(e))
        else:
            item.mark_success(image)
            logger.info(f"Generated {prompt.id} ({index + 1}/{batch.total})")
        finally:
            self._in_flight.discard(key)

        return item
