"""Generation client: fixed-attempt retries on top of the resilient transport.

:class:`GenerationClient` turns a :class:`GenerationPayload` into a decoded
:class:`GeneratedImage`.  It wraps :class:`ResilientTransport` (which already
retries rate limits and network failures) with an outer loop aimed at a
different failure: the endpoint answered successfully but returned no image.

Attempt Loop
------------
For ``attempt`` in ``1..total_attempts``:

1. Send the payload through the transport.
2. Take the first part of ``candidates[0].content.parts`` that carries
   ``inlineData.data`` and return it as a PNG artifact.
3. Otherwise (transport raised, or no image in the body) remember the error
   and, unless this was the last attempt, wait
   ``base_delay_ms * 2 ** (attempt - 1)``.

After the loop :class:`GenerationExhausted` is raised with the last error's
message.  ``Unauthorized`` is not special-cased here: an invalid key still
spends every attempt and every delay before failing.

Style priming uses :meth:`GenerationClient.generate_text`, which runs the same
loop but extracts the first ``text`` part instead of an image.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from pictureme.core.errors import GenerationExhausted
from pictureme.core.models import GeneratedImage, GenerationPayload, ReferenceImage
from pictureme.core.transport import (
    DEFAULT_INITIAL_BACKOFF_MS,
    DEFAULT_MAX_RETRIES,
    ResilientTransport,
    Sleep,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TOTAL_ATTEMPTS = 3
DEFAULT_BASE_DELAY_MS = 2500


class NoImageData(Exception):
    """The response parsed but carried no usable payload."""


def build_payload(instruction: str, reference: ReferenceImage | None) -> GenerationPayload:
    """Build a fresh payload for one generation call."""
    return GenerationPayload(instruction=instruction, reference=reference)


def _first_candidate_parts(body: Any) -> list[dict]:
    if not isinstance(body, dict):
        return []
    candidates = body.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        return []
    content = candidates[0].get("content") or {}
    parts = content.get("parts") if isinstance(content, dict) else None
    return [p for p in parts or [] if isinstance(p, dict)]


def extract_image_data(body: Any) -> str | None:
    """Return the base64 ``inlineData.data`` of the first part that has one."""
    for part in _first_candidate_parts(body):
        inline = part.get("inlineData")
        if isinstance(inline, dict) and inline.get("data"):
            return inline["data"]
    return None


def extract_text(body: Any) -> str | None:
    """Return the first non-empty ``text`` part, stripped."""
    for part in _first_candidate_parts(body):
        text = part.get("text")
        if isinstance(text, str) and text.strip():
            return text.strip()
    return None


class GenerationClient:
    """Generates images (and priming text) against the remote endpoint.

    Attributes:
        _transport: Transport used for every attempt.
        _url: ``generateContent`` URL.
        total_attempts: Default attempt budget per call.
        base_delay_ms: Delay before the second attempt; doubles per attempt.
    """

    def __init__(
        self,
        transport: ResilientTransport,
        url: str,
        *,
        total_attempts: int = DEFAULT_TOTAL_ATTEMPTS,
        base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
        transport_max_retries: int = DEFAULT_MAX_RETRIES,
        transport_initial_backoff_ms: int = DEFAULT_INITIAL_BACKOFF_MS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._url = url
        self.total_attempts = total_attempts
        self.base_delay_ms = base_delay_ms
        self._transport_max_retries = transport_max_retries
        self._transport_initial_backoff_ms = transport_initial_backoff_ms
        self._sleep = sleep

    async def generate(
        self, payload: GenerationPayload, total_attempts: int | None = None
    ) -> GeneratedImage:
        """Generate one image for ``payload``.

        Args:
            payload: Instruction plus reference image.
            total_attempts: Attempt budget; defaults to the client's.

        Returns:
            The first image the endpoint returns, tagged as PNG.

        Raises:
            GenerationExhausted: Every attempt failed.
        """

        def parse(body: Any) -> GeneratedImage:
            data = extract_image_data(body)
            if not data:
                raise NoImageData("API returned no image data.")
            try:
                return GeneratedImage(data=base64.b64decode(data))
            except (binascii.Error, ValueError) as e:
                raise NoImageData(f"API returned undecodable image data: {e}") from e

        return await self._attempt(payload, parse, total_attempts)

    async def generate_text(self, instruction: str, total_attempts: int | None = None) -> str:
        """Generate free text (used for batch-wide style priming).

        Raises:
            GenerationExhausted: Every attempt failed.
        """

        def parse(body: Any) -> str:
            text = extract_text(body)
            if not text:
                raise NoImageData("API returned no text.")
            return text

        return await self._attempt(build_payload(instruction, None), parse, total_attempts)

    async def _attempt(
        self,
        payload: GenerationPayload,
        parse: Callable[[Any], T],
        total_attempts: int | None,
    ) -> T:
        attempts = total_attempts if total_attempts is not None else self.total_attempts
        body = payload.to_request_body()
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                result = await self._transport.send(
                    self._url,
                    body,
                    self._transport_max_retries,
                    self._transport_initial_backoff_ms,
                )
                return parse(result)
            except NoImageData as e:
                last_error = e
                logger.warning(f"Attempt {attempt}/{attempts}: {e}")
            except Exception as e:
                last_error = e
                logger.error(f"Attempt {attempt}/{attempts} failed: {e}")

            if attempt < attempts:
                delay_ms = self.base_delay_ms * 2 ** (attempt - 1)
                logger.info(f"Waiting {delay_ms / 1000}s before next attempt...")
                await self._sleep(delay_ms / 1000)

        raise GenerationExhausted(attempts, str(last_error) if last_error else None)
