"""Core functionality for themed generation batches and exports.

Architecture Overview
---------------------
The core is layered leaf-first:

1. **Transport** (transport.py):
   - JSON POST over ``httpx`` with doubling backoff on 429 / network failure
   - 401 and other statuses classified into terminal errors

2. **Generation Client** (generation.py):
   - Fixed-attempt retry loop for "answered but no image" responses
   - Extracts inline image data (or text, for style priming)

3. **Batch Orchestrator** (batch.py):
   - Sequential, index-driven generation with per-item status
   - Independent single-item regeneration
   - Optional batch-wide style priming

4. **Composition** (cropper.py, compositor.py):
   - Center crop to an aspect ratio
   - Framed single exports and album sheets rendered with Pillow

5. **Support**:
   - config.py: Pydantic Settings (``PICTUREME_`` prefix)
   - errors.py: exception taxonomy
   - models.py: batch, item, payload, and artifact types
   - images.py: decode/encode helpers and data URIs
   - themes.py: theme catalog and instruction builder

Usage Example
-------------
    import httpx

    from pictureme.core import BatchOrchestrator, GenerationClient, ResilientTransport
    from pictureme.core.themes import build_plan

    async with httpx.AsyncClient(timeout=120) as http:
        client = GenerationClient(ResilientTransport(http), url)
        batch = await BatchOrchestrator(client).generate(build_plan("decades", reference))
"""

from pictureme.core.batch import BatchOrchestrator
from pictureme.core.config import PictureMeConfig, config
from pictureme.core.generation import GenerationClient
from pictureme.core.transport import ResilientTransport

__all__ = [
    "BatchOrchestrator",
    "GenerationClient",
    "PictureMeConfig",
    "ResilientTransport",
    "config",
]
