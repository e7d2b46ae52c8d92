"""PictureMe — FastAPI Application.

This module is the single entry point for the web service.  It defines the
FastAPI ``app`` instance, all REST API routes, and the ``main()`` CLI
function that launches the uvicorn server.

Architecture
------------
- **Generation** is performed by :class:`~pictureme.core.batch.BatchOrchestrator`
  on top of a shared ``httpx.AsyncClient`` created in the lifespan handler.
- **Batches** are kept in memory by :class:`~pictureme.api.batch_store.BatchStore`;
  nothing is persisted.
- **The main batch run** is scheduled as a background task after the
  ``POST /api/batches`` response is sent.  Clients poll
  ``GET /api/batches/{id}`` for progress.
- **Exports** (framed image, album) are rendered with Pillow in the thread
  pool and returned as PNG downloads.

Endpoints
---------
========  ==========================================  ===============================
Method    Path                                        Purpose
========  ==========================================  ===============================
GET       ``/api/config``                             Themes and aspect ratios
POST      ``/api/batches``                            Validate, prime, start a batch
GET       ``/api/batches/{id}``                       Batch status and items
DELETE    ``/api/batches/{id}``                       Drop a batch (start over)
POST      ``/api/batches/{id}/items/{i}/regenerate``  Regenerate one item
GET       ``/api/batches/{id}/items/{i}/download``    Framed PNG of one item
GET       ``/api/batches/{id}/album``                 Album sheet PNG
========  ==========================================  ===============================

Usage
-----
CLI (installed entry point)::

    pictureme

Direct invocation::

    python -m pictureme.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from pictureme import __version__
from pictureme.api.batch_store import (
    BatchStore,
    album_filename,
    download_filename,
    serialize_batch,
)
from pictureme.api.models import StartBatchRequest
from pictureme.core.batch import BatchOrchestrator
from pictureme.core.compositor import FontSet, render_export
from pictureme.core.config import PictureMeConfig, config
from pictureme.core.errors import (
    DecodeError,
    EmptyAlbum,
    PrimingError,
    RegenerationInFlight,
    ValidationError,
)
from pictureme.core.generation import GenerationClient
from pictureme.core.models import Batch, CompositionSpec, ItemStatus, ReferenceImage
from pictureme.core.themes import THEMES, build_plan
from pictureme.core.transport import ResilientTransport

logger = logging.getLogger(__name__)

ASPECT_RATIOS = ("1:1", "9:16")

# ---------------------------------------------------------------------------
# Application lifecycle: HTTP client and orchestrator setup and teardown.
# ---------------------------------------------------------------------------


def build_orchestrator(http: httpx.AsyncClient, cfg: PictureMeConfig) -> BatchOrchestrator:
    """Wire transport, generation client, and orchestrator from configuration.

    Args:
        http: Shared async HTTP client.
        cfg: Configuration supplying the endpoint and retry budget.

    Returns:
        A ready-to-use :class:`BatchOrchestrator`.
    """
    transport = ResilientTransport(http, params={"key": cfg.api_key} if cfg.api_key else None)
    client = GenerationClient(
        transport,
        cfg.generate_url,
        total_attempts=cfg.generation_attempts,
        base_delay_ms=cfg.generation_base_delay_ms,
        transport_max_retries=cfg.transport_max_retries,
        transport_initial_backoff_ms=cfg.transport_initial_backoff_ms,
    )
    return BatchOrchestrator(client, total_attempts=cfg.generation_attempts)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup:
        Creates the shared ``httpx.AsyncClient``, the orchestrator, the
        in-memory batch store, and the font set, and stores them on
        ``app.state``.

    On shutdown:
        Closes the HTTP client.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    # --- Startup -----------------------------------------------------------
    http = httpx.AsyncClient(timeout=config.request_timeout)
    app.state.orchestrator = build_orchestrator(http, config)
    app.state.batch_store = BatchStore()
    app.state.fonts = FontSet(config.script_font_path, config.sans_font_path)
    logger.info(f"Generation endpoint: {config.generate_url}")

    yield  # Application runs here.

    # --- Shutdown ----------------------------------------------------------
    await http.aclose()
    logger.info("HTTP client closed on shutdown.")


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="PictureMe",
    description="Themed AI photo batches with framed and album exports.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Helpers.
# ---------------------------------------------------------------------------


def _get_batch(request: Request, batch_id: str) -> Batch:
    batch = request.app.state.batch_store.get(batch_id)
    if batch is None:
        raise HTTPException(status_code=404, detail="Batch not found")
    return batch


def _check_aspect_ratio(aspect_ratio: str) -> None:
    if aspect_ratio not in ASPECT_RATIOS:
        raise HTTPException(
            status_code=400,
            detail=f"aspect_ratio must be one of {', '.join(ASPECT_RATIOS)}",
        )


def _png_download(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


async def _run_batch(store: BatchStore, orchestrator: BatchOrchestrator, batch: Batch) -> None:
    """Background task: run the batch to completion and clear its running flag."""
    try:
        await orchestrator.run(batch)
    finally:
        store.mark_running(batch.id, False)


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.get("/api/config")
async def get_config() -> dict:
    """Return the theme catalog and export options for the frontend.

    Returns:
        Dictionary with keys ``version``, ``themes``, and ``aspect_ratios``.
    """
    return {
        "version": __version__,
        "themes": [
            {
                "id": theme.id,
                "name": theme.name,
                "description": theme.description,
                "labelled": theme.labelled,
                "styles": list(theme.styles),
                "prompts": [prompt.id for prompt in theme.prompts],
            }
            for theme in THEMES.values()
        ],
        "aspect_ratios": list(ASPECT_RATIOS),
    }


@app.post("/api/batches")
async def start_batch(
    req: StartBatchRequest, request: Request, background_tasks: BackgroundTasks
) -> dict:
    """Validate the request, prime the album style if needed, and start a batch.

    The batch is registered immediately with every item ``pending``; the
    sequential generation run is scheduled as a background task.

    Args:
        req: Validated :class:`StartBatchRequest` payload.

    Returns:
        The batch snapshot (see :func:`serialize_batch`).

    Raises:
        HTTPException: 400 for invalid input, 502 when style priming fails.
    """
    store: BatchStore = request.app.state.batch_store
    orchestrator: BatchOrchestrator = request.app.state.orchestrator

    try:
        reference = ReferenceImage.from_base64(req.reference_image, req.mime_type)
        plan = build_plan(req.theme_id, reference, req.options.to_options())
        batch = await orchestrator.start(plan)
    except (ValidationError, DecodeError) as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except PrimingError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e

    store.add(batch)
    store.mark_running(batch.id, True)
    background_tasks.add_task(_run_batch, store, orchestrator, batch)

    return serialize_batch(batch, running=True)


@app.get("/api/batches/{batch_id}")
async def get_batch(batch_id: str, request: Request, include_images: bool = True) -> dict:
    """Return the current status of a batch.

    Args:
        batch_id: Batch UUID.
        include_images: Embed successful images as data URIs.

    Raises:
        HTTPException: 404 if the batch is not found.
    """
    batch = _get_batch(request, batch_id)
    store: BatchStore = request.app.state.batch_store
    return serialize_batch(batch, running=store.is_running(batch_id), include_images=include_images)


@app.delete("/api/batches/{batch_id}")
async def delete_batch(batch_id: str, request: Request) -> dict:
    """Drop a batch from memory.

    Raises:
        HTTPException: 404 if the batch is not found.
    """
    if not request.app.state.batch_store.remove(batch_id):
        raise HTTPException(status_code=404, detail="Batch not found")
    return {"success": True, "deleted": batch_id}


@app.post("/api/batches/{batch_id}/items/{index}/regenerate")
async def regenerate_item(batch_id: str, index: int, request: Request) -> dict:
    """Regenerate a single item, leaving its siblings untouched.

    Returns:
        Dictionary with the item's ``index``, ``id``, ``status``, ``error``,
        ``image_url``, and the batch ``progress``.

    Raises:
        HTTPException: 404 for unknown batch or index, 409 if the item is
            already being generated.
    """
    batch = _get_batch(request, batch_id)
    orchestrator: BatchOrchestrator = request.app.state.orchestrator

    try:
        item = await orchestrator.regenerate(batch, index)
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except RegenerationInFlight as e:
        raise HTTPException(status_code=409, detail=str(e)) from e

    if item.status is ItemStatus.FAILED:
        logger.warning(f"Regeneration for {item.id!r} failed: {item.error}")

    return {
        "index": index,
        "id": item.id,
        "status": item.status.value,
        "error": item.error,
        "image_url": item.image.data_uri if item.image else None,
        "progress": batch.progress,
    }


@app.get("/api/batches/{batch_id}/items/{index}/download")
async def download_item(
    batch_id: str, index: int, request: Request, aspect_ratio: str = "1:1"
) -> Response:
    """Return one item cropped and framed as a PNG download.

    The item id is drawn as a label only for themes that caption their
    results.

    Raises:
        HTTPException: 400 bad ratio, 404 unknown batch or index, 409 item
            not successful, 422 undecodable image.
    """
    _check_aspect_ratio(aspect_ratio)
    batch = _get_batch(request, batch_id)
    if index < 0 or index >= batch.total:
        raise HTTPException(status_code=404, detail="Item not found")

    item = batch.items[index]
    if item.status is not ItemStatus.SUCCESS or item.image is None:
        raise HTTPException(status_code=409, detail="Item has no generated image")

    spec = CompositionSpec(
        aspect_ratio=aspect_ratio,
        label=item.id if batch.plan.label_results else None,
    )
    try:
        png = await run_in_threadpool(
            render_export, spec, [item], fonts=request.app.state.fonts
        )
    except DecodeError as e:
        logger.error(f"Failed to create framed image for download: {e}", exc_info=True)
        raise HTTPException(
            status_code=422,
            detail="Could not prepare that image for download. Please try again.",
        ) from e

    return _png_download(png, download_filename(item.id, aspect_ratio))


@app.get("/api/batches/{batch_id}/album")
async def download_album(batch_id: str, request: Request, aspect_ratio: str = "1:1") -> Response:
    """Return every successful item stitched into an album sheet.

    Raises:
        HTTPException: 400 bad ratio, 404 unknown batch, 409 no successful
            items, 422 undecodable image.
    """
    _check_aspect_ratio(aspect_ratio)
    batch = _get_batch(request, batch_id)

    spec = CompositionSpec(
        aspect_ratio=aspect_ratio, is_album=True, add_captions=batch.plan.label_results
    )
    try:
        png = await run_in_threadpool(
            render_export,
            spec,
            list(batch.items),
            batch.plan.album_title,
            request.app.state.fonts,
        )
    except EmptyAlbum as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except DecodeError as e:
        logger.error(f"Failed to create album: {e}", exc_info=True)
        raise HTTPException(
            status_code=422,
            detail="Sorry, the album download failed. Please try again.",
        ) from e

    return _png_download(png, album_filename(aspect_ratio))


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~pictureme.core.config.config` (which
    loads from ``PICTUREME_SERVER_HOST`` and ``PICTUREME_SERVER_PORT``).

    This function is registered as the ``pictureme`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "pictureme.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
