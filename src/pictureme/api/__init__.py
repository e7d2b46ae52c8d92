"""PictureMe — FastAPI REST API layer.

This package exposes the generation core over HTTP.

Modules
-------
main
    FastAPI application with all route handlers and the ``main()`` CLI
    entry point.
models
    Pydantic models for API request validation.
batch_store
    In-memory batch registry, serialisation, and download filename helpers.
"""
