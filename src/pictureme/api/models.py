"""Pydantic request models for the PictureMe API.

These models define the JSON schema for every API endpoint.  FastAPI uses
them for automatic request validation, serialisation, and OpenAPI
documentation generation.

Models
------
ThemeOptionsModel
    Theme-specific choices (hair styles, lookbook style, headshot pose...).
StartBatchRequest
    Payload for ``POST /api/batches`` — theme, reference photo, and options.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from pictureme.core.themes import ThemeOptions


class ThemeOptionsModel(BaseModel):
    """Theme options as accepted over the wire.

    Attributes:
        headshot_expression: Expression for ``headshots``.
        headshot_pose: ``"Forward"`` or ``"Angle"`` for ``headshots``.
        lookbook_style: Overall style for ``styleLookbook`` (``"Other"`` for
            a custom one).
        custom_lookbook_style: Custom lookbook style.
        hair_styles: Selected catalog hair style ids for ``hairStyler``.
        custom_hair_style: Free-text hair style.
        custom_hair_active: Whether the custom hair style is selected.
        hair_colors: Up to two hair colours.
    """

    headshot_expression: str = Field(default="Friendly Smile")
    headshot_pose: str = Field(default="Forward")
    lookbook_style: str = Field(default="")
    custom_lookbook_style: str = Field(default="")
    hair_styles: list[str] = Field(default_factory=list)
    custom_hair_style: str = Field(default="")
    custom_hair_active: bool = Field(default=False)
    hair_colors: list[str] = Field(default_factory=list)

    def to_options(self) -> ThemeOptions:
        """Convert to the core :class:`ThemeOptions` dataclass."""
        return ThemeOptions(**self.model_dump())


class StartBatchRequest(BaseModel):
    """Request body for the ``POST /api/batches`` endpoint.

    Attributes:
        theme_id: Theme identifier (e.g. ``"decades"``).
        reference_image: Reference photo as base64 or a ``data:`` URI.
        mime_type: MIME type for plain base64 input; ignored for data URIs.
        options: Theme-specific options.
    """

    theme_id: str = Field(
        ...,
        description="Theme identifier (e.g. 'decades', 'hairStyler').",
    )
    reference_image: str = Field(
        ...,
        description="Reference photo as base64 or a data URI.",
    )
    mime_type: str | None = Field(
        default=None,
        description="MIME type of plain base64 input (defaults to image/png).",
    )
    options: ThemeOptionsModel = Field(default_factory=ThemeOptionsModel)
