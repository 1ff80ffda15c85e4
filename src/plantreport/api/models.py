"""Pydantic request and response models for the Plant Report API.

Models
------
AnalyzeResponse
    Body returned by ``POST /analyze``.
DownloadRequest
    Payload for ``POST /download``.
ErrorResponse
    Body of every error response.
HealthResponse
    Body returned by ``GET /health``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AnalyzeResponse(BaseModel):
    """Response body for the ``POST /analyze`` endpoint.

    Attributes:
        result: Plain-text analysis produced by the model.
        image: The uploaded image echoed back as a base64 data URL, ready
            to be passed to ``POST /download``.
        image_file_id: Identifier of the stored copy of the image
            (serialised as ``imageFileId``).
    """

    model_config = ConfigDict(populate_by_name=True)

    result: str = Field(..., description="Plain-text analysis of the image.")
    image: str = Field(..., description="Uploaded image as a base64 data URL.")
    image_file_id: str = Field(
        ...,
        alias="imageFileId",
        description="Object store identifier of the uploaded image.",
    )


class DownloadRequest(BaseModel):
    """Request body for the ``POST /download`` endpoint.

    Attributes:
        result: Analysis text to print in the report.  May be empty; non-string
            JSON values are printed as their string form.
        image: Optional image as a base64 data URL, drawn on its own page.
    """

    result: str | None = Field(
        default="",
        description="Analysis text for the report body.",
    )
    image: str | None = Field(
        default=None,
        description="Optional image as a data URL (data:image/png;base64,...).",
    )

    @field_validator("result", mode="before")
    @classmethod
    def _coerce_result(cls, value: Any) -> str | None:
        # Any JSON value is printable; only null means "no text".
        if value is None or isinstance(value, str):
            return value
        return str(value)


class ErrorResponse(BaseModel):
    """Body of every error response."""

    error: str


class HealthResponse(BaseModel):
    """Response body for the ``GET /health`` endpoint.

    Attributes:
        status: Always ``"ok"`` while the process is serving.
        storage: ``"connected"`` or ``"unavailable"``.
        version: Service version string.
    """

    status: str = "ok"
    storage: str
    version: str
