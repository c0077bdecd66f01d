"""
Request models for the mathrender API and batch runner.

This module defines Pydantic models for API request validation.
"""

from typing import Any

from pydantic import BaseModel, Field


class RenderBody(BaseModel):
    """
    Request model for ``POST /{outformat}``.

    Accepted as JSON or as a urlencoded form.
    """

    q: str | None = Field(default=None, description="Markup to render")
    type: str | None = Field(default=None, description="Input type (tex, inline-tex, mml, ascii, chem)")
    nospeech: bool = Field(default=False, description="Disable speech regardless of configuration")


class BatchQuery(BaseModel):
    """A single query of a batch input file."""

    q: str | None = Field(default=None, description="Markup to render")
    type: str | None = Field(default=None, description="Input type")
    outformat: str | None = Field(default=None, description="Output format")
    features: dict[str, Any] | None = Field(default=None, description="Feature switches, e.g. speech")
    hash: str | None = Field(default=None, description="Key used to file the result")


class BatchEntry(BaseModel):
    """Wrapper matching the batch input layout ``{"query": {...}}``."""

    query: BatchQuery
