"""
Response models for the mathrender API.

This module defines Pydantic models for API response documentation.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Response model for error responses.

    Mirrors the uniform error envelope produced by ``RenderError``.
    """

    status: int = Field(default=400, description="HTTP status code")
    success: bool = Field(default=False)
    title: str = Field(..., description="Short status title")
    type: str = Field(..., description="Machine readable error kind")
    detail: str = Field(..., description="Human readable detail")
    error: str = Field(..., description="Raw error message")
    feedback: dict[str, Any] | None = Field(default=None, description="Checker feedback for validation errors")


class HealthResponse(BaseModel):
    """
    Response model for health check endpoints.

    This model provides system health and status information.
    """

    status: str = Field(..., description="Service status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    environment: str = Field(..., description="Environment name")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Optional system information
    system: dict[str, Any] | None = Field(default=None)
    metrics: dict[str, Any] | None = Field(default=None)
    dependencies: dict[str, bool] | None = Field(default=None)
    capabilities: dict[str, Any] | None = Field(default=None)
