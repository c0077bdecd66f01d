"""
Models package for mathrender.

This package contains the render pipeline data model and the
request/response models of the API.
"""

from .render import (
    EnrichedResult,
    Features,
    InputType,
    OutputFormat,
    RenderPlan,
    RenderRequest,
    ResponsePayload,
    TypesetOptions,
    TypesetResult,
)
from .request import BatchEntry, BatchQuery, RenderBody
from .response import ErrorResponse, HealthResponse

__all__ = [
    "EnrichedResult",
    "Features",
    "InputType",
    "OutputFormat",
    "RenderPlan",
    "RenderRequest",
    "ResponsePayload",
    "TypesetOptions",
    "TypesetResult",
    "BatchEntry",
    "BatchQuery",
    "RenderBody",
    "ErrorResponse",
    "HealthResponse",
]
