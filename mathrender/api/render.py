"""
Render API endpoints for the mathrender service.

This module provides the GET lookup endpoint and the POST render endpoint.
Both delegate to the shared render pipeline.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from loguru import logger
from pydantic import ValidationError

from mathrender.exceptions import ErrorTypes, MissingQueryError, RenderError
from mathrender.models.render import Features, ResponsePayload
from mathrender.models.request import RenderBody
from mathrender.models.response import ErrorResponse
from mathrender.services.pipeline import RenderPipeline, get_pipeline

router = APIRouter()

ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Invalid render request"},
    500: {"model": ErrorResponse, "description": "Render produced no usable output"},
}


def to_response(payload: ResponsePayload) -> Response:
    """Convert a render payload into an HTTP response."""
    if isinstance(payload.body, (bytes, str)):
        return Response(content=payload.body, headers=payload.headers, media_type=payload.media_type)
    return JSONResponse(content=payload.body, headers=payload.headers)


@router.get("/get")
@router.get("/get/{outformat}")
@router.get("/get/{outformat}/{type}")
async def get_missing_query(outformat: str | None = None, type: str | None = None) -> Response:
    """Reject lookups that carry no query."""
    raise MissingQueryError()


@router.get("/get/{outformat}/{type}/{q:path}", responses=ERROR_RESPONSES)
async def get_render(
    outformat: str,
    type: str,
    q: str,
    pipeline: RenderPipeline = Depends(get_pipeline),
) -> Response:
    """
    Render markup passed in the URL.

    Speech is off for lookups unless the output format is speech.
    """
    payload = await pipeline.render(q, type, outformat, features={})
    return to_response(payload)


@router.post("/", responses=ERROR_RESPONSES)
@router.post("/{outformat}", responses=ERROR_RESPONSES)
async def post_render(
    request: Request,
    outformat: str | None = None,
    pipeline: RenderPipeline = Depends(get_pipeline),
) -> Response:
    """
    Render markup posted as JSON or as a form.

    Body fields: ``q`` (markup), ``type`` (input type) and ``nospeech``.
    """
    body = await _parse_body(request)
    if not body.q:
        raise MissingQueryError("q (query) post parameter is missing!")

    speech = False if body.nospeech else pipeline.capabilities.speech_on
    payload = await pipeline.render(body.q, body.type, outformat, features=Features(speech=speech))
    return to_response(payload)


async def _parse_body(request: Request) -> RenderBody:
    content_type = request.headers.get("content-type", "")
    data: dict[str, Any]
    try:
        if content_type.startswith("application/json"):
            data = await request.json()
            if not isinstance(data, dict):
                raise ValueError("JSON body must be an object")
        else:
            form = await request.form()
            data = {key: value for key, value in form.items() if value != ""}
        return RenderBody.model_validate(data)
    except (ValueError, ValidationError) as exc:
        logger.info(f"Rejected render request body: {exc}")
        raise RenderError(f"Invalid request body: {exc}", ErrorTypes.INVALID_REQUEST) from exc
