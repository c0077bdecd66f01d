"""
Response assembly.

Shapes an enriched result into the payload for the requested output format.
"""

from typing import Any

from mathrender.exceptions import NoSuitableOutputError
from mathrender.models.render import EnrichedResult, OutputFormat, ResponsePayload

JSON_HEADERS = {"content-type": "application/json"}
SPEECH_HEADERS = {"content-type": "text/plain; charset=utf-8"}

# artifacts wrapped by the complete format, in output order
COMPLETE_ARTIFACTS = ("svg", "png", "mml")


def out_headers(style: str | None) -> dict[str, dict[str, str]]:
    """Response headers for each artifact type."""
    mml_headers = {"content-type": "application/mathml+xml"}
    if style is not None:
        mml_headers["x-mathrender-style"] = style
    return {
        "svg": {"content-type": "image/svg+xml"},
        "png": {"content-type": "image/png"},
        "mml": mml_headers,
    }


def assemble(result: EnrichedResult, output_format: OutputFormat) -> ResponsePayload:
    """
    Build the response payload for an output format.

    Raises:
        NoSuitableOutputError: If a single artifact format has nothing to send
    """
    if output_format is OutputFormat.JSON:
        return ResponsePayload(body=result.to_dict(), headers=dict(JSON_HEADERS))

    if output_format is OutputFormat.COMPLETE:
        body: dict[str, Any] = result.to_dict()
        headers = out_headers(result.style)
        for artifact in COMPLETE_ARTIFACTS:
            if artifact in body:
                body[artifact] = {"headers": headers[artifact], "body": body[artifact]}
        return ResponsePayload(body=body, headers=dict(JSON_HEADERS))

    if output_format is OutputFormat.SPEECH:
        if result.speech is None:
            raise NoSuitableOutputError("No speech output was produced")
        return ResponsePayload(body=result.speech, headers=dict(SPEECH_HEADERS))

    artifact = output_format.value
    value = getattr(result, artifact, None)
    if not value:
        raise NoSuitableOutputError(f"No {artifact} output was produced")
    return ResponsePayload(body=value, headers=dict(out_headers(result.style)[artifact]))
