"""
Render models for the mathrender pipeline.

This module defines the canonical input types and output formats, the
per-request plan, and the typed values passed between pipeline stages:
TypesetResult → EnrichedResult → ResponsePayload.
"""

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from mathrender.config import Capabilities


class InputType(str, Enum):
    """Enumeration of canonical input types."""

    TEX = "TeX"
    INLINE_TEX = "inline-TeX"
    MATHML = "MathML"
    ASCIIMATH = "AsciiMath"
    CHEM = "chem"

    @property
    def is_tex_family(self) -> bool:
        return self in (InputType.TEX, InputType.INLINE_TEX)


class OutputFormat(str, Enum):
    """Enumeration of canonical output formats."""

    SVG = "svg"
    PNG = "png"
    MML = "mml"
    SPEECH = "speech"
    JSON = "json"
    COMPLETE = "complete"
    TEXVCINFO = "texvcinfo"
    GRAPH = "graph"

    @property
    def is_info(self) -> bool:
        return self in (OutputFormat.TEXVCINFO, OutputFormat.GRAPH)


@dataclass
class Features:
    """Per-request feature switches."""

    speech: bool = False


@dataclass
class RenderRequest:
    """A single render call. Never persisted."""

    markup: str
    input_type: InputType
    output_format: OutputFormat
    features: Features
    capabilities: Capabilities


@dataclass(frozen=True)
class RenderPlan:
    """Which artifacts a request needs, computed once per request."""

    wants_vector: bool
    wants_mathml: bool
    wants_raster: bool
    wants_info: bool
    wants_aux_node: bool
    wants_speech: bool
    is_chem: bool

    @property
    def wants_svg_node(self) -> bool:
        return self.wants_aux_node or self.wants_raster


@dataclass(frozen=True)
class TypesetOptions:
    """Options handed to the typesetting engine."""

    math: str
    format: InputType
    svg: bool = False
    svg_node: bool = False
    mml: bool = False
    mml_node: bool = False


@dataclass
class TypesetResult:
    """
    Output of the typesetting engine.

    ``svg_node``, ``html_node`` and ``mml_node`` are in-process document
    handles (BeautifulSoup tags) and never leave the process.
    """

    mml: str | None = None
    svg: str | None = None
    svg_node: Any = None
    html: str | None = None
    html_node: Any = None
    mml_node: Any = None
    errors: list[str] = field(default_factory=list)


@dataclass
class EnrichedResult:
    """A typeset result after post-processing."""

    mml: str | None = None
    svg: str | None = None
    svg_node: Any = None
    html: str | None = None
    html_node: Any = None
    mml_node: Any = None
    png: bytes | None = None
    speak_text: str | None = None
    stree_json: Any = None
    stree_xml: str | None = None
    errors: str | None = None
    success: bool = False
    log: str | None = None
    style: str | None = None
    sanetex: str | None = None
    speech: str | None = None

    @classmethod
    def from_typeset(cls, result: TypesetResult) -> "EnrichedResult":
        return cls(
            mml=result.mml,
            svg=result.svg,
            svg_node=result.svg_node,
            html=result.html,
            html_node=result.html_node,
            mml_node=result.mml_node,
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize the wire payload.

        Node handles are dropped and absent fields omitted; PNG bytes are
        base64 encoded so the payload stays JSON serializable.
        """
        data: dict[str, Any] = {"success": self.success}
        for key in (
            "log", "svg", "mml", "html", "speak_text", "speech",
            "stree_json", "stree_xml", "style", "sanetex",
        ):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.png is not None:
            data["png"] = base64.b64encode(self.png).decode("ascii")
        return data


@dataclass
class ResponsePayload:
    """Final response shape: a body plus the headers that go with it."""

    body: Any
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def media_type(self) -> str:
        return self.headers.get("content-type", "application/json")

    def to_json(self) -> Any:
        """Return a JSON-compatible rendition of the body."""
        if isinstance(self.body, bytes):
            return base64.b64encode(self.body).decode("ascii")
        return self.body
