"""
Input type and output format negotiation.

Both resolvers run before any collaborator is called, so every rejection
here terminates the request without side effects.
"""

from mathrender.config import Capabilities
from mathrender.exceptions import (
    FormatDisabledError,
    TypeMismatchError,
    UnrecognizedFormatError,
    UnrecognizedTypeError,
)
from mathrender.models.render import InputType, OutputFormat

INPUT_TYPE_ALIASES: dict[str, InputType] = {
    "tex": InputType.TEX,
    "inline-tex": InputType.INLINE_TEX,
    "mml": InputType.MATHML,
    "mathml": InputType.MATHML,
    "ascii": InputType.ASCIIMATH,
    "asciimath": InputType.ASCIIMATH,
    "asciimathml": InputType.ASCIIMATH,
    "chem": InputType.CHEM,
}

OUTPUT_FORMAT_ALIASES: dict[str, OutputFormat] = {
    "svg": OutputFormat.SVG,
    "png": OutputFormat.PNG,
    "mml": OutputFormat.MML,
    "mathml": OutputFormat.MML,
    "speech": OutputFormat.SPEECH,
    "json": OutputFormat.JSON,
    "complete": OutputFormat.COMPLETE,
    "texvcinfo": OutputFormat.TEXVCINFO,
    "graph": OutputFormat.GRAPH,
}

# Output formats gated by a capability flag
_FORMAT_FLAGS: dict[OutputFormat, str] = {
    OutputFormat.SVG: "svg",
    OutputFormat.PNG: "png",
    OutputFormat.SPEECH: "speech",
    OutputFormat.TEXVCINFO: "texvcinfo",
    OutputFormat.GRAPH: "texvcinfo",
}


def resolve_input_type(raw: str | None) -> InputType:
    """
    Map an input type alias to its canonical type.

    Args:
        raw: Requested input type, case-insensitive; empty means TeX

    Returns:
        InputType: Canonical input type

    Raises:
        UnrecognizedTypeError: If the alias is unknown
    """
    key = (raw or "tex").lower()
    try:
        return INPUT_TYPE_ALIASES[key]
    except KeyError:
        raise UnrecognizedTypeError(raw) from None


def resolve_output_format(
    raw: str | None, input_type: InputType, capabilities: Capabilities
) -> OutputFormat:
    """
    Map an output format alias to its canonical format.

    Args:
        raw: Requested format, case-insensitive; empty means json
        input_type: Canonical input type of the request
        capabilities: Enabled render capabilities

    Returns:
        OutputFormat: Canonical output format

    Raises:
        UnrecognizedFormatError: If the alias is unknown
        FormatDisabledError: If the format's capability flag is off
        TypeMismatchError: If an info format is requested for non-TeX input
    """
    if not raw:
        return OutputFormat.JSON

    output_format = OUTPUT_FORMAT_ALIASES.get(raw.lower())
    if output_format is None:
        raise UnrecognizedFormatError(raw)

    flag = _FORMAT_FLAGS.get(output_format)
    if flag is not None and not getattr(capabilities, flag):
        raise FormatDisabledError(output_format.value, flag)

    if output_format is OutputFormat.TEXVCINFO and not (
        input_type.is_tex_family or input_type is InputType.CHEM
    ):
        raise TypeMismatchError("texvcinfo", "tex, inline-tex, or chem", input_type.value)

    if output_format is OutputFormat.GRAPH and not input_type.is_tex_family:
        raise TypeMismatchError("graph", "tex or inline-tex", input_type.value)

    return output_format
