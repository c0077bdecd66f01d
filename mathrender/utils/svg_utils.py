"""
SVG and markup utility functions.

This module provides shared helpers for handling typeset markup in memory:
parsing node handles, unit conversion for rasterization and small
serialization fixups.
"""

import re

from bs4 import BeautifulSoup, Tag

# Pixels per ex at the reference resolution
EX_TO_PX = 6
# Effective resolution librsvg renders at
REFERENCE_DPI = 90

_LENGTH_RE = re.compile(r"^\s*(-?\d*\.?\d+)\s*(ex)?\s*$")
_BARE_HREF_RE = re.compile(r"(<(?:use|image)\s[^>]*?)(?<![:\w-])href=")


def parse_node(markup: str, name: str) -> Tag | None:
    """
    Parse markup into a document node handle.

    Args:
        markup: XML markup (SVG, MathML or an XHTML fragment)
        name: Tag name of the root element to return

    Returns:
        The root element, or None if it is not present
    """
    soup = BeautifulSoup(markup, "xml")
    return soup.find(name)


def parse_ex(value: str | None) -> float:
    """
    Parse a length expressed in ex.

    Raises:
        ValueError: If the value is missing or not an ex length
    """
    if value is None:
        raise ValueError("missing length")
    match = _LENGTH_RE.match(value)
    if not match:
        raise ValueError(f"not an ex length: {value!r}")
    return float(match.group(1))


def pixel_size(svg_node: Tag, dpi: int) -> tuple[float, float]:
    """
    Compute raster dimensions of an SVG node.

    Args:
        svg_node: SVG root with width/height in ex
        dpi: Target output resolution

    Returns:
        (width, height) in pixels
    """
    scale = dpi / REFERENCE_DPI
    width = parse_ex(svg_node.get("width")) * EX_TO_PX * scale
    height = parse_ex(svg_node.get("height")) * EX_TO_PX * scale
    return width, height


def replace_current_color(svg: str, color: str = "black") -> str:
    """Replace the ``currentColor`` keyword with an explicit color."""
    return svg.replace('="currentColor"', f'="{color}"')


def fix_xlink_namespace(svg: str) -> str:
    """Prefix bare ``href`` attributes of use/image elements with ``xlink:``."""
    return _BARE_HREF_RE.sub(r"\1xlink:href=", svg)
