"""
Shared fixtures for the mathrender test suite.
"""

from unittest.mock import Mock

import pytest

from mathrender.config import Capabilities
from mathrender.models.render import InputType, TypesetOptions, TypesetResult
from mathrender.services.pipeline import RenderPipeline
from mathrender.services.postprocess import PostProcessPipeline
from mathrender.services.rasterizer import Rasterizer
from mathrender.services.svg_optimizer import SVGOptimizer
from mathrender.utils.svg_utils import parse_node

SVG_MARKUP = (
    '<svg xmlns="http://www.w3.org/2000/svg" xmlns:xlink="http://www.w3.org/1999/xlink" '
    'width="2.5ex" height="1.5ex" viewBox="0 -700 1000 800" style="vertical-align: -0.5ex;" '
    'role="img" focusable="false"><title></title>'
    '<defs><path id="g1" d="M 10.500 20 L 30 40"/></defs>'
    '<use xlink:href="#g1" fill="currentColor"/></svg>'
)

MML_MARKUP = (
    '<math xmlns="http://www.w3.org/1998/Math/MathML" display="block">'
    '<msup><mi>x</mi><mn>2</mn></msup></math>'
)

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


class FakeEngine:
    """Typesetting engine double that records every call."""

    def __init__(self, errors: list[str] | None = None, mml: str = MML_MARKUP, svg: str = SVG_MARKUP):
        self.calls: list[TypesetOptions] = []
        self.errors = errors or []
        self.mml = mml
        self.svg = svg

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def typeset(self, options: TypesetOptions) -> TypesetResult:
        self.calls.append(options)
        result = TypesetResult(errors=list(self.errors))
        if self.errors:
            return result

        if options.mml or options.mml_node:
            result.mml = options.math if options.format is InputType.MATHML else self.mml
            if options.mml_node:
                result.mml_node = parse_node(result.mml, "math")

        if options.svg:
            result.svg = self.svg
            if options.svg_node:
                result.svg_node = parse_node(result.svg, "svg")

        if options.svg_node:
            result.html = f'<span class="mathrender-math"><span role="math">{result.svg or result.mml or ""}</span></span>'
            result.html_node = parse_node(result.html, "span")
        return result


@pytest.fixture
def fake_engine():
    """Fake typesetting engine."""
    return FakeEngine()


@pytest.fixture
def rasterizer():
    """Rasterizer double returning fixed PNG bytes."""
    mock = Mock(spec=Rasterizer)
    mock.rasterize.return_value = PNG_BYTES
    return mock


@pytest.fixture
def capabilities():
    """Default capabilities with every format enabled."""
    return Capabilities()


@pytest.fixture
def postprocess(rasterizer):
    """Post-processing pipeline using the rasterizer double."""
    return PostProcessPipeline(rasterizer=rasterizer, optimizer=SVGOptimizer())


@pytest.fixture
def pipeline(fake_engine, postprocess, capabilities):
    """Render pipeline wired to the fake engine."""
    return RenderPipeline(engine=fake_engine, postprocess=postprocess, capabilities=capabilities)
