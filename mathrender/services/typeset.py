"""
Typesetting coordination.

Derives the render plan for a request and invokes the typesetting engine
exactly once with options built from that plan.
"""

from typing import Protocol

from loguru import logger

from mathrender.config import Capabilities
from mathrender.exceptions import TypesetFailedError
from mathrender.models.render import (
    Features,
    InputType,
    OutputFormat,
    RenderPlan,
    TypesetOptions,
    TypesetResult,
)

_VECTOR_FORMATS = {OutputFormat.SVG, OutputFormat.JSON, OutputFormat.COMPLETE, OutputFormat.PNG}
_MATHML_FORMATS = {OutputFormat.MML, OutputFormat.JSON, OutputFormat.COMPLETE}
_RASTER_FORMATS = {OutputFormat.PNG, OutputFormat.JSON, OutputFormat.COMPLETE}


class TypesetEngine(Protocol):
    """The external typesetting engine. One call, one result."""

    async def typeset(self, options: TypesetOptions) -> TypesetResult:
        ...


def build_plan(
    input_type: InputType,
    output_format: OutputFormat,
    features: Features,
    capabilities: Capabilities,
) -> RenderPlan:
    """
    Compute which artifacts a request needs.

    ``input_type`` is the type as requested, before chem is rewritten.
    """
    return RenderPlan(
        wants_vector=capabilities.svg and output_format in _VECTOR_FORMATS,
        wants_mathml=input_type is not InputType.MATHML and output_format in _MATHML_FORMATS,
        wants_raster=capabilities.png and output_format in _RASTER_FORMATS,
        wants_info=output_format.is_info,
        wants_aux_node=capabilities.img and output_format in _MATHML_FORMATS,
        wants_speech=(output_format is not OutputFormat.PNG and features.speech)
        or output_format is OutputFormat.SPEECH,
        is_chem=input_type is InputType.CHEM,
    )


def build_options(markup: str, input_type: InputType, plan: RenderPlan) -> TypesetOptions:
    """Translate a plan into typesetting engine options."""
    if plan.wants_speech:
        # speech enrichment annotates a MathML node
        return TypesetOptions(
            math=markup,
            format=input_type,
            svg=plan.wants_vector,
            svg_node=True,
            mml=True,
            mml_node=True,
        )
    return TypesetOptions(
        math=markup,
        format=input_type,
        svg=plan.wants_vector,
        svg_node=plan.wants_svg_node,
        mml=plan.wants_mathml,
    )


class TypesetCoordinator:
    """Runs the typesetting engine for a planned request."""

    def __init__(self, engine: TypesetEngine):
        self.engine = engine

    async def typeset(self, markup: str, input_type: InputType, plan: RenderPlan) -> TypesetResult:
        """
        Typeset markup according to the plan.

        Raises:
            TypesetFailedError: If the engine reports errors
        """
        options = build_options(markup, input_type, plan)
        logger.debug(f"Typesetting {input_type.value} with {options}")
        result = await self.engine.typeset(options)
        if result.errors:
            logger.info(f"Typesetting engine reported errors: {result.errors}")
            raise TypesetFailedError(list(result.errors))
        return result
