"""
Post-processing stages applied to a typeset result.

Stages run strictly in order: raster, deferred raster check, speech,
finalize, optimize. Each stage reads the immutable ``RenderPlan`` computed
for the request.
"""

import asyncio
from typing import Callable

from bs4 import Tag
from loguru import logger

from mathrender.config import Capabilities, SpeechConfig
from mathrender.exceptions import (
    MissingMathMLError,
    NoSuitableOutputError,
    RasterizationFailedError,
)
from mathrender.models.render import EnrichedResult, RenderPlan, TypesetResult
from mathrender.services.rasterizer import Rasterizer
from mathrender.services.speech import SpeechEngine
from mathrender.services.svg_optimizer import SVGOptimizer
from mathrender.utils.svg_utils import fix_xlink_namespace, pixel_size, replace_current_color

SpeechEngineFactory = Callable[[SpeechConfig], SpeechEngine]


class PostProcessPipeline:
    """Turns a TypesetResult into an EnrichedResult."""

    def __init__(
        self,
        rasterizer: Rasterizer,
        optimizer: SVGOptimizer | None = None,
        speech_engine_factory: SpeechEngineFactory = SpeechEngine,
    ):
        """
        Initialize the pipeline.

        Args:
            rasterizer: SVG to PNG converter
            optimizer: Shared, stateless SVG optimizer
            speech_engine_factory: Builds a speech engine for one request
        """
        self.rasterizer = rasterizer
        self.optimizer = optimizer or SVGOptimizer()
        self.speech_engine_factory = speech_engine_factory

    async def process(
        self,
        result: TypesetResult,
        plan: RenderPlan,
        capabilities: Capabilities,
        sanetex: str | None = None,
    ) -> EnrichedResult:
        """
        Run every post-processing stage.

        Raises:
            RasterizationFailedError: If rasterization recorded an error
            MissingMathMLError: If speech was requested without MathML
            NoSuitableOutputError: If speech was requested without any node
        """
        enriched = EnrichedResult.from_typeset(result)

        await self.rasterize(enriched, plan, capabilities)
        if enriched.errors:
            raise RasterizationFailedError(enriched.errors)

        if plan.wants_speech:
            self.add_speech(enriched, capabilities.speech_config)

        self.finalize(enriched, plan, sanetex)

        if enriched.svg and capabilities.svgo:
            await self.optimize(enriched)

        return enriched

    async def rasterize(self, result: EnrichedResult, plan: RenderPlan, capabilities: Capabilities) -> None:
        """Render the SVG node to PNG. Failures are recorded on the result."""
        if not plan.wants_raster or result.svg_node is None or not result.svg:
            return
        try:
            width, height = pixel_size(result.svg_node, capabilities.dpi)
            result.png = await asyncio.to_thread(
                self.rasterizer.rasterize,
                replace_current_color(result.svg),
                width,
                height,
            )
        except Exception as exc:
            logger.warning(f"Rasterization failed: {exc}")
            result.errors = str(exc)

    def add_speech(self, result: EnrichedResult, config: SpeechConfig) -> None:
        """Attach spoken text and semantic annotations to the result."""
        if not result.mml:
            raise MissingMathMLError()
        if result.svg_node is None and result.html_node is None and result.mml_node is None:
            raise NoSuitableOutputError()

        engine = self.speech_engine_factory(config)

        if config.semantic:
            result.stree_json = engine.to_json(result.mml)
            xml = engine.to_semantic(result.mml)
            result.stree_xml = xml if config.min_stree else engine.pprint_xml(xml)

        if not config.speak_text:
            return

        result.speak_text = engine.to_speech(result.mml)

        if result.svg_node is not None:
            title = result.svg_node.find("title")
            if title is None:
                title = Tag(name="title")
                result.svg_node.insert(0, title)
            title.string = result.speak_text
            if result.svg:
                result.svg = fix_xlink_namespace(str(result.svg_node))

        if result.html_node is not None:
            first = next((child for child in result.html_node.children if isinstance(child, Tag)), None)
            if first is not None:
                first["aria-label"] = result.speak_text
            if result.html:
                result.html = str(result.html_node)

        if result.mml_node is not None:
            result.mml_node["alttext"] = result.speak_text
            if result.mml:
                result.mml = str(result.mml_node)

        if config.enrich:
            result.mml = engine.to_enriched(result.mml)

    @staticmethod
    def finalize(result: EnrichedResult, plan: RenderPlan, sanetex: str | None) -> None:
        """Mark success, derive the inline style and drop node handles."""
        result.success = True
        result.log = "success"

        if result.svg_node is not None:
            css = result.svg_node.get("style", "")
            result.style = f"{css} width:{result.svg_node.get('width')}; height:{result.svg_node.get('height')};"

        result.svg_node = None
        result.html_node = None
        result.mml_node = None

        if sanetex is not None:
            result.sanetex = sanetex
        if plan.wants_speech:
            result.speech = result.speak_text

    async def optimize(self, result: EnrichedResult) -> None:
        """Minify the SVG. The original markup is kept if optimization fails."""
        try:
            result.svg = await asyncio.to_thread(self.optimizer.optimize, result.svg)
        except Exception as exc:
            logger.warning(f"SVG optimization failed: {exc}")
