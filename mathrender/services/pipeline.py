"""
Render pipeline for the mathrender service.

This service orchestrates a single render request:
negotiation → sanitization → typesetting → post-processing → assembly
"""

from typing import Any

from loguru import logger

from mathrender.config import Capabilities, Settings, settings
from mathrender.exceptions import MissingQueryError
from mathrender.models.render import Features, RenderRequest, ResponsePayload
from mathrender.services.assembler import assemble
from mathrender.services.latex_engine import LatexTypesetEngine
from mathrender.services.negotiation import resolve_input_type, resolve_output_format
from mathrender.services.postprocess import PostProcessPipeline
from mathrender.services.rasterizer import Rasterizer
from mathrender.services.sanitizer import InputSanitizer
from mathrender.services.svg_optimizer import SVGOptimizer
from mathrender.services.typeset import TypesetCoordinator, TypesetEngine, build_plan


def resolve_features(features: Features | dict[str, Any] | None, capabilities: Capabilities) -> Features:
    """Fill in request features, defaulting speech to the configured switch."""
    if isinstance(features, Features):
        return features
    if features is None:
        return Features(speech=capabilities.speech_on)
    return Features(speech=bool(features.get("speech", False)))


class RenderPipeline:
    """Main render pipeline orchestrator."""

    def __init__(
        self,
        engine: TypesetEngine,
        sanitizer: InputSanitizer | None = None,
        postprocess: PostProcessPipeline | None = None,
        capabilities: Capabilities | None = None,
    ):
        """
        Initialize the render pipeline.

        Args:
            engine: Typesetting engine
            sanitizer: Input sanitizer instance
            postprocess: Post-processing pipeline instance
            capabilities: Default capabilities for requests that pass none
        """
        self.coordinator = TypesetCoordinator(engine)
        self.sanitizer = sanitizer or InputSanitizer()
        self.postprocess = postprocess or PostProcessPipeline(
            rasterizer=Rasterizer(settings.RSVG_CONVERT_PATH, timeout=settings.RASTER_TIMEOUT),
            optimizer=SVGOptimizer(),
        )
        self.capabilities = capabilities or settings.capabilities()

    @property
    def engine(self) -> TypesetEngine:
        return self.coordinator.engine

    async def render(
        self,
        markup: str | None,
        input_type: str | None = None,
        output_format: str | None = None,
        features: Features | dict[str, Any] | None = None,
        capabilities: Capabilities | None = None,
    ) -> ResponsePayload:
        """
        Render markup into the requested output format.

        Args:
            markup: Math markup
            input_type: Input type alias, TeX when empty
            output_format: Output format alias, json when empty
            features: Feature switches; speech follows ``speech_on`` when absent
            capabilities: Enabled capabilities, the pipeline default when absent

        Returns:
            ResponsePayload: Body and headers for the requested format

        Raises:
            RenderError: On any fatal request error
        """
        if not markup or not markup.strip():
            raise MissingQueryError()

        capabilities = capabilities or self.capabilities
        requested_type = resolve_input_type(input_type)
        request = RenderRequest(
            markup=markup,
            input_type=requested_type,
            output_format=resolve_output_format(output_format, requested_type, capabilities),
            features=resolve_features(features, capabilities),
            capabilities=capabilities,
        )
        return await self.run(request)

    async def run(self, request: RenderRequest) -> ResponsePayload:
        """Run an already negotiated request through the remaining stages."""
        plan = build_plan(request.input_type, request.output_format, request.features, request.capabilities)
        logger.debug(f"Render {request.input_type.value} -> {request.output_format.value}: {plan}")

        sanitized = await self.sanitizer.sanitize(
            request.markup, request.input_type, request.output_format, plan, request.capabilities
        )
        if sanitized.terminal is not None:
            return sanitized.terminal

        result = await self.coordinator.typeset(sanitized.markup, sanitized.input_type, plan)
        enriched = await self.postprocess.process(result, plan, request.capabilities, sanitized.sanetex)
        return assemble(enriched, request.output_format)


def build_pipeline(app_settings: Settings) -> RenderPipeline:
    """
    Build a render pipeline with the bundled collaborators.

    Args:
        app_settings: Settings supplying tool paths, timeouts and capabilities

    Returns:
        RenderPipeline: Ready to use pipeline
    """
    return RenderPipeline(
        engine=LatexTypesetEngine(
            latex_path=app_settings.LATEX_PATH,
            dvisvgm_path=app_settings.DVISVGM_PATH,
            timeout=app_settings.TYPESET_TIMEOUT,
        ),
        postprocess=PostProcessPipeline(
            rasterizer=Rasterizer(app_settings.RSVG_CONVERT_PATH, timeout=app_settings.RASTER_TIMEOUT),
            optimizer=SVGOptimizer(),
        ),
        capabilities=app_settings.capabilities(),
    )


# NOTE: Module level singleton shared by the HTTP API routes.
_pipeline: RenderPipeline | None = None


def get_pipeline() -> RenderPipeline:
    """
    Get the global render pipeline instance.

    Returns:
        RenderPipeline: Pipeline built from the application settings
    """
    global _pipeline

    if _pipeline is None:
        _pipeline = build_pipeline(settings)

    return _pipeline


def set_pipeline(pipeline: RenderPipeline | None) -> None:
    """Replace the global render pipeline instance."""
    global _pipeline
    _pipeline = pipeline
