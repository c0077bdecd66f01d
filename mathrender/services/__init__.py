"""
Services package for mathrender.

This package contains the render pipeline stages and the bundled
collaborators they drive.
"""

from .assembler import assemble, out_headers
from .batch import BatchRenderer
from .latex_engine import LatexTypesetEngine, TypesetEngineError
from .negotiation import resolve_input_type, resolve_output_format
from .pipeline import RenderPipeline, build_pipeline, get_pipeline, resolve_features, set_pipeline
from .postprocess import PostProcessPipeline
from .rasterizer import RasterizationError, Rasterizer
from .sanitizer import InputSanitizer, SanitizedInput
from .speech import SpeechEngine
from .svg_optimizer import SVGOptimizationError, SVGOptimizer
from .tex_checker import TexChecker, TexSyntaxError
from .typeset import TypesetCoordinator, TypesetEngine, build_options, build_plan

__all__ = [
    # Pipeline
    "RenderPipeline",
    "build_pipeline",
    "get_pipeline",
    "set_pipeline",
    "resolve_features",
    "BatchRenderer",
    # Stages
    "resolve_input_type",
    "resolve_output_format",
    "InputSanitizer",
    "SanitizedInput",
    "TypesetCoordinator",
    "TypesetEngine",
    "build_plan",
    "build_options",
    "PostProcessPipeline",
    "assemble",
    "out_headers",
    # Collaborators
    "TexChecker",
    "TexSyntaxError",
    "LatexTypesetEngine",
    "TypesetEngineError",
    "Rasterizer",
    "RasterizationError",
    "SpeechEngine",
    "SVGOptimizer",
    "SVGOptimizationError",
]
