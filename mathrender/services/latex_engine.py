"""
LaTeX typesetting engine.

Produces MathML with latex2mathml and SVG by compiling a standalone
document with ``latex`` and converting the DVI with ``dvisvgm``. MathML
input is passed through unchanged; it yields no SVG.
"""

import asyncio
import re
import tempfile
from pathlib import Path

from bs4 import BeautifulSoup
from latex2mathml.converter import convert as latex2mathml_convert
from loguru import logger

from mathrender.exceptions import BaseServiceError, ServiceTimeoutError
from mathrender.models.render import InputType, TypesetOptions, TypesetResult
from mathrender.utils.shell import run_command_safely
from mathrender.utils.svg_utils import parse_node

# x-height of Computer Modern at 10pt, in pt
PT_PER_EX = 4.30554

DOCUMENT_TEMPLATE = r"""\documentclass{standalone}
\usepackage{amsmath,amssymb}
\usepackage[version=4]{mhchem}
\usepackage{cancel}
\usepackage{xcolor}
\begin{document}
$%(style)s%(math)s$
\end{document}
"""

_LENGTH_RE = re.compile(r"^\s*(-?\d*\.?\d+)\s*(pt)?\s*$")


class TypesetEngineError(BaseServiceError):
    """Raised when an external typesetting tool fails."""

    def __init__(self, message: str, tool: str, details: dict | None = None):
        super().__init__(message, "TYPESET_ENGINE_ERROR", details)
        self.tool = tool


def _pt_to_ex(value: str) -> float:
    match = _LENGTH_RE.match(value)
    if not match:
        raise ValueError(f"Unexpected SVG length: {value!r}")
    return float(match.group(1)) / PT_PER_EX


class LatexTypesetEngine:
    """Typesetting engine backed by latex2mathml, latex and dvisvgm."""

    def __init__(self, latex_path: str = "latex", dvisvgm_path: str = "dvisvgm", timeout: int = 30):
        """
        Initialize the engine.

        Args:
            latex_path: Path to the latex executable
            dvisvgm_path: Path to the dvisvgm executable
            timeout: Timeout per tool invocation in seconds
        """
        self.latex_path = latex_path
        self.dvisvgm_path = dvisvgm_path
        self.timeout = timeout

    async def typeset(self, options: TypesetOptions) -> TypesetResult:
        return await asyncio.to_thread(self._typeset, options)

    def _typeset(self, options: TypesetOptions) -> TypesetResult:
        result = TypesetResult()

        if options.format is InputType.ASCIIMATH:
            result.errors.append("AsciiMath input is not supported by the LaTeX engine")
            return result

        if options.mml or options.mml_node:
            try:
                result.mml = self._to_mathml(options.math, options.format)
            except Exception as exc:
                logger.warning(f"MathML conversion failed: {exc}")
                result.errors.append(f"MathML conversion failed: {exc}")
                return result
            if options.mml_node:
                result.mml_node = parse_node(result.mml, "math")

        if options.svg and options.format is not InputType.MATHML:
            try:
                result.svg = self._to_svg(options.math, options.format)
            except (TypesetEngineError, ServiceTimeoutError) as exc:
                result.errors.append(str(exc))
                return result
            except (OSError, ValueError) as exc:
                # missing tool binary or unreadable dvisvgm output
                logger.warning(f"SVG typesetting failed: {exc}")
                result.errors.append(f"SVG typesetting failed: {exc}")
                return result
            if options.svg_node:
                result.svg_node = parse_node(result.svg, "svg")

        if options.svg_node:
            inner = result.svg or result.mml or ""
            result.html = f'<span class="mathrender-math"><span role="math">{inner}</span></span>'
            result.html_node = parse_node(result.html, "span")

        return result

    def _to_mathml(self, math: str, input_type: InputType) -> str:
        if input_type is InputType.MATHML:
            node = parse_node(math, "math")
            if node is None:
                raise ValueError("input does not contain a <math> element")
            return str(node)
        display = "block" if input_type is InputType.TEX else "inline"
        return latex2mathml_convert(math, display=display)

    def _to_svg(self, math: str, input_type: InputType) -> str:
        style = "\\displaystyle " if input_type is InputType.TEX else ""
        with tempfile.TemporaryDirectory(prefix="mathrender-") as tmp:
            workdir = Path(tmp)
            tex_file = workdir / "formula.tex"
            tex_file.write_text(DOCUMENT_TEMPLATE % {"style": style, "math": math}, encoding="utf-8")

            result = run_command_safely(
                [self.latex_path, "-interaction=nonstopmode", "-halt-on-error", "-no-shell-escape", tex_file.name],
                cwd=workdir,
                timeout=self.timeout,
            )
            if result.returncode != 0:
                raise TypesetEngineError(self._latex_error(result.stdout), "latex")

            result = run_command_safely(
                [self.dvisvgm_path, "-n", "-e", "-o", "formula.svg", "formula.dvi"],
                cwd=workdir,
                timeout=self.timeout,
            )
            svg_file = workdir / "formula.svg"
            if result.returncode != 0 or not svg_file.exists():
                raise TypesetEngineError(f"dvisvgm failed: {result.stderr.strip()}", "dvisvgm")

            return self._normalize_svg(svg_file.read_text(encoding="utf-8"))

    @staticmethod
    def _latex_error(log: str) -> str:
        for line in log.splitlines():
            if line.startswith("!"):
                return f"TeX error: {line[1:].strip()}"
        return "TeX error: compilation failed"

    @staticmethod
    def _normalize_svg(svg: str) -> str:
        """Express the size in ex, add a baseline style and an empty title."""
        soup = BeautifulSoup(svg, "xml")
        node = soup.find("svg")
        if node is None:
            raise TypesetEngineError("dvisvgm produced no <svg> element", "dvisvgm")

        width_ex = _pt_to_ex(node.get("width", "0"))
        height_ex = _pt_to_ex(node.get("height", "0"))
        node["width"] = f"{width_ex:.3f}ex"
        node["height"] = f"{height_ex:.3f}ex"

        view_box = node.get("viewBox", "").split()
        if len(view_box) == 4:
            # baseline sits at y=0 in dvisvgm output
            depth_pt = float(view_box[1]) + float(view_box[3])
            node["style"] = f"vertical-align: {-depth_pt / PT_PER_EX:.3f}ex;"

        node["role"] = "img"
        node["focusable"] = "false"
        if node.find("title") is None:
            node.insert(0, soup.new_tag("title"))
        return str(node)
