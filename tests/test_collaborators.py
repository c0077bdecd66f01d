"""
Test the bundled typesetting engine and rasterizer with mocked tools.
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from mathrender.exceptions import ServiceTimeoutError
from mathrender.models.render import InputType, TypesetOptions
from mathrender.services.latex_engine import LatexTypesetEngine
from mathrender.services.rasterizer import RasterizationError, Rasterizer
from mathrender.utils.shell import CommandResult

DVISVGM_OUTPUT = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<svg xmlns="http://www.w3.org/2000/svg" xmlns:xlink="http://www.w3.org/1999/xlink" '
    'width="10pt" height="8.61108pt" viewBox="0 -6 10 8.61108">'
    '<defs><path id="g0-120" d="M1 1L2 2"/></defs><use xlink:href="#g0-120" x="0" y="0"/></svg>'
)


def fake_tools(cmd, cwd=None, timeout=30, env=None):
    """Stand-in for latex and dvisvgm runs."""
    if "dvisvgm" in cmd[0]:
        (Path(cwd) / "formula.svg").write_text(DVISVGM_OUTPUT, encoding="utf-8")
    return CommandResult(returncode=0, stdout="", stderr="")


class TestLatexTypesetEngine:
    """Test the LaTeX typesetting engine."""

    def setup_method(self):
        self.engine = LatexTypesetEngine(latex_path="latex", dvisvgm_path="dvisvgm", timeout=5)

    @pytest.mark.asyncio
    async def test_mathml_from_tex(self):
        result = await self.engine.typeset(TypesetOptions(math="x^{2}", format=InputType.TEX, mml=True, mml_node=True))
        assert result.errors == []
        assert "<msup>" in result.mml
        assert 'display="block"' in result.mml
        assert result.mml_node.name == "math"
        assert result.svg is None

    @pytest.mark.asyncio
    async def test_inline_tex_display(self):
        result = await self.engine.typeset(TypesetOptions(math="x", format=InputType.INLINE_TEX, mml=True))
        assert 'display="inline"' in result.mml

    @pytest.mark.asyncio
    @patch("mathrender.services.latex_engine.run_command_safely", side_effect=fake_tools)
    async def test_svg_normalized(self, mock_run):
        options = TypesetOptions(math="x", format=InputType.TEX, svg=True, svg_node=True)
        result = await self.engine.typeset(options)

        assert result.errors == []
        assert mock_run.call_count == 2
        latex_cmd = mock_run.call_args_list[0].args[0]
        assert "-no-shell-escape" in latex_cmd
        assert 'width="2.323ex"' in result.svg
        assert 'height="2.000ex"' in result.svg
        assert "vertical-align: -0.606ex;" in result.svg
        assert "<title" in result.svg
        assert result.svg_node["role"] == "img"
        assert result.html.startswith('<span class="mathrender-math">')
        assert result.html_node is not None

    @pytest.mark.asyncio
    @patch("mathrender.services.latex_engine.run_command_safely")
    async def test_latex_error_reported(self, mock_run):
        mock_run.return_value = CommandResult(1, "! Undefined control sequence.\nl.6 $\\foo$", "")
        result = await self.engine.typeset(TypesetOptions(math="\\foo", format=InputType.TEX, svg=True))
        assert result.errors == ["TeX error: Undefined control sequence."]

    @pytest.mark.asyncio
    @patch("mathrender.services.latex_engine.run_command_safely", side_effect=ServiceTimeoutError(5))
    async def test_timeout_reported(self, mock_run):
        result = await self.engine.typeset(TypesetOptions(math="x", format=InputType.TEX, svg=True))
        assert result.errors == ["Service operation timed out after 5 seconds"]

    @pytest.mark.asyncio
    @patch("mathrender.services.latex_engine.run_command_safely", side_effect=FileNotFoundError("latex"))
    async def test_missing_tool_reported(self, mock_run):
        result = await self.engine.typeset(TypesetOptions(math="x", format=InputType.TEX, svg=True))
        assert result.errors == ["SVG typesetting failed: latex"]

    @pytest.mark.asyncio
    @patch("mathrender.services.latex_engine.run_command_safely")
    async def test_unreadable_svg_size_reported(self, mock_run):
        def tools(cmd, cwd=None, timeout=30):
            if "dvisvgm" in cmd[0]:
                (Path(cwd) / "formula.svg").write_text(DVISVGM_OUTPUT.replace('width="10pt"', 'width="10mm"'))
            return CommandResult(0, "", "")

        mock_run.side_effect = tools
        result = await self.engine.typeset(TypesetOptions(math="x", format=InputType.TEX, svg=True))
        assert len(result.errors) == 1
        assert result.errors[0].startswith("SVG typesetting failed: Unexpected SVG length")

    @pytest.mark.asyncio
    @patch("mathrender.services.latex_engine.run_command_safely")
    async def test_mathml_passthrough(self, mock_run):
        mml = '<math xmlns="http://www.w3.org/1998/Math/MathML"><mi>y</mi></math>'
        options = TypesetOptions(math=mml, format=InputType.MATHML, svg=True, mml=True, mml_node=True, svg_node=True)
        result = await self.engine.typeset(options)
        mock_run.assert_not_called()
        assert "<mi>y</mi>" in result.mml
        assert result.svg is None
        assert result.svg_node is None
        assert "<mi>y</mi>" in result.html

    @pytest.mark.asyncio
    async def test_asciimath_unsupported(self):
        result = await self.engine.typeset(TypesetOptions(math="x^2", format=InputType.ASCIIMATH, mml=True))
        assert result.errors
        assert result.mml is None


class TestRasterizer:
    """Test the rsvg-convert wrapper."""

    @patch("mathrender.services.rasterizer.run_command_safely")
    def test_rasterize(self, mock_run):
        def convert(cmd, cwd=None, timeout=30):
            Path(cmd[cmd.index("-o") + 1]).write_bytes(b"\x89PNG")
            return CommandResult(0, "", "")

        mock_run.side_effect = convert
        data = Rasterizer("rsvg-convert", timeout=3).rasterize("<svg/>", 30.4, 17.6)

        assert data == b"\x89PNG"
        cmd = mock_run.call_args.args[0]
        assert cmd[cmd.index("-w") + 1] == "30"
        assert cmd[cmd.index("-h") + 1] == "18"
        assert mock_run.call_args.kwargs["timeout"] == 3

    @patch("mathrender.services.rasterizer.run_command_safely")
    def test_rasterize_failure(self, mock_run):
        mock_run.return_value = CommandResult(1, "", "Error reading SVG")
        with pytest.raises(RasterizationError) as exc_info:
            Rasterizer().rasterize("<svg/>", 10, 10)
        assert "Error reading SVG" in str(exc_info.value)
