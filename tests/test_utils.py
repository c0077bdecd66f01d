"""
Test shared utilities.
"""

import subprocess
from unittest.mock import Mock, patch

import pytest

from mathrender.exceptions import ServiceTimeoutError
from mathrender.utils.shell import check_command_available, run_command_safely
from mathrender.utils.svg_utils import (
    fix_xlink_namespace,
    parse_ex,
    parse_node,
    pixel_size,
    replace_current_color,
)


class TestSvgUtils:
    """Test SVG helpers."""

    def test_parse_ex(self):
        assert parse_ex("2.5ex") == 2.5
        assert parse_ex("3") == 3.0
        with pytest.raises(ValueError):
            parse_ex("12px")
        with pytest.raises(ValueError):
            parse_ex(None)

    def test_pixel_size(self):
        node = parse_node('<svg width="2ex" height="1ex"/>', "svg")
        assert pixel_size(node, 90) == (12.0, 6.0)
        assert pixel_size(node, 180) == (24.0, 12.0)

    def test_parse_node_missing(self):
        assert parse_node("<math/>", "svg") is None

    def test_replace_current_color(self):
        assert replace_current_color('<path fill="currentColor"/>') == '<path fill="black"/>'

    def test_fix_xlink_namespace(self):
        svg = '<svg><use href="#a"/><use xlink:href="#b"/><image x="0" href="i.png"/></svg>'
        fixed = fix_xlink_namespace(svg)
        assert '<use xlink:href="#a"/>' in fixed
        assert '<use xlink:href="#b"/>' in fixed
        assert 'xlink:xlink:href' not in fixed
        assert '<image x="0" xlink:href="i.png"/>' in fixed


class TestShell:
    """Test safe command execution."""

    @patch("mathrender.utils.shell.subprocess.run")
    def test_run_command(self, mock_run):
        mock_run.return_value = Mock(returncode=0, stdout="ok", stderr="")
        result = run_command_safely(["latex", "--version"], timeout=5)
        assert result.returncode == 0
        assert result.stdout == "ok"
        assert mock_run.call_args.kwargs["timeout"] == 5

    @patch("mathrender.utils.shell.subprocess.run")
    def test_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="latex", timeout=1)
        with pytest.raises(ServiceTimeoutError) as exc_info:
            run_command_safely(["latex", "x.tex"], timeout=1)
        assert exc_info.value.details["timeout_seconds"] == 1

    @pytest.mark.parametrize("argument", ["a; rm -rf /", "$(whoami)", "a | b", "a\nb"])
    def test_rejects_shell_syntax(self, argument):
        with pytest.raises(ValueError):
            run_command_safely(["latex", argument])

    def test_rejects_empty_command(self):
        with pytest.raises(ValueError):
            run_command_safely([])

    def test_plain_arguments_allowed(self):
        """Arguments that merely contain letters of shell words are fine."""
        with patch("mathrender.utils.shell.subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=0, stdout="", stderr="")
            run_command_safely(["dvisvgm", "--format=svg", "../formula.dvi"])
            mock_run.assert_called_once()

    def test_check_absolute_path(self, tmp_path):
        tool = tmp_path / "tool"
        assert not check_command_available(str(tool))
        tool.write_text("")
        assert check_command_available(str(tool))
