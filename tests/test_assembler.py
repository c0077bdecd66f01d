"""
Test response assembly.
"""

import base64

import pytest

from mathrender.exceptions import NoSuitableOutputError
from mathrender.models.render import EnrichedResult, OutputFormat
from mathrender.services.assembler import assemble, out_headers


def enriched(**overrides) -> EnrichedResult:
    values = {
        "success": True,
        "log": "success",
        "svg": "<svg/>",
        "mml": "<math/>",
        "png": b"\x89PNG",
        "style": "vertical-align: -0.5ex; width:2ex; height:1ex;",
    }
    values.update(overrides)
    return EnrichedResult(**values)


class TestAssemble:
    """Test the response shapes of each output format."""

    def test_json_returns_whole_result(self):
        payload = assemble(enriched(), OutputFormat.JSON)
        assert payload.media_type == "application/json"
        assert payload.body["success"] is True
        assert payload.body["svg"] == "<svg/>"
        assert payload.body["png"] == base64.b64encode(b"\x89PNG").decode("ascii")
        assert "svg_node" not in payload.body

    def test_json_omits_absent_fields(self):
        payload = assemble(enriched(png=None, speech=None), OutputFormat.JSON)
        assert "png" not in payload.body
        assert "speech" not in payload.body

    def test_complete_wraps_artifacts(self):
        payload = assemble(enriched(), OutputFormat.COMPLETE)
        body = payload.body
        assert body["svg"] == {"headers": {"content-type": "image/svg+xml"}, "body": "<svg/>"}
        assert body["png"]["headers"] == {"content-type": "image/png"}
        assert body["mml"]["headers"] == {
            "content-type": "application/mathml+xml",
            "x-mathrender-style": "vertical-align: -0.5ex; width:2ex; height:1ex;",
        }
        assert body["log"] == "success"

    def test_complete_skips_missing_artifacts(self):
        payload = assemble(enriched(png=None), OutputFormat.COMPLETE)
        assert "png" not in payload.body

    def test_svg(self):
        payload = assemble(enriched(), OutputFormat.SVG)
        assert payload.body == "<svg/>"
        assert payload.headers == {"content-type": "image/svg+xml"}

    def test_png(self):
        payload = assemble(enriched(), OutputFormat.PNG)
        assert payload.body == b"\x89PNG"
        assert payload.media_type == "image/png"

    def test_mml_carries_style(self):
        payload = assemble(enriched(), OutputFormat.MML)
        assert payload.body == "<math/>"
        assert payload.headers["x-mathrender-style"].startswith("vertical-align")

    def test_mml_without_style(self):
        payload = assemble(enriched(style=None), OutputFormat.MML)
        assert "x-mathrender-style" not in payload.headers

    def test_speech(self):
        payload = assemble(enriched(speech="x squared"), OutputFormat.SPEECH)
        assert payload.body == "x squared"
        assert payload.media_type == "text/plain; charset=utf-8"

    def test_missing_artifact(self):
        with pytest.raises(NoSuitableOutputError) as exc_info:
            assemble(enriched(png=None), OutputFormat.PNG)
        assert exc_info.value.status == 500

    def test_out_headers(self):
        headers = out_headers("s")
        assert set(headers) == {"svg", "png", "mml"}
        assert headers["mml"]["x-mathrender-style"] == "s"
