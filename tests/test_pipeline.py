"""
End-to-end tests of the render pipeline with a fake typesetting engine.
"""

import pytest

from mathrender.config import Capabilities, SpeechConfig
from mathrender.exceptions import (
    ErrorTypes,
    FormatDisabledError,
    MissingQueryError,
    NoSuitableOutputError,
    TypesetFailedError,
    ValidationFailedError,
)
from mathrender.models.render import Features, InputType, OutputFormat, RenderRequest
from mathrender.services.pipeline import RenderPipeline, resolve_features

from .conftest import MML_MARKUP, FakeEngine


class TestRenderPipeline:
    """Test the render entry point."""

    @pytest.mark.asyncio
    async def test_tex_to_json(self, pipeline, fake_engine):
        payload = await pipeline.render("x^2", "tex", "json")

        assert fake_engine.call_count == 1
        options = fake_engine.calls[0]
        assert options.math == "x^{2}"
        assert options.format is InputType.TEX
        assert options.svg and options.mml and options.svg_node

        body = payload.body
        assert body["success"] is True
        assert body["log"] == "success"
        assert body["sanetex"] == "x^{2}"
        assert body["mml"].startswith("<math")
        assert "png" in body
        assert "width:2.5ex; height:1.5ex;" in body["style"]

    @pytest.mark.asyncio
    async def test_invalid_tex_never_reaches_engine(self, pipeline, fake_engine):
        with pytest.raises(ValidationFailedError) as exc_info:
            await pipeline.render(r"\badcmd", "tex", "svg")
        assert fake_engine.call_count == 0
        envelope = exc_info.value.to_envelope()
        assert envelope["type"] == ErrorTypes.VALIDATION_FAILED
        assert envelope["status"] == 400
        assert envelope["success"] is False
        assert envelope["feedback"]["success"] is False

    @pytest.mark.asyncio
    async def test_deeply_nested_tex_fails_validation(self, pipeline, fake_engine):
        with pytest.raises(ValidationFailedError) as exc_info:
            await pipeline.render("{" * 600 + "x" + "}" * 600, "tex", "json")
        assert str(exc_info.value) == "SyntaxError: Nesting too deep"
        assert fake_engine.call_count == 0

    @pytest.mark.asyncio
    async def test_disabled_svg(self, fake_engine, postprocess):
        pipeline = RenderPipeline(fake_engine, postprocess=postprocess, capabilities=Capabilities(svg=False))
        with pytest.raises(FormatDisabledError) as exc_info:
            await pipeline.render("x", "tex", "svg")
        assert exc_info.value.flag == "svg"
        assert "svg" in exc_info.value.to_envelope()["detail"]
        assert fake_engine.call_count == 0

    @pytest.mark.asyncio
    async def test_speech_for_mathml(self, pipeline, fake_engine):
        payload = await pipeline.render(MML_MARKUP, "mml", "speech")

        options = fake_engine.calls[0]
        assert options.format is InputType.MATHML
        assert options.mml and options.mml_node
        assert payload.body == "x squared"
        assert payload.headers["content-type"] == "text/plain; charset=utf-8"

    @pytest.mark.asyncio
    async def test_missing_query(self, pipeline, fake_engine):
        with pytest.raises(MissingQueryError) as exc_info:
            await pipeline.render("   ", "tex", "svg")
        assert str(exc_info.value) == "q (query) parameter is missing!"
        assert fake_engine.call_count == 0

    @pytest.mark.asyncio
    async def test_texvcinfo_skips_engine(self, pipeline, fake_engine):
        payload = await pipeline.render("x^2", "tex", "texvcinfo")
        assert fake_engine.call_count == 0
        assert payload.body["checked"] == "x^{2}"
        assert payload.headers["cache-control"] == "max-age=2592000"

    @pytest.mark.asyncio
    async def test_graph_skips_engine(self, pipeline, fake_engine):
        payload = await pipeline.render("a+b", "inline-tex", "graph")
        assert fake_engine.call_count == 0
        assert payload.body["type"] == "group"

    @pytest.mark.asyncio
    async def test_chem_rendered_as_inline_tex(self, pipeline, fake_engine):
        await pipeline.render(r"\ce{H2O}", "chem", "mml")
        assert fake_engine.calls[0].format is InputType.INLINE_TEX
        assert fake_engine.calls[0].math == r"\ce{H2O}"

    @pytest.mark.asyncio
    async def test_no_check_passes_markup_verbatim(self, fake_engine, postprocess):
        pipeline = RenderPipeline(fake_engine, postprocess=postprocess, capabilities=Capabilities(no_check=True))
        payload = await pipeline.render("x^2", "tex", "json")
        assert fake_engine.calls[0].math == "x^2"
        assert "sanetex" not in payload.body

    @pytest.mark.asyncio
    async def test_engine_errors(self, postprocess):
        engine = FakeEngine(errors=["first", "second"])
        pipeline = RenderPipeline(engine, postprocess=postprocess, capabilities=Capabilities())
        with pytest.raises(TypesetFailedError) as exc_info:
            await pipeline.render("x", "tex", "svg")
        assert exc_info.value.to_envelope()["error"] == "first\nsecond"

    @pytest.mark.asyncio
    async def test_png_without_vector(self, fake_engine, postprocess):
        pipeline = RenderPipeline(fake_engine, postprocess=postprocess, capabilities=Capabilities(svg=False))
        with pytest.raises(NoSuitableOutputError):
            await pipeline.render("x", "tex", "png")

    @pytest.mark.asyncio
    async def test_capabilities_per_call(self, pipeline, fake_engine):
        caps = Capabilities(png=False, speech_config=SpeechConfig(speak_text=False))
        payload = await pipeline.render("x", "tex", "json", features={"speech": True}, capabilities=caps)
        assert "png" not in payload.body
        assert "speak_text" not in payload.body
        assert fake_engine.calls[0].mml_node is True

    @pytest.mark.asyncio
    async def test_run_negotiated_request(self, pipeline, fake_engine):
        request = RenderRequest(
            markup="x^2",
            input_type=InputType.TEX,
            output_format=OutputFormat.MML,
            features=Features(speech=False),
            capabilities=Capabilities(),
        )
        payload = await pipeline.run(request)
        assert fake_engine.calls[0].math == "x^{2}"
        assert payload.headers["content-type"] == "application/mathml+xml"


class TestResolveFeatures:
    """Test feature defaults."""

    def test_absent_features_follow_speech_on(self):
        assert resolve_features(None, Capabilities(speech_on=True)).speech is True
        assert resolve_features(None, Capabilities(speech_on=False)).speech is False

    def test_empty_features_disable_speech(self):
        assert resolve_features({}, Capabilities(speech_on=True)).speech is False

    def test_explicit_features(self):
        features = Features(speech=True)
        assert resolve_features(features, Capabilities()) is features
        assert resolve_features({"speech": True}, Capabilities(speech_on=False)).speech is True
