"""
Test the HTTP API.
"""

from unittest.mock import AsyncMock, Mock, patch

import pytest
from fastapi.testclient import TestClient

from mathrender.config import Capabilities
from mathrender.main import app
from mathrender.services.pipeline import RenderPipeline, get_pipeline

from .conftest import PNG_BYTES


@pytest.fixture
def client(pipeline):
    """Test client with the render pipeline replaced by the fake-engine pipeline."""
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestGetRender:
    """Test the GET lookup endpoint."""

    def test_json(self, client):
        response = client.get("/get/json/tex/x%5E2")
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["sanetex"] == "x^{2}"
        assert "speech" not in body

    def test_svg(self, client):
        response = client.get("/get/svg/tex/x")
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/svg+xml"
        assert response.text.startswith("<svg")

    def test_missing_query(self, client):
        for path in ("/get", "/get/svg", "/get/svg/tex", "/get/svg/tex/"):
            response = client.get(path)
            assert response.status_code == 400, path
            assert response.json()["type"] == "MISSING_QUERY"

    def test_invalid_tex(self, client, fake_engine):
        response = client.get("/get/svg/tex/%5Cbadcmd")
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["title"] == "Bad Request"
        assert body["type"] == "VALIDATION_FAILED"
        assert body["error"] == "SyntaxError: Illegal TeX function"
        assert body["feedback"]["error"]["found"] == "\\badcmd"
        assert fake_engine.call_count == 0

    def test_unknown_type(self, client):
        response = client.get("/get/svg/latex3/x")
        assert response.status_code == 400
        assert response.json()["type"] == "UNRECOGNIZED_TYPE"


class TestPostRender:
    """Test the POST render endpoint."""

    def test_json_body(self, client):
        response = client.post("/svg", json={"q": "x^2"})
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/svg+xml"
        assert "<title>x squared</title>" in response.text

    def test_form_body_defaults_to_json(self, client):
        response = client.post("/", data={"q": "x^2", "type": "tex"})
        assert response.status_code == 200
        body = response.json()
        assert body["speech"] == "x squared"
        assert body["sanetex"] == "x^{2}"

    def test_nospeech(self, client):
        response = client.post("/mml", data={"q": "x", "nospeech": "true"})
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/mathml+xml"
        assert "x-mathrender-style" in response.headers
        assert "alttext" not in response.text

    def test_png(self, client):
        response = client.post("/png", json={"q": "x"})
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content == PNG_BYTES

    def test_complete(self, client):
        response = client.post("/complete", json={"q": "x"})
        body = response.json()
        assert body["svg"]["headers"] == {"content-type": "image/svg+xml"}
        assert body["mml"]["headers"]["content-type"] == "application/mathml+xml"

    def test_speech(self, client):
        response = client.post("/speech", json={"q": "x^2"})
        assert response.status_code == 200
        assert response.text == "x squared"
        assert response.headers["content-type"].startswith("text/plain")

    def test_texvcinfo(self, client, fake_engine):
        response = client.post("/texvcinfo", json={"q": "x^2"})
        assert response.status_code == 200
        assert response.headers["cache-control"] == "max-age=2592000"
        assert response.json()["checked"] == "x^{2}"
        assert fake_engine.call_count == 0

    def test_missing_query(self, client):
        response = client.post("/svg", json={"type": "tex"})
        assert response.status_code == 400
        assert response.json()["error"] == "q (query) post parameter is missing!"

    def test_unknown_format(self, client):
        response = client.post("/gif", json={"q": "x"})
        assert response.status_code == 400
        assert response.json()["type"] == "UNRECOGNIZED_FORMAT"

    def test_invalid_json(self, client):
        response = client.post("/svg", content=b"{", headers={"content-type": "application/json"})
        assert response.status_code == 400
        assert response.json()["type"] == "INVALID_REQUEST"

    def test_format_disabled(self, fake_engine, postprocess):
        pipeline = RenderPipeline(fake_engine, postprocess=postprocess, capabilities=Capabilities(svg=False))
        app.dependency_overrides[get_pipeline] = lambda: pipeline
        try:
            response = TestClient(app).post("/svg", json={"q": "x"})
        finally:
            app.dependency_overrides.clear()
        assert response.status_code == 400
        body = response.json()
        assert body["type"] == "FORMAT_DISABLED"
        assert '"svg: true"' in body["detail"]
        assert fake_engine.call_count == 0

    def test_server_side_fault(self, fake_engine, postprocess):
        pipeline = RenderPipeline(fake_engine, postprocess=postprocess, capabilities=Capabilities(svg=False))
        app.dependency_overrides[get_pipeline] = lambda: pipeline
        try:
            response = TestClient(app).post("/png", json={"q": "x"})
        finally:
            app.dependency_overrides.clear()
        assert response.status_code == 500
        assert response.json()["type"] == "NO_SUITABLE_OUTPUT"
        assert response.json()["title"] == "Internal Server Error"


class TestHealth:
    """Test health endpoints."""

    def test_healthz(self, client):
        response = client.get("/healthz")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @patch("mathrender.api.health.check_command_available", return_value=False)
    def test_health_reports_tools(self, mock_check, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["dependencies"] == {"latex": False, "dvisvgm": False, "rsvg-convert": False}
        assert "cpu_percent" in body["metrics"]
        assert body["capabilities"]["svg"] is True

    def test_openapi_documents_error_envelope(self, client):
        schema = client.get("/openapi.json").json()
        assert "ErrorResponse" in schema["components"]["schemas"]
        assert "HealthResponse" in schema["components"]["schemas"]


class TestRequestTracing:
    """Test the tracing middleware headers."""

    def test_trace_headers(self, client):
        response = client.get("/healthz")
        assert len(response.headers["x-request-id"]) == 8
        assert response.headers["x-render-time"].endswith("ms")

    def test_trace_headers_on_errors(self, client):
        response = client.get("/get/svg/latex3/x")
        assert response.status_code == 400
        assert "x-request-id" in response.headers


class TestUnexpectedErrors:
    """Test the catch-all error handler."""

    def test_unexpected_error_envelope(self):
        pipeline = Mock()
        pipeline.render = AsyncMock(side_effect=RuntimeError("boom"))
        app.dependency_overrides[get_pipeline] = lambda: pipeline
        try:
            response = TestClient(app, raise_server_exceptions=False).get("/get/svg/tex/x")
        finally:
            app.dependency_overrides.clear()
        assert response.status_code == 500
        body = response.json()
        assert body["type"] == "INTERNAL_ERROR"
        assert body["success"] is False
        assert body["error"] == "boom"
