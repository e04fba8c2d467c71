"""
Tests for the combined worker deployment and static asset fallthrough.
"""

import httpx
import pytest

from athere_proxy.config import AppSettings, ServerConfig


@pytest.fixture
def worker_settings():
    return AppSettings(
        anthropic_api_key="sk-test-secret",
        server=ServerConfig(deployment_mode="worker"),
    )


class TestWorkerMode:
    """Test cases for deployment_mode=worker."""

    @pytest.mark.parametrize("path", ["/api/claude", "/proxy", "/anything/else"])
    def test_preflight_on_any_path(self, worker_settings, make_client, path):
        client, claude, target = make_client(worker_settings)

        response = client.options(path)

        assert response.status_code == 204
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
        assert response.headers["access-control-allow-headers"] == "Content-Type, Authorization"
        assert response.headers["access-control-max-age"] == "86400"
        assert claude.requests == []
        assert target.requests == []

    def test_full_cors_headers_on_proxy_responses(self, worker_settings, make_client):
        client, _, _ = make_client(
            worker_settings,
            claude_handler=lambda request: httpx.Response(200, content=b'{"id":"msg_1"}'),
        )

        response = client.post("/api/claude", content=b'{"model":"x"}')

        assert response.status_code == 200
        assert response.json() == {"id": "msg_1"}
        assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
        assert response.headers["access-control-allow-headers"] == "Content-Type, Authorization"

    def test_missing_url_still_gets_cors(self, worker_settings, make_client):
        client, _, _ = make_client(worker_settings)

        response = client.get("/proxy")

        assert response.status_code == 400
        assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"

    def test_unknown_path_is_not_found(self, worker_settings, make_client):
        client, _, _ = make_client(worker_settings)

        response = client.get("/nothing-here")

        assert response.status_code == 404
        assert response.text == "Not found"
        assert "access-control-allow-origin" not in response.headers

    def test_proxy_accepts_any_method(self, worker_settings, make_client):
        client, _, target = make_client(worker_settings)

        response = client.post("/proxy", params={"url": "https://example.com/a"})

        assert response.status_code == 200
        assert response.text == "ok"
        assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
        assert [r.method for r in target.requests] == ["GET"]

    def test_get_on_claude_path_falls_through_without_cors(self, worker_settings, make_client):
        client, claude, _ = make_client(worker_settings)

        response = client.get("/api/claude")

        assert response.status_code == 404
        assert "access-control-allow-origin" not in response.headers
        assert claude.requests == []

    def test_static_assets_have_no_cors(self, tmp_path, make_client):
        (tmp_path / "index.html").write_text("home", encoding="utf-8")
        app_settings = AppSettings(server=ServerConfig(deployment_mode="worker", static_dir=str(tmp_path)))
        client, _, _ = make_client(app_settings)

        response = client.get("/")

        assert response.status_code == 200
        assert response.text == "home"
        assert "access-control-allow-origin" not in response.headers


class TestStaticAssets:
    """Test cases for the static asset fallthrough."""

    def test_serves_index_from_static_dir(self, tmp_path, make_client):
        (tmp_path / "index.html").write_text("<h1>@here</h1>", encoding="utf-8")
        (tmp_path / "app.js").write_text("console.log('hi')", encoding="utf-8")
        app_settings = AppSettings(server=ServerConfig(static_dir=str(tmp_path)))
        client, _, _ = make_client(app_settings)

        index = client.get("/")
        script = client.get("/app.js")

        assert index.status_code == 200
        assert index.text == "<h1>@here</h1>"
        assert script.status_code == 200
        assert "console.log" in script.text

    def test_proxy_routes_take_precedence(self, tmp_path, make_client):
        (tmp_path / "index.html").write_text("home", encoding="utf-8")
        app_settings = AppSettings(server=ServerConfig(static_dir=str(tmp_path)))
        client, _, _ = make_client(app_settings)

        response = client.get("/proxy")

        assert response.status_code == 400
        assert response.text == "Missing url parameter"

    def test_pages_mode_unknown_path(self, settings, make_client):
        client, _, _ = make_client(settings)

        response = client.get("/missing")

        assert response.status_code == 404
        assert response.text == "Not found"
