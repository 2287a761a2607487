"""
Tests for the HTTP endpoints served next to the relay.
"""

from fastapi.testclient import TestClient

from conftest import EchoHandler, make_settings
from ws_relay import __version__
from ws_relay.main import create_app


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["clients"] == 0
        assert "timestamp" in body

    def test_health_counts_clients(self, client):
        with client.websocket_connect("/") as ws:
            ws.receive_json()
            assert client.get("/health").json()["clients"] == 1

    def test_detailed_health(self, client):
        response = client.get("/health/detailed")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["service"] == "ws-relay"
        assert body["version"] == __version__
        assert body["environment"] == "development"
        assert body["relay"]["clients"] == 0
        assert body["relay"]["paths"] == ["/"]
        assert "connections_accepted" in body["relay"]["metrics"]

    def test_detailed_health_degraded_while_closing(self, client, relay):
        client.portal.call(relay.close)

        response = client.get("/health/detailed")

        assert response.status_code == 503
        assert response.json()["status"] == "degraded"


class TestRoot:

    def test_root_info_in_development(self, client):
        response = client.get("/")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "WebSocket Relay Server"
        assert body["status"] == "running"
        assert body["endpoints"]["health"] == "/health"
        assert body["endpoints"]["websocket"].endswith(":3000/")

    def test_no_root_info_in_production(self, tmp_path):
        settings = make_settings(
            environment="production",
            debug=False,
            allowed_origins="https://chat.example.com",
            static_dir=str(tmp_path / "missing"),
        )
        app = create_app(EchoHandler(), settings)

        with TestClient(app) as client:
            assert client.get("/").status_code == 404

    def test_static_client_served_in_production(self, tmp_path):
        (tmp_path / "index.html").write_text("<h1>chat</h1>")
        settings = make_settings(
            environment="production",
            debug=False,
            allowed_origins="https://chat.example.com",
            static_dir=str(tmp_path),
        )
        app = create_app(EchoHandler(), settings)

        with TestClient(app) as client:
            response = client.get("/")
            assert response.status_code == 200
            assert "<h1>chat</h1>" in response.text

            # The static mount must not shadow the WebSocket route
            with client.websocket_connect("/") as ws:
                assert ws.receive_json()["type"] == "welcome"

            assert client.get("/health").json()["status"] == "ok"


class TestCors:

    def test_dev_client_origin_allowed(self, client):
        response = client.get("/health", headers={"Origin": "http://localhost:5173"})

        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"

    def test_other_origin_not_allowed(self, client):
        response = client.get("/health", headers={"Origin": "http://evil.example.com"})

        assert "access-control-allow-origin" not in response.headers
