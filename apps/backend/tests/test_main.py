"""
Tests for the main module.
"""

from main import validate_cors_origins


def test_read_root(client):
    """Test the root endpoint returns the expected response."""
    response = client.get("/")
    assert response.status_code == 200
    assert "/v1/chat/completion" in response.json()["message"]


def test_ping(client):
    response = client.get("/ping")
    assert response.status_code == 200
    assert response.json() == {"message": "pong"}


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/v1/nope")
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error"]["type"] == "http_error"


def test_correlation_id_is_generated(client):
    response = client.get("/ping")
    assert response.headers["X-Correlation-ID"]


def test_correlation_id_is_echoed(client):
    response = client.get("/ping", headers={"X-Correlation-ID": "voice-turn-7"})
    assert response.headers["X-Correlation-ID"] == "voice-turn-7"


def test_cors_allows_configured_origin(client):
    response = client.get("/ping", headers={"Origin": "http://localhost:3000"})
    assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"


def test_invalid_cors_origins_are_dropped():
    assert validate_cors_origins(
        ["http://localhost:3000", "not-a-url", "ftp://files.example.com"]
    ) == ["http://localhost:3000"]
