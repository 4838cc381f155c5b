"""
test_middleware.py — Tests for request/response middleware

Verifies request ID generation, the health endpoints and the error
response shape produced by the handlers in main.py.

Called by: pytest
Depends on: app/main.py (middleware), tests/conftest.py (client fixture)
"""

from app.config import APP_VERSION


def test_request_id_header_present(client):
    """Every response should include X-Request-ID."""
    resp = client.get("/health")
    assert "X-Request-ID" in resp.headers
    assert len(resp.headers["X-Request-ID"]) == 8  # uuid4().hex[:8]


def test_request_id_unique_per_request(client):
    """Each request gets a distinct ID."""
    id1 = client.get("/health").headers["X-Request-ID"]
    id2 = client.get("/health").headers["X-Request-ID"]
    assert id1 != id2


def test_health_returns_ok(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "version": APP_VERSION}


def test_readiness_checks_database(client):
    resp = client.get("/health/ready")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["checks"]["database"]["ok"] is True


def test_404_still_gets_request_id(client):
    """Even error responses should carry the request ID."""
    resp = client.get("/nonexistent-route-xyz")
    assert "X-Request-ID" in resp.headers
    assert resp.json()["request_id"] == resp.headers["X-Request-ID"]


def test_validation_error_shape(client):
    resp = client.post("/api/auth/signin", json={"email": "buyer@estates.test"})
    assert resp.status_code == 422
    body = resp.json()
    assert body["error"] == "Validation error"
    assert body["status_code"] == 422
    assert body["detail"][0]["loc"] == ["body", "password"]
