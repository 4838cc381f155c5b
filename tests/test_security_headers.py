"""
tests/test_security_headers.py — Tests for security headers on responses

Validates that the request_id_middleware in main.py sets all expected
security headers (OWASP recommended) on every response.

Called by: pytest
Depends on: app.main (request_id_middleware)
"""

import pytest

EXPECTED = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "X-API-Version": "v1",
}


@pytest.mark.parametrize("header,value", sorted(EXPECTED.items()))
def test_header_on_health(client, header, value):
    assert client.get("/health").headers.get(header) == value


def test_security_headers_on_api_endpoint(client, published_property):
    """Security headers are present on API responses, not just health."""
    resp = client.get("/api/properties")
    assert resp.status_code == 200
    for header, value in EXPECTED.items():
        assert resp.headers.get(header) == value
    assert "X-Request-ID" in resp.headers


def test_security_headers_on_401(client):
    """Security headers are present even on error responses."""
    resp = client.get("/api/admin/users")
    assert resp.status_code == 401
    assert resp.headers.get("X-Content-Type-Options") == "nosniff"
    assert "X-Request-ID" in resp.headers


def test_request_id_uniqueness(client):
    ids = {client.get("/health").headers["X-Request-ID"] for _ in range(5)}
    assert len(ids) == 5


def test_global_exception_handler_registered():
    """A catch-all Exception handler is wired up.

    Direct exception injection via dependency override propagates through
    TestClient, so the registration is checked instead.
    """
    from app.main import app

    assert Exception in app.exception_handlers


def test_error_response_format(client):
    """HTTP errors return structured JSON with error, status_code, and request_id."""
    resp = client.get("/api/properties/does-not-exist")
    assert resp.status_code == 404
    data = resp.json()
    assert data["error"] == "Property not found"
    assert data["status_code"] == 404
    assert data["request_id"] == resp.headers["X-Request-ID"]
