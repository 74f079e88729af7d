"""Request ID middleware tests.

Rate limiting is skipped in tests (no Redis configured), so only the
request ID handling is exercised here.
"""

import pytest


@pytest.mark.asyncio
async def test_request_id_generated(client):
    """Each request gets a unique X-Request-ID header."""
    r1 = await client.get("/api/v1/health")
    r2 = await client.get("/api/v1/health")
    assert "X-Request-ID" in r1.headers
    assert "X-Request-ID" in r2.headers
    assert r1.headers["X-Request-ID"] != r2.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_propagated(client):
    """Incoming X-Request-ID is echoed back."""
    r = await client.get("/api/v1/health", headers={"X-Request-ID": "trace-12345"})
    assert r.headers["X-Request-ID"] == "trace-12345"


@pytest.mark.asyncio
async def test_request_id_on_login_failure(client):
    """Login failures still carry a request id."""
    r = await client.post(
        "/api/v1/auth/login",
        json={"identifier": "Nobody", "password": "x"},
        headers={"X-Request-ID": "login-trace"},
    )
    assert r.status_code == 404
    assert r.headers["X-Request-ID"] == "login-trace"
