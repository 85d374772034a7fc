"""Smoke tests for health and app wiring."""

from httpx import AsyncClient


async def test_health_returns_ok(client: AsyncClient) -> None:
    """GET /api/v1/health returns 200 and status ok."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data.get("status") == "ok"


async def test_request_id_is_echoed(client: AsyncClient) -> None:
    """A caller-supplied request id comes back on the response."""
    response = await client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})
    assert response.headers.get("X-Request-ID") == "req-123"


async def test_request_id_is_generated(client: AsyncClient) -> None:
    """Without a request id header the middleware generates one."""
    response = await client.get("/api/v1/health")
    assert response.headers.get("X-Request-ID")


async def test_unknown_route_returns_404(client: AsyncClient) -> None:
    response = await client.get("/api/v1/nope")
    assert response.status_code == 404
