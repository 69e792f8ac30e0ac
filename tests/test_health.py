"""Reference service health and request-id tests."""

from httpx import AsyncClient


class TestHealthCheck:
    """GET /health."""

    async def test_health_is_public(self, async_client: AsyncClient):
        """No bearer token is needed to probe the service."""
        response = await async_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    async def test_responses_carry_request_id(self, async_client: AsyncClient):
        """Each response gets its own X-Request-ID."""
        first = await async_client.get("/health")
        second = await async_client.get("/health")

        assert first.headers["X-Request-ID"]
        assert first.headers["X-Request-ID"] != second.headers["X-Request-ID"]

    async def test_error_bodies_carry_request_id(self, async_client: AsyncClient):
        """Error responses echo the request id in the body."""
        response = await async_client.get("/notifications/user/user-1")

        assert response.status_code == 401
        assert response.json()["request_id"] == response.headers["X-Request-ID"]
