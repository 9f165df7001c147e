"""Integration tests for application-level endpoints and error bodies."""

import pytest
from httpx import AsyncClient


class TestAppEndpoints:
    """Test health, public config and error rendering."""

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        """Health reports status and version."""
        response = await client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "version" in response.json()

    @pytest.mark.asyncio
    async def test_public_config(self, client: AsyncClient):
        """Public config exposes only captcha settings."""
        response = await client.get("/api/config")

        assert response.status_code == 200
        assert set(response.json()) == {"turnstile_site_key", "captcha_enabled"}

    @pytest.mark.asyncio
    async def test_unknown_route_error_body(self, client: AsyncClient):
        """Framework errors use the same body shape as service errors."""
        response = await client.get("/api/does-not-exist")

        assert response.status_code == 404
        assert response.json() == {"error": "Not Found", "detail": "Not Found"}
