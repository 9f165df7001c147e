"""Tests for Turnstile captcha verification and client IP resolution."""

import httpx
import pytest

from modhub_core.config import IntegrationConfig
from modhub_core.services.turnstile_service import TurnstileVerifier, get_client_ip


def _verifier(handler, secret: str = "turnstile-secret") -> tuple[TurnstileVerifier, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TurnstileVerifier(IntegrationConfig(turnstile_secret_key=secret), http_client=client), client


class TestTurnstileVerifier:
    """Test TurnstileVerifier.verify."""

    @pytest.mark.asyncio
    async def test_success_posts_secret_token_and_ip(self):
        """A successful siteverify response passes."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True, "hostname": "modhub.example.com"})

        verifier, client = _verifier(handler)
        async with client:
            result = await verifier.verify(" token-abc ", remote_ip="203.0.113.7")

        assert result.success is True
        assert result.hostname == "modhub.example.com"
        body = seen[0].content.decode()
        assert "secret=turnstile-secret" in body
        assert "response=token-abc" in body
        assert "remoteip=203.0.113.7" in body

    @pytest.mark.asyncio
    async def test_failure_lists_error_codes(self):
        """Cloudflare error codes are surfaced in the message."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": False, "error-codes": ["timeout-or-duplicate"]})

        verifier, client = _verifier(handler)
        async with client:
            result = await verifier.verify("token-abc")

        assert result.success is False
        assert result.error == "Captcha verification failed: timeout-or-duplicate"
        assert result.error_codes == ["timeout-or-duplicate"]

    @pytest.mark.asyncio
    async def test_missing_token(self):
        """Blank tokens fail without calling Cloudflare."""
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"success": True})

        verifier, client = _verifier(handler)
        async with client:
            result = await verifier.verify("   ")

        assert result.success is False
        assert result.error == "Invalid or missing Turnstile token"
        assert calls == []

    @pytest.mark.asyncio
    async def test_missing_secret_fails_closed(self):
        """Without a configured secret every token is rejected."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": True})

        verifier, client = _verifier(handler, secret="")
        async with client:
            result = await verifier.verify("token-abc")

        assert result.success is False
        assert result.error == "Turnstile validation is not properly configured"
        assert verifier.enabled is False

    @pytest.mark.asyncio
    async def test_http_error(self):
        """Upstream failures are reported as a retryable error."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        verifier, client = _verifier(handler)
        async with client:
            result = await verifier.verify("token-abc")

        assert result.success is False
        assert result.error == "Failed to verify captcha. Please try again."

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Timeouts have their own message."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        verifier, client = _verifier(handler)
        async with client:
            result = await verifier.verify("token-abc")

        assert result.error == "Captcha verification timed out. Please try again."


class TestGetClientIp:
    """Test proxy header resolution."""

    def test_forwarded_for_first_hop(self):
        """The first x-forwarded-for entry wins."""
        headers = httpx.Headers({"X-Forwarded-For": "198.51.100.1, 10.0.0.1", "X-Real-IP": "10.0.0.2"})

        assert get_client_ip(headers) == "198.51.100.1"

    def test_real_ip_then_client_ip(self):
        """x-real-ip is preferred over x-client-ip."""
        assert get_client_ip(httpx.Headers({"X-Client-IP": "10.0.0.3"})) == "10.0.0.3"
        assert get_client_ip(httpx.Headers({"X-Real-IP": "10.0.0.2", "X-Client-IP": "10.0.0.3"})) == "10.0.0.2"

    def test_fallback(self):
        """Without proxy headers the fallback is used."""
        assert get_client_ip(httpx.Headers({}), fallback="127.0.0.1") == "127.0.0.1"
        assert get_client_ip({}) is None
