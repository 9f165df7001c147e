"""
Turnstile service.

Server-side verification of Cloudflare Turnstile captcha tokens.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field

import httpx

from modhub_core import get_logger
from modhub_core.config import IntegrationConfig, integration_config

logger = get_logger(__name__)


@dataclass
class TurnstileResult:
    """Outcome of a captcha verification."""

    success: bool
    error: str | None = None
    error_codes: list[str] = field(default_factory=list)
    hostname: str | None = None


def get_client_ip(headers: Mapping[str, str], fallback: str | None = None) -> str | None:
    """
    Resolve the client IP from proxy headers.

    Checks x-forwarded-for (first hop), then x-real-ip, then x-client-ip.

    Args:
        headers: Request headers (case-insensitive mapping).
        fallback: Value to use when no header is present (e.g. socket peer).

    Returns:
        Client IP address, or the fallback.
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    for header in ("x-real-ip", "x-client-ip"):
        value = headers.get(header)
        if value:
            return value.strip()
    return fallback


class TurnstileVerifier:
    """Verifies Turnstile tokens against Cloudflare's siteverify endpoint."""

    def __init__(
        self,
        config: IntegrationConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the verifier.

        Args:
            config: Integration configuration (defaults to the global config).
            http_client: Optional httpx client, mainly for tests.
        """
        self.config = config or integration_config
        self._http_client = http_client

    @property
    def enabled(self) -> bool:
        return self.config.captcha_enabled

    async def verify(self, token: str | None, remote_ip: str | None = None) -> TurnstileResult:
        """
        Verify a captcha token.

        Args:
            token: Token produced by the Turnstile widget.
            remote_ip: Client IP forwarded to Cloudflare.

        Returns:
            Verification result with a user-facing error message on failure.
        """
        if not self.config.turnstile_secret_key:
            logger.error("Turnstile secret key not configured")
            return TurnstileResult(False, "Turnstile validation is not properly configured")

        if not token or not token.strip():
            return TurnstileResult(False, "Invalid or missing Turnstile token")

        form = {"secret": self.config.turnstile_secret_key, "response": token.strip()}
        if remote_ip:
            form["remoteip"] = remote_ip

        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    self.config.turnstile_verify_url,
                    data=form,
                    timeout=self.config.turnstile_timeout_seconds,
                )
            else:
                async with httpx.AsyncClient(timeout=self.config.turnstile_timeout_seconds) as client:
                    response = await client.post(self.config.turnstile_verify_url, data=form)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException:
            logger.warning("Turnstile verification timed out")
            return TurnstileResult(False, "Captcha verification timed out. Please try again.")
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Turnstile verification request failed", extra={"error": str(e)})
            return TurnstileResult(False, "Failed to verify captcha. Please try again.")

        if data.get("success"):
            return TurnstileResult(True, hostname=data.get("hostname"))

        codes = list(data.get("error-codes") or [])
        logger.warning("Turnstile verification failed", extra={"error_codes": codes})
        message = (
            f"Captcha verification failed: {', '.join(codes)}"
            if codes
            else "Captcha verification failed. Please try again."
        )
        return TurnstileResult(False, message, error_codes=codes)
