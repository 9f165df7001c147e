"""
Fixed-window request counters in Redis.

A counter key is created by the first INCR of a window and given the
window as TTL; requests beyond the limit are rejected until it expires.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from arq.connections import ArqRedis

from modhub_core.config import IntegrationConfig, integration_config
from modhub_database.models.base import utcnow

# Route tiers
PUBLIC_READ = "public_read"
DOWNLOAD_TRACKING = "download"
ADMIN_OPERATIONS = "admin"


@dataclass(frozen=True)
class RateLimitStatus:
    """Counter state after one request."""

    count: int
    limit: int
    retry_after: int

    @property
    def exceeded(self) -> bool:
        return self.count > self.limit

    @property
    def remaining(self) -> int:
        return max(self.limit - self.count, 0)

    @property
    def reset_at(self) -> datetime:
        return utcnow() + timedelta(seconds=self.retry_after)


def tier_limit(tier: str, config: IntegrationConfig | None = None) -> tuple[int, int]:
    """
    Limit and window for a route tier.

    Args:
        tier: One of PUBLIC_READ, DOWNLOAD_TRACKING or ADMIN_OPERATIONS.
        config: Integration configuration.

    Returns:
        Tuple of (requests allowed, window in seconds).
    """
    config = config or integration_config
    limits = {
        PUBLIC_READ: config.public_read_rate_limit,
        DOWNLOAD_TRACKING: config.download_rate_limit,
        ADMIN_OPERATIONS: config.admin_rate_limit,
    }
    if tier not in limits:
        raise ValueError(f"Unknown rate limit tier: {tier}")
    return limits[tier], config.rate_limit_window_seconds


class RateLimiter:
    """Redis-backed request counter."""

    def __init__(self, redis: ArqRedis):
        self.redis = redis

    async def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitStatus:
        """
        Count one request against a key.

        Args:
            key: Counter key.
            limit: Requests allowed per window.
            window_seconds: Window length.

        Returns:
            Counter state including this request.
        """
        count = await self.redis.incr(key)
        if count == 1:
            await self.redis.expire(key, window_seconds)
            return RateLimitStatus(count=count, limit=limit, retry_after=window_seconds)

        ttl = await self.redis.ttl(key)
        return RateLimitStatus(count=count, limit=limit, retry_after=ttl if ttl and ttl > 0 else window_seconds)
