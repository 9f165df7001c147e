"""Redis key templates and TTL constants.

Centralized management of all Redis keys used in the application to prevent
conflicts and make maintenance easier.
"""


class RedisKeys:
    """Redis key templates and helper methods."""

    # ============================================================================
    # Rate Limit Keys
    # ============================================================================

    # Per-user module submission counter
    # Format: submit_rate_limit:{user_id}
    # TTL: submission window (1 hour by default), set on first increment
    SUBMIT_RATE_LIMIT_TTL = 3600

    @staticmethod
    def submit_rate_limit(user_id: str) -> str:
        """
        Get module submission rate-limit key.

        Args:
            user_id: Submitting user ID.

        Returns:
            Redis key string.
        """
        return f"submit_rate_limit:{user_id}"

    # Per-route request counter
    # Format: rate_limit:{tier}:{identifier}
    # TTL: tier window (60 seconds by default), set on first increment
    @staticmethod
    def request_rate_limit(tier: str, identifier: str) -> str:
        """
        Get per-route request counter key.

        Args:
            tier: Route tier name.
            identifier: Caller identifier (API key digest or client address).

        Returns:
            Redis key string.
        """
        return f"rate_limit:{tier}:{identifier}"

    # ============================================================================
    # Job Keys
    # ============================================================================

    # arq job id used when enqueuing an admin job, so a job row is never
    # queued twice while the first run is still pending.
    # Format: admin_job:{job_id}
    @staticmethod
    def admin_job(job_id: int) -> str:
        """
        Get arq job id for an admin job row.

        Args:
            job_id: Admin job primary key.

        Returns:
            arq job id string.
        """
        return f"admin_job:{job_id}"
