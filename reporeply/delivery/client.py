"""Delivery client: posts reminder comments on issue threads.

Wraps every platform call with the platform's circuit breaker and the
token cache, honours the platform rate limit, and converts HTTP failures
into tagged DeliveryErrors:

- 404/410 -> PERMANENT: issue not found
- 401/403 -> PERMANENT: authentication failed
- 429     -> TEMPORARY: rate limit exceeded
- anything else propagates unchanged and is retried as transient
"""

import logging
import time
from collections.abc import Callable
from datetime import datetime

import httpx

from reporeply.config import Settings
from reporeply.delivery.errors import (
    DeliveryError,
    ErrorKind,
    MissingIntegrationError,
    RateLimitExhaustedError,
)
from reporeply.delivery.github import GitHubPlatform
from reporeply.delivery.gitlab import GitLabPlatform
from reporeply.delivery.platform import DeliveryPlatform
from reporeply.delivery.token_cache import TokenCache
from reporeply.models.repository import Repository
from reporeply.resilience.circuit_breaker import CircuitBreakerRegistry

logger = logging.getLogger(__name__)


def rate_limit_wait_cap(settings: Settings) -> int:
    """Longest rate-limit sleep that still fits inside a reminder claim.

    The claim is released by the stale-lock reaper after the processing
    timeout, and the comment request after the sleep needs up to one HTTP
    timeout, so the sleep must end before both add up to the timeout.
    """
    claim_budget = settings.SCHEDULER_PROCESSING_TIMEOUT_SECONDS - 2 * settings.HTTP_TIMEOUT_SECONDS
    return max(0, min(settings.RATE_LIMIT_MAX_WAIT_SECONDS, claim_budget))


class DeliveryClient:
    """Posts comments through the repository's hosting platform."""

    def __init__(
        self,
        platforms: dict[str, DeliveryPlatform],
        breakers: CircuitBreakerRegistry,
        token_cache: TokenCache,
        rate_limit_buffer: int = 100,
        max_rate_limit_wait_seconds: int = 300,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        """Initialize the delivery client.

        Args:
            platforms: Platform adapters keyed by provider value ("github", "gitlab")
            breakers: Shared circuit breakers, keyed by platform name
            token_cache: Shared per-repository credential cache
            rate_limit_buffer: Minimum remaining quota before waiting or failing
            max_rate_limit_wait_seconds: Longest acceptable wait for a quota reset
            sleep: Blocking sleep used while waiting for a quota reset
            clock: Naive-UTC time source
        """
        self.platforms = platforms
        self.breakers = breakers
        self.token_cache = token_cache
        self.rate_limit_buffer = rate_limit_buffer
        self.max_rate_limit_wait_seconds = max_rate_limit_wait_seconds
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        breakers: CircuitBreakerRegistry,
        token_cache: TokenCache,
    ) -> "DeliveryClient":
        return cls(
            platforms={
                "github": GitHubPlatform(settings),
                "gitlab": GitLabPlatform(settings),
            },
            breakers=breakers,
            token_cache=token_cache,
            rate_limit_buffer=settings.RATE_LIMIT_BUFFER,
            max_rate_limit_wait_seconds=rate_limit_wait_cap(settings),
        )

    def platform_for(self, repository: Repository) -> DeliveryPlatform:
        provider = getattr(repository.provider, "value", repository.provider)
        platform = self.platforms.get(provider)
        if platform is None:
            raise MissingIntegrationError(f"No delivery platform for provider {provider}")
        return platform

    def post_comment(self, repository: Repository, issue_number: int, message: str) -> None:
        """Post a comment on an issue of the repository.

        Raises:
            DeliveryError: Classified failure (including an open circuit)
            Exception: Unclassified failure, to be retried as transient
        """
        platform = self.platform_for(repository)
        self.breakers.check(platform.name)

        try:
            token = self.token_cache.get_token(repository, platform)
            self._respect_rate_limit(platform, token)
            platform.create_issue_comment(token, repository.id, issue_number, message)
        except httpx.HTTPStatusError as e:
            self.breakers.record_failure(platform.name)
            error = self._reclassify(platform, repository, e)
            if error is None:
                raise
            raise error from e
        except Exception:
            self.breakers.record_failure(platform.name)
            raise

        self.breakers.record_success(platform.name)
        logger.info(
            f"Posted reminder comment on {repository.id}#{issue_number}",
            extra={"repo_id": repository.id, "issue_number": issue_number},
        )

    def _respect_rate_limit(self, platform: DeliveryPlatform, token: str) -> None:
        status = platform.get_rate_limit_status(token)
        if status is None or status.remaining >= self.rate_limit_buffer:
            return

        wait_seconds = (status.reset_at - self._clock()).total_seconds()
        if wait_seconds <= 0:
            # Reset time has passed, so the quota is restored.
            return

        logger.warning(
            f"[RateLimit] {status.remaining} {platform.name} requests remaining",
            extra={
                "platform": platform.name,
                "remaining": status.remaining,
                "reset_at": status.reset_at.isoformat(),
            },
        )

        if wait_seconds + 1 <= self.max_rate_limit_wait_seconds:
            self._sleep(wait_seconds + 1)
            return

        raise RateLimitExhaustedError(platform.name)

    def _reclassify(
        self,
        platform: DeliveryPlatform,
        repository: Repository,
        error: httpx.HTTPStatusError,
    ) -> DeliveryError | None:
        status_code = error.response.status_code

        if status_code in (404, 410):
            return DeliveryError(
                f"Issue not found ({status_code})",
                kind=ErrorKind.PERMANENT,
                status_code=status_code,
            )
        if status_code in (401, 403):
            # Force a fresh token on the next attempt.
            self.token_cache.invalidate(repository.id)
            return DeliveryError(
                f"Authentication failed ({status_code})",
                kind=ErrorKind.PERMANENT,
                status_code=status_code,
            )
        if status_code == 429:
            return DeliveryError(
                "Rate limit exceeded",
                kind=ErrorKind.TRANSIENT,
                status_code=status_code,
            )
        return None

    def close(self) -> None:
        for platform in self.platforms.values():
            platform.close()
