"""GitLab platform adapter.

GitLab repositories carry a stored access token instead of an app
installation. GitLab has no rate-limit endpoint, so the quota is taken
from the RateLimit-* headers of the previous response for the same token.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from urllib.parse import quote

import httpx

from reporeply.config import Settings
from reporeply.delivery.platform import Credential, DeliveryPlatform, RateLimitStatus

logger = logging.getLogger(__name__)


class GitLabPlatform(DeliveryPlatform):
    """GitLab REST API (v4) adapter."""

    def __init__(
        self,
        settings: Settings,
        client: httpx.Client | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self.settings = settings
        self._client = client
        self._clock = clock
        self._rate_limits: dict[str, RateLimitStatus] = {}

    @property
    def name(self) -> str:
        return "gitlab"

    @property
    def client(self) -> httpx.Client:
        """Lazy-initialize HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.settings.GITLAB_API_URL,
                timeout=float(self.settings.HTTP_TIMEOUT_SECONDS),
            )
        return self._client

    def issue_installation_credential(self, integration_ref: str) -> Credential:
        # The stored token is used as-is; the cache TTL bounds its reuse.
        return Credential(token=integration_ref)

    def get_rate_limit_status(self, token: str) -> RateLimitStatus | None:
        status = self._rate_limits.get(token)
        if status is not None and status.reset_at <= self._clock():
            # The window has reset; the next response brings fresh headers.
            del self._rate_limits[token]
            return None
        return status

    def _record_rate_limit(self, token: str, response: httpx.Response) -> None:
        remaining = response.headers.get("RateLimit-Remaining")
        reset = response.headers.get("RateLimit-Reset")
        if remaining is None or reset is None:
            return
        try:
            self._rate_limits[token] = RateLimitStatus(
                remaining=int(remaining),
                reset_at=datetime.fromtimestamp(int(reset), timezone.utc).replace(tzinfo=None),
            )
        except ValueError:
            logger.debug("Ignoring malformed GitLab rate limit headers")

    def create_issue_comment(
        self,
        token: str,
        repo_id: str,
        issue_number: int,
        body: str,
    ) -> None:
        project = quote(repo_id, safe="")
        response = self.client.post(
            f"/projects/{project}/issues/{issue_number}/notes",
            json={"body": body},
            headers={"Authorization": f"Bearer {token}"},
        )
        self._record_rate_limit(token, response)
        response.raise_for_status()

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None
