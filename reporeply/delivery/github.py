"""GitHub App platform adapter.

Authenticates as the GitHub App with a short RS256 JWT, exchanges it for
an installation access token, and posts issue comments with that token.
"""

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx
from jose import jwt

from reporeply.config import Settings
from reporeply.delivery.errors import MissingIntegrationError
from reporeply.delivery.platform import Credential, DeliveryPlatform, RateLimitStatus

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"

# App JWTs may live at most 10 minutes; iat is backdated for clock drift.
APP_JWT_BACKDATE_SECONDS = 10
APP_JWT_LIFETIME_SECONDS = 600


def _parse_timestamp(value: str | None) -> datetime | None:
    """Parse GitHub's ISO-8601 'Z' timestamps into naive UTC."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class GitHubPlatform(DeliveryPlatform):
    """GitHub REST API adapter authenticated as a GitHub App."""

    def __init__(
        self,
        settings: Settings,
        client: httpx.Client | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the adapter.

        Args:
            settings: Provides app id, private key and API base URL
            client: Optional preconfigured HTTP client
            clock: Unix-time source for JWT claims
        """
        self.settings = settings
        self._client = client
        self._clock = clock

    @property
    def name(self) -> str:
        return "github"

    @property
    def client(self) -> httpx.Client:
        """Lazy-initialize HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.settings.GITHUB_API_URL,
                timeout=float(self.settings.HTTP_TIMEOUT_SECONDS),
                headers={
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": GITHUB_API_VERSION,
                },
            )
        return self._client

    def _load_private_key(self) -> str:
        if self.settings.GITHUB_PRIVATE_KEY_PATH:
            return Path(self.settings.GITHUB_PRIVATE_KEY_PATH).resolve().read_text(encoding="utf-8")
        if self.settings.GITHUB_PRIVATE_KEY:
            return self.settings.GITHUB_PRIVATE_KEY.replace("\\n", "\n")
        raise MissingIntegrationError("No GITHUB_PRIVATE_KEY or GITHUB_PRIVATE_KEY_PATH found")

    def create_app_jwt(self) -> str:
        """Sign a JWT identifying the GitHub App itself."""
        if not self.settings.GITHUB_APP_ID:
            raise MissingIntegrationError("GITHUB_APP_ID is not configured")

        now = int(self._clock())
        payload = {
            "iat": now - APP_JWT_BACKDATE_SECONDS,
            "exp": now + APP_JWT_LIFETIME_SECONDS,
            "iss": self.settings.GITHUB_APP_ID,
        }
        return jwt.encode(payload, self._load_private_key(), algorithm="RS256")

    @staticmethod
    def _auth(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    def issue_installation_credential(self, integration_ref: str) -> Credential:
        app_jwt = self.create_app_jwt()
        response = self.client.post(
            f"/app/installations/{integration_ref}/access_tokens",
            headers=self._auth(app_jwt),
        )
        response.raise_for_status()
        data: dict[str, Any] = response.json()

        logger.info(
            "Issued GitHub installation token",
            extra={"installation_id": integration_ref},
        )
        return Credential(
            token=data["token"],
            expires_at=_parse_timestamp(data.get("expires_at")),
        )

    def get_rate_limit_status(self, token: str) -> RateLimitStatus | None:
        response = self.client.get("/rate_limit", headers=self._auth(token))
        response.raise_for_status()
        rate = response.json()["rate"]
        return RateLimitStatus(
            remaining=int(rate["remaining"]),
            reset_at=datetime.fromtimestamp(int(rate["reset"]), timezone.utc).replace(tzinfo=None),
        )

    def create_issue_comment(
        self,
        token: str,
        repo_id: str,
        issue_number: int,
        body: str,
    ) -> None:
        owner, repo_name = repo_id.split("/", 1)
        response = self.client.post(
            f"/repos/{owner}/{repo_name}/issues/{issue_number}/comments",
            json={"body": body},
            headers=self._auth(token),
        )
        response.raise_for_status()

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None
