"""Per-repository cache of short-lived delivery credentials."""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from reporeply.delivery.errors import MissingIntegrationError
from reporeply.delivery.platform import DeliveryPlatform
from reporeply.models.repository import Repository

logger = logging.getLogger(__name__)


@dataclass
class TokenCacheEntry:
    token: str
    expires_at: datetime


class TokenCache:
    """Caches access tokens per repository until their TTL runs out.

    Expiry is issue time + ttl, or the platform's own expiry if earlier.
    """

    def __init__(
        self,
        ttl_seconds: int = 50 * 60,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._entries: dict[str, TokenCacheEntry] = {}
        self._lock = threading.Lock()

    def get_token(self, repository: Repository, platform: DeliveryPlatform) -> str:
        """Return a valid token for the repository, issuing one on miss.

        Raises:
            MissingIntegrationError: If the repository has no integration reference
        """
        now = self._clock()
        with self._lock:
            cached = self._entries.get(repository.id)
        if cached is not None and now < cached.expires_at:
            return cached.token

        integration_ref = repository.integration_ref
        if not integration_ref:
            raise MissingIntegrationError(
                f"No integration configured for repository {repository.id}"
            )

        credential = platform.issue_installation_credential(integration_ref)
        expires_at = now + self.ttl
        if credential.expires_at is not None and credential.expires_at < expires_at:
            expires_at = credential.expires_at

        with self._lock:
            self._entries[repository.id] = TokenCacheEntry(
                token=credential.token,
                expires_at=expires_at,
            )

        logger.debug(
            f"Cached {platform.name} token for {repository.id}",
            extra={"repo_id": repository.id, "expires_at": expires_at.isoformat()},
        )
        return credential.token

    def invalidate(self, repo_id: str) -> None:
        """Drop the cached token for a repository."""
        with self._lock:
            self._entries.pop(repo_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
