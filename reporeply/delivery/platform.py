"""Delivery platform abstraction.

A platform adapter wraps one hosting service's REST API with the three
calls the delivery client needs. Adapters raise httpx.HTTPStatusError for
non-2xx responses; classification happens in the delivery client.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Credential:
    """Short-lived access credential for a repository."""

    token: str
    expires_at: datetime | None = None


@dataclass(frozen=True)
class RateLimitStatus:
    """Remaining request quota and when it resets (naive UTC)."""

    remaining: int
    reset_at: datetime


class DeliveryPlatform(ABC):
    """Abstract hosting platform (GitHub, GitLab)."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Platform name, also used as the circuit breaker service key."""
        pass

    @abstractmethod
    def issue_installation_credential(self, integration_ref: str) -> Credential:
        """Exchange a stored integration reference for an access credential."""
        pass

    @abstractmethod
    def get_rate_limit_status(self, token: str) -> RateLimitStatus | None:
        """Current quota for the credential, or None when unknown."""
        pass

    @abstractmethod
    def create_issue_comment(
        self,
        token: str,
        repo_id: str,
        issue_number: int,
        body: str,
    ) -> None:
        """Post a comment on an issue."""
        pass

    def close(self) -> None:
        """Release network resources."""
        pass
