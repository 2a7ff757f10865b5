"""Tests for the per-repository token cache."""

from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest

from reporeply.delivery.errors import MissingIntegrationError
from reporeply.delivery.platform import Credential
from reporeply.delivery.token_cache import TokenCache
from reporeply.models.repository import Provider, Repository


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def platform():
    platform = Mock()
    platform.name = "github"
    platform.issue_installation_credential.return_value = Credential(token="tok-1")
    return platform


def _repo(**fields) -> Repository:
    values = {"id": "octo/widgets", "provider": Provider.GITHUB, "installation_id": "4242"}
    values.update(fields)
    return Repository(**values)


class TestTokenCache:
    """Tests for TokenCache."""

    def test_issues_on_miss_and_reuses(self, platform, clock):
        cache = TokenCache(ttl_seconds=3000, clock=clock)

        assert cache.get_token(_repo(), platform) == "tok-1"
        assert cache.get_token(_repo(), platform) == "tok-1"

        platform.issue_installation_credential.assert_called_once_with("4242")
        assert len(cache) == 1

    def test_reissues_after_ttl(self, platform, clock):
        cache = TokenCache(ttl_seconds=3000, clock=clock)
        cache.get_token(_repo(), platform)

        clock.now += timedelta(seconds=3001)
        platform.issue_installation_credential.return_value = Credential(token="tok-2")

        assert cache.get_token(_repo(), platform) == "tok-2"
        assert platform.issue_installation_credential.call_count == 2

    def test_platform_expiry_wins_when_earlier(self, platform, clock):
        platform.issue_installation_credential.return_value = Credential(
            token="tok-1",
            expires_at=clock.now + timedelta(minutes=10),
        )
        cache = TokenCache(ttl_seconds=3000, clock=clock)
        cache.get_token(_repo(), platform)

        clock.now += timedelta(minutes=11)
        cache.get_token(_repo(), platform)

        assert platform.issue_installation_credential.call_count == 2

    def test_invalidate_forces_reissue(self, platform, clock):
        cache = TokenCache(clock=clock)
        cache.get_token(_repo(), platform)

        cache.invalidate("octo/widgets")
        cache.get_token(_repo(), platform)

        assert platform.issue_installation_credential.call_count == 2

    def test_missing_integration_is_permanent(self, platform, clock):
        cache = TokenCache(clock=clock)

        with pytest.raises(MissingIntegrationError) as exc_info:
            cache.get_token(_repo(installation_id=None), platform)

        assert exc_info.value.is_permanent
        platform.issue_installation_credential.assert_not_called()

    def test_gitlab_uses_stored_token(self, platform, clock):
        cache = TokenCache(clock=clock)
        repo = _repo(id="group/app", provider=Provider.GITLAB, installation_id=None, access_token="glpat")

        cache.get_token(repo, platform)

        platform.issue_installation_credential.assert_called_once_with("glpat")
