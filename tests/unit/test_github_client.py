"""Tests for GitHubRepoClient listing and filtering."""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from code_wiki.core.config import GitHubConfig
from code_wiki.integrations.github.client import GitHubRepoClient
from code_wiki.sync.rate_limiter import RateLimiter


def _gh_repo(full_name, fork=False, language="Python"):
    owner, name = full_name.split("/")
    return SimpleNamespace(
        name=name,
        full_name=full_name,
        clone_url=f"https://github.com/{full_name}.git",
        ssh_url=f"git@github.com:{full_name}.git",
        html_url=f"https://github.com/{full_name}",
        pushed_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
        default_branch="main",
        private=False,
        fork=fork,
        description=None,
        language=language,
    )


@pytest.fixture
def config():
    return GitHubConfig(username="Me", token="t0ken")


def _no_wait_limiter():
    return RateLimiter(min_interval_ms=0, sleep=AsyncMock())


class TestListOwnedRepos:
    @pytest.mark.asyncio
    async def test_filters_foreign_owners_and_forks(self, config):
        with patch("code_wiki.integrations.github.client.Github") as mock_github:
            user = mock_github.return_value.get_user.return_value
            user.get_repos.return_value = [
                _gh_repo("me/alpha"),
                _gh_repo("some-org/shared"),
                _gh_repo("me/forked", fork=True),
                _gh_repo("ME/beta", language=None),
            ]

            client = GitHubRepoClient(config, _no_wait_limiter())
            repos = await client.list_owned_repos()

        assert [r.name for r in repos] == ["alpha", "beta"]
        assert repos[0].clone_url == "https://github.com/me/alpha.git"
        assert repos[1].language is None
        user.get_repos.assert_called_once_with(affiliation="owner", sort="pushed", direction="desc")

    @pytest.mark.asyncio
    async def test_rate_limit_retried(self, config):
        class RateLimited(Exception):
            status = 403

        with patch("code_wiki.integrations.github.client.Github") as mock_github:
            user = mock_github.return_value.get_user.return_value
            user.get_repos.side_effect = [RateLimited(), [_gh_repo("me/alpha")]]

            client = GitHubRepoClient(config, _no_wait_limiter())
            repos = await client.list_owned_repos()

        assert [r.name for r in repos] == ["alpha"]
        assert user.get_repos.call_count == 2

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self, config):
        with patch("code_wiki.integrations.github.client.Github") as mock_github:
            mock_github.return_value.get_user.side_effect = ConnectionError("offline")
            client = GitHubRepoClient(config, _no_wait_limiter())

            with pytest.raises(ConnectionError):
                await client.list_owned_repos()


def test_enterprise_base_url_passed_through():
    config = GitHubConfig(username="me", token="t", api_base_url="https://ghe.example.com/api/v3")
    with patch("code_wiki.integrations.github.client.Github") as mock_github:
        GitHubRepoClient(config)

    mock_github.assert_called_once_with("t", per_page=100, base_url="https://ghe.example.com/api/v3")


def test_public_host_uses_default_url():
    with patch("code_wiki.integrations.github.client.Github") as mock_github:
        GitHubRepoClient(GitHubConfig(username="me", token="t"))

    mock_github.assert_called_once_with("t", per_page=100)
