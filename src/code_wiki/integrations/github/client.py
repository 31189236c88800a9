"""GitHub client for listing the configured account's repositories."""

import asyncio
import logging
from typing import List, Optional

from github import Github
from github.Repository import Repository

from ...core.config import GitHubConfig
from ...sync.models import RemoteRepo
from ...sync.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


def to_remote_repo(repo: Repository) -> RemoteRepo:
    return RemoteRepo(
        name=repo.name,
        full_name=repo.full_name,
        clone_url=repo.clone_url,
        ssh_url=repo.ssh_url,
        html_url=repo.html_url or "",
        pushed_at=repo.pushed_at,
        default_branch=repo.default_branch or "main",
        private=bool(repo.private),
        fork=bool(repo.fork),
        description=repo.description,
        language=repo.language,
    )


class GitHubRepoClient:
    """GitHub API client for repository listing."""

    def __init__(self, config: GitHubConfig, rate_limiter: Optional[RateLimiter] = None):
        self.config = config
        self.rate_limiter = rate_limiter or RateLimiter()
        kwargs = {"per_page": PAGE_SIZE}
        if config.api_base_url:
            kwargs["base_url"] = config.api_base_url
        self.gh = Github(config.token, **kwargs)

    async def list_owned_repos(self) -> List[RemoteRepo]:
        """Owned, non-fork repositories, most recently pushed first.

        Raises whatever the API raised once the rate limiter gives up.
        """
        return await self.rate_limiter.with_backoff(
            lambda: asyncio.to_thread(self._list_owned_repos),
            context="GitHub API",
        )

    def _list_owned_repos(self) -> List[RemoteRepo]:
        # Paging happens lazily while iterating, so the whole walk sits inside the backoff
        user = self.gh.get_user()
        repos = user.get_repos(affiliation="owner", sort="pushed", direction="desc")
        owner = self.config.username.lower()

        result: List[RemoteRepo] = []
        for repo in repos:
            remote = to_remote_repo(repo)
            # affiliation=owner can still surface org repos the token can administer
            if remote.owner.lower() != owner or remote.fork:
                continue
            result.append(remote)
        logger.debug(f"Listed {len(result)} repositories owned by {self.config.username}")
        return result
