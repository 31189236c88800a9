"""GitHub integration."""

from .client import GitHubRepoClient

__all__ = ["GitHubRepoClient"]
