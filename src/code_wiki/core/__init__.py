"""Core configuration and application wiring."""

from .config import CodeWikiConfig, GitHubConfig, RateLimitConfig, load_config

__all__ = ["CodeWikiConfig", "GitHubConfig", "RateLimitConfig", "load_config"]
