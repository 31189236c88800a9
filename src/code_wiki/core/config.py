"""Configuration loading and validation."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("code-wiki.yaml")


class GitHubConfig(BaseModel):
    """Remote account used for repository listing and cloning."""
    username: str = ""
    token: Optional[str] = None
    api_base_url: Optional[str] = None  # GitHub Enterprise, e.g. https://ghe.example.com/api/v3

    @property
    def sync_enabled(self) -> bool:
        return bool(self.username and self.token)


class RateLimitConfig(BaseModel):
    """Backoff settings for remote API calls."""
    max_retries: int = 5
    base_delay_ms: int = 1000
    max_delay_ms: int = 60000
    min_interval_ms: int = 100  # Minimum spacing between successive calls

    @model_validator(mode='after')
    def validate_delays(self) -> 'RateLimitConfig':
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay_ms < 0 or self.min_interval_ms < 0:
            raise ValueError("base_delay_ms and min_interval_ms must be >= 0")
        if self.max_delay_ms < self.base_delay_ms:
            raise ValueError(
                f"max_delay_ms ({self.max_delay_ms}) must be >= base_delay_ms ({self.base_delay_ms})"
            )
        return self


class CodeWikiConfig(BaseSettings):
    """Main code-wiki configuration."""
    source_directories: List[Path] = Field(default_factory=list)
    wiki_directory: Path = Field(default=Path("./wiki"))
    preferences_directory: Optional[Path] = None
    cache_directory: Path = Field(default=Path("./data"))

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)

    sync_interval_minutes: int = 60
    sync_initial_delay_seconds: float = 30
    index_on_startup: bool = True
    max_search_results: int = 50
    wiki_boost_multiplier: float = 2.0
    cache_max_age_minutes: int = 60

    # Directories whose name contains this segment are never indexed
    self_exclude_segment: str = "code-wiki"
    ripgrep_path: str = "rg"

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_file: Optional[Path] = None

    class Config:
        env_prefix = "CODE_WIKI_"
        env_file = ".env"
        env_nested_delimiter = "__"
        extra = "ignore"

    @field_validator('sync_interval_minutes', 'max_search_results', 'cache_max_age_minutes')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be >= 1, got {v}")
        return v

    @field_validator('wiki_boost_multiplier')
    @classmethod
    def validate_boost(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"wiki_boost_multiplier must be >= 0, got {v}")
        return v

    @field_validator('source_directories')
    @classmethod
    def expand_source_dirs(cls, v: List[Path]) -> List[Path]:
        return [Path(p).expanduser() for p in v]

    def require_source_directories(self) -> None:
        """Raise if nothing is configured to scan. Only the long-running service needs this."""
        if not self.source_directories:
            raise ValueError(
                "No source directories configured. Set source_directories in "
                f"{DEFAULT_CONFIG_PATH} or CODE_WIKI_SOURCE_DIRECTORIES."
            )


# Module-level mtime-based config cache: path -> (parsed_config, file_mtime)
_config_cache: Dict[str, tuple] = {}


def _get_cached_or_load(resolved_path: Path, loader):
    """Return cached config if file mtime unchanged, else reload."""
    key = str(resolved_path)
    try:
        current_mtime = resolved_path.stat().st_mtime
    except FileNotFoundError:
        _config_cache.pop(key, None)
        return None

    cached = _config_cache.get(key)
    if cached is not None:
        cached_result, cached_mtime = cached
        if cached_mtime == current_mtime:
            return cached_result

    result = loader(resolved_path)
    _config_cache[key] = (result, current_mtime)
    return result


def _load_config_from_file(config_path: Path) -> CodeWikiConfig:
    """Internal loader for config (no caching)."""
    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    data = _expand_env_vars(data)
    return CodeWikiConfig(**data)


def clear_config_cache() -> None:
    """Clear the module-level config cache. Useful for tests."""
    _config_cache.clear()


def load_config(config_path: Path = DEFAULT_CONFIG_PATH) -> CodeWikiConfig:
    """Load configuration from YAML file.

    Uses mtime-based caching: returns the cached config if the file hasn't changed.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        logger.warning(
            f"Config file not found: {config_path}. Using default configuration. "
            "To customize settings, create a config file at this path."
        )
        return CodeWikiConfig()

    resolved = config_path.resolve()
    result = _get_cached_or_load(resolved, _load_config_from_file)
    return result if result is not None else CodeWikiConfig()


def _expand_env_vars(data: Any, _path: str = "") -> Any:
    """Recursively expand ``${VAR}`` values in config data.

    Args:
        data: Config data to process
        _path: Internal tracking for error messages (e.g., "github.token")
    """
    if isinstance(data, dict):
        return {k: _expand_env_vars(v, f"{_path}.{k}" if _path else k) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item, f"{_path}[{i}]") for i, item in enumerate(data)]
    elif isinstance(data, str) and data.startswith("${") and data.endswith("}"):
        env_var = data[2:-1]
        value = os.environ.get(env_var)
        if value is None:
            logger.warning(
                f"Environment variable '{env_var}' not set (referenced at config path: {_path or 'root'}). "
                f"The literal string '{data}' will be used, which may cause errors."
            )
            return data
        return value
    return data
