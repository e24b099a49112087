"""Configuration management for Code Attribution."""

import json
import logging
import tempfile
from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".code-attribution"
CONFIG_FILE_NAME = "config.json"


class GitConfig(BaseModel):
    """Configuration for git subprocess execution."""

    timeout_seconds: float = Field(
        default=120.0, gt=0, description="Wall-clock timeout per git command"
    )
    max_output_bytes: int = Field(
        default=200 * 1024 * 1024,
        gt=0,
        description="Maximum captured stdout size per git command",
    )


class BlameConfig(BaseModel):
    """Configuration for blame-based line attribution."""

    max_concurrency: Optional[int] = Field(
        default=None,
        ge=1,
        description="Worker pool size (default: cpu count clamped to 2..8)",
    )
    ignore_whitespace: bool = Field(default=True, description="Pass -w to blame")
    detect_moves: bool = Field(default=True, description="Pass -M to blame")
    detect_copies: bool = Field(default=True, description="Pass -C to blame")
    use_mailmap: bool = Field(
        default=True, description="Canonicalize identities through .mailmap"
    )
    respect_ignore_revs_file: bool = Field(
        default=True, description="Honor .git-blame-ignore-revs when present"
    )
    ignore_revs_file: str = Field(
        default=".git-blame-ignore-revs",
        description="Ignore-revs file name relative to the repository root",
    )


class CommitStatsConfig(BaseModel):
    """Configuration for local commit statistics."""

    exclude_merges: bool = Field(default=True, description="Pass --no-merges to log")
    since: Optional[str] = Field(default=None, description="Lower date bound for git")
    until: Optional[str] = Field(default=None, description="Upper date bound for git")
    branch: Optional[str] = Field(default=None, description="Revision to walk")


class RemoteConfig(BaseModel):
    """Configuration for the hosted API commit fetcher."""

    api_base_url: str = Field(
        default="https://api.github.com", description="Hosted API base URL"
    )
    page_size: int = Field(default=100, ge=1, le=100, description="Listing page size")
    max_commits: int = Field(
        default=5000, ge=1, description="Maximum commits kept per fetch"
    )
    max_detailed_fetches: int = Field(
        default=500, ge=0, description="Maximum commits hydrated with line stats"
    )
    hydration_batch_size: int = Field(
        default=10, ge=1, description="Concurrent detail requests per batch"
    )
    inter_batch_delay: float = Field(
        default=0.15, ge=0, description="Delay between hydration batches in seconds"
    )
    page_delay: float = Field(
        default=0.1, ge=0, description="Delay between listing pages in seconds"
    )
    rate_limit_warning_threshold: int = Field(
        default=100, ge=0, description="Abort when remaining quota drops below this"
    )
    max_concurrent_requests: int = Field(
        default=3, ge=1, description="Request queue concurrency"
    )
    request_timeout: float = Field(
        default=30.0, gt=0, description="Per-request timeout in seconds"
    )
    connect_timeout: float = Field(
        default=10.0, gt=0, description="Connection timeout in seconds"
    )

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Store the base URL without a trailing slash."""
        return v.rstrip("/")


class TimelineConfig(BaseModel):
    """Configuration for local timeline extraction."""

    max_years: int = Field(default=5, ge=1, description="Default look-back window")
    max_commits: int = Field(
        default=10000, ge=1, description="Maximum commits read for a timeline"
    )


class AnalysisConfig(BaseModel):
    """Configuration for contributor aggregation."""

    include_bots: bool = Field(default=False, description="Keep bot contributors")
    max_file_changes: int = Field(
        default=10000,
        ge=0,
        description="Files with more changed lines than this are left out of file reports",
    )
    bot_patterns: List[str] = Field(
        default=["bot", "[bot]", "automated", "github-actions", "dependabot", "renovate"],
        description="Case-insensitive substrings identifying bot accounts",
    )

    @field_validator("bot_patterns")
    @classmethod
    def normalize_patterns(cls, v: List[str]) -> List[str]:
        """Lower-case patterns so matching stays case-insensitive."""
        return [pattern.lower() for pattern in v if pattern]


class Config(BaseModel):
    """Main configuration for Code Attribution."""

    git: GitConfig = Field(default_factory=GitConfig)
    blame: BlameConfig = Field(default_factory=BlameConfig)
    commit_stats: CommitStatsConfig = Field(default_factory=CommitStatsConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    timeline: TimelineConfig = Field(default_factory=TimelineConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)


def _safe_cwd() -> Path:
    try:
        return Path.cwd()
    except (FileNotFoundError, OSError):
        # Working directory deleted
        return Path(tempfile.gettempdir())


class ConfigManager:
    """Manages configuration loading, saving, and validation."""

    DEFAULT_CONFIG_PATH = Path(CONFIG_DIR_NAME) / CONFIG_FILE_NAME

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or self.DEFAULT_CONFIG_PATH
        self._config: Optional[Config] = None

    def load(self) -> Config:
        """Load configuration from file or fall back to defaults."""
        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    data = json.load(f)
                self._config = Config(**data)
            except Exception as e:
                raise ValueError(f"Failed to load config from {self.config_path}: {e}")
            logger.debug(f"Loaded configuration from {self.config_path}")
        else:
            self._config = Config()

        return self._config

    def save(self, config: Optional[Config] = None) -> None:
        """Save configuration to file."""
        if config is None:
            config = self._config

        if config is None:
            raise ValueError("No configuration to save")

        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.config_path, "w") as f:
            json.dump(config.model_dump(mode="json"), f, indent=2)

    def get_config(self) -> Config:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self.load()
        if self._config is None:
            raise RuntimeError("Failed to load configuration")
        return self._config

    def update_config(self, **kwargs: Any) -> Config:
        """Update top-level sections and persist the result.

        Section values may be partial dictionaries; they are merged over the
        current section rather than replacing it.
        """
        config = self.get_config()

        config_dict = config.model_dump()
        for key, value in kwargs.items():
            if isinstance(value, dict) and isinstance(config_dict.get(key), dict):
                config_dict[key].update(value)
            else:
                config_dict[key] = value

        new_config = Config(**config_dict)
        self._config = new_config
        self.save()
        return new_config

    @staticmethod
    def find_config_path(start_dir: Optional[Path] = None) -> Optional[Path]:
        """Find .code-attribution/config.json by walking up the directory tree."""
        current = start_dir or _safe_cwd()

        for path in [current] + list(current.parents):
            config_path = path / CONFIG_DIR_NAME / CONFIG_FILE_NAME
            if config_path.exists():
                return config_path

        return None

    @classmethod
    def create_with_backtrack(cls, start_dir: Optional[Path] = None) -> "ConfigManager":
        """Create a ConfigManager for the nearest config file.

        When no config file exists above ``start_dir`` the manager points at
        the default location inside ``start_dir``.
        """
        config_path = cls.find_config_path(start_dir)
        if config_path is None:
            start = start_dir or _safe_cwd()
            config_path = start / CONFIG_DIR_NAME / CONFIG_FILE_NAME
        return cls(config_path)
