"""Configuration handling for git-workspace-keeper"""

import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional

from git_workspace_keeper.constants import (
    DEFAULT_FETCH_TIMEOUT,
    DEFAULT_SQUASH_SCAN_LIMIT,
    ENV_FETCH_TIMEOUT,
    ENV_GITHUB_TOKEN,
    ENV_REPOS_ROOT,
    ENV_SQUASH_SCAN_LIMIT,
)


@dataclass
class Config:
    """Configuration for git-workspace-keeper with validation."""

    # Fetching
    fetch: bool = True
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT  # Shared deadline for all repos, in seconds

    # History analysis
    squash_scan_limit: int = DEFAULT_SQUASH_SCAN_LIMIT  # Base commits scanned for squash matches

    # Execution modes
    yes: bool = False
    dry_run: bool = False
    autostash: bool = False
    force: bool = False
    verbose: bool = False
    debug: bool = False
    sequential: bool = False  # Gather repo status one repo at a time
    workers: Optional[int] = None  # Number of status workers (None = auto-detect)

    # Locations
    repos_root: Optional[str] = None  # Canonical clones, used for default-branch fallback

    # GitHub integration
    github_token: Optional[str] = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_fetch_timeout()
        self._validate_squash_scan_limit()
        self._validate_workers()

    def _validate_fetch_timeout(self):
        """Validate fetch_timeout is positive."""
        self.fetch_timeout = float(self.fetch_timeout)
        if self.fetch_timeout <= 0:
            raise ValueError(f"fetch_timeout must be positive, got {self.fetch_timeout}")

    def _validate_squash_scan_limit(self):
        """Validate squash_scan_limit is positive."""
        self.squash_scan_limit = int(self.squash_scan_limit)
        if self.squash_scan_limit <= 0:
            raise ValueError(f"squash_scan_limit must be positive, got {self.squash_scan_limit}")

    def _validate_workers(self):
        """Validate workers is positive when given."""
        if self.workers is not None and self.workers <= 0:
            raise ValueError(f"workers must be positive, got {self.workers}")

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def get(self, key: str, default=None):
        """Get config value by key."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Create Config from dictionary."""
        known_fields = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "Config":
        """Create Config from keyword overrides plus environment variables.

        Environment variables win over defaults but not over explicit overrides.
        """
        environ = os.environ if environ is None else environ
        values = {}
        if environ.get(ENV_FETCH_TIMEOUT):
            try:
                values["fetch_timeout"] = float(environ[ENV_FETCH_TIMEOUT])
            except ValueError:
                raise ValueError(
                    f"{ENV_FETCH_TIMEOUT} must be a number of seconds, got '{environ[ENV_FETCH_TIMEOUT]}'"
                )
        if environ.get(ENV_SQUASH_SCAN_LIMIT):
            try:
                values["squash_scan_limit"] = int(environ[ENV_SQUASH_SCAN_LIMIT])
            except ValueError:
                raise ValueError(
                    f"{ENV_SQUASH_SCAN_LIMIT} must be an integer, got '{environ[ENV_SQUASH_SCAN_LIMIT]}'"
                )
        if environ.get(ENV_GITHUB_TOKEN):
            values["github_token"] = environ[ENV_GITHUB_TOKEN]
        if environ.get(ENV_REPOS_ROOT):
            values["repos_root"] = environ[ENV_REPOS_ROOT]
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_dict(values)
