"""Shared constants for git-workspace-keeper."""

from dataclasses import dataclass
from typing import List

# Exit codes
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CANCELLED = 130

# Result code recorded for a fetch killed at the shared deadline
FETCH_TIMEOUT_EXIT_CODE = 124
# Result code recorded when git could not be started at all
GIT_NOT_FOUND_EXIT_CODE = 127

DEFAULT_FETCH_TIMEOUT = 120.0
DEFAULT_SQUASH_SCAN_LIMIT = 100

# Environment overrides
ENV_FETCH_TIMEOUT = "GWK_FETCH_TIMEOUT"
ENV_SQUASH_SCAN_LIMIT = "GWK_SQUASH_SCAN_LIMIT"
ENV_GITHUB_TOKEN = "GITHUB_TOKEN"
ENV_REPOS_ROOT = "GWK_REPOS_ROOT"

# Workspace layout
WORKSPACE_DIR_NAME = ".gwk"
WORKSPACE_CONFIG_NAME = "config"

# Symbols used in plan and status output
SYMBOL_OK = "✓"
SYMBOL_WARNING = "⚠"
SYMBOL_FAILED = "✗"

# Rich styles per assessment outcome
OUTCOME_STYLES = {
    "will-operate": "green",
    "will-push": "green",
    "will-force-push": "yellow",
    "will-pull": "green",
    "up-to-date": "dim",
    "skip": "yellow",
}


@dataclass
class ColumnDefinition:
    """Definition of a table column."""

    key: str
    label: str
    width: int = 0  # 0 means auto-width


# Columns of the status table
COLUMNS: List[ColumnDefinition] = [
    ColumnDefinition("repo", "Repo", 20),
    ColumnDefinition("branch", "Branch", 20),
    ColumnDefinition("base", "Base", 24),
    ColumnDefinition("share", "Share", 24),
    ColumnDefinition("local", "Local", 10),
    ColumnDefinition("last_commit", "Last Commit", 12),
    ColumnDefinition("flags", "Flags", 30),
]

# Change markers for the Local column
SYMBOL_CLEAN = "✓"
SYMBOL_AHEAD = "↑"
SYMBOL_BEHIND = "↓"


class RepoStyleType:
    """Style types for status rows."""

    AT_RISK = "at-risk"  # Work could be lost
    ATTENTION = "attention"  # Needs a rebase, pull or retarget
    MERGED = "merged"
    OK = "ok"


# CLI colors (Rich color names)
CLI_COLORS = {
    RepoStyleType.AT_RISK: "yellow",
    RepoStyleType.ATTENTION: "cyan",
    RepoStyleType.MERGED: "dim",
    RepoStyleType.OK: None,
}
