"""Version information for git-workspace-keeper."""

__version__ = "0.3.0"
