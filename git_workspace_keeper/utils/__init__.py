"""Utility functions for git-workspace-keeper.

This package provides utility modules:
- threading: worker sizing for concurrent per-repo git work
"""

from .threading import (
    is_free_threading_enabled,
    get_optimal_worker_count,
    get_threading_info,
)

__all__ = [
    "is_free_threading_enabled",
    "get_optimal_worker_count",
    "get_threading_info",
]
