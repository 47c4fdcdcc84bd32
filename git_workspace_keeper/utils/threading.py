"""Worker sizing for concurrent per-repo git work."""

import os
import sys
from typing import Any, Dict, Optional

# Each worker mostly waits on git subprocesses, so more workers than CPUs is fine
MAX_WORKERS = 16


def is_free_threading_enabled() -> bool:
    """True on a free-threaded (GIL disabled) interpreter."""
    is_gil_enabled = getattr(sys, "_is_gil_enabled", None)
    return is_gil_enabled is not None and not is_gil_enabled()


def get_optimal_worker_count(user_specified: Optional[int] = None) -> int:
    """Worker count for status gathering.

    Args:
        user_specified: User-specified worker count, if provided

    Returns:
        Number of workers, at least 1
    """
    if user_specified is not None and user_specified > 0:
        return user_specified

    cpu_count = os.cpu_count() or 1
    if is_free_threading_enabled():
        return min(MAX_WORKERS * 2, cpu_count * 2)
    return min(MAX_WORKERS, cpu_count + 4)


def get_threading_info() -> Dict[str, Any]:
    """Threading details shown with --debug."""
    return {
        "free_threading": is_free_threading_enabled(),
        "cpu_count": os.cpu_count() or 1,
        "optimal_workers": get_optimal_worker_count(),
        "python_version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
    }
