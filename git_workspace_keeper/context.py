"""Explicit per-invocation context threaded through services."""

from dataclasses import dataclass, field
from threading import Lock
from typing import Sequence

from git_workspace_keeper.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class RunContext:
    """Debug/verbose toggles plus git call accounting for one command run.

    Built once at startup and passed explicitly; nothing reads a global flag.
    """

    debug: bool = False
    verbose: bool = False
    _git_calls: int = field(default=0, init=False, repr=False)
    _git_time_ms: float = field(default=0.0, init=False, repr=False)
    _lock: Lock = field(default_factory=Lock, init=False, repr=False, compare=False)

    def record_git_call(self, args: Sequence[str], duration_ms: float, exit_code: int) -> None:
        """Count a git subprocess and log it when debugging."""
        with self._lock:
            self._git_calls += 1
            self._git_time_ms += duration_ms
        if self.debug:
            logger.debug(f"git {' '.join(args)} ({duration_ms:.0f}ms, exit {exit_code})")

    @property
    def git_call_count(self) -> int:
        with self._lock:
            return self._git_calls

    @property
    def git_time_ms(self) -> float:
        with self._lock:
            return self._git_time_ms
