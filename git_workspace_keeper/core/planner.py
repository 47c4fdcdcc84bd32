"""Plan rendering around a fetch, and the confirmation gate before mutations."""

import math
import sys
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Collection, Mapping, Optional, Sequence, Set, TypeVar

from rich.console import Console
from rich.control import Control, ControlType
from rich.text import Text

from git_workspace_keeper.exceptions import NotATerminalError, UserAbort
from git_workspace_keeper.logging_config import get_logger
from git_workspace_keeper.services.fetch_service import (
    FetchResult,
    FetchService,
    FetchTarget,
    report_fetch_failures,
)

logger = get_logger(__name__)

T = TypeVar("T")


class PlanRenderer(ABC):
    """Where plans are written. Planning logic never touches the terminal directly."""

    interactive: bool = False

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)

    @abstractmethod
    def render(self, text: str) -> None:
        """Write a block of plan text."""

    @abstractmethod
    def clear(self) -> None:
        """Erase the most recently rendered block, if the medium allows it."""


class InteractiveRenderer(PlanRenderer):
    """Terminal renderer that can erase its last block with cursor movement."""

    interactive = True

    def __init__(self, console: Optional[Console] = None):
        super().__init__(console)
        self._rendered_rows = 0

    def render(self, text: str) -> None:
        # Let the terminal wrap so count_rows matches what is on screen
        self.console.print(text, highlight=False, soft_wrap=True)
        self._rendered_rows = self.count_rows(text)

    def clear(self) -> None:
        if not self._rendered_rows:
            return
        controls = []
        for _ in range(self._rendered_rows):
            controls.append(Control((ControlType.CURSOR_UP, 1), (ControlType.ERASE_IN_LINE, 2)))
        controls.append(Control((ControlType.CARRIAGE_RETURN,)))
        self.console.control(*controls)
        self._rendered_rows = 0

    def count_rows(self, text: str) -> int:
        """Terminal rows taken by ``text``, counting soft wraps."""
        width = max(1, self.console.width)
        rows = 0
        for line in Text.from_markup(text).plain.split("\n"):
            rows += max(1, math.ceil(Text(line).cell_len / width))
        return rows


class PlainRenderer(PlanRenderer):
    """Single-pass renderer for logs and pipes; nothing is ever erased."""

    def render(self, text: str) -> None:
        self.console.print(text, highlight=False)

    def clear(self) -> None:
        pass


def make_renderer(console: Console) -> PlanRenderer:
    return InteractiveRenderer(console) if console.is_terminal else PlainRenderer(console)


class TwoPhasePlanner:
    """Shows a plan from on-disk refs while fetching, then replaces it.

    Interactive output only. Elsewhere the fetch blocks and the plan is
    rendered once, so a log never holds two overlapping plans.
    """

    def __init__(self, fetch_service: FetchService, renderer: PlanRenderer):
        self.fetch_service = fetch_service
        self.renderer = renderer

    def run(self, assess: Callable[[Set[str]], T], format_plan: Callable[[T], str],
            fetch_targets: Mapping[str, FetchTarget], should_fetch: bool = True,
            report_repos: Optional[Sequence[str]] = None) -> T:
        """Assess, render and return the final plan data.

        Args:
            assess: Builds plan data given the names of repos whose fetch failed
            format_plan: Turns plan data into text
            fetch_targets: Repos to fetch, keyed by name
            should_fetch: False skips fetching entirely
            report_repos: Names whose fetch failures are reported (default: all targets)
        """
        report_repos = list(report_repos if report_repos is not None else fetch_targets)
        if should_fetch and fetch_targets and self.renderer.interactive:
            return self._run_two_phase(assess, format_plan, fetch_targets, report_repos)

        fetch_failed: Set[str] = set()
        if should_fetch and fetch_targets:
            results = self.fetch_service.fetch_with_progress(fetch_targets)
            fetch_failed = set(report_fetch_failures(report_repos, results, self.renderer.console))
        data = assess(fetch_failed)
        self.renderer.render(format_plan(data))
        return data

    def _run_two_phase(self, assess, format_plan, fetch_targets, report_repos):
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="plan-fetch") as executor:
            pending = executor.submit(self.fetch_service.fetch_all, fetch_targets)

            stale = assess(set())
            self.renderer.render(
                f"{format_plan(stale)}\n[dim]Fetching {len(fetch_targets)} repos...[/dim]"
            )
            results = pending.result()

        fresh = assess(failed_names(report_repos, results))
        self.renderer.clear()
        report_fetch_failures(report_repos, results, self.renderer.console)
        self.renderer.render(format_plan(fresh))
        return fresh


def failed_names(repos: Collection[str], results: Mapping[str, FetchResult]) -> Set[str]:
    """Names whose fetch failed or produced no result."""
    return {repo for repo in repos if repo not in results or not results[repo].ok}


def confirm_or_exit(console: Console, message: str, yes: bool = False,
                    skip_flag: str = "--yes") -> None:
    """Ask for confirmation before mutating repos.

    Raises:
        NotATerminalError: no TTY to ask on and ``yes`` not given
        UserAbort: the user declined or interrupted the prompt
    """
    if yes:
        console.print(f"[dim]Skipping confirmation ({skip_flag})[/dim]")
        return
    if not console.is_terminal or not sys.stdin.isatty():
        raise NotATerminalError()
    try:
        response = console.input(f"\n{message} [y/N] ")
    except (KeyboardInterrupt, EOFError):
        raise UserAbort() from None
    if response.strip().lower() not in ("y", "yes"):
        raise UserAbort()
