"""Parallel fetch across repositories under one shared deadline."""

import os
import subprocess
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union, TYPE_CHECKING

import git
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.text import Text

from git_workspace_keeper.constants import DEFAULT_FETCH_TIMEOUT, FETCH_TIMEOUT_EXIT_CODE
from git_workspace_keeper.context import RunContext
from git_workspace_keeper.logging_config import get_logger

if TYPE_CHECKING:
    from git_workspace_keeper.config import Config

logger = get_logger(__name__)

# Keep fetch from ever waiting on a credential prompt
_FETCH_ENV = {"GIT_TERMINAL_PROMPT": "0"}


@dataclass(frozen=True)
class FetchTarget:
    """A repo to fetch and the distinct remotes it uses."""
    repo_dir: str
    remotes: Tuple[str, ...] = ("origin",)


@dataclass(frozen=True)
class FetchResult:
    exit_code: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def timed_out(self) -> bool:
        return self.exit_code == FETCH_TIMEOUT_EXIT_CODE


class FetchService:
    """Fetches every repo concurrently, one process per repo, no pool ceiling.

    A single deadline is shared by all repos. Processes still running when it
    passes are killed and recorded with the timeout exit code. ``fetch_all``
    never raises: every requested repo gets a result.
    """

    def __init__(self, config: Union["Config", dict, None] = None,
                 context: Optional[RunContext] = None,
                 console: Optional[Console] = None):
        config = config or {}
        self.timeout = float(config.get("fetch_timeout", DEFAULT_FETCH_TIMEOUT))
        self.context = context or RunContext()
        self.console = console or Console(stderr=True)

    def _spawn(self, repo_dir: str, args: Sequence[str]):
        """Start ``git <args>`` in ``repo_dir`` without waiting for it."""
        return git.Git(repo_dir).execute(
            [git.Git.GIT_PYTHON_GIT_EXECUTABLE or "git", *args],
            as_process=True,
            env=_FETCH_ENV,
        )

    def _run_until(self, repo_dir: str, args: Sequence[str], deadline: float) -> FetchResult:
        """Run one git command, killing it if the shared deadline passes first."""
        started = time.monotonic()
        handle = self._spawn(repo_dir, args)
        proc = handle.proc
        try:
            stdout, stderr = proc.communicate(timeout=max(0.0, deadline - time.monotonic()))
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.communicate()
            self.context.record_git_call(args, (time.monotonic() - started) * 1000,
                                         FETCH_TIMEOUT_EXIT_CODE)
            return FetchResult(FETCH_TIMEOUT_EXIT_CODE, f"fetch timed out after {self.timeout:g}s")
        self.context.record_git_call(args, (time.monotonic() - started) * 1000, proc.returncode)
        text = b"\n".join(part for part in (stdout, stderr) if part).decode("utf-8", errors="replace")
        return FetchResult(proc.returncode, text.strip())

    def _fetch_one(self, target: FetchTarget, deadline: float) -> FetchResult:
        outputs: List[str] = []
        for remote in target.remotes:
            result = self._run_until(target.repo_dir, ["fetch", "--prune", remote], deadline)
            if result.output:
                outputs.append(result.output)
            if not result.ok:
                return FetchResult(result.exit_code, "\n".join(outputs))

        # Best effort: keep refs/remotes/<remote>/HEAD pointing at the default branch
        for remote in target.remotes:
            if time.monotonic() >= deadline:
                break
            set_head = self._run_until(target.repo_dir, ["remote", "set-head", remote, "--auto"], deadline)
            if not set_head.ok:
                logger.debug(f"remote set-head {remote} failed in {target.repo_dir}: {set_head.output}")
        return FetchResult(0, "\n".join(outputs))

    def fetch_all(self, targets: Mapping[str, FetchTarget],
                  on_progress: Optional[Callable[[int, int], None]] = None) -> Dict[str, FetchResult]:
        """Fetch all targets concurrently; returns a result for every name."""
        results: Dict[str, FetchResult] = {}
        total = len(targets)
        if total == 0:
            return results

        deadline = time.monotonic() + self.timeout
        completed = 0
        logger.debug(f"Fetching {total} repos (timeout {self.timeout:g}s)")

        def fetch(name: str, target: FetchTarget) -> FetchResult:
            try:
                return self._fetch_one(target, deadline)
            except Exception as e:
                logger.debug(f"Fetch of {name} failed to run: {e}")
                return FetchResult(1, "fetch failed")

        with ThreadPoolExecutor(max_workers=total, thread_name_prefix="fetch") as executor:
            futures = {executor.submit(fetch, name, target): name for name, target in targets.items()}
            for future in as_completed(futures):
                name = futures[future]
                results[name] = future.result()
                completed += 1
                if on_progress:
                    on_progress(completed, total)

        return {name: results[name] for name in targets}

    def fetch_with_progress(self, targets: Mapping[str, FetchTarget]) -> Dict[str, FetchResult]:
        """``fetch_all`` with a transient progress bar on a terminal."""
        show_progress = self.console.is_terminal and len(targets) > 0
        progress_context = (
            Progress(
                TextColumn("  Fetching"),
                BarColumn(),
                MofNCompleteColumn(),
                console=self.console,
                transient=True,
            )
            if show_progress
            else nullcontext()
        )
        with progress_context as progress:
            task = progress.add_task("fetch", total=len(targets)) if progress else None

            def on_progress(done: int, total: int) -> None:
                if progress is not None:
                    progress.update(task, completed=done)

            return self.fetch_all(targets, on_progress)


def fetch_targets_for(repo_dirs: Sequence[str], remotes_map: Mapping[str, object]) -> Dict[str, FetchTarget]:
    """Build fetch targets, skipping repos without remotes."""
    targets = {}
    for repo_dir in repo_dirs:
        name = os.path.basename(os.path.normpath(repo_dir))
        remotes = remotes_map.get(name)
        if remotes is None:
            continue
        targets[name] = FetchTarget(repo_dir=repo_dir, remotes=tuple(remotes.names))
    return targets


def report_fetch_failures(repos: Sequence[str], results: Mapping[str, FetchResult],
                          console: Optional[Console] = None) -> List[str]:
    """Print failed fetches and return the failed repo names in input order.

    A repo without a result counts as failed.
    """
    console = console or Console(stderr=True)
    failed = []
    for repo in repos:
        result = results.get(repo)
        if result is not None and result.ok:
            continue
        failed.append(repo)
        if result is not None and result.timed_out:
            console.print(Text(f"  [{repo}] fetch timed out", style="red"))
        else:
            console.print(Text(f"  [{repo}] fetch failed", style="red"))
        output = result.output if result is not None else ""
        for line in output.splitlines():
            if line.strip():
                console.print(f"    {line}", markup=False, highlight=False)
    return failed
