"""Reports printed after a bulk operation left repos needing attention."""

from typing import Sequence

from rich.console import Console
from rich.markup import escape

from git_workspace_keeper.models.assessment import ExecutionResult


def print_conflict_report(console: Console, results: Sequence[ExecutionResult]) -> None:
    """Print every conflicted repo with how to continue or undo."""
    conflicted = [r for r in results if r.conflict]
    if conflicted:
        console.print(f"\n[red]{len(conflicted)} repo(s) have conflicts:[/red]")
        for result in conflicted:
            operation = result.operation or "rebase"
            console.print(f"\n  [bold]{escape(result.repo)}[/bold]")
            for line in result.conflict_lines:
                console.print(f"    {line}", markup=False, highlight=False)
            console.print(f"    cd {result.repo}", markup=False, highlight=False)
            console.print(f"    # fix conflicts, then: git {operation} --continue",
                          markup=False, highlight=False)
            console.print(f"    # or to undo: git {operation} --abort", markup=False, highlight=False)

    stash_failed = [r for r in results if r.stash_pop_failed]
    if stash_failed:
        console.print(f"\n[yellow]{len(stash_failed)} repo(s) could not re-apply stashed changes:[/yellow]")
        for result in stash_failed:
            console.print(
                f"  {result.repo}: resolve the conflicts, your changes are kept in 'git stash list'",
                markup=False, highlight=False,
            )


def print_failures(console: Console, results: Sequence[ExecutionResult]) -> None:
    """Print repos whose command failed for a reason other than a conflict."""
    failed = [r for r in results if not r.succeeded and not r.conflict]
    if not failed:
        return
    console.print(f"\n[red]{len(failed)} repo(s) failed:[/red]")
    for result in failed:
        console.print(f"  {result.repo}: {result.message or 'unknown error'}", markup=False,
                      highlight=False)
