"""Display service for workspace status"""
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from typing import Dict, List, Optional

from git_workspace_keeper.models.status import RepoStatus, VerboseDetail
from git_workspace_keeper.logging_config import get_logger
from git_workspace_keeper.constants import COLUMNS, CLI_COLORS, RepoStyleType
from git_workspace_keeper.formatters import (
    flag_labels,
    format_age,
    format_base,
    format_local,
    format_share,
    get_repo_style_type,
)
from git_workspace_keeper.services.status_service import compute_flags, is_at_risk, would_lose_work

logger = get_logger(__name__)


class DisplayService:
    def __init__(self, console: Optional[Console] = None, verbose: bool = False):
        self.console = console or Console()
        self.verbose = verbose

    def display_status_table(
            self,
            statuses: List[RepoStatus],
            expected_branch: str,
            details: Optional[Dict[str, VerboseDetail]] = None,
            show_summary: bool = True
        ) -> None:
        """Display a table of repository status, plus per-repo detail in verbose mode."""
        table = Table()
        for col in COLUMNS:
            table.add_column(col.label)

        at_risk = 0
        unsaved = 0
        for status in statuses:
            flags = compute_flags(status, expected_branch)
            row_style = CLI_COLORS.get(get_repo_style_type(flags))
            if is_at_risk(flags):
                at_risk += 1
            if would_lose_work(flags):
                unsaved += 1

            branch = status.branch or f"(detached {status.head_sha[:7] if status.head_sha else '?'})"
            # Match COLUMNS order: Repo, Branch, Base, Share, Local, Last Commit, Flags
            table.add_row(
                escape(status.name),
                escape(branch),
                format_base(status.base),
                format_share(status.share),
                format_local(status.local),
                format_age(status.last_commit),
                ", ".join(flag_labels(flags)),
                style=row_style
            )

        self.console.print(table)

        if details:
            for status in statuses:
                detail = details.get(status.name)
                if detail is not None:
                    self.display_verbose(status, detail)

        if show_summary:
            self.console.print("\nLegend:")
            self.console.print("↑ = Commits ahead          ↓ = Commits behind")
            self.console.print("+S = Staged files          +M = Modified files")
            self.console.print("+U = Untracked files       !C = Conflicted files")
            self.console.print(f"[{CLI_COLORS[RepoStyleType.AT_RISK]}]Yellow = Work at risk[/]")
            self.console.print(f"[{CLI_COLORS[RepoStyleType.ATTENTION]}]Cyan = Needs rebase, pull or retarget[/]")

            self.console.print("\nSummary:")
            self.console.print(f"Repos: {len(statuses)}")
            self.console.print(f"At risk: {at_risk}")
            self.console.print(f"Unsaved work: {unsaved}")

    def display_verbose(self, status: RepoStatus, detail: VerboseDetail) -> None:
        """Commit and file listings for one repo."""
        self.console.print(f"\n[bold]{escape(status.name)}[/bold]")
        base = status.base
        sections = [
            (f"Ahead of {base.compare_ref}" if base else "Ahead of base", detail.ahead_of_base),
            (f"Behind {base.compare_ref}" if base else "Behind base", detail.behind_base),
            ("Unpushed", detail.unpushed),
        ]
        for title, commits in sections:
            if not commits:
                continue
            self.console.print(f"  {escape(title)}:")
            for commit in commits:
                line = f"    {commit.short_sha} {escape(commit.subject)}"
                if commit.annotation:
                    line += f" [dim]({escape(commit.annotation)})[/dim]"
                self.console.print(line, highlight=False)

        if detail.staged:
            self.console.print("  Staged:")
            for change in detail.staged:
                self.console.print(f"    [green]{change.kind}: {escape(change.path)}[/green]")
        if detail.unstaged:
            self.console.print("  Not staged:")
            for change in detail.unstaged:
                self.console.print(f"    [red]{change.kind}: {escape(change.path)}[/red]")
        if detail.untracked:
            self.console.print("  Untracked:")
            for path in detail.untracked:
                self.console.print(f"    [red]{escape(path)}[/red]")
