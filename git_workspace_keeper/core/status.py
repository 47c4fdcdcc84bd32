"""The read-only workspace commands: ``status`` and ``fetch``."""

import json
import sys
from typing import Dict, List, Optional

from rich.console import Console

from git_workspace_keeper.constants import EXIT_ERROR, EXIT_OK
from git_workspace_keeper.logging_config import get_logger
from git_workspace_keeper.models.status import RemoteSet
from git_workspace_keeper.services.display_service import DisplayService
from git_workspace_keeper.services.fetch_service import fetch_targets_for, report_fetch_failures
from git_workspace_keeper.core.command import WorkspaceCommand

logger = get_logger(__name__)


class StatusCommand(WorkspaceCommand):
    """Shows one status row per repo, optionally after fetching."""

    def remotes_map(self, repo_dirs: List[str]) -> Dict[str, Optional[RemoteSet]]:
        """Remote roles per repo, falling back to origin when ambiguous."""
        remotes_map = {}
        for repo_dir in repo_dirs:
            gateway = self.gateway(repo_dir)
            remotes_map[gateway.name] = self.status_service.resolve_remotes_lenient(gateway)
        return remotes_map

    def run(self, json_output: bool = False, verbose: bool = False,
            out: Optional[Console] = None) -> int:
        repo_dirs = self.workspace.repo_dirs()
        remotes_map = self.remotes_map(repo_dirs)

        if self.config.fetch and repo_dirs:
            targets = fetch_targets_for(repo_dirs, remotes_map)
            results = self.fetch_service.fetch_with_progress(targets)
            report_fetch_failures(list(targets), results, self.console)

        statuses = self.gather(repo_dirs, remotes_map)
        details = {}
        if verbose:
            for repo_dir, status in zip(repo_dirs, statuses):
                details[status.name] = self.status_service.gather_verbose(repo_dir, status)

        if json_output:
            records = []
            for status in statuses:
                record = status.to_dict()
                if status.name in details:
                    record["verbose"] = details[status.name].to_dict()
                records.append(record)
            sys.stdout.write(json.dumps(records, indent=2) + "\n")
            return EXIT_OK

        if not statuses:
            self.console.print("[yellow]No repositories in workspace[/yellow]")
            return EXIT_OK
        display = DisplayService(out or Console(), verbose=verbose)
        display.display_status_table(statuses, self.workspace.branch, details or None)
        logger.debug(f"{self.context.git_call_count} git calls, {self.context.git_time_ms:.0f}ms")
        return EXIT_OK


class FetchCommand(WorkspaceCommand):
    """Fetches every repo's remotes under one shared deadline."""

    def run(self) -> int:
        repo_dirs = self.workspace.repo_dirs()
        targets = fetch_targets_for(repo_dirs, self.resolve_remotes_map(repo_dirs))
        if not targets:
            self.console.print("[yellow]No repositories with remotes in workspace[/yellow]")
            return EXIT_OK
        results = self.fetch_service.fetch_with_progress(targets)
        failed = report_fetch_failures(list(targets), results, self.console)
        fetched = len(targets) - len(failed)
        self.console.print(f"Fetched {fetched} of {len(targets)} repo(s)")
        return EXIT_ERROR if failed else EXIT_OK
