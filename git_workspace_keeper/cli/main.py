"""Command-line interface for git-workspace-keeper"""

import sys
from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape

from git_workspace_keeper.cli.args import parse_args
from git_workspace_keeper.config import Config
from git_workspace_keeper.constants import EXIT_CANCELLED, EXIT_ERROR
from git_workspace_keeper.context import RunContext
from git_workspace_keeper.core.integrate import IntegrateOrchestrator
from git_workspace_keeper.core.status import FetchCommand, StatusCommand
from git_workspace_keeper.core.sync import PullCommand, PushCommand
from git_workspace_keeper.exceptions import UserAbort, WorkspaceKeeperError
from git_workspace_keeper.logging_config import setup_logging
from git_workspace_keeper.models.assessment import IntegrateMode
from git_workspace_keeper.services.git import PullRequestLookup
from git_workspace_keeper.services.status_service import StatusService
from git_workspace_keeper.services.workspace import Workspace
from git_workspace_keeper.utils.threading import get_threading_info

console = Console(stderr=True)


def build_config(parsed_args) -> Config:
    """Config from environment variables overridden by command-line flags."""
    command = parsed_args.command
    if command == "status":
        fetch = parsed_args.fetch
    else:
        fetch = not getattr(parsed_args, "no_fetch", False)
    return Config.from_env(
        fetch=fetch,
        fetch_timeout=parsed_args.fetch_timeout,
        yes=getattr(parsed_args, "yes", False),
        dry_run=getattr(parsed_args, "dry_run", False),
        autostash=getattr(parsed_args, "autostash", False),
        force=getattr(parsed_args, "force", False),
        verbose=parsed_args.verbose,
        debug=parsed_args.debug,
        sequential=parsed_args.sequential,
        workers=parsed_args.workers,
        repos_root=parsed_args.repos_root,
    )


def run_command(parsed_args, config: Config, context: RunContext) -> int:
    """Dispatch to the selected command and return its exit code."""
    workspace = Workspace.discover(parsed_args.workspace)
    command = parsed_args.command

    if command == "status":
        pr_lookup = PullRequestLookup(config)
        status_service = StatusService(config, context,
                                       pr_lookup if pr_lookup.enabled else None)
        try:
            return StatusCommand(workspace, config, context, console, status_service).run(
                json_output=parsed_args.json,
                verbose=parsed_args.status_verbose or parsed_args.verbose,
            )
        finally:
            pr_lookup.close()

    if command == "fetch":
        return FetchCommand(workspace, config, context, console).run()

    if command in ("rebase", "merge"):
        retarget = parsed_args.retarget
        return IntegrateOrchestrator(workspace, config, context, console).run(
            IntegrateMode(command),
            retarget=retarget or None,
            retarget_requested=retarget is not None,
        )

    if command == "push":
        return PushCommand(workspace, config, context, console).run()

    return PullCommand(workspace, config, context, console,
                       pull_mode=parsed_args.pull_mode).run()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the application."""
    parsed_args = None
    try:
        parsed_args = parse_args(argv)

        setup_logging(verbose=parsed_args.verbose, debug=parsed_args.debug)
        config = build_config(parsed_args)
        context = RunContext(debug=config.debug, verbose=config.verbose)

        if parsed_args.debug:
            console.print("[yellow]Debug mode enabled[/yellow]")

            threading_info = get_threading_info()
            console.print("[yellow]Threading Information:[/yellow]")
            console.print(f"  Python version: {threading_info['python_version']}")
            console.print(f"  CPU count: {threading_info['cpu_count']}")
            console.print(f"  Optimal workers: {threading_info['optimal_workers']}")
            console.print(f"  Free-threading enabled: {threading_info['free_threading']}")

            console.print("[yellow]Configuration:[/yellow]")
            for key, value in config.to_dict().items():
                if key == "github_token" and value:
                    value = "***"
                console.print(f"  {key}: {value}")
            console.print("[dim]Note: Debug mode forces sequential processing for readable logs[/dim]")

        return run_command(parsed_args, config, context)
    except UserAbort as e:
        console.print(f"[yellow]{escape(str(e))}[/yellow]")
        return EXIT_CANCELLED
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return EXIT_CANCELLED
    except (WorkspaceKeeperError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return EXIT_ERROR
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        if parsed_args is not None and parsed_args.debug:
            console.print_exception()
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
