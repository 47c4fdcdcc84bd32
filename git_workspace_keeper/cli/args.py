"""Command-line argument parsing for git-workspace-keeper."""

import argparse
from typing import Optional, Sequence

from git_workspace_keeper.__version__ import __version__

# Marker for "--retarget" given without a branch
RETARGET_DEFAULT = ""


def _add_plan_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-y", "--yes", action="store_true", help="Skip the confirmation prompt")
    parser.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        help="Preview mode - show the plan without changing anything",
    )
    parser.add_argument(
        "-N", "--no-fetch", action="store_true", help="Plan from local refs without fetching first"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gwk",
        description="Keep a workspace of sibling git checkouts on one feature branch in sync",
        epilog="PR numbers are read from merge commit subjects. Set GITHUB_TOKEN to also "
        "look up squash-merged pull requests on GitHub.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument("--version", action="version", version=f"git-workspace-keeper {__version__}")
    parser.add_argument(
        "--debug", action="store_true", help="Show debug information for troubleshooting"
    )
    parser.add_argument(
        "-C",
        "--workspace",
        metavar="DIR",
        help="Workspace directory (default: search upwards from the current directory)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        metavar="N",
        help="Number of parallel workers for status gathering (default: auto-detect)",
    )
    parser.add_argument(
        "--sequential",
        action="store_true",
        help="Force sequential status gathering (disable parallelism)",
    )
    parser.add_argument(
        "--fetch-timeout",
        type=float,
        metavar="SECONDS",
        help="Shared deadline for fetching all repos (default: 120, or GWK_FETCH_TIMEOUT)",
    )
    parser.add_argument(
        "--repos-root",
        metavar="DIR",
        help="Directory of canonical clones used to find a repo's default branch "
        "(default: GWK_REPOS_ROOT)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    status = subparsers.add_parser("status", help="Show the state of every repo")
    status.add_argument("--json", action="store_true", help="Print machine-readable status")
    status.add_argument(
        "--verbose", dest="status_verbose", action="store_true",
        help="List commits and changed files per repo",
    )
    fetch_group = status.add_mutually_exclusive_group()
    fetch_group.add_argument("-F", "--fetch", action="store_true", help="Fetch before showing status")
    fetch_group.add_argument("-N", "--no-fetch", action="store_true", help="Do not fetch (default)")

    subparsers.add_parser("fetch", help="Fetch every repo's remotes")

    for name, help_text in (
        ("rebase", "Rebase every repo onto its base branch"),
        ("merge", "Merge each repo's base branch into it"),
    ):
        integrate = subparsers.add_parser(name, help=help_text)
        _add_plan_options(integrate)
        integrate.add_argument(
            "--autostash", action="store_true", help="Stash tracked changes around the operation"
        )
        integrate.add_argument(
            "--retarget",
            nargs="?",
            const=RETARGET_DEFAULT,
            default=None,
            metavar="BRANCH",
            help="Move repos whose base was merged onto BRANCH (default: the default branch)",
        )

    push = subparsers.add_parser("push", help="Push every repo's branch to its share remote")
    _add_plan_options(push)
    push.add_argument(
        "-f", "--force", action="store_true", help="Force push (with lease) diverged branches"
    )

    pull = subparsers.add_parser("pull", help="Pull every repo's branch from its share remote")
    _add_plan_options(pull)
    mode = pull.add_mutually_exclusive_group()
    mode.add_argument("--rebase", dest="pull_mode", action="store_const", const="rebase",
                      help="Rebase local commits onto the pulled branch")
    mode.add_argument("--merge", dest="pull_mode", action="store_const", const="merge",
                      help="Merge the pulled branch")
    pull.add_argument(
        "--autostash", action="store_true", help="Stash tracked changes around the pull"
    )

    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)
