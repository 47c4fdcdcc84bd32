"""Shared plumbing for commands that plan and then mutate every repo in a workspace."""

import re
from typing import Callable, Dict, List, Optional, Sequence, Set, TypeVar, Union

from rich.console import Console

from git_workspace_keeper.config import Config
from git_workspace_keeper.context import RunContext
from git_workspace_keeper.logging_config import get_logger
from git_workspace_keeper.models.assessment import ExecutionResult
from git_workspace_keeper.models.status import RemoteSet, RepoStatus
from git_workspace_keeper.services.fetch_service import FetchService, fetch_targets_for
from git_workspace_keeper.services.git import GitGateway, GitResult, resolve_remotes
from git_workspace_keeper.services.status_service import StatusService
from git_workspace_keeper.services.workspace import Workspace
from git_workspace_keeper.core.planner import TwoPhasePlanner, make_renderer

logger = get_logger(__name__)

T = TypeVar("T")

_CONFLICT_LINE = re.compile(r"^CONFLICT\b")
_STASH_POP_FAILED = "Applying autostash resulted in conflicts"

# Keep git from opening an editor or prompting during bulk operations
NON_INTERACTIVE_ENV = {"GIT_EDITOR": "true", "GIT_TERMINAL_PROMPT": "0"}


class WorkspaceCommand:
    """Base for bulk commands: resolve remotes, plan around a fetch, run git sequentially."""

    def __init__(self, workspace: Workspace, config: Union[Config, dict],
                 context: Optional[RunContext] = None,
                 console: Optional[Console] = None,
                 status_service: Optional[StatusService] = None,
                 fetch_service: Optional[FetchService] = None):
        if isinstance(config, dict):
            config = Config.from_dict(config)
        self.workspace = workspace
        self.config = config
        self.context = context or RunContext(debug=config.debug, verbose=config.verbose)
        self.console = console or Console(stderr=True)
        self.status_service = status_service or StatusService(config, self.context)
        self.fetch_service = fetch_service or FetchService(config, self.context, self.console)

    def gateway(self, repo_dir: str) -> GitGateway:
        return GitGateway(repo_dir, self.context)

    def resolve_remotes_map(self, repo_dirs: Sequence[str]) -> Dict[str, Optional[RemoteSet]]:
        """Remote roles per repo name.

        Raises:
            AmbiguousRemotesError: a repo's remotes cannot be assigned roles
        """
        remotes_map = {}
        for repo_dir in repo_dirs:
            gateway = self.gateway(repo_dir)
            remotes_map[gateway.name] = resolve_remotes(gateway)
        return remotes_map

    def gather(self, repo_dirs: Sequence[str],
               remotes_map: Dict[str, Optional[RemoteSet]]) -> List[RepoStatus]:
        return self.status_service.gather_all(
            list(repo_dirs),
            repos_root=self.config.repos_root,
            configured_base=self.workspace.base,
            remotes_map=remotes_map,
        )

    def plan(self, repo_dirs: Sequence[str], remotes_map: Dict[str, Optional[RemoteSet]],
             assess: Callable[[Set[str]], T], format_plan: Callable[[T], str]) -> T:
        """Assess every repo, fetching first unless disabled, and render the plan."""
        planner = TwoPhasePlanner(self.fetch_service, make_renderer(self.console))
        return planner.run(
            assess,
            format_plan,
            fetch_targets_for(repo_dirs, remotes_map),
            should_fetch=self.config.fetch,
        )

    def run_git_step(self, repo: str, repo_dir: str, args: Sequence[str]) -> ExecutionResult:
        """Run one mutating git command and classify its outcome.

        A non-zero exit that leaves an operation in progress is a conflict;
        any other non-zero exit is a plain failure.
        """
        gateway = self.gateway(repo_dir)
        logger.debug(f"[{repo}] git {' '.join(args)}")
        result = gateway.run(*args, env=NON_INTERACTIVE_ENV)
        stash_pop_failed = _STASH_POP_FAILED in result.output

        if result.ok:
            return ExecutionResult(repo=repo, succeeded=True, stash_pop_failed=stash_pop_failed)

        in_progress = gateway.detect_operation()
        if in_progress is not None:
            return ExecutionResult(
                repo=repo,
                succeeded=False,
                conflict=True,
                operation=in_progress.value,
                conflict_lines=conflict_lines(result),
                stash_pop_failed=stash_pop_failed,
            )
        message = first_error_line(result)
        logger.debug(f"[{repo}] git {args[0]} failed: {message}")
        return ExecutionResult(repo=repo, succeeded=False, stash_pop_failed=stash_pop_failed,
                               message=message)


def conflict_lines(result: GitResult) -> List[str]:
    """The ``CONFLICT (...)`` lines git printed, in order."""
    return [line.strip() for line in result.output.splitlines() if _CONFLICT_LINE.match(line.strip())]


def first_error_line(result: GitResult) -> str:
    for text in (result.stderr, result.stdout):
        for line in (text or "").splitlines():
            if line.strip():
                return line.strip()
    return f"exit code {result.exit_code}"
