"""Push workspace branches to, and pull them from, their share remote."""

from typing import Dict, List, Optional, Sequence, Set

from rich.markup import escape

from git_workspace_keeper.constants import EXIT_ERROR, EXIT_OK
from git_workspace_keeper.logging_config import get_logger
from git_workspace_keeper.models.assessment import (
    ExecutionResult,
    Outcome,
    PullAssessment,
    PushAssessment,
)
from git_workspace_keeper.models.skips import SkipFlag, count_failures, skip
from git_workspace_keeper.models.status import RefMode, RemoteSet, RepoStatus
from git_workspace_keeper.services.git import GitGateway
from git_workspace_keeper.core.command import WorkspaceCommand
from git_workspace_keeper.core.planner import confirm_or_exit
from git_workspace_keeper.formatters.conflicts import print_conflict_report, print_failures
from git_workspace_keeper.formatters.plan import format_pull_plan, format_push_plan

logger = get_logger(__name__)

_REBASE_VALUES = {"true", "merges", "preserve", "interactive", "i", "m", "p"}


def _common_skip(status: RepoStatus, expected_branch: str, fetch_failed: bool):
    """Checks shared by push and pull, in order. None when the repo passes."""
    if fetch_failed:
        return skip(SkipFlag.FETCH_FAILED)
    if status.operation is not None:
        return skip(SkipFlag.OPERATION_IN_PROGRESS, operation=status.operation.value)
    branch = status.identity.head_mode.branch
    if branch is None:
        return skip(SkipFlag.DETACHED_HEAD)
    if branch != expected_branch:
        return skip(SkipFlag.DRIFTED, actual=branch, expected=expected_branch)
    return None


def classify_push(status: RepoStatus, repo_dir: str, expected_branch: str,
                  fetch_failed: bool = False, force: bool = False) -> PushAssessment:
    assessment = PushAssessment(repo=status.name, repo_dir=repo_dir, head_sha=status.head_sha,
                                branch=status.branch)
    reason = _common_skip(status, expected_branch, fetch_failed)
    share = status.share
    base = status.base
    if reason is None and share is None:
        reason = skip(SkipFlag.NO_BASE_REMOTE)
    if reason is None and base is not None and base.merged_into_base is not None:
        if base.new_commits_after_merge:
            reason = skip(SkipFlag.MERGED_NEW_WORK, base=base.display_name,
                          count=base.new_commits_after_merge)
        else:
            reason = skip(SkipFlag.ALREADY_MERGED, base=base.display_name)
    if reason is None and share.ref_mode in (RefMode.NO_REF, RefMode.GONE) \
            and (base is None or base.ahead == 0):
        reason = skip(SkipFlag.NO_COMMITS)
    if reason is not None:
        assessment.skip_reason = reason
        return assessment

    assessment.remote = share.remote
    if share.ref_mode is RefMode.GONE:
        assessment.outcome = Outcome.WILL_PUSH
        assessment.recreate = True
        assessment.ahead = base.ahead
        return assessment
    if share.ref_mode is RefMode.NO_REF:
        assessment.outcome = Outcome.WILL_PUSH
        assessment.new_branch = True
        assessment.ahead = base.ahead
        return assessment

    assessment.ahead = share.to_push or 0
    assessment.behind = share.to_pull or 0
    if assessment.ahead == 0 and assessment.behind == 0:
        assessment.outcome = Outcome.UP_TO_DATE
    elif assessment.ahead == 0:
        assessment.skip_reason = skip(SkipFlag.BEHIND_REMOTE)
    elif assessment.behind == 0:
        assessment.outcome = Outcome.WILL_PUSH
    elif force:
        assessment.outcome = Outcome.WILL_FORCE_PUSH
    elif share.rebased and share.rebased >= assessment.ahead:
        assessment.skip_reason = skip(SkipFlag.REBASED_LOCALLY)
    else:
        assessment.skip_reason = skip(SkipFlag.DIVERGED)
    return assessment


def detect_pull_mode(gateway: GitGateway, branch: str, explicit: Optional[str] = None) -> str:
    """"rebase" or "merge": explicit flag, then branch.<b>.rebase, then pull.rebase."""
    if explicit:
        return explicit
    for key in (f"branch.{branch}.rebase", "pull.rebase"):
        value = gateway.config_get(key)
        if value is not None:
            return "rebase" if value.strip().lower() in _REBASE_VALUES else "merge"
    return "merge"


def classify_pull(status: RepoStatus, repo_dir: str, expected_branch: str,
                  fetch_failed: bool = False, autostash: bool = False) -> PullAssessment:
    assessment = PullAssessment(repo=status.name, repo_dir=repo_dir, head_sha=status.head_sha,
                                branch=status.branch)
    reason = _common_skip(status, expected_branch, fetch_failed)
    local = status.local
    share = status.share
    if reason is None and (local.conflicts > 0 or (local.has_tracked_changes and not autostash)):
        reason = skip(SkipFlag.DIRTY, hint="" if local.conflicts > 0 else " (use --autostash)")
    if reason is None and share is None:
        reason = skip(SkipFlag.NO_BASE_REMOTE)
    if reason is None and share.ref_mode is RefMode.NO_REF:
        reason = skip(SkipFlag.NOT_PUSHED)
    if reason is None and share.ref_mode is RefMode.GONE:
        reason = skip(SkipFlag.REMOTE_GONE)
    if reason is not None:
        assessment.skip_reason = reason
        return assessment

    assessment.remote = share.remote
    assessment.behind = share.to_pull or 0
    assessment.needs_stash = autostash and local.has_tracked_changes
    assessment.outcome = Outcome.WILL_PULL if assessment.behind > 0 else Outcome.UP_TO_DATE
    return assessment


class _SyncCommand(WorkspaceCommand):
    """Plan, confirm and execute one git command per repo."""

    verb = ""
    past = ""

    def classify(self, status: RepoStatus, repo_dir: str, fetch_failed: bool):
        raise NotImplementedError

    def command_for(self, assessment) -> List[str]:
        raise NotImplementedError

    def format_plan(self, assessments) -> str:
        raise NotImplementedError

    def assess(self, repo_dirs: Sequence[str], remotes_map: Dict[str, Optional[RemoteSet]],
               fetch_failed: Set[str]) -> list:
        statuses = self.gather(repo_dirs, remotes_map)
        return [
            self.classify(status, repo_dir, status.name in fetch_failed)
            for repo_dir, status in zip(repo_dirs, statuses)
        ]

    def run(self) -> int:
        repo_dirs = self.workspace.repo_dirs()
        if not repo_dirs:
            self.console.print("[yellow]No repositories in workspace[/yellow]")
            return EXIT_OK
        remotes_map = self.resolve_remotes_map(repo_dirs)
        assessments = self.plan(
            repo_dirs, remotes_map,
            lambda fetch_failed: self.assess(repo_dirs, remotes_map, fetch_failed),
            self.format_plan,
        )
        pending = [a for a in assessments if a.outcome not in (Outcome.SKIP, Outcome.UP_TO_DATE)]
        if not pending:
            return EXIT_OK
        if self.config.dry_run:
            self.console.print("[dim]Dry run, nothing changed[/dim]")
            return EXIT_OK

        confirm_or_exit(self.console, f"{self.verb} {len(pending)} repo(s)?", yes=self.config.yes)
        results = []
        for assessment in pending:
            result = self.run_git_step(assessment.repo, assessment.repo_dir,
                                       self.command_for(assessment))
            if result.succeeded:
                self.console.print(f"  [green]✓[/green] {assessment.repo}")
            elif result.conflict:
                self.console.print(f"  [red]✗[/red] {assessment.repo} [red](conflict)[/red]")
            else:
                self.console.print(f"  [red]✗[/red] {assessment.repo} [red]({escape(result.message)})[/red]")
            results.append(result)
        return self.report(assessments, results)

    def report(self, assessments, results: Sequence[ExecutionResult]) -> int:
        print_conflict_report(self.console, results)
        print_failures(self.console, results)
        succeeded = sum(1 for r in results if r.succeeded)
        skipped = [a.skip_reason for a in assessments if a.skipped]
        summary = f"{self.past} {succeeded} repo(s)"
        if skipped:
            summary += f", {len(skipped)} skipped"
            attention = count_failures(skipped)
            if attention:
                summary += f" ({attention} need attention)"
        self.console.print(summary)
        return EXIT_ERROR if any(not r.succeeded for r in results) else EXIT_OK


class PushCommand(_SyncCommand):
    verb = "Push"
    past = "Pushed"

    def classify(self, status: RepoStatus, repo_dir: str, fetch_failed: bool) -> PushAssessment:
        return classify_push(status, repo_dir, self.workspace.branch,
                             fetch_failed=fetch_failed, force=self.config.force)

    def command_for(self, assessment: PushAssessment) -> List[str]:
        args = ["push"]
        if assessment.outcome is Outcome.WILL_FORCE_PUSH:
            args.append("--force-with-lease")
        if assessment.new_branch or assessment.recreate:
            args.append("--set-upstream")
        return [*args, assessment.remote, assessment.branch]

    def format_plan(self, assessments: List[PushAssessment]) -> str:
        return format_push_plan(assessments, self.workspace.branch)


class PullCommand(_SyncCommand):
    verb = "Pull"
    past = "Pulled"

    def __init__(self, *args, pull_mode: Optional[str] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.pull_mode = pull_mode

    def classify(self, status: RepoStatus, repo_dir: str, fetch_failed: bool) -> PullAssessment:
        assessment = classify_pull(status, repo_dir, self.workspace.branch,
                                   fetch_failed=fetch_failed, autostash=self.config.autostash)
        if assessment.outcome is Outcome.WILL_PULL:
            assessment.pull_mode = detect_pull_mode(self.gateway(repo_dir), assessment.branch,
                                                    self.pull_mode)
        return assessment

    def command_for(self, assessment: PullAssessment) -> List[str]:
        args = ["pull", "--rebase" if assessment.pull_mode == "rebase" else "--no-rebase"]
        if assessment.needs_stash:
            args.append("--autostash")
        return [*args, assessment.remote, assessment.branch]

    def format_plan(self, assessments: List[PullAssessment]) -> str:
        return format_pull_plan(assessments, self.workspace.branch)
