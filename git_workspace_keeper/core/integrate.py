"""Rebase or merge every workspace repo onto its base branch."""

from typing import Dict, List, Optional, Sequence, Set

from rich.markup import escape

from git_workspace_keeper.constants import EXIT_ERROR, EXIT_OK
from git_workspace_keeper.logging_config import get_logger
from git_workspace_keeper.models.assessment import (
    ExecutionResult,
    IntegrateAssessment,
    IntegrateMode,
    Outcome,
)
from git_workspace_keeper.models.skips import SkipFlag, count_failures, skip
from git_workspace_keeper.models.status import MergeKind, RemoteSet, RepoStatus
from git_workspace_keeper.services.git import (
    MergeDetector,
    predict_merge_conflict,
    predict_stash_pop_conflict,
)
from git_workspace_keeper.core.command import WorkspaceCommand
from git_workspace_keeper.core.planner import confirm_or_exit
from git_workspace_keeper.formatters.conflicts import print_conflict_report, print_failures
from git_workspace_keeper.formatters.plan import format_integrate_plan

logger = get_logger(__name__)


def classify_repo(status: RepoStatus, repo_dir: str, expected_branch: str,
                  fetch_failed: bool = False, autostash: bool = False,
                  retargeting: bool = False) -> IntegrateAssessment:
    """First matching outcome wins, in a fixed order.

    A repo marked for retargeting is returned as ``will-operate`` with
    ``retarget_from`` set; the caller resolves the new base.
    """
    assessment = IntegrateAssessment(repo=status.name, repo_dir=repo_dir,
                                     head_sha=status.head_sha,
                                     shallow=status.identity.shallow)

    def skipped(flag: SkipFlag, **params) -> IntegrateAssessment:
        assessment.outcome = Outcome.SKIP
        assessment.skip_reason = skip(flag, **params)
        return assessment

    if fetch_failed:
        return skipped(SkipFlag.FETCH_FAILED)
    if status.operation is not None:
        return skipped(SkipFlag.OPERATION_IN_PROGRESS, operation=status.operation.value)
    branch = status.identity.head_mode.branch
    if branch is None:
        return skipped(SkipFlag.DETACHED_HEAD)
    if branch != expected_branch:
        return skipped(SkipFlag.DRIFTED, actual=branch, expected=expected_branch)

    local = status.local
    if local.conflicts > 0 or (local.has_tracked_changes and not autostash):
        hint = "" if local.conflicts > 0 else " (use --autostash)"
        return skipped(SkipFlag.DIRTY, hint=hint)
    assessment.needs_stash = autostash and local.has_tracked_changes

    base = status.base
    if base is None:
        return skipped(SkipFlag.NO_BASE_BRANCH)
    if base.remote is None:
        return skipped(SkipFlag.NO_BASE_REMOTE)
    assessment.base_remote = base.remote
    assessment.base_branch = base.ref
    assessment.ahead = base.ahead
    assessment.behind = base.behind

    if retargeting:
        assessment.outcome = Outcome.WILL_OPERATE
        assessment.retarget_from = base.display_name
        return assessment
    if base.base_merged_into_default is not None:
        return skipped(SkipFlag.BASE_MERGED_INTO_DEFAULT, base=base.display_name)

    assessment.outcome = Outcome.UP_TO_DATE if base.behind == 0 else Outcome.WILL_OPERATE
    return assessment


def wants_retarget(status: RepoStatus, retarget: Optional[str]) -> bool:
    """Whether ``--retarget`` applies to this repo.

    With no explicit target only repos whose base was merged away move.
    An explicit target moves every repo whose base is something else.
    """
    base = status.base
    if base is None:
        return False
    if base.base_merged_into_default is not None:
        return True
    return bool(retarget) and retarget != base.display_name


class IntegrateOrchestrator(WorkspaceCommand):
    """Plans and executes ``rebase`` / ``merge`` across the workspace.

    Execution is sequential. A conflicting repo is left mid-operation for the
    user and the batch carries on; everything is reported together at the end.
    """

    def run(self, mode: IntegrateMode, retarget: Optional[str] = None,
            retarget_requested: bool = False) -> int:
        """Plan, confirm and execute. Returns the process exit code.

        Args:
            mode: rebase or merge
            retarget: Explicit new base branch for ``--retarget BRANCH``
            retarget_requested: ``--retarget`` given, with or without a branch
        """
        retarget_requested = retarget_requested or bool(retarget)
        repo_dirs = self.workspace.repo_dirs()
        if not repo_dirs:
            self.console.print("[yellow]No repositories in workspace[/yellow]")
            return EXIT_OK
        remotes_map = self.resolve_remotes_map(repo_dirs)

        def assess(fetch_failed: Set[str]) -> List[IntegrateAssessment]:
            return self.assess(repo_dirs, remotes_map, fetch_failed,
                               retarget, retarget_requested)

        assessments = self.plan(
            repo_dirs, remotes_map, assess,
            lambda data: format_integrate_plan(data, mode, self.workspace.branch),
        )

        pending = [a for a in assessments if a.outcome is Outcome.WILL_OPERATE]
        if not pending:
            self._finish_retarget(assessments, [])
            return EXIT_OK
        if self.config.dry_run:
            self.console.print("[dim]Dry run, nothing changed[/dim]")
            return EXIT_OK

        confirm_or_exit(self.console, f"{mode.verb} {len(pending)} repo(s)?", yes=self.config.yes)
        results = self.execute(pending, mode)
        self._finish_retarget(assessments, results)
        return self.report(assessments, results, mode)

    # -- assessment --------------------------------------------------------------

    def assess(self, repo_dirs: Sequence[str], remotes_map: Dict[str, Optional[RemoteSet]],
               fetch_failed: Set[str],
               retarget: Optional[str] = None,
               retarget_requested: bool = False) -> List[IntegrateAssessment]:
        statuses = self.gather(repo_dirs, remotes_map)
        assessments = []
        for repo_dir, status in zip(repo_dirs, statuses):
            retargeting = retarget_requested and wants_retarget(status, retarget)
            assessment = classify_repo(
                status, repo_dir, self.workspace.branch,
                fetch_failed=status.name in fetch_failed,
                autostash=self.config.autostash,
                retargeting=retargeting,
            )
            if assessment.retarget_from and assessment.outcome is Outcome.WILL_OPERATE:
                self._resolve_retarget(assessment, status, retarget)
            if assessment.outcome is Outcome.WILL_OPERATE:
                self._predict(assessment)
            assessments.append(assessment)
        return assessments

    def _resolve_retarget(self, assessment: IntegrateAssessment, status: RepoStatus,
                          retarget: Optional[str]) -> None:
        """Point a will-operate assessment at the new base, or turn it into a skip."""
        gateway = self.gateway(assessment.repo_dir)
        remote = assessment.base_remote
        old_base = assessment.retarget_from

        target = retarget
        if not target:
            target = self.status_service.detect_default_branch(gateway, remote, self.config.repos_root)
            if not target:
                assessment.outcome = Outcome.SKIP
                assessment.skip_reason = skip(SkipFlag.RETARGET_NO_DEFAULT)
                return
        new_ref = f"{remote}/{target}"
        if not gateway.remote_branch_exists(remote, target):
            assessment.outcome = Outcome.SKIP
            assessment.skip_reason = skip(SkipFlag.RETARGET_TARGET_NOT_FOUND, target=target)
            return

        if gateway.remote_branch_exists(remote, old_base):
            old_ref = f"{remote}/{old_base}"
        elif gateway.local_branch_exists(old_base):
            old_ref = f"refs/heads/{old_base}"
        else:
            assessment.outcome = Outcome.SKIP
            assessment.skip_reason = skip(SkipFlag.RETARGET_BASE_NOT_FOUND, base=old_base)
            return

        assessment.retarget_to = target
        assessment.retarget_old_ref = old_ref
        assessment.base_branch = target
        counts = gateway.ahead_behind(new_ref)
        assessment.ahead = counts.ahead if counts else 0
        assessment.behind = counts.behind if counts else 0

        base = status.base
        if base.base_merged_into_default is MergeKind.SQUASH and gateway.is_ancestor("HEAD", new_ref):
            assessment.outcome = Outcome.UP_TO_DATE
            return

        replay = MergeDetector(gateway, self.config).analyze_retarget_replay("HEAD", old_ref, new_ref)
        if replay.already_on_new_base:
            assessment.retarget_warning = (
                f"{len(replay.already_on_new_base)} commit(s) already on {target}"
            )
        logger.debug(
            f"[{assessment.repo}] retarget {old_base} -> {target}: "
            f"{len(replay.to_replay)} to replay, {len(replay.already_on_new_base)} already applied"
        )

    def _predict(self, assessment: IntegrateAssessment) -> None:
        gateway = self.gateway(assessment.repo_dir)
        base_ref = assessment.base_ref
        if assessment.ahead > 0 and assessment.behind > 0:
            prediction = predict_merge_conflict(gateway, base_ref)
            if prediction is not None:
                assessment.conflict_prediction = "conflict" if prediction.has_conflict else "clean"
                assessment.conflict_files = prediction.files
        if assessment.needs_stash:
            assessment.stash_pop_conflict = predict_stash_pop_conflict(gateway, base_ref)

    # -- execution ---------------------------------------------------------------

    @staticmethod
    def command_for(assessment: IntegrateAssessment, mode: IntegrateMode) -> List[str]:
        """git arguments that integrate one repo."""
        autostash = ["--autostash"] if assessment.needs_stash else []
        if assessment.is_retarget:
            new_ref = f"{assessment.base_remote}/{assessment.retarget_to}"
            return ["rebase", *autostash, "--onto", new_ref, assessment.retarget_old_ref]
        if mode is IntegrateMode.REBASE:
            return ["rebase", *autostash, assessment.base_ref]
        return ["merge", "--no-edit", *autostash, assessment.base_ref]

    def execute(self, pending: Sequence[IntegrateAssessment],
                mode: IntegrateMode) -> List[ExecutionResult]:
        results = []
        for assessment in pending:
            args = self.command_for(assessment, mode)
            result = self.run_git_step(assessment.repo, assessment.repo_dir, args)
            if result.succeeded:
                self.console.print(f"  [green]✓[/green] {assessment.repo}")
            elif result.conflict:
                self.console.print(f"  [red]✗[/red] {assessment.repo} [red](conflict)[/red]")
            else:
                self.console.print(f"  [red]✗[/red] {assessment.repo} [red]({escape(result.message)})[/red]")
            results.append(result)
        return results

    def report(self, assessments: Sequence[IntegrateAssessment],
               results: Sequence[ExecutionResult], mode: IntegrateMode) -> int:
        print_conflict_report(self.console, results)
        print_failures(self.console, results)

        succeeded = sum(1 for r in results if r.succeeded)
        up_to_date = sum(1 for a in assessments if a.outcome is Outcome.UP_TO_DATE)
        skipped = [a.skip_reason for a in assessments if a.skipped]
        summary = f"{mode.past} {succeeded} repo(s)"
        if up_to_date:
            summary += f", {up_to_date} up to date"
        if skipped:
            summary += f", {len(skipped)} skipped"
            attention = count_failures(skipped)
            if attention:
                summary += f" ({attention} need attention)"
        self.console.print(summary)

        if any(not r.succeeded for r in results):
            return EXIT_ERROR
        return EXIT_OK

    def _finish_retarget(self, assessments: Sequence[IntegrateAssessment],
                         results: Sequence[ExecutionResult]) -> None:
        """Rewrite the workspace base once every retargeted repo is done."""
        retargeted = [a for a in assessments if a.is_retarget and not a.skipped]
        if not retargeted or self.config.dry_run:
            return
        if any(not r.succeeded for r in results):
            return
        if any(a.retarget_from and a.skipped for a in assessments):
            return
        targets = {a.retarget_to for a in retargeted}
        if len(targets) != 1:
            logger.warning(f"Repos retargeted onto different branches: {', '.join(sorted(targets))}")
            return
        target = targets.pop()

        first = retargeted[0]
        gateway = self.gateway(first.repo_dir)
        default = self.status_service.detect_default_branch(
            gateway, first.base_remote, self.config.repos_root
        )
        new_base = None if target == default else target
        if self.workspace.base != new_base:
            self.workspace.set_base(new_base)
            if new_base:
                self.console.print(f"[dim]Workspace base set to {new_base}[/dim]")
            else:
                self.console.print("[dim]Workspace base cleared (now tracking the default branch)[/dim]")
