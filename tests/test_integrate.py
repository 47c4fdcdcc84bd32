"""Tests for integrate classification and the rebase/merge orchestrator."""

import io
from pathlib import Path

import pytest
from rich.console import Console

from git_workspace_keeper.models.assessment import IntegrateAssessment, IntegrateMode, Outcome
from git_workspace_keeper.models.skips import SkipFlag
from git_workspace_keeper.models.status import (
    BaseRelation,
    GitOperation,
    LocalChanges,
    MergeKind,
)
from git_workspace_keeper.core.integrate import (
    IntegrateOrchestrator,
    classify_repo,
    wants_retarget,
)
from git_workspace_keeper.services.git import GitGateway
from git_workspace_keeper.services.workspace import write_config

from conftest import commit_files


def classify(status, **kwargs):
    return classify_repo(status, "/ws/" + status.name, "feature", **kwargs)


class TestClassifyPrecedence:
    """The first matching outcome wins."""

    def test_fetch_failure_beats_everything(self, status_factory):
        status = status_factory(branch=None, operation=GitOperation.REBASE,
                                local=LocalChanges(modified=2))
        assert classify(status, fetch_failed=True).skip_flag is SkipFlag.FETCH_FAILED

    def test_operation_beats_detached(self, status_factory):
        status = status_factory(branch=None, operation=GitOperation.CHERRY_PICK)
        assessment = classify(status)
        assert assessment.skip_flag is SkipFlag.OPERATION_IN_PROGRESS
        assert assessment.skip_reason.message == "cherry-pick in progress"

    def test_detached_beats_dirty(self, status_factory):
        status = status_factory(branch=None, local=LocalChanges(modified=1))
        assert classify(status).skip_flag is SkipFlag.DETACHED_HEAD

    def test_drifted_beats_dirty(self, status_factory):
        status = status_factory(branch="other", local=LocalChanges(modified=1))
        assessment = classify(status)
        assert assessment.skip_flag is SkipFlag.DRIFTED
        assert assessment.skip_reason.message == "on branch other, expected feature"

    def test_dirty_beats_missing_base(self, status_factory):
        status = status_factory(base=None, local=LocalChanges(staged=1))
        assessment = classify(status)
        assert assessment.skip_flag is SkipFlag.DIRTY
        assert assessment.skip_reason.message == "uncommitted changes (use --autostash)"

    def test_conflicts_block_even_with_autostash(self, status_factory):
        status = status_factory(local=LocalChanges(conflicts=1))
        assessment = classify(status, autostash=True)
        assert assessment.skip_flag is SkipFlag.DIRTY
        assert assessment.skip_reason.message == "uncommitted changes"

    def test_untracked_files_never_block(self, status_factory):
        status = status_factory(local=LocalChanges(untracked=4),
                                base=BaseRelation("origin", "main", behind=2))
        assessment = classify(status)
        assert assessment.outcome is Outcome.WILL_OPERATE
        assert not assessment.needs_stash

    def test_autostash_allows_tracked_changes(self, status_factory):
        status = status_factory(local=LocalChanges(modified=1),
                                base=BaseRelation("origin", "main", behind=2))
        assessment = classify(status, autostash=True)
        assert assessment.outcome is Outcome.WILL_OPERATE
        assert assessment.needs_stash

    def test_missing_base_then_missing_remote(self, status_factory):
        assert classify(status_factory(base=None)).skip_flag is SkipFlag.NO_BASE_BRANCH
        local_only = status_factory(base=BaseRelation(None, "main", behind=1))
        assert classify(local_only).skip_flag is SkipFlag.NO_BASE_REMOTE

    def test_base_merged_into_default_asks_for_retarget(self, status_factory):
        status = status_factory(base=BaseRelation("origin", "feat-base", behind=1,
                                                  base_merged_into_default=MergeKind.SQUASH))
        assessment = classify(status)
        assert assessment.skip_flag is SkipFlag.BASE_MERGED_INTO_DEFAULT
        assert "use --retarget" in assessment.skip_reason.message

    def test_retargeting_repo_reports_old_base(self, status_factory):
        status = status_factory(base=BaseRelation("origin", "main", configured_ref="feat-base",
                                                  base_merged_into_default=MergeKind.MERGE))
        assessment = classify(status, retargeting=True)
        assert assessment.outcome is Outcome.WILL_OPERATE
        assert assessment.retarget_from == "feat-base"

    def test_up_to_date_and_will_operate(self, status_factory):
        assert classify(status_factory()).outcome is Outcome.UP_TO_DATE
        behind = classify(status_factory(base=BaseRelation("origin", "main", ahead=1, behind=3)))
        assert behind.outcome is Outcome.WILL_OPERATE
        assert (behind.behind, behind.ahead) == (3, 1)
        assert behind.base_ref == "origin/main"


class TestWantsRetarget:
    """Which repos move when --retarget is given."""

    def test_merged_base_always_moves(self, status_factory):
        status = status_factory(base=BaseRelation("origin", "b1",
                                                  base_merged_into_default=MergeKind.SQUASH))
        assert wants_retarget(status, None)

    def test_explicit_target_moves_other_bases(self, status_factory):
        assert wants_retarget(status_factory(), "release")
        assert not wants_retarget(status_factory(), "main")
        assert not wants_retarget(status_factory(), None)
        assert not wants_retarget(status_factory(base=None), "release")


class TestCommandFor:
    """git arguments per mode."""

    def make(self, **kwargs):
        kwargs.setdefault("base_remote", "origin")
        kwargs.setdefault("base_branch", "main")
        return IntegrateAssessment(repo="api", repo_dir="/ws/api", outcome=Outcome.WILL_OPERATE,
                                   **kwargs)

    def test_rebase(self):
        assert IntegrateOrchestrator.command_for(self.make(), IntegrateMode.REBASE) == \
            ["rebase", "origin/main"]

    def test_merge_with_autostash(self):
        assert IntegrateOrchestrator.command_for(self.make(needs_stash=True), IntegrateMode.MERGE) == \
            ["merge", "--no-edit", "--autostash", "origin/main"]

    def test_retarget_uses_onto(self):
        assessment = self.make(retarget_from="b1", retarget_to="main",
                               retarget_old_ref="origin/b1")
        assert IntegrateOrchestrator.command_for(assessment, IntegrateMode.MERGE) == \
            ["rebase", "--onto", "origin/main", "origin/b1"]


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=200)


def run_integrate(workspace, config, console, mode=IntegrateMode.REBASE, **kwargs):
    return IntegrateOrchestrator(workspace, config, console=console).run(mode, **kwargs)


class TestIntegrateEndToEnd:
    """Real clones under a real workspace."""

    def test_rebase_brings_repo_up_to_date(self, origin_repo, clone_factory, workspace,
                                           mock_config, console):
        repo = clone_factory("api")
        commit_files(repo, {"feature.txt": "f\n"}, "Feature work")
        for n in range(3):
            origin_repo.commit({f"main{n}.txt": f"{n}\n"}, f"Main work {n}")
        repo.git.fetch("origin")

        assert run_integrate(workspace, mock_config, console) == 0

        gateway = GitGateway(repo.working_dir)
        assert gateway.ahead_behind("origin/main").behind == 0
        assert gateway.ahead_behind("origin/main").ahead == 1
        output = console.file.getvalue()
        assert "rebase feature onto origin/main  3 behind, 1 ahead (conflict unlikely)" in output
        assert "Rebased 1 repo(s)" in output

    def test_merge_fast_forwards(self, origin_repo, clone_factory, workspace, mock_config, console):
        repo = clone_factory("api")
        sha = origin_repo.commit({"main.txt": "m\n"}, "Main work")
        repo.git.fetch("origin")

        assert run_integrate(workspace, mock_config, console, IntegrateMode.MERGE) == 0
        assert repo.head.commit.hexsha == sha
        assert "(fast-forward)" in console.file.getvalue()

    def test_conflict_is_left_for_user_and_batch_continues(self, origin_repo, clone_factory,
                                                           workspace, mock_config, console):
        api = clone_factory("api")
        web = clone_factory("web")
        commit_files(api, {"app.txt": "one\nfeature\nthree\n"}, "Feature edit")
        commit_files(web, {"web.txt": "w\n"}, "Web work")
        origin_repo.commit({"app.txt": "one\nmain\nthree\n"}, "Main edit")
        for repo in (api, web):
            repo.git.fetch("origin")

        assert run_integrate(workspace, mock_config, console) == 1

        assert GitGateway(api.working_dir).detect_operation() is GitOperation.REBASE
        assert GitGateway(web.working_dir).ahead_behind("origin/main").behind == 0
        output = console.file.getvalue()
        assert "(conflict likely)" in output
        assert "1 repo(s) have conflicts:" in output
        assert "CONFLICT (content): Merge conflict in app.txt" in output
        assert "git rebase --continue" in output
        assert "git rebase --abort" in output
        assert "Rebased 1 repo(s)" in output

    def test_dirty_repo_is_skipped_without_autostash(self, origin_repo, clone_factory, workspace,
                                                     mock_config, console):
        repo = clone_factory("api")
        origin_repo.commit({"main.txt": "m\n"}, "Main work")
        repo.git.fetch("origin")
        Path(repo.working_dir, "README.md").write_text("local edit\n")
        head = repo.head.commit.hexsha

        assert run_integrate(workspace, mock_config, console) == 0
        assert repo.head.commit.hexsha == head
        assert "skipped: uncommitted changes (use --autostash)" in console.file.getvalue()

    def test_autostash_keeps_local_edits(self, origin_repo, clone_factory, workspace,
                                         mock_config, console):
        repo = clone_factory("api")
        origin_repo.commit({"main.txt": "m\n"}, "Main work")
        repo.git.fetch("origin")
        Path(repo.working_dir, "README.md").write_text("local edit\n")

        config = dict(mock_config, autostash=True)
        assert run_integrate(workspace, config, console) == 0
        assert GitGateway(repo.working_dir).ahead_behind("origin/main").behind == 0
        assert Path(repo.working_dir, "README.md").read_text() == "local edit\n"
        assert "(autostash)" in console.file.getvalue()

    def test_dry_run_changes_nothing(self, origin_repo, clone_factory, workspace, mock_config,
                                     console):
        repo = clone_factory("api")
        origin_repo.commit({"main.txt": "m\n"}, "Main work")
        repo.git.fetch("origin")
        head = repo.head.commit.hexsha

        assert run_integrate(workspace, dict(mock_config, dry_run=True), console) == 0
        assert repo.head.commit.hexsha == head
        assert "Dry run" in console.file.getvalue()


class TestRetarget:
    """Moving repos off a base branch that was merged away."""

    @pytest.fixture
    def stacked(self, origin_repo, clone_factory, workspace):
        """api's feature sits on base1, which main then squash-merged."""
        origin_repo.commit({"base.txt": "base\n"}, "Base work", branch="base1")
        write_config(workspace.config_path, "feature", "base1")
        repo = clone_factory("api", start="origin/base1")
        commit_files(repo, {"feature.txt": "f\n"}, "Feature work")
        origin_repo.commit({"base.txt": "base\n"}, "Base work (#5)")
        repo.git.fetch("origin")
        return repo

    def test_without_flag_repo_is_skipped(self, stacked, workspace, mock_config, console):
        head = stacked.head.commit.hexsha
        assert run_integrate(workspace, mock_config, console) == 0
        assert stacked.head.commit.hexsha == head
        assert "base branch base1 was merged into default (use --retarget)" in console.file.getvalue()
        assert workspace.base == "base1"

    def test_retarget_replays_onto_default_and_clears_base(self, stacked, workspace, mock_config,
                                                           console):
        assert run_integrate(workspace, mock_config, console, retarget_requested=True) == 0

        gateway = GitGateway(stacked.working_dir)
        counts = gateway.ahead_behind("origin/main")
        assert (counts.ahead, counts.behind) == (1, 0)
        assert stacked.head.commit.message.strip() == "Feature work"
        assert workspace.base is None
        output = console.file.getvalue()
        assert "rebase onto origin/main from base1 (retarget)" in output
        assert "Workspace base cleared" in output

    def test_retarget_when_head_already_on_default_runs_nothing(self, stacked, workspace,
                                                                mock_config, console):
        stacked.git.reset("--hard", "origin/main")
        head = stacked.head.commit.hexsha

        assert run_integrate(workspace, mock_config, console, retarget_requested=True) == 0

        assert stacked.head.commit.hexsha == head
        assert workspace.base is None
        output = console.file.getvalue()
        assert "up to date (retarget to main)" in output
        assert "Workspace base cleared" in output

    def test_retarget_to_missing_branch_is_skipped(self, stacked, workspace, mock_config, console):
        assert run_integrate(workspace, mock_config, console, retarget="nowhere") == 0
        assert "retarget target nowhere not found" in console.file.getvalue()
        assert workspace.base == "base1"
