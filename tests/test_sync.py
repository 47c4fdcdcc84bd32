"""Tests for push and pull across the workspace."""

import io
from unittest.mock import Mock

import pytest
from rich.console import Console

from git_workspace_keeper.models.assessment import Outcome
from git_workspace_keeper.models.skips import SkipFlag
from git_workspace_keeper.models.status import (
    BaseRelation,
    LocalChanges,
    MergeKind,
    RefMode,
    ShareRelation,
)
from git_workspace_keeper.core.sync import (
    PullCommand,
    PushCommand,
    classify_pull,
    classify_push,
    detect_pull_mode,
)

from conftest import commit_files


def share(mode=RefMode.CONFIGURED, to_push=0, to_pull=0, rebased=0):
    ref = None if mode in (RefMode.NO_REF, RefMode.GONE) else "origin/feature"
    return ShareRelation("origin", ref, mode, to_push=to_push, to_pull=to_pull, rebased=rebased)


def push(status, **kwargs):
    return classify_push(status, "/ws/api", "feature", **kwargs)


def pull(status, **kwargs):
    return classify_pull(status, "/ws/api", "feature", **kwargs)


class TestClassifyPush:
    """Push outcomes, in precedence order."""

    def test_common_skips_come_first(self, status_factory):
        assert push(status_factory(), fetch_failed=True).skip_flag is SkipFlag.FETCH_FAILED
        assert push(status_factory(branch=None)).skip_flag is SkipFlag.DETACHED_HEAD
        assert push(status_factory(branch="main")).skip_flag is SkipFlag.DRIFTED

    def test_no_share_remote(self, status_factory):
        assert push(status_factory(share=None)).skip_flag is SkipFlag.NO_BASE_REMOTE

    def test_already_merged(self, status_factory):
        status = status_factory(base=BaseRelation("origin", "main", ahead=1, behind=1,
                                                  merged_into_base=MergeKind.SQUASH,
                                                  new_commits_after_merge=0))
        assessment = push(status)
        assert assessment.skip_flag is SkipFlag.ALREADY_MERGED
        assert assessment.skip_reason.message == "already merged into main"
        assert assessment.skip_reason.benign

    def test_merged_with_new_work(self, status_factory):
        status = status_factory(base=BaseRelation("origin", "main", ahead=3, behind=1,
                                                  merged_into_base=MergeKind.SQUASH,
                                                  new_commits_after_merge=2))
        assessment = push(status)
        assert assessment.skip_flag is SkipFlag.MERGED_NEW_WORK
        assert "2 new commit(s)" in assessment.skip_reason.message

    def test_nothing_to_push_on_new_branch(self, status_factory):
        status = status_factory(share=share(RefMode.NO_REF))
        assert push(status).skip_flag is SkipFlag.NO_COMMITS

    def test_new_branch(self, status_factory):
        status = status_factory(base=BaseRelation("origin", "main", ahead=2),
                                share=share(RefMode.NO_REF))
        assessment = push(status)
        assert assessment.outcome is Outcome.WILL_PUSH
        assert assessment.new_branch
        assert assessment.ahead == 2

    def test_gone_remote_is_recreated(self, status_factory):
        status = status_factory(base=BaseRelation("origin", "main", ahead=1),
                                share=share(RefMode.GONE))
        assessment = push(status)
        assert assessment.outcome is Outcome.WILL_PUSH
        assert assessment.recreate

    @pytest.mark.parametrize("to_push,to_pull,outcome,flag", [
        (0, 0, Outcome.UP_TO_DATE, None),
        (0, 2, Outcome.SKIP, SkipFlag.BEHIND_REMOTE),
        (3, 0, Outcome.WILL_PUSH, None),
        (2, 1, Outcome.SKIP, SkipFlag.DIVERGED),
    ])
    def test_tracking_counts(self, status_factory, to_push, to_pull, outcome, flag):
        assessment = push(status_factory(share=share(to_push=to_push, to_pull=to_pull)))
        assert assessment.outcome is outcome
        assert assessment.skip_flag is flag

    def test_rebased_locally_needs_force(self, status_factory):
        status = status_factory(share=share(to_push=2, to_pull=2, rebased=2))
        assert push(status).skip_flag is SkipFlag.REBASED_LOCALLY
        assert push(status, force=True).outcome is Outcome.WILL_FORCE_PUSH

    def test_force_allows_divergence(self, status_factory):
        assessment = push(status_factory(share=share(to_push=2, to_pull=1)), force=True)
        assert assessment.outcome is Outcome.WILL_FORCE_PUSH
        assert (assessment.ahead, assessment.behind) == (2, 1)


class TestClassifyPull:
    """Pull outcomes, in precedence order."""

    def test_tracked_changes_block_without_autostash(self, status_factory):
        status = status_factory(local=LocalChanges(modified=1), share=share(to_pull=1))
        assert pull(status).skip_flag is SkipFlag.DIRTY
        assessment = pull(status, autostash=True)
        assert assessment.outcome is Outcome.WILL_PULL
        assert assessment.needs_stash

    def test_untracked_files_do_not_block(self, status_factory):
        status = status_factory(local=LocalChanges(untracked=1), share=share(to_pull=1))
        assert pull(status).outcome is Outcome.WILL_PULL

    def test_remote_states(self, status_factory):
        assert pull(status_factory(share=None)).skip_flag is SkipFlag.NO_BASE_REMOTE
        assert pull(status_factory(share=share(RefMode.NO_REF))).skip_flag is SkipFlag.NOT_PUSHED
        assert pull(status_factory(share=share(RefMode.GONE))).skip_flag is SkipFlag.REMOTE_GONE

    def test_behind_or_current(self, status_factory):
        behind = pull(status_factory(share=share(to_pull=3)))
        assert behind.outcome is Outcome.WILL_PULL
        assert behind.behind == 3
        assert pull(status_factory(share=share(to_push=1))).outcome is Outcome.UP_TO_DATE


class TestDetectPullMode:
    """Explicit flag, then per-branch config, then pull.rebase."""

    def gateway(self, values):
        gateway = Mock()
        gateway.config_get.side_effect = values.get
        return gateway

    def test_explicit_wins(self):
        gateway = self.gateway({"pull.rebase": "true"})
        assert detect_pull_mode(gateway, "feature", "merge") == "merge"

    def test_branch_setting_beats_global(self):
        gateway = self.gateway({"branch.feature.rebase": "false", "pull.rebase": "true"})
        assert detect_pull_mode(gateway, "feature") == "merge"

    @pytest.mark.parametrize("value", ["true", "merges", "interactive", "i"])
    def test_rebase_values(self, value):
        assert detect_pull_mode(self.gateway({"pull.rebase": value}), "feature") == "rebase"

    def test_defaults_to_merge(self):
        assert detect_pull_mode(self.gateway({}), "feature") == "merge"


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=200)


class TestSyncEndToEnd:
    """Push and pull against a real origin."""

    def test_push_new_branch_sets_upstream(self, origin_repo, clone_factory, workspace,
                                           mock_config, console):
        repo = clone_factory("api")
        sha = commit_files(repo, {"feature.txt": "f\n"}, "Feature work")

        assert PushCommand(workspace, mock_config, console=console).run() == 0

        assert origin_repo.bare.git.rev_parse("refs/heads/feature") == sha
        assert repo.git.rev_parse("--abbrev-ref", "@{upstream}") == "origin/feature"
        output = console.file.getvalue()
        assert "push 1 commit to origin/feature (new branch)" in output
        assert "Pushed 1 repo(s)" in output

    def test_pull_fast_forwards_from_share_remote(self, origin_repo, clone_factory, workspace,
                                                  mock_config, console):
        repo = clone_factory("api")
        commit_files(repo, {"feature.txt": "f\n"}, "Feature work")
        repo.git.push("-u", "origin", "feature")
        sha = origin_repo.commit({"teammate.txt": "t\n"}, "Teammate work", branch="feature")
        repo.git.fetch("origin")

        command = PullCommand(workspace, mock_config, console=console, pull_mode="rebase")
        assert command.run() == 0

        assert repo.head.commit.hexsha == sha
        assert "pull 1 commit from origin/feature (rebase)" in console.file.getvalue()

    def test_nothing_to_do_exits_cleanly(self, origin_repo, clone_factory, workspace,
                                         mock_config, console):
        clone_factory("api")
        assert PushCommand(workspace, mock_config, console=console).run() == 0
        assert "skipped: no commits to push" in console.file.getvalue()
