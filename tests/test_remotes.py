"""Tests for remote roles, remote URL parsing and pull request detection."""

from unittest.mock import Mock, patch

import pytest

from git_workspace_keeper.exceptions import AmbiguousRemotesError
from git_workspace_keeper.models.status import RemoteSet
from git_workspace_keeper.services.git import (
    PullRequestLookup,
    build_pr_url,
    extract_pr_number,
    parse_remote_url,
    resolve_remotes,
)


def fake_gateway(remotes, push_default=None):
    gateway = Mock()
    gateway.name = "api"
    gateway.repo_dir = "/ws/api"
    gateway.remote_names.return_value = remotes
    gateway.config_get.side_effect = lambda key: push_default if key == "remote.pushDefault" else None
    return gateway


class TestResolveRemotes:
    """Picking base and share remotes."""

    def test_no_remotes(self):
        assert resolve_remotes(fake_gateway([])) is None

    def test_single_remote_takes_both_roles(self):
        assert resolve_remotes(fake_gateway(["origin"])) == RemoteSet("origin", "origin")

    def test_upstream_and_origin(self):
        assert resolve_remotes(fake_gateway(["origin", "upstream"])) == RemoteSet("upstream", "origin")

    def test_push_default_is_share(self):
        remotes = resolve_remotes(fake_gateway(["fork", "canonical"], push_default="fork"))
        assert remotes == RemoteSet(base="canonical", share="fork")

    def test_push_default_with_many_remotes_prefers_upstream(self):
        remotes = resolve_remotes(fake_gateway(["fork", "upstream", "other"], push_default="fork"))
        assert remotes == RemoteSet(base="upstream", share="fork")

    def test_ambiguous_remotes_raise_with_guidance(self):
        with pytest.raises(AmbiguousRemotesError) as exc_info:
            resolve_remotes(fake_gateway(["origin", "fork"]))
        message = str(exc_info.value)
        assert "api" in message
        assert "remote.pushDefault fork" in message
        assert exc_info.value.remotes == ["origin", "fork"]

    def test_names_can_be_passed_in(self):
        gateway = fake_gateway(["ignored"])
        assert resolve_remotes(gateway, ["origin"]) == RemoteSet("origin", "origin")
        gateway.remote_names.assert_not_called()

    def test_distinct_names_base_first(self):
        assert RemoteSet("upstream", "origin").names == ["upstream", "origin"]
        assert RemoteSet("origin", "origin").names == ["origin"]


class TestParseRemoteUrl:
    """SSH, HTTPS and Azure DevOps URL forms."""

    @pytest.mark.parametrize("url", [
        "git@github.com:acme/widgets.git",
        "https://github.com/acme/widgets.git",
        "https://github.com/acme/widgets",
        "ssh://git@github.com/acme/widgets.git",
    ])
    def test_github_forms(self, url):
        parsed = parse_remote_url(url)
        assert (parsed.provider, parsed.host, parsed.owner, parsed.repo) == (
            "github", "github.com", "acme", "widgets"
        )

    def test_gitlab_subgroups(self):
        parsed = parse_remote_url("git@gitlab.com:group/sub/project.git")
        assert parsed.provider == "gitlab"
        assert parsed.owner == "group/sub"
        assert parsed.repo == "project"

    def test_azure_devops(self):
        parsed = parse_remote_url("git@ssh.dev.azure.com:v3/org/proj/repo")
        assert parsed.provider == "azure-devops"
        assert (parsed.owner, parsed.project, parsed.repo) == ("org", "proj", "repo")

    def test_unparseable(self):
        assert parse_remote_url(None) is None
        assert parse_remote_url("/srv/git/origin.git") is None

    def test_pr_urls(self):
        assert build_pr_url(parse_remote_url("git@github.com:acme/widgets.git"), 42) == \
            "https://github.com/acme/widgets/pull/42"
        assert build_pr_url(parse_remote_url("https://gitlab.com/acme/widgets"), 7) == \
            "https://gitlab.com/acme/widgets/-/merge_requests/7"
        assert build_pr_url(parse_remote_url("https://example.org/acme/widgets"), 7) is None
        assert build_pr_url(None, 7) is None


class TestExtractPrNumber:
    """PR numbers in merge and squash subjects."""

    @pytest.mark.parametrize("subject,expected", [
        ("Merge pull request #12 from acme/feature", 12),
        ("Merged PR 345: Add login", 345),
        ("Add login flow (#42)", 42),
        ("Add login flow", None),
        ("Fix #42 in parser", None),
        (None, None),
    ])
    def test_subjects(self, subject, expected):
        assert extract_pr_number(subject) == expected


class TestPullRequestLookup:
    """GitHub lookup for squash merges without a PR number."""

    def test_disabled_without_token(self, mock_config):
        with patch.dict("os.environ", {}, clear=True):
            lookup = PullRequestLookup(mock_config)
        assert not lookup.enabled
        assert lookup.find_merged_pr(parse_remote_url("git@github.com:a/b.git"), "feature") is None

    def test_finds_merged_pr(self, mock_config, mock_github):
        merged = Mock(merged=True, number=42, html_url="https://github.com/test/repo/pull/42")
        mock_github.get_repo.return_value.get_pulls.return_value = [Mock(merged=False), merged]
        lookup = PullRequestLookup(dict(mock_config, github_token="token"))
        lookup.github = mock_github

        pr = lookup.find_merged_pr(parse_remote_url("git@github.com:test/repo.git"), "feature")
        assert pr.number == 42
        assert pr.url.endswith("/pull/42")
        mock_github.get_repo.return_value.get_pulls.assert_called_once_with(
            state="closed", head="test:feature"
        )

    def test_non_github_remote_is_skipped(self, mock_config, mock_github):
        lookup = PullRequestLookup(dict(mock_config, github_token="token"))
        lookup.github = mock_github
        assert lookup.find_merged_pr(parse_remote_url("git@gitlab.com:test/repo.git"), "x") is None
        mock_github.get_repo.assert_not_called()

    def test_api_errors_degrade_to_none(self, mock_config, mock_github):
        mock_github.get_repo.side_effect = Exception("rate limited")
        lookup = PullRequestLookup(dict(mock_config, github_token="token"))
        lookup.github = mock_github
        assert lookup.find_merged_pr(parse_remote_url("git@github.com:test/repo.git"), "x") is None
