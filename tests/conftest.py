"""Pytest fixtures for git-workspace-keeper tests"""
import tempfile
from pathlib import Path
from unittest.mock import Mock
import pytest
import git

from git_workspace_keeper.context import RunContext
from git_workspace_keeper.models.status import (
    BaseRelation,
    HeadMode,
    LocalChanges,
    RefMode,
    RepoIdentity,
    RepoStatus,
    ShareRelation,
    WorktreeKind,
)
from git_workspace_keeper.services.workspace import Workspace, write_config


def configure_identity(repo, name="Test User", email="test@example.com"):
    with repo.config_writer() as writer:
        writer.set_value("user", "name", name)
        writer.set_value("user", "email", email)
        writer.set_value("commit", "gpgsign", "false")


def commit_files(repo, files, message, author=None):
    """Write ``files`` (path -> content) and commit them; returns the new sha."""
    root = Path(repo.working_dir)
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    repo.index.add(list(files))
    kwargs = {}
    if author is not None:
        kwargs["author"] = author
        kwargs["committer"] = author
    return repo.index.commit(message, **kwargs).hexsha


class Origin:
    """A bare origin plus a scratch clone used to land commits on its branches."""

    def __init__(self, root: Path):
        self.path = root / "origin.git"
        self.bare = git.Repo.init(self.path, bare=True)
        self.bare.git.symbolic_ref("HEAD", "refs/heads/main")

        self.seed = git.Repo.init(root / "seed")
        configure_identity(self.seed)
        commit_files(self.seed, {"README.md": "# Project\n", "app.txt": "one\ntwo\nthree\n"},
                     "Initial commit")
        self.seed.git.branch("-M", "main")
        self.seed.create_remote("origin", str(self.path))
        self.seed.git.push("origin", "main")

    def commit(self, files, message, branch="main", author=None):
        """Land a commit on ``branch`` of the origin; returns its sha."""
        self.seed.git.fetch("origin")
        if branch in [head.name for head in self.seed.heads]:
            self.seed.git.checkout(branch)
            if f"origin/{branch}" in [ref.name for ref in self.seed.remotes.origin.refs]:
                self.seed.git.reset("--hard", f"origin/{branch}")
        else:
            start = f"origin/{branch}" if f"origin/{branch}" in [
                ref.name for ref in self.seed.remotes.origin.refs
            ] else "origin/main"
            self.seed.git.checkout("-b", branch, start)
        sha = commit_files(self.seed, files, message, author=author)
        self.seed.git.push("origin", branch)
        return sha

    def create_branch(self, branch, start="main"):
        self.seed.git.fetch("origin")
        self.seed.git.push("origin", f"origin/{start}:refs/heads/{branch}")

    def delete_branch(self, branch):
        self.seed.git.push("origin", "--delete", branch)

    def close(self):
        self.seed.close()
        self.bare.close()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_config():
    """Create a mock configuration dictionary."""
    return {
        'fetch': False,
        'fetch_timeout': 30.0,
        'squash_scan_limit': 100,
        'yes': True,
        'dry_run': False,
        'autostash': False,
        'force': False,
        'verbose': False,
        'debug': False,
        'sequential': True,
        'workers': None,
        'repos_root': None,
        'github_token': None,
    }


@pytest.fixture
def run_context():
    """A fresh run context."""
    return RunContext()


@pytest.fixture
def git_repo(temp_dir):
    """Create a real Git repository with one commit on main and a fake GitHub remote."""
    repo_path = temp_dir / "test_repo"
    repo_path.mkdir()
    repo = git.Repo.init(repo_path)
    configure_identity(repo)
    commit_files(repo, {"README.md": "# Test Repository\n"}, "Initial commit")
    repo.git.branch("-M", "main")
    repo.create_remote("origin", "git@github.com:test/test-repo.git")

    yield repo

    repo.close()


@pytest.fixture
def origin_repo(temp_dir):
    """A bare origin with main checked in."""
    origin = Origin(temp_dir)
    yield origin
    origin.close()


@pytest.fixture
def workspace(temp_dir):
    """An empty workspace whose branch is ``feature``."""
    root = temp_dir / "ws"
    write_config(root / ".gwk" / "config", "feature")
    return Workspace(root)


@pytest.fixture
def clone_factory(origin_repo, workspace):
    """Clone the origin into the workspace, optionally starting a branch."""
    clones = []

    def make_clone(name="api", branch="feature", start="origin/main"):
        repo = git.Repo.clone_from(str(origin_repo.path), str(workspace.root / name))
        configure_identity(repo)
        if branch:
            repo.git.checkout("--no-track", "-b", branch, start)
        clones.append(repo)
        return repo

    yield make_clone

    for repo in clones:
        repo.close()


def make_status(name="api", branch="feature", base=None, share=None, local=None,
                operation=None, shallow=False, head_sha="abc1234def"):
    """Build a RepoStatus for pure classification tests."""
    head_mode = HeadMode.attached(branch) if branch else HeadMode.detached()
    return RepoStatus(
        name=name,
        identity=RepoIdentity(WorktreeKind.FULL, head_mode, shallow),
        local=local or LocalChanges(),
        base=base,
        share=share,
        operation=operation,
        head_sha=head_sha,
    )


@pytest.fixture
def status_factory():
    """Factory for RepoStatus records with sensible defaults."""
    def factory(**kwargs):
        kwargs.setdefault("base", BaseRelation(remote="origin", ref="main"))
        kwargs.setdefault("share", ShareRelation(remote="origin", ref="origin/feature",
                                                 ref_mode=RefMode.CONFIGURED))
        return make_status(**kwargs)
    return factory


@pytest.fixture
def mock_github():
    """Create a mock GitHub API object."""
    github = Mock()
    repo = Mock()
    repo.full_name = "test/repo"
    repo.get_pulls = Mock(return_value=[])
    github.get_repo = Mock(return_value=repo)
    return github
