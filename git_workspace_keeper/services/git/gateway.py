"""Narrow typed gateway over the git executable.

Everything above this module asks questions (ahead/behind, ref existence,
patch identity, merge simulation) instead of parsing git's text output.
Failures never raise: callers get ``None``/``False``/empty values and the
exit code is logged.
"""

import os
import tempfile
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import git

from git_workspace_keeper.constants import GIT_NOT_FOUND_EXIT_CODE
from git_workspace_keeper.context import RunContext
from git_workspace_keeper.logging_config import get_logger
from git_workspace_keeper.models.status import CommitInfo, GitOperation

logger = get_logger(__name__)

# Field separator for --format strings; never appears in subjects
_SEP = "\x1f"

# Operation sentinels inside the (per-worktree) git dir, checked in order
_OPERATION_SENTINELS: Tuple[Tuple[str, GitOperation], ...] = (
    ("rebase-merge", GitOperation.REBASE),
    ("rebase-apply", GitOperation.REBASE),
    ("MERGE_HEAD", GitOperation.MERGE),
    ("CHERRY_PICK_HEAD", GitOperation.CHERRY_PICK),
)


@dataclass(frozen=True)
class GitResult:
    """Exit code plus captured output of one git invocation."""
    exit_code: int
    stdout: str
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """stdout and stderr combined, for user-facing reports."""
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


@dataclass(frozen=True)
class AheadBehind:
    ahead: int
    behind: int


@dataclass(frozen=True)
class MergeSimulation:
    """Outcome of an in-memory merge of two commits."""
    clean: bool
    conflicted_files: Tuple[str, ...] = ()


class GitGateway:
    """Runs git inside one repository directory."""

    def __init__(self, repo_dir: str, context: Optional[RunContext] = None):
        """Initialize the gateway.

        Args:
            repo_dir: Working directory of the checkout
            context: Run context used for git call accounting
        """
        self.repo_dir = str(repo_dir)
        self.context = context or RunContext()

    def _get_repo(self):
        """Get a fresh git.Repo instance.

        GitPython repos are lightweight - they don't clone, just open the existing repo.

        Returns:
            git.Repo: A fresh repository instance
        """
        return git.Repo(self.repo_dir)

    @property
    def name(self) -> str:
        return os.path.basename(os.path.normpath(self.repo_dir))

    # -- raw execution -------------------------------------------------------

    def run(self, *args: str, input_text: Optional[str] = None,
            env: Optional[Dict[str, str]] = None) -> GitResult:
        """Run ``git <args>`` and capture exit code, stdout and stderr."""
        command = [git.Git.GIT_PYTHON_GIT_EXECUTABLE or "git", *args]
        started = time.monotonic()
        exit_code = GIT_NOT_FOUND_EXIT_CODE
        try:
            if input_text is None:
                exit_code, stdout, stderr = git.Git(self.repo_dir).execute(
                    command, with_extended_output=True, with_exceptions=False, env=env
                )
            else:
                with tempfile.TemporaryFile() as stdin:
                    stdin.write(input_text.encode("utf-8"))
                    stdin.seek(0)
                    exit_code, stdout, stderr = git.Git(self.repo_dir).execute(
                        command, istream=stdin, with_extended_output=True,
                        with_exceptions=False, env=env,
                    )
            return GitResult(exit_code, stdout, stderr)
        except git.exc.GitCommandNotFound as e:
            logger.debug(f"git executable not available in {self.repo_dir}: {e}")
            return GitResult(GIT_NOT_FOUND_EXIT_CODE, "", str(e))
        except (OSError, git.exc.GitError) as e:
            # Missing working directory and similar spawn failures
            logger.debug(f"Could not run git {' '.join(args)} in {self.repo_dir}: {e}")
            exit_code = 1
            return GitResult(1, "", str(e))
        finally:
            duration_ms = (time.monotonic() - started) * 1000
            self.context.record_git_call(args, duration_ms, exit_code)

    def output(self, *args: str) -> Optional[str]:
        """stdout stripped of surrounding whitespace, or None on failure."""
        result = self.run(*args)
        if not result.ok:
            return None
        return result.stdout.strip()

    def lines(self, *args: str) -> List[str]:
        """Non-empty stdout lines, empty on failure."""
        text = self.output(*args)
        if not text:
            return []
        return [line for line in text.splitlines() if line.strip()]

    # -- identity ------------------------------------------------------------

    def current_branch(self) -> Optional[str]:
        """Branch HEAD points at, None when detached or on failure."""
        return self.output("branch", "--show-current") or None

    def head_sha(self, short: bool = False) -> Optional[str]:
        if short:
            return self.output("rev-parse", "--short", "HEAD")
        return self.output("rev-parse", "HEAD")

    def is_shallow(self) -> bool:
        return self.output("rev-parse", "--is-shallow-repository") == "true"

    def is_linked_worktree(self) -> bool:
        """True when the checkout's git dir differs from the common dir."""
        try:
            repo = self._get_repo()
            return os.path.realpath(repo.git_dir) != os.path.realpath(repo.common_dir)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError) as e:
            logger.debug(f"Not a git repository: {self.repo_dir}: {e}")
            return False

    def detect_operation(self) -> Optional[GitOperation]:
        """In-progress rebase/merge/cherry-pick, from git dir sentinel files."""
        try:
            git_dir = self._get_repo().git_dir
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError) as e:
            logger.debug(f"Cannot probe operation in {self.repo_dir}: {e}")
            return None
        for sentinel, operation in _OPERATION_SENTINELS:
            if os.path.exists(os.path.join(git_dir, sentinel)):
                return operation
        return None

    def last_commit_date(self) -> Optional[str]:
        """Committer date of HEAD in strict ISO 8601."""
        return self.output("log", "-1", "--format=%cI") or None

    def status_porcelain(self) -> Optional[str]:
        """Raw ``git status --porcelain`` output (leading columns preserved)."""
        result = self.run("status", "--porcelain", "--untracked-files=normal")
        if not result.ok:
            return None
        return result.stdout

    # -- refs ----------------------------------------------------------------

    def ref_exists(self, ref: str) -> bool:
        """True when ``ref`` resolves to a commit."""
        return self.run("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}").ok

    def resolve(self, ref: str) -> Optional[str]:
        return self.output("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}") or None

    def local_branch_exists(self, branch: str) -> bool:
        return self.ref_exists(f"refs/heads/{branch}")

    def remote_branch_exists(self, remote: str, branch: str) -> bool:
        return self.ref_exists(f"refs/remotes/{remote}/{branch}")

    def symbolic_ref(self, ref: str) -> Optional[str]:
        return self.output("symbolic-ref", "--quiet", "--short", ref) or None

    def upstream_ref(self) -> Optional[str]:
        """Short name of HEAD's @{upstream}, None when unset or gone."""
        return self.output("rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{upstream}") or None

    def config_get(self, key: str) -> Optional[str]:
        return self.output("config", "--get", key) or None

    def remote_names(self) -> List[str]:
        return self.lines("remote")

    def remote_url(self, remote: str) -> Optional[str]:
        return self.output("remote", "get-url", remote) or None

    # -- history -------------------------------------------------------------

    def ahead_behind(self, base_ref: str, ref: str = "HEAD") -> Optional[AheadBehind]:
        """Single two-sided count of ``base_ref...ref``."""
        text = self.output("rev-list", "--left-right", "--count", f"{base_ref}...{ref}")
        if text is None:
            return None
        parts = text.split()
        if len(parts) != 2:
            logger.debug(f"Unexpected rev-list count output in {self.repo_dir}: {text!r}")
            return None
        try:
            behind, ahead = int(parts[0]), int(parts[1])
        except ValueError:
            return None
        return AheadBehind(ahead=ahead, behind=behind)

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        return self.run("merge-base", "--is-ancestor", ancestor, descendant).ok

    def merge_base(self, a: str, b: str) -> Optional[str]:
        return self.output("merge-base", a, b) or None

    def rev_list(self, *args: str) -> List[str]:
        return self.lines("rev-list", *args)

    def count(self, rev_range: str) -> Optional[int]:
        text = self.output("rev-list", "--count", rev_range)
        try:
            return int(text) if text is not None else None
        except ValueError:
            return None

    def commits(self, rev_range: str, max_count: Optional[int] = None,
                first_parent: bool = False) -> List[CommitInfo]:
        """Commits in ``rev_range``, newest first."""
        args = ["log", f"--format=%H{_SEP}%s"]
        if max_count is not None:
            args.append(f"--max-count={max_count}")
        if first_parent:
            args.append("--first-parent")
        args.append(rev_range)
        commits = []
        for line in self.lines(*args):
            sha, _, subject = line.partition(_SEP)
            commits.append(CommitInfo(sha=sha, subject=subject))
        return commits

    def subject(self, rev: str) -> Optional[str]:
        return self.output("log", "-1", "--format=%s", rev)

    def is_on_first_parent_chain(self, commit: str, ref: str) -> bool:
        """True when ``commit`` lies on the first-parent history of ``ref``.

        Walks ``ref``'s first parents down to the boundary with ``commit``'s
        history; the commit is on the chain when the walk lands exactly on it.
        """
        commit_sha = self.resolve(commit)
        ref_sha = self.resolve(ref)
        if not commit_sha or not ref_sha:
            return False
        if commit_sha == ref_sha:
            return True
        rows = self.lines("rev-list", "--first-parent", "--parents", ref_sha, f"^{commit_sha}")
        if not rows:
            return False
        parents = rows[-1].split()[1:]
        return bool(parents) and parents[0] == commit_sha

    def merge_commits_between(self, ancestor: str, ref: str) -> List[str]:
        """Merge commits on the ancestry path from ``ancestor`` to ``ref``, oldest first."""
        return list(reversed(self.rev_list("--ancestry-path", "--merges", f"{ancestor}..{ref}")))

    # -- patch identity --------------------------------------------------------

    def patch_ids(self, rev_range: str, max_count: Optional[int] = None,
                  first_parent: bool = False) -> List[Tuple[str, str]]:
        """(commit, patch-id) pairs for commits in ``rev_range``, newest first.

        Merge commits and commits with an empty diff have no patch identity
        and are left out.
        """
        args = ["log", "-p", "--no-color", "--no-ext-diff", "--no-merges", "--format=commit %H"]
        if max_count is not None:
            args.append(f"--max-count={max_count}")
        if first_parent:
            args.append("--first-parent")
        args.append(rev_range)
        log = self.run(*args)
        if not log.ok or not log.stdout.strip():
            return []
        return self._patch_id_pairs(log.stdout + "\n")

    def diff_patch_id(self, from_ref: str, to_ref: str) -> Optional[str]:
        """Patch identity of the net change between two commits."""
        diff = self.run("diff", "--no-color", "--no-ext-diff", from_ref, to_ref)
        if not diff.ok or not diff.stdout.strip():
            return None
        pairs = self._patch_id_pairs(diff.stdout + "\n")
        return pairs[0][1] if pairs else None

    def _patch_id_pairs(self, patch_text: str) -> List[Tuple[str, str]]:
        result = self.run("patch-id", "--stable", input_text=patch_text)
        if not result.ok:
            logger.debug(f"patch-id failed in {self.repo_dir}: {result.stderr.strip()}")
            return []
        pairs = []
        for line in result.stdout.splitlines():
            parts = line.split()
            if len(parts) == 2:
                patch_id, commit = parts
                pairs.append((commit, patch_id))
        return pairs

    # -- merge simulation ------------------------------------------------------

    def simulate_merge(self, ours: str, theirs: str) -> Optional[MergeSimulation]:
        """Merge two commits in memory; the index and working tree are untouched."""
        result = self.run("merge-tree", "--write-tree", "--name-only", "--no-messages", ours, theirs)
        if result.exit_code == 0:
            return MergeSimulation(clean=True)
        if result.exit_code == 1:
            # First line is the resulting tree id, conflicted paths follow
            files = []
            for line in result.stdout.splitlines()[1:]:
                path = line.strip()
                if path and path not in files:
                    files.append(path)
            return MergeSimulation(clean=False, conflicted_files=tuple(files))
        logger.debug(f"merge-tree unavailable or failed in {self.repo_dir}: {result.stderr.strip()}")
        return None

    def changed_files(self, rev_range: str) -> List[str]:
        return self.lines("diff", "--name-only", "--no-ext-diff", rev_range)

    def __repr__(self) -> str:
        return f"GitGateway({self.repo_dir!r})"


def parse_porcelain_status(text: Optional[str]) -> Tuple[int, int, int, int]:
    """Count (staged, modified, untracked, conflicts) from ``status --porcelain``."""
    staged = modified = untracked = conflicts = 0
    for line in (text or "").splitlines():
        if len(line) < 2:
            continue
        x, y = line[0], line[1]
        if x == "?":
            untracked += 1
        elif x == "U" or y == "U" or (x == "A" and y == "A") or (x == "D" and y == "D"):
            conflicts += 1
        else:
            if x != " ":
                staged += 1
            if y != " ":
                modified += 1
    return staged, modified, untracked, conflicts


def command_text(args: Sequence[str]) -> str:
    return "git " + " ".join(args)
