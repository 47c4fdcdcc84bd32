"""Repository status model and related enums"""
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, List


class WorktreeKind(Enum):
    """Whether a checkout is the main working tree or a linked worktree."""
    FULL = "full"
    LINKED = "linked"


class GitOperation(Enum):
    """Multi-step git operation left in progress in a working tree."""
    REBASE = "rebase"
    MERGE = "merge"
    CHERRY_PICK = "cherry-pick"


class MergeKind(Enum):
    """How a branch's content reached another branch."""
    MERGE = "merge"
    SQUASH = "squash"


class RefMode(Enum):
    """How the share-remote branch for HEAD was found."""
    NO_REF = "noRef"            # never pushed
    IMPLICIT = "implicit"       # <share>/<branch> exists, no tracking config
    CONFIGURED = "configured"   # @{upstream} resolves
    GONE = "gone"               # tracking config exists, remote ref vanished


@dataclass(frozen=True)
class HeadMode:
    """Attached to a branch, or detached (branch is None)."""
    branch: Optional[str] = None

    @classmethod
    def attached(cls, branch: str) -> "HeadMode":
        if not branch:
            raise ValueError("attached HEAD requires a branch name")
        return cls(branch)

    @classmethod
    def detached(cls) -> "HeadMode":
        return cls(None)

    @property
    def kind(self) -> str:
        return "detached" if self.branch is None else "attached"

    @property
    def is_detached(self) -> bool:
        return self.branch is None

    def to_dict(self) -> dict:
        if self.branch is None:
            return {"kind": "detached"}
        return {"kind": "attached", "branch": self.branch}


@dataclass(frozen=True)
class RepoIdentity:
    worktree_kind: WorktreeKind
    head_mode: HeadMode
    shallow: bool = False

    def to_dict(self) -> dict:
        return {
            "worktreeKind": self.worktree_kind.value,
            "headMode": self.head_mode.to_dict(),
            "shallow": self.shallow,
        }


@dataclass(frozen=True)
class LocalChanges:
    """Working tree change counts from porcelain status."""
    staged: int = 0
    modified: int = 0
    untracked: int = 0
    conflicts: int = 0

    @property
    def is_dirty(self) -> bool:
        return (self.staged + self.modified + self.untracked + self.conflicts) > 0

    @property
    def has_tracked_changes(self) -> bool:
        """Changes a stash would capture (untracked files are left alone)."""
        return self.staged > 0 or self.modified > 0

    def to_dict(self) -> dict:
        return {
            "staged": self.staged,
            "modified": self.modified,
            "untracked": self.untracked,
            "conflicts": self.conflicts,
        }


@dataclass(frozen=True)
class DetectedPr:
    number: int
    url: Optional[str] = None

    def to_dict(self) -> dict:
        return {"number": self.number, "url": self.url}


@dataclass(frozen=True)
class BaseRelation:
    """Relationship between HEAD and the base branch on the base remote.

    ``remote`` is None for repos without any remote, in which case ``ref``
    names a local branch.
    """
    remote: Optional[str]
    ref: str
    configured_ref: Optional[str] = None  # set when the configured base fell back to ``ref``
    ahead: int = 0
    behind: int = 0
    merged_into_base: Optional[MergeKind] = None
    merge_commit_hash: Optional[str] = None
    new_commits_after_merge: Optional[int] = None
    base_merged_into_default: Optional[MergeKind] = None
    detected_pr: Optional[DetectedPr] = None

    @property
    def compare_ref(self) -> str:
        """Ref used for ahead/behind counts and integration."""
        return f"{self.remote}/{self.ref}" if self.remote else self.ref

    @property
    def display_name(self) -> str:
        """Name shown for the base in messages (configured name wins)."""
        return self.configured_ref or self.ref

    def to_dict(self) -> dict:
        return {
            "remote": self.remote,
            "ref": self.ref,
            "configuredRef": self.configured_ref,
            "ahead": self.ahead,
            "behind": self.behind,
            "mergedIntoBase": self.merged_into_base.value if self.merged_into_base else None,
            "mergeCommitHash": self.merge_commit_hash,
            "newCommitsAfterMerge": self.new_commits_after_merge,
            "baseMergedIntoDefault": (
                self.base_merged_into_default.value if self.base_merged_into_default else None
            ),
            "detectedPr": self.detected_pr.to_dict() if self.detected_pr else None,
        }


@dataclass(frozen=True)
class ShareRelation:
    """Relationship between HEAD and its branch on the share remote."""
    remote: str
    ref: Optional[str]
    ref_mode: RefMode
    to_push: Optional[int] = None
    to_pull: Optional[int] = None
    rebased: Optional[int] = None  # to_push commits content-identical to remote commits

    def to_dict(self) -> dict:
        return {
            "remote": self.remote,
            "ref": self.ref,
            "refMode": self.ref_mode.value,
            "toPush": self.to_push,
            "toPull": self.to_pull,
            "rebased": self.rebased,
        }


@dataclass(frozen=True)
class RepoStatus:
    """Status of one repository, built fresh per query."""
    name: str
    identity: RepoIdentity
    local: LocalChanges
    base: Optional[BaseRelation] = None
    share: Optional[ShareRelation] = None
    operation: Optional[GitOperation] = None
    last_commit: Optional[str] = None
    head_sha: Optional[str] = None

    @property
    def branch(self) -> Optional[str]:
        return self.identity.head_mode.branch

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "identity": self.identity.to_dict(),
            "local": self.local.to_dict(),
            "base": self.base.to_dict() if self.base else None,
            "share": self.share.to_dict() if self.share else None,
            "operation": self.operation.value if self.operation else None,
            "lastCommit": self.last_commit,
        }


@dataclass(frozen=True)
class RemoteSet:
    """Remote roles for one repo: where bases live vs where work is shared."""
    base: str
    share: str

    @property
    def names(self) -> List[str]:
        """Distinct remotes to fetch, base first."""
        return [self.base] if self.base == self.share else [self.base, self.share]


@dataclass(frozen=True)
class RepoFlags:
    """Boolean view of a RepoStatus relative to the expected branch."""
    is_dirty: bool = False
    is_unpushed: bool = False
    needs_pull: bool = False
    needs_rebase: bool = False
    is_diverged: bool = False
    is_drifted: bool = False
    is_detached: bool = False
    has_operation: bool = False
    is_gone: bool = False
    is_shallow: bool = False
    is_merged: bool = False
    is_base_merged: bool = False
    base_fell_back: bool = False


@dataclass
class CommitInfo:
    """Short commit record used in verbose listings."""
    sha: str
    subject: str
    annotation: Optional[str] = None

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


@dataclass
class FileChange:
    path: str
    kind: str  # "new file", "modified", "deleted", "renamed", "copied"


@dataclass
class VerboseDetail:
    """Extra per-repo detail shown by ``status --verbose``."""
    ahead_of_base: List[CommitInfo] = field(default_factory=list)
    behind_base: List[CommitInfo] = field(default_factory=list)
    unpushed: List[CommitInfo] = field(default_factory=list)
    staged: List[FileChange] = field(default_factory=list)
    unstaged: List[FileChange] = field(default_factory=list)
    untracked: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "aheadOfBase": [{"hash": c.sha, "subject": c.subject} for c in self.ahead_of_base],
            "behindBase": [
                {"hash": c.sha, "subject": c.subject, "annotation": c.annotation}
                for c in self.behind_base
            ],
            "unpushed": [
                {"hash": c.sha, "subject": c.subject, "rebased": c.annotation == "rebased"}
                for c in self.unpushed
            ],
            "staged": [{"file": f.path, "type": f.kind} for f in self.staged],
            "unstaged": [{"file": f.path, "type": f.kind} for f in self.unstaged],
            "untracked": list(self.untracked),
        }
