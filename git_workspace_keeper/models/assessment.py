"""Per-repo assessments built while planning a bulk operation"""
from enum import Enum
from dataclasses import dataclass, field
from typing import List, Optional

from git_workspace_keeper.models.skips import SkipFlag, SkipReason


class Outcome(Enum):
    """What a bulk operation will do with one repo."""
    WILL_OPERATE = "will-operate"
    WILL_PUSH = "will-push"
    WILL_FORCE_PUSH = "will-force-push"
    WILL_PULL = "will-pull"
    UP_TO_DATE = "up-to-date"
    SKIP = "skip"


class IntegrateMode(Enum):
    REBASE = "rebase"
    MERGE = "merge"

    @property
    def verb(self) -> str:
        return "Rebase" if self is IntegrateMode.REBASE else "Merge"

    @property
    def past(self) -> str:
        return "Rebased" if self is IntegrateMode.REBASE else "Merged"


@dataclass
class _Assessment:
    repo: str
    repo_dir: str
    outcome: Outcome = Outcome.SKIP
    skip_reason: Optional[SkipReason] = None
    head_sha: Optional[str] = None

    @property
    def skip_flag(self) -> Optional[SkipFlag]:
        return self.skip_reason.flag if self.skip_reason else None

    @property
    def skipped(self) -> bool:
        return self.outcome is Outcome.SKIP


@dataclass
class IntegrateAssessment(_Assessment):
    """Plan for rebasing or merging one repo onto its base."""
    base_remote: Optional[str] = None
    base_branch: Optional[str] = None
    behind: int = 0
    ahead: int = 0
    shallow: bool = False
    needs_stash: bool = False
    stash_pop_conflict: Optional[bool] = None  # None = not predicted
    conflict_prediction: Optional[str] = None  # "conflict" / "clean" / None
    conflict_files: List[str] = field(default_factory=list)
    retarget_from: Optional[str] = None
    retarget_to: Optional[str] = None
    retarget_old_ref: Optional[str] = None  # upstream boundary for rebase --onto
    retarget_warning: Optional[str] = None

    @property
    def base_ref(self) -> Optional[str]:
        if not self.base_branch:
            return None
        return f"{self.base_remote}/{self.base_branch}" if self.base_remote else self.base_branch

    @property
    def is_retarget(self) -> bool:
        return self.retarget_to is not None


@dataclass
class PushAssessment(_Assessment):
    """Plan for pushing one repo's branch to its share remote."""
    remote: Optional[str] = None
    branch: Optional[str] = None
    ahead: int = 0
    behind: int = 0
    new_branch: bool = False
    recreate: bool = False


@dataclass
class PullAssessment(_Assessment):
    """Plan for pulling one repo's branch from its share remote."""
    remote: Optional[str] = None
    branch: Optional[str] = None
    behind: int = 0
    pull_mode: Optional[str] = None  # "rebase" / "merge"
    needs_stash: bool = False


@dataclass
class ExecutionResult:
    """What happened to one repo during execution."""
    repo: str
    succeeded: bool
    conflict: bool = False
    operation: Optional[str] = None  # git sub-command to --continue / --abort
    conflict_lines: List[str] = field(default_factory=list)
    stash_pop_failed: bool = False
    message: Optional[str] = None
