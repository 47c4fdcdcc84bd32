"""Skip flags and the prose that goes with them.

Every skip carries a stable machine tag (``SkipFlag``) for filtering and a
human sentence. Both live here so the two vocabularies cannot drift apart.
"""
from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional


class SkipFlag(Enum):
    """Stable reasons a repo is left out of a bulk operation."""
    DETACHED_HEAD = "detached-head"
    DRIFTED = "drifted"
    BASE_MERGED_INTO_DEFAULT = "base-merged-into-default"
    ALREADY_MERGED = "already-merged"
    MERGED_NEW_WORK = "merged-new-work"
    FETCH_FAILED = "fetch-failed"
    DIRTY = "dirty"
    NO_COMMITS = "no-commits"
    BEHIND_REMOTE = "behind-remote"
    DIVERGED = "diverged"
    NOT_PUSHED = "not-pushed"
    REMOTE_GONE = "remote-gone"
    REBASED_LOCALLY = "rebased-locally"
    OPERATION_IN_PROGRESS = "operation-in-progress"
    NO_BASE_BRANCH = "no-base-branch"
    NO_BASE_REMOTE = "no-base-remote"
    RETARGET_TARGET_NOT_FOUND = "retarget-target-not-found"
    RETARGET_BASE_NOT_FOUND = "retarget-base-not-found"
    RETARGET_NO_DEFAULT = "retarget-no-default"


# Skips that describe an expected state rather than a problem
BENIGN_SKIPS: FrozenSet[SkipFlag] = frozenset({
    SkipFlag.ALREADY_MERGED,
    SkipFlag.NO_COMMITS,
    SkipFlag.NOT_PUSHED,
    SkipFlag.NO_BASE_BRANCH,
})


_MESSAGES: Dict[SkipFlag, str] = {
    SkipFlag.DETACHED_HEAD: "HEAD is detached",
    SkipFlag.DRIFTED: "on branch {actual}, expected {expected}",
    SkipFlag.BASE_MERGED_INTO_DEFAULT: "base branch {base} was merged into default (use --retarget)",
    SkipFlag.ALREADY_MERGED: "already merged into {base}",
    SkipFlag.MERGED_NEW_WORK: "merged into {base}, {count} new commit(s) since (rebase first)",
    SkipFlag.FETCH_FAILED: "fetch failed",
    SkipFlag.DIRTY: "uncommitted changes{hint}",
    SkipFlag.NO_COMMITS: "no commits to push",
    SkipFlag.BEHIND_REMOTE: "behind remote (pull first?)",
    SkipFlag.DIVERGED: "diverged from remote (use --force)",
    SkipFlag.NOT_PUSHED: "not pushed yet",
    SkipFlag.REMOTE_GONE: "remote branch gone",
    SkipFlag.REBASED_LOCALLY: "rebased locally (use --force)",
    SkipFlag.OPERATION_IN_PROGRESS: "{operation} in progress",
    SkipFlag.NO_BASE_BRANCH: "no base branch",
    SkipFlag.NO_BASE_REMOTE: "no base remote",
    SkipFlag.RETARGET_TARGET_NOT_FOUND: "retarget target {target} not found",
    SkipFlag.RETARGET_BASE_NOT_FOUND: "old base {base} not found, cannot retarget",
    SkipFlag.RETARGET_NO_DEFAULT: "cannot detect default branch to retarget onto",
}


@dataclass(frozen=True)
class SkipReason:
    """A skip flag plus the values its message needs."""
    flag: SkipFlag
    params: Dict[str, object] = field(default_factory=dict, compare=False, hash=False)

    @property
    def message(self) -> str:
        return describe_skip(self.flag, **self.params)

    @property
    def benign(self) -> bool:
        return self.flag in BENIGN_SKIPS

    def __str__(self) -> str:
        return self.message


def describe_skip(flag: SkipFlag, **params) -> str:
    """Render the human sentence for a skip flag."""
    template = _MESSAGES[flag]
    if flag is SkipFlag.DIRTY:
        params.setdefault("hint", "")
    try:
        return template.format(**params)
    except KeyError as e:
        raise ValueError(f"missing '{e.args[0]}' for skip message '{flag.value}'") from None


def skip(flag: SkipFlag, **params) -> SkipReason:
    return SkipReason(flag, dict(params))


def count_failures(reasons, include_benign: bool = False) -> int:
    """Count skip reasons that should fail a run."""
    return sum(
        1 for reason in reasons
        if reason is not None and (include_benign or not reason.benign)
    )
