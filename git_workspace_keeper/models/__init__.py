"""Data models for git-workspace-keeper."""

from git_workspace_keeper.models.status import (
    BaseRelation,
    CommitInfo,
    DetectedPr,
    FileChange,
    GitOperation,
    HeadMode,
    LocalChanges,
    MergeKind,
    RefMode,
    RemoteSet,
    RepoFlags,
    RepoIdentity,
    RepoStatus,
    ShareRelation,
    VerboseDetail,
    WorktreeKind,
)
from git_workspace_keeper.models.skips import (
    BENIGN_SKIPS,
    SkipFlag,
    SkipReason,
    count_failures,
    describe_skip,
    skip,
)

__all__ = [
    "BaseRelation",
    "BENIGN_SKIPS",
    "CommitInfo",
    "DetectedPr",
    "FileChange",
    "GitOperation",
    "HeadMode",
    "LocalChanges",
    "MergeKind",
    "RefMode",
    "RemoteSet",
    "RepoFlags",
    "RepoIdentity",
    "RepoStatus",
    "ShareRelation",
    "SkipFlag",
    "SkipReason",
    "VerboseDetail",
    "WorktreeKind",
    "count_failures",
    "describe_skip",
    "skip",
]
