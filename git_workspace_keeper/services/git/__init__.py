"""Git-related services for git-workspace-keeper."""

from .gateway import AheadBehind, GitGateway, GitResult, MergeSimulation, parse_porcelain_status
from .patch_identity import CommitIdentity, PatchIdentityMatcher
from .merge_detector import (
    DivergedMatch,
    MergeDetection,
    MergeDetector,
    RebasedCommits,
    RetargetReplay,
    SquashMatch,
)
from .conflicts import ConflictPrediction, predict_merge_conflict, predict_stash_pop_conflict
from .remotes import (
    ParsedRemoteUrl,
    build_pr_url,
    get_remote_names,
    parse_remote_url,
    resolve_remotes,
)
from .pr_detection import extract_pr_number
from .github import PullRequestLookup

__all__ = [
    "AheadBehind",
    "CommitIdentity",
    "ConflictPrediction",
    "DivergedMatch",
    "GitGateway",
    "GitResult",
    "MergeDetection",
    "MergeDetector",
    "MergeSimulation",
    "ParsedRemoteUrl",
    "PatchIdentityMatcher",
    "PullRequestLookup",
    "RebasedCommits",
    "RetargetReplay",
    "SquashMatch",
    "build_pr_url",
    "extract_pr_number",
    "get_remote_names",
    "parse_porcelain_status",
    "parse_remote_url",
    "predict_merge_conflict",
    "predict_stash_pop_conflict",
    "resolve_remotes",
]
