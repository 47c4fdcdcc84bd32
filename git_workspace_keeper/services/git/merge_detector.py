"""History classification: merge/squash, rebase and diverged-commit detection."""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Tuple, Union, TYPE_CHECKING

from git_workspace_keeper.logging_config import get_logger
from git_workspace_keeper.models.status import MergeKind
from git_workspace_keeper.services.git.gateway import GitGateway
from git_workspace_keeper.services.git.patch_identity import PatchIdentityMatcher

if TYPE_CHECKING:
    from git_workspace_keeper.config import Config

logger = get_logger(__name__)


@dataclass(frozen=True)
class MergeDetection:
    """How a branch reached its base, and via which base commit."""
    kind: MergeKind
    commit: Optional[str] = None
    new_commits_after_merge: int = 0


@dataclass(frozen=True)
class RebasedCommits:
    """Local-only commits whose content already sits on the remote side."""
    count: int
    local_shas: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class SquashMatch:
    """Incoming commits whose cumulative change equals that of local commits."""
    incoming: Tuple[str, ...]
    local: Tuple[str, ...]

    @property
    def incoming_count(self) -> int:
        return len(self.incoming)

    @property
    def local_count(self) -> int:
        return len(self.local)


@dataclass(frozen=True)
class DivergedMatch:
    """Explanation of a divergence between a branch and its base.

    ``rebase_matches`` maps incoming commits to the local commit they
    reproduce. Commits covered by ``squash_match`` never appear there.
    """
    rebase_matches: Dict[str, str] = field(default_factory=dict)
    squash_match: Optional[SquashMatch] = None

    @property
    def explained(self) -> bool:
        return self.squash_match is not None or bool(self.rebase_matches)


@dataclass(frozen=True)
class RetargetReplay:
    """Local commits split by whether the new base already has their content."""
    already_on_new_base: Tuple[str, ...]
    to_replay: Tuple[str, ...]


class MergeDetector:
    """Classifies relationships between divergent histories by content."""

    def __init__(self, gateway: GitGateway, config: Union["Config", dict, None] = None):
        """Initialize the merge detector.

        Args:
            gateway: Gateway for the repository being analysed
            config: Configuration dictionary or Config object
        """
        self.gateway = gateway
        self.matcher = PatchIdentityMatcher(gateway)
        config = config or {}
        self.scan_limit = config.get("squash_scan_limit", 100)

    # -- merge / squash --------------------------------------------------------

    def detect_branch_merged(self, branch: str, base: str, limit: Optional[int] = None,
                             explicit_ref: Optional[str] = None) -> Optional[MergeDetection]:
        """Check whether ``branch``'s content is contained in ``base``.

        Ancestry is checked first and reports a merge even for a branch
        without commits of its own. Otherwise the cumulative diff from the
        merge-base is matched against at most ``limit`` recent base commits.

        Args:
            branch: Branch name (used for logging and as the tip by default)
            base: Base ref, usually ``<remote>/<name>``
            limit: Maximum number of base commits scanned for a squash match
            explicit_ref: Ref to use as the branch tip instead of ``branch``
        """
        tip = explicit_ref or branch
        limit = limit or self.scan_limit
        if not self.gateway.ref_exists(tip) or not self.gateway.ref_exists(base):
            logger.debug(f"Skipping merge check: {tip} or {base} does not resolve")
            return None

        methods = [
            self._check_ancestor,  # Fast: single git command
            self._check_squash,    # Slow: diffs + up to `limit` commits
        ]
        for method in methods:
            result = method(tip, base, limit)
            if result:
                logger.debug(
                    f"{branch} merged into {base} via {result.kind.value}"
                    f" ({(result.commit or '')[:7]}, {result.new_commits_after_merge} new)"
                )
                return result
        return None

    def _check_ancestor(self, tip: str, base: str, limit: int) -> Optional[MergeDetection]:
        """Branch tip reachable from base."""
        if not self.gateway.is_ancestor(tip, base):
            return None
        merges = self.gateway.merge_commits_between(tip, base)
        return MergeDetection(MergeKind.MERGE, merges[0] if merges else None)

    def _check_squash(self, tip: str, base: str, limit: int) -> Optional[MergeDetection]:
        """Cumulative branch diff (or a prefix of it) equals one recent base commit.

        The whole branch is tried first; shorter prefixes detect a squash
        merge that was followed by new local commits.
        """
        merge_base = self.gateway.merge_base(tip, base)
        if not merge_base:
            return None
        candidates = self.matcher.index_by_patch_id(
            self.matcher.commit_identities(f"{merge_base}..{base}", max_count=limit)
        )
        if not candidates:
            return None

        local_commits = self.gateway.rev_list("--first-parent", f"{merge_base}..{tip}")
        for new_commits, sha in enumerate(local_commits[:limit]):
            patch_id = self.matcher.range_identity(merge_base, sha)
            if patch_id is None:
                continue
            squash_commit = candidates.get(patch_id)
            if squash_commit:
                return MergeDetection(MergeKind.SQUASH, squash_commit, new_commits)
        return None

    # -- rebase / divergence ---------------------------------------------------

    def detect_rebased_commits(self, local_ref: str, remote_ref: str) -> RebasedCommits:
        """Count local-only commits whose content matches a remote-only commit.

        These are commits that round-tripped through a rebase: the remote
        still has the old hashes, the local branch has new ones.
        """
        local_only = self.matcher.commit_identities(f"{remote_ref}..{local_ref}")
        if not local_only:
            return RebasedCommits(0)
        remote_only = self.matcher.commit_identities(f"{local_ref}..{remote_ref}")
        remote_ids = {identity.patch_id for identity in remote_only}
        matched = frozenset(i.sha for i in local_only if i.patch_id in remote_ids)
        return RebasedCommits(len(matched), matched)

    def match_diverged_commits(self, branch: str, base: str) -> Optional[DivergedMatch]:
        """Explain incoming base commits in terms of local commits.

        Two strategies run independently: a cumulative squash match and a
        per-commit rebase match. A squash match explains the whole local
        side, so the commits it covers are removed before pairing.
        """
        merge_base = self.gateway.merge_base(branch, base)
        if not merge_base:
            return None

        incoming = self.matcher.commit_identities(f"{branch}..{base}")
        local = self.matcher.commit_identities(f"{base}..{branch}")
        if not incoming or not local:
            return DivergedMatch()

        squash = None
        local_patch_id = self.matcher.range_identity(merge_base, branch)
        if local_patch_id:
            incoming_patch_id = self.matcher.range_identity(merge_base, base)
            local_shas = tuple(self.gateway.rev_list(f"{base}..{branch}"))
            if incoming_patch_id == local_patch_id:
                squash = SquashMatch(tuple(self.gateway.rev_list(f"{branch}..{base}")), local_shas)
            else:
                for identity in incoming:
                    if identity.patch_id == local_patch_id:
                        squash = SquashMatch((identity.sha,), local_shas)
                        break

        covered_incoming = set(squash.incoming) if squash else set()
        covered_local = set(squash.local) if squash else set()
        pairs = self.matcher.pair_commits(
            [i for i in local if i.sha not in covered_local],
            [i for i in incoming if i.sha not in covered_incoming],
        )
        rebase_matches = {incoming_sha: local_sha for local_sha, incoming_sha in pairs}
        return DivergedMatch(rebase_matches=rebase_matches, squash_match=squash)

    def analyze_retarget_replay(self, branch: str, old_base: str,
                                new_base: str) -> RetargetReplay:
        """Partition commits ``old_base..branch`` into already-on-new-base vs to-replay.

        Both tuples are in replay order (oldest first).
        """
        local = list(reversed(self.matcher.commit_identities(f"{old_base}..{branch}")))
        on_new_base = {
            identity.patch_id
            for identity in self.matcher.commit_identities(f"{branch}..{new_base}",
                                                           max_count=self.scan_limit)
        }
        already = tuple(i.sha for i in local if i.patch_id in on_new_base)
        to_replay = tuple(i.sha for i in local if i.patch_id not in on_new_base)
        return RetargetReplay(already_on_new_base=already, to_replay=to_replay)
