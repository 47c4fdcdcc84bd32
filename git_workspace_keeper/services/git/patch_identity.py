"""Patch-identity matching across rewritten histories."""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from git_workspace_keeper.logging_config import get_logger
from git_workspace_keeper.services.git.gateway import GitGateway

logger = get_logger(__name__)


@dataclass(frozen=True)
class CommitIdentity:
    """A commit and the fingerprint of its own diff."""
    sha: str
    patch_id: str


class PatchIdentityMatcher:
    """Fingerprints commits and commit ranges by content.

    Rebase and squash rewrite commit hashes but keep the change content, so
    identity here is ``git patch-id --stable`` of the diff, never the hash.
    """

    def __init__(self, gateway: GitGateway):
        self.gateway = gateway

    def commit_identities(self, rev_range: str, max_count: Optional[int] = None,
                          first_parent: bool = False) -> List[CommitIdentity]:
        """Identities of the non-merge commits in ``rev_range``, newest first."""
        return [
            CommitIdentity(sha, patch_id)
            for sha, patch_id in self.gateway.patch_ids(rev_range, max_count, first_parent)
        ]

    def range_identity(self, from_ref: str, to_ref: str) -> Optional[str]:
        """Identity of the cumulative diff ``from_ref`` -> ``to_ref``."""
        return self.gateway.diff_patch_id(from_ref, to_ref)

    @staticmethod
    def index_by_patch_id(identities: List[CommitIdentity]) -> Dict[str, str]:
        """patch-id -> sha, keeping the first (newest) commit per identity."""
        index: Dict[str, str] = {}
        for identity in identities:
            index.setdefault(identity.patch_id, identity.sha)
        return index

    def pair_commits(self, local: List[CommitIdentity],
                     remote: List[CommitIdentity]) -> List[Tuple[str, str]]:
        """Pair local commits with remote commits of equal identity.

        Each remote commit is used at most once. Returns (local_sha,
        remote_sha) pairs in local order.
        """
        available: Dict[str, List[str]] = {}
        for identity in remote:
            available.setdefault(identity.patch_id, []).append(identity.sha)
        pairs = []
        for identity in local:
            candidates = available.get(identity.patch_id)
            if candidates:
                pairs.append((identity.sha, candidates.pop(0)))
        logger.debug(f"Paired {len(pairs)} of {len(local)} local commits by patch identity")
        return pairs

    def find_commit_matching(self, patch_id: str, rev_range: str,
                             limit: int) -> Optional[str]:
        """First commit within the newest ``limit`` of ``rev_range`` whose diff has ``patch_id``."""
        for identity in self.commit_identities(rev_range, max_count=limit):
            if identity.patch_id == patch_id:
                return identity.sha
        return None
