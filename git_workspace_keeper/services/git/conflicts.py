"""Merge conflict prediction without touching the index or working tree."""

from dataclasses import dataclass
from typing import List, Optional, Union

from git_workspace_keeper.context import RunContext
from git_workspace_keeper.logging_config import get_logger
from git_workspace_keeper.services.git.gateway import GitGateway

logger = get_logger(__name__)


@dataclass(frozen=True)
class ConflictPrediction:
    has_conflict: bool
    files: List[str]


def predict_merge_conflict(repo: Union[GitGateway, str], ref: str,
                           context: Optional[RunContext] = None) -> Optional[ConflictPrediction]:
    """Simulate merging ``ref`` into HEAD.

    Only meaningful when HEAD and ``ref`` have both diverged; callers guard
    the call. Returns None when ``ref`` does not resolve or the simulation
    cannot run.
    """
    gateway = repo if isinstance(repo, GitGateway) else GitGateway(repo, context)
    if not gateway.ref_exists(ref):
        logger.debug(f"Cannot predict conflicts in {gateway.name}: {ref} does not resolve")
        return None
    simulation = gateway.simulate_merge("HEAD", ref)
    if simulation is None:
        return None
    return ConflictPrediction(
        has_conflict=not simulation.clean,
        files=list(simulation.conflicted_files),
    )


def predict_stash_pop_conflict(gateway: GitGateway, ref: str) -> Optional[bool]:
    """Whether locally changed files overlap files changed on ``ref`` since the merge-base.

    Overlap does not guarantee a conflict when the stash is re-applied, it
    only makes one likely.
    """
    dirty = set(gateway.lines("diff", "--name-only", "HEAD"))
    if not dirty:
        return False
    if not gateway.ref_exists(ref):
        return None
    incoming = set(gateway.changed_files(f"HEAD...{ref}"))
    overlap = dirty & incoming
    if overlap:
        logger.debug(f"Stash overlap in {gateway.name}: {', '.join(sorted(overlap))}")
    return bool(overlap)
