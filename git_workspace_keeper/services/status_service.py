"""Status reconciliation: one RepoStatus per repository."""

import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Union, TYPE_CHECKING

from git_workspace_keeper.context import RunContext
from git_workspace_keeper.exceptions import AmbiguousRemotesError
from git_workspace_keeper.logging_config import get_logger
from git_workspace_keeper.models.status import (
    BaseRelation,
    CommitInfo,
    DetectedPr,
    FileChange,
    HeadMode,
    LocalChanges,
    RefMode,
    RemoteSet,
    RepoFlags,
    RepoIdentity,
    RepoStatus,
    ShareRelation,
    VerboseDetail,
    WorktreeKind,
)
from git_workspace_keeper.services.git import (
    GitGateway,
    MergeDetector,
    PullRequestLookup,
    build_pr_url,
    extract_pr_number,
    parse_porcelain_status,
    parse_remote_url,
    resolve_remotes,
)
from git_workspace_keeper.utils.threading import get_optimal_worker_count

if TYPE_CHECKING:
    from git_workspace_keeper.config import Config

logger = get_logger(__name__)

# Marker for "remotes not resolved by the caller"
_RESOLVE = object()

# Commits listed per section in verbose status
VERBOSE_COMMIT_LIMIT = 50

_STAGED_KINDS = {"A": "new file", "M": "modified", "D": "deleted", "R": "renamed", "C": "copied", "T": "modified"}
_UNSTAGED_KINDS = {"M": "modified", "D": "deleted", "T": "modified"}


class StatusService:
    """Builds RepoStatus records from git plumbing."""

    def __init__(self, config: Union["Config", dict], context: Optional[RunContext] = None,
                 pr_lookup: Optional[PullRequestLookup] = None):
        """Initialize the service.

        Args:
            config: Configuration dictionary or Config object
            context: Run context shared by every gateway created here
            pr_lookup: Optional GitHub lookup for PR numbers missing from subjects
        """
        self.config = config
        self.context = context or RunContext()
        self.pr_lookup = pr_lookup

    def _gateway(self, repo_dir: str) -> GitGateway:
        return GitGateway(repo_dir, self.context)

    # -- entry point -----------------------------------------------------------

    def gather_repo_status(self, repo_dir: str, repos_root: Optional[str] = None,
                           configured_base: Optional[str] = None,
                           remotes=_RESOLVE) -> RepoStatus:
        """Reconcile one repository into a RepoStatus.

        Every step degrades on its own: a failing git call leaves its field
        None or zero and the remaining steps still run.

        Args:
            repo_dir: Checkout to inspect
            repos_root: Directory holding canonical clones, for default-branch fallback
            configured_base: Base branch from the workspace config, if any
            remotes: Pre-resolved RemoteSet (None for a repo without remotes);
                resolved here when omitted
        """
        gateway = self._gateway(repo_dir)
        name = gateway.name
        if remotes is _RESOLVE:
            remotes = self.resolve_remotes_lenient(gateway)

        identity = self._gather_identity(gateway)
        local = LocalChanges(*parse_porcelain_status(gateway.status_porcelain()))
        operation = gateway.detect_operation()

        base = None
        if not identity.head_mode.is_detached:
            base = self._gather_base(gateway, identity.head_mode.branch, repos_root,
                                     configured_base, remotes)

        share = self._gather_share(gateway, identity.head_mode.branch, remotes)

        status = RepoStatus(
            name=name,
            identity=identity,
            local=local,
            base=base,
            share=share,
            operation=operation,
            last_commit=gateway.last_commit_date(),
            head_sha=gateway.head_sha(),
        )
        logger.debug(f"Status for {name}: base={base} share={share}")
        return status

    def gather_all(self, repo_dirs: List[str], repos_root: Optional[str] = None,
                   configured_base: Optional[str] = None,
                   remotes_map: Optional[Dict[str, Optional[RemoteSet]]] = None,
                   on_progress: Optional[Callable[[int, int], None]] = None) -> List[RepoStatus]:
        """Gather status for many repos, in input order.

        Repos are independent, so results are identical whether gathered
        sequentially or concurrently.
        """
        remotes_map = remotes_map or {}
        total = len(repo_dirs)

        def gather(repo_dir: str) -> RepoStatus:
            name = os.path.basename(os.path.normpath(repo_dir))
            remotes = remotes_map.get(name, _RESOLVE)
            return self.gather_repo_status(repo_dir, repos_root, configured_base, remotes)

        if self.config.get("sequential", False) or self.config.get("debug", False) or total <= 1:
            results = []
            for index, repo_dir in enumerate(repo_dirs, start=1):
                results.append(gather(repo_dir))
                if on_progress:
                    on_progress(index, total)
            return results

        max_workers = min(total, get_optimal_worker_count(self.config.get("workers")))
        logger.debug(f"Gathering status for {total} repos with {max_workers} workers")
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(gather, repo_dir) for repo_dir in repo_dirs]
            results = []
            for index, future in enumerate(futures, start=1):
                results.append(future.result())
                if on_progress:
                    on_progress(index, total)
        return results

    def resolve_remotes_lenient(self, gateway: GitGateway) -> Optional[RemoteSet]:
        """Resolve remote roles, falling back to origin when ambiguous."""
        names = gateway.remote_names()
        try:
            return resolve_remotes(gateway, names)
        except AmbiguousRemotesError as e:
            fallback = "origin" if "origin" in names else names[0]
            logger.warning(f"{e} Using '{fallback}' for now.")
            return RemoteSet(base=fallback, share=fallback)

    # -- identity --------------------------------------------------------------

    def _gather_identity(self, gateway: GitGateway) -> RepoIdentity:
        branch = gateway.current_branch()
        head_mode = HeadMode.attached(branch) if branch else HeadMode.detached()
        kind = WorktreeKind.LINKED if gateway.is_linked_worktree() else WorktreeKind.FULL
        return RepoIdentity(worktree_kind=kind, head_mode=head_mode, shallow=gateway.is_shallow())

    # -- base ------------------------------------------------------------------

    def detect_default_branch(self, gateway: GitGateway, remote: Optional[str],
                              repos_root: Optional[str] = None) -> Optional[str]:
        """Default branch: remote HEAD, else the canonical clone's HEAD, else main/master."""
        if remote:
            head = gateway.symbolic_ref(f"refs/remotes/{remote}/HEAD")
            if head and head.startswith(f"{remote}/"):
                return head[len(remote) + 1:]
        if repos_root:
            canonical = os.path.join(repos_root, gateway.name)
            if os.path.isdir(canonical) and os.path.realpath(canonical) != os.path.realpath(gateway.repo_dir):
                head = self._gateway(canonical).current_branch()
                if head:
                    return head
        for candidate in ("main", "master"):
            if remote and gateway.remote_branch_exists(remote, candidate):
                return candidate
            if not remote and gateway.local_branch_exists(candidate):
                return candidate
        return None

    def _gather_base(self, gateway: GitGateway, branch: str, repos_root: Optional[str],
                     configured_base: Optional[str],
                     remotes: Optional[RemoteSet]) -> Optional[BaseRelation]:
        remote = remotes.base if remotes else None

        def qualified(name: str) -> str:
            return f"{remote}/{name}" if remote else name

        def exists(name: str) -> bool:
            if remote:
                return gateway.remote_branch_exists(remote, name)
            return gateway.local_branch_exists(name)

        detector = MergeDetector(gateway, self.config)
        default = self.detect_default_branch(gateway, remote, repos_root)
        ref = None
        configured_ref = None
        base_merged = None

        if configured_base and exists(configured_base):
            ref = configured_base
            if default and default != configured_base:
                detection = self._detect_merged(gateway, detector, configured_base,
                                                qualified(configured_base), qualified(default))
                base_merged = detection.kind if detection else None
        elif configured_base:
            # Configured base vanished upstream: fall back, remembering what was asked for
            if not default:
                return None
            ref = default
            configured_ref = configured_base
            if remote and gateway.local_branch_exists(configured_base):
                detection = self._detect_merged(gateway, detector, configured_base,
                                                f"refs/heads/{configured_base}", qualified(default))
                base_merged = detection.kind if detection else None
        else:
            ref = default

        if not ref:
            return None

        compare_ref = qualified(ref)
        counts = gateway.ahead_behind(compare_ref)
        ahead = counts.ahead if counts else 0
        behind = counts.behind if counts else 0

        detection = None
        if behind > 0:
            detection = self._detect_merged(gateway, detector, branch, "HEAD", compare_ref)

        detected_pr = None
        if detection:
            detected_pr = self._detect_pr(gateway, detection.commit, branch, remotes)

        return BaseRelation(
            remote=remote,
            ref=ref,
            configured_ref=configured_ref,
            ahead=ahead,
            behind=behind,
            merged_into_base=detection.kind if detection else None,
            merge_commit_hash=detection.commit if detection else None,
            new_commits_after_merge=detection.new_commits_after_merge if detection else None,
            base_merged_into_default=base_merged,
            detected_pr=detected_pr,
        )

    def _detect_merged(self, gateway: GitGateway, detector: MergeDetector, branch: str,
                       tip_ref: str, target_ref: str):
        """Merge detection that ignores a tip sitting on the target's own first-parent history.

        Such a tip has no commits of its own (freshly created branch), so
        there is nothing that could have been merged.
        """
        if gateway.is_ancestor(tip_ref, target_ref) and gateway.is_on_first_parent_chain(tip_ref, target_ref):
            return None
        return detector.detect_branch_merged(branch, target_ref, explicit_ref=tip_ref)

    def _detect_pr(self, gateway: GitGateway, commit: Optional[str], branch: str,
                   remotes: Optional[RemoteSet]) -> Optional[DetectedPr]:
        parsed = None
        if remotes:
            parsed = parse_remote_url(gateway.remote_url(remotes.share))
        number = extract_pr_number(gateway.subject(commit)) if commit else None
        if number is not None:
            return DetectedPr(number=number, url=build_pr_url(parsed, number))
        if self.pr_lookup is not None:
            return self.pr_lookup.find_merged_pr(parsed, branch)
        return None

    # -- share -----------------------------------------------------------------

    def _gather_share(self, gateway: GitGateway, branch: Optional[str],
                      remotes: Optional[RemoteSet]) -> Optional[ShareRelation]:
        if remotes is None:
            return None
        remote = remotes.share
        if branch is None:
            return ShareRelation(remote=remote, ref=None, ref_mode=RefMode.NO_REF)

        upstream = gateway.upstream_ref()
        if upstream:
            ref, mode = upstream, RefMode.CONFIGURED
        elif gateway.remote_branch_exists(remote, branch):
            ref, mode = f"{remote}/{branch}", RefMode.IMPLICIT
        elif gateway.config_get(f"branch.{branch}.remote"):
            return ShareRelation(remote=remote, ref=None, ref_mode=RefMode.GONE)
        else:
            return ShareRelation(remote=remote, ref=None, ref_mode=RefMode.NO_REF)

        counts = gateway.ahead_behind(ref)
        if counts is None:
            return ShareRelation(remote=remote, ref=ref, ref_mode=mode)

        rebased = 0
        if counts.ahead > 0 and counts.behind > 0:
            rebased = MergeDetector(gateway, self.config).detect_rebased_commits("HEAD", ref).count
        return ShareRelation(
            remote=remote,
            ref=ref,
            ref_mode=mode,
            to_push=counts.ahead,
            to_pull=counts.behind,
            rebased=rebased,
        )

    # -- verbose ---------------------------------------------------------------

    def gather_verbose(self, repo_dir: str, status: RepoStatus) -> VerboseDetail:
        """Commit and file listings for ``status --verbose``."""
        gateway = self._gateway(repo_dir)
        detector = MergeDetector(gateway, self.config)
        detail = VerboseDetail()
        base = status.base

        if base and not base.configured_ref:
            compare_ref = base.compare_ref
            if base.ahead > 0:
                detail.ahead_of_base = gateway.commits(f"{compare_ref}..HEAD", VERBOSE_COMMIT_LIMIT)
            if base.behind > 0:
                detail.behind_base = gateway.commits(f"HEAD..{compare_ref}", VERBOSE_COMMIT_LIMIT)
                if base.ahead > 0:
                    self._annotate_incoming(detector, compare_ref, detail.behind_base)

        share = status.share
        if share and share.ref and share.to_push:
            detail.unpushed = gateway.commits(f"{share.ref}..HEAD", VERBOSE_COMMIT_LIMIT)
            if share.to_pull:
                rebased = detector.detect_rebased_commits("HEAD", share.ref).local_shas
                for commit in detail.unpushed:
                    if commit.sha in rebased:
                        commit.annotation = "rebased"

        for line in (gateway.status_porcelain() or "").splitlines():
            if len(line) < 4:
                continue
            x, y, path = line[0], line[1], line[3:]
            if " -> " in path:
                path = path.split(" -> ", 1)[1]
            if x == "?":
                detail.untracked.append(path)
                continue
            if x in _STAGED_KINDS:
                detail.staged.append(FileChange(path, _STAGED_KINDS[x]))
            if y in _UNSTAGED_KINDS:
                detail.unstaged.append(FileChange(path, _UNSTAGED_KINDS[y]))
        return detail

    @staticmethod
    def _annotate_incoming(detector: MergeDetector, compare_ref: str,
                           incoming: List[CommitInfo]) -> None:
        match = detector.match_diverged_commits("HEAD", compare_ref)
        if match is None:
            return
        squash = match.squash_match
        for commit in incoming:
            if squash and commit.sha in squash.incoming:
                commit.annotation = f"squash of {squash.local_count} local commit(s)"
            elif commit.sha in match.rebase_matches:
                commit.annotation = f"rebase of {match.rebase_matches[commit.sha][:7]}"


# -- flags -------------------------------------------------------------------

def compute_flags(status: RepoStatus, expected_branch: str) -> RepoFlags:
    """Boolean view of a status relative to the workspace branch."""
    base = status.base
    share = status.share
    branch = status.identity.head_mode.branch
    is_gone = share is not None and share.ref_mode is RefMode.GONE
    unpushed = False
    if share is not None and not is_gone:
        if share.ref_mode is RefMode.NO_REF:
            unpushed = branch is not None and base is not None and base.ahead > 0
        else:
            unpushed = (share.to_push or 0) > 0
    return RepoFlags(
        is_dirty=status.local.is_dirty,
        is_unpushed=unpushed,
        needs_pull=share is not None and (share.to_pull or 0) > 0,
        needs_rebase=base is not None and base.behind > 0,
        is_diverged=base is not None and base.ahead > 0 and base.behind > 0,
        is_drifted=branch is not None and branch != expected_branch,
        is_detached=branch is None,
        has_operation=status.operation is not None,
        is_gone=is_gone,
        is_shallow=status.identity.shallow,
        is_merged=base is not None and base.merged_into_base is not None,
        is_base_merged=base is not None and base.base_merged_into_default is not None,
        base_fell_back=base is not None and base.configured_ref is not None,
    )


def is_at_risk(flags: RepoFlags) -> bool:
    """Repo needs attention before anyone deletes or rewrites it."""
    return any((flags.is_dirty, flags.is_unpushed, flags.has_operation,
                flags.is_detached, flags.is_drifted))


def would_lose_work(flags: RepoFlags) -> bool:
    """Removing the checkout now would discard changes."""
    return flags.is_dirty or flags.is_unpushed or flags.has_operation
