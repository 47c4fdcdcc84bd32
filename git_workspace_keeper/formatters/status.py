"""Status cell and flag formatting utilities."""

from typing import List

from rich.markup import escape

from git_workspace_keeper.constants import (
    SYMBOL_AHEAD,
    SYMBOL_BEHIND,
    SYMBOL_CLEAN,
    RepoStyleType,
)
from git_workspace_keeper.formatters.links import format_pr_link
from git_workspace_keeper.models.status import (
    BaseRelation,
    LocalChanges,
    RefMode,
    RepoFlags,
    ShareRelation,
)

# Label per flag, work-safety first, then lifecycle, then the rest
_FLAG_LABELS = (
    ("is_dirty", "dirty"),
    ("is_unpushed", "unpushed"),
    ("has_operation", "operation"),
    ("is_detached", "detached"),
    ("is_drifted", "drifted"),
    ("is_merged", "merged"),
    ("is_base_merged", "base merged"),
    ("is_gone", "gone"),
    ("is_diverged", "diverged"),
    ("is_shallow", "shallow"),
    ("needs_rebase", "behind base"),
    ("needs_pull", "behind share"),
    ("base_fell_back", "base fell back"),
)


def flag_labels(flags: RepoFlags) -> List[str]:
    """
    Human labels for the flags that are set.

    Args:
        flags: Flags computed for one repo

    Returns:
        Labels in display order; empty for a clean, equal, on-branch repo
    """
    return [label for attr, label in _FLAG_LABELS if getattr(flags, attr)]


def format_counts(ahead: int, behind: int) -> str:
    """
    Format an ahead/behind pair.

    Returns:
        "equal", or arrows such as "2↑ 5↓"
    """
    if not ahead and not behind:
        return "equal"
    parts = []
    if ahead:
        parts.append(f"{ahead}{SYMBOL_AHEAD}")
    if behind:
        parts.append(f"{behind}{SYMBOL_BEHIND}")
    return " ".join(parts)


def format_local(local: LocalChanges) -> str:
    """
    Format working tree changes.

    Returns:
        ✓ when clean, otherwise markers like "+S2 +M1 +U3 !C1"
        S = Staged files, M = Modified files, U = Untracked files, C = Conflicts
    """
    if not local.is_dirty:
        return SYMBOL_CLEAN
    parts = []
    if local.conflicts:
        parts.append(f"!C{local.conflicts}")
    if local.staged:
        parts.append(f"+S{local.staged}")
    if local.modified:
        parts.append(f"+M{local.modified}")
    if local.untracked:
        parts.append(f"+U{local.untracked}")
    return " ".join(parts)


def format_base(base: BaseRelation) -> str:
    """Base column: ref, counts, and merge state with PR link."""
    if base is None:
        return "[dim]none[/dim]"
    text = f"{escape(base.compare_ref)} {format_counts(base.ahead, base.behind)}"
    if base.configured_ref:
        text += f" [yellow](configured {escape(base.configured_ref)} gone)[/yellow]"
    if base.merged_into_base is not None:
        text += f" [magenta]merged ({base.merged_into_base.value})[/magenta]"
        if base.new_commits_after_merge:
            text += f" +{base.new_commits_after_merge} new"
    if base.detected_pr is not None:
        text += f" {format_pr_link(base.detected_pr)}"
    if base.base_merged_into_default is not None:
        text += " [yellow]base merged[/yellow]"
    return text


def format_share(share: ShareRelation) -> str:
    """Share column: tracking ref and push/pull counts."""
    if share is None:
        return "[dim]no remote[/dim]"
    if share.ref_mode is RefMode.NO_REF:
        return "[dim]not pushed[/dim]"
    if share.ref_mode is RefMode.GONE:
        return "[red]gone[/red]"
    text = f"{escape(share.ref)} {format_counts(share.to_push or 0, share.to_pull or 0)}"
    if share.rebased:
        text += f" ({share.rebased} rebased)"
    return text


def get_repo_style_type(flags: RepoFlags) -> str:
    """
    Determine the style type for a status row.

    Args:
        flags: Flags computed for one repo

    Returns:
        RepoStyleType constant
    """
    if flags.is_dirty or flags.is_unpushed or flags.has_operation \
            or flags.is_detached or flags.is_drifted:
        return RepoStyleType.AT_RISK
    if flags.is_merged:
        return RepoStyleType.MERGED
    if flags.needs_rebase or flags.needs_pull or flags.is_base_merged or flags.is_gone:
        return RepoStyleType.ATTENTION
    return RepoStyleType.OK
