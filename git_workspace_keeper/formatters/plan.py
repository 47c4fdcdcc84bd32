"""Plan text shown before a bulk operation asks for confirmation."""

from typing import List, Sequence

from rich.markup import escape

from git_workspace_keeper.constants import OUTCOME_STYLES
from git_workspace_keeper.models.assessment import (
    IntegrateAssessment,
    IntegrateMode,
    Outcome,
    PullAssessment,
    PushAssessment,
)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def _row(name: str, width: int, outcome: Outcome, text: str) -> str:
    style = OUTCOME_STYLES.get(outcome.value)
    body = f"[{style}]{text}[/{style}]" if style else text
    return f"  {escape(name).ljust(width)}  {body}"


def _skip_text(assessment) -> str:
    return f"skipped: {escape(assessment.skip_reason.message)}"


def describe_integrate(assessment: IntegrateAssessment, mode: IntegrateMode, branch: str) -> str:
    """
    One plan line for a repo, without the repo name.

    Examples:
        "rebase feature onto origin/main  5 behind, 2 ahead (conflict likely)"
        "merge origin/main into feature  3 behind (fast-forward)"
        "rebase onto origin/main from feat/old (retarget)"
    """
    if assessment.outcome is Outcome.SKIP:
        return _skip_text(assessment)
    if assessment.outcome is Outcome.UP_TO_DATE:
        text = "up to date"
        if assessment.is_retarget:
            text += f" (retarget to {escape(assessment.retarget_to)})"
        return text

    base_ref = escape(assessment.base_ref)
    if assessment.is_retarget:
        text = f"rebase onto {base_ref} from {escape(assessment.retarget_from)} (retarget)"
    elif mode is IntegrateMode.REBASE:
        text = f"rebase {escape(branch)} onto {base_ref}"
    else:
        text = f"merge {base_ref} into {escape(branch)}"

    counts = f"{assessment.behind} behind"
    if assessment.ahead:
        counts += f", {assessment.ahead} ahead"
    text += f"  {counts}"

    hints: List[str] = []
    if mode is IntegrateMode.MERGE and not assessment.is_retarget:
        hints.append("fast-forward" if assessment.ahead == 0 else "three-way")
    if assessment.conflict_prediction is not None:
        rebasing = mode is IntegrateMode.REBASE or assessment.is_retarget
        if assessment.conflict_prediction == "conflict":
            hints.append("conflict likely" if rebasing else "will conflict")
        else:
            hints.append("conflict unlikely" if rebasing else "no conflict")
    if assessment.needs_stash:
        hints.append("autostash")
        if assessment.stash_pop_conflict:
            hints.append("stash pop may conflict")
    if hints:
        text += " " + " ".join(f"({hint})" for hint in hints)
    if assessment.retarget_warning:
        text += f" [yellow]{escape(assessment.retarget_warning)}[/yellow]"
    if assessment.shallow:
        text += " [yellow]shallow clone, counts may be incomplete[/yellow]"
    return text


def format_integrate_plan(assessments: Sequence[IntegrateAssessment], mode: IntegrateMode,
                          branch: str) -> str:
    """Full plan for ``rebase`` / ``merge``, one line per repo."""
    width = max((len(a.repo) for a in assessments), default=0)
    lines = [f"[bold]{mode.verb} plan for {escape(branch)}[/bold]"]
    for assessment in assessments:
        lines.append(_row(assessment.repo, width, assessment.outcome,
                          describe_integrate(assessment, mode, branch)))
    return "\n".join(lines)


def describe_push(assessment: PushAssessment) -> str:
    if assessment.outcome is Outcome.SKIP:
        return _skip_text(assessment)
    if assessment.outcome is Outcome.UP_TO_DATE:
        return "up to date"
    target = escape(f"{assessment.remote}/{assessment.branch}")
    commits = _plural(assessment.ahead, "commit")
    if assessment.recreate:
        return f"push {commits} to {target} (recreate)"
    if assessment.new_branch:
        return f"push {commits} to {target} (new branch)"
    if assessment.outcome is Outcome.WILL_FORCE_PUSH:
        return f"force push {commits} to {target} ({assessment.behind} behind)"
    return f"push {commits} to {target}"


def format_push_plan(assessments: Sequence[PushAssessment], branch: str) -> str:
    width = max((len(a.repo) for a in assessments), default=0)
    lines = [f"[bold]Push plan for {escape(branch)}[/bold]"]
    for assessment in assessments:
        lines.append(_row(assessment.repo, width, assessment.outcome, describe_push(assessment)))
    return "\n".join(lines)


def describe_pull(assessment: PullAssessment) -> str:
    if assessment.outcome is Outcome.SKIP:
        return _skip_text(assessment)
    if assessment.outcome is Outcome.UP_TO_DATE:
        return "up to date"
    source = escape(f"{assessment.remote}/{assessment.branch}")
    text = f"pull {_plural(assessment.behind, 'commit')} from {source} ({assessment.pull_mode})"
    if assessment.needs_stash:
        text += " (autostash)"
    return text


def format_pull_plan(assessments: Sequence[PullAssessment], branch: str) -> str:
    width = max((len(a.repo) for a in assessments), default=0)
    lines = [f"[bold]Pull plan for {escape(branch)}[/bold]"]
    for assessment in assessments:
        lines.append(_row(assessment.repo, width, assessment.outcome, describe_pull(assessment)))
    return "\n".join(lines)
