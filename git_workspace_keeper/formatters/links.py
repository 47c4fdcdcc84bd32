"""Pull request link formatting utilities."""

from typing import Optional

from git_workspace_keeper.models.status import DetectedPr


def format_pr_link(pr: Optional[DetectedPr]) -> str:
    """
    Format a detected pull request for CLI output.

    Args:
        pr: Detected pull request, if any

    Returns:
        "#42", wrapped in Rich link markup when the PR URL is known
    """
    if pr is None:
        return ""
    label = f"#{pr.number}"
    if not pr.url:
        return label
    return f"[link={pr.url}]{label}[/link]"
