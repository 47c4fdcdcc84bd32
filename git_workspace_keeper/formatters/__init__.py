"""Formatting utilities for git-workspace-keeper.

This package provides the text shown to users, organized into logical modules:
- date: Date and time formatting
- links: Pull request link formatting
- status: Status cells and flag labels
- plan: Plan lines for rebase, merge, push and pull
- conflicts: Conflict and failure reports after execution
"""

# Date formatters
from .date import format_date, format_age

# Link formatters
from .links import format_pr_link

# Status formatters
from .status import (
    flag_labels,
    format_base,
    format_counts,
    format_local,
    format_share,
    get_repo_style_type,
)

# Plan formatters
from .plan import (
    describe_integrate,
    describe_pull,
    describe_push,
    format_integrate_plan,
    format_pull_plan,
    format_push_plan,
)

# Reports
from .conflicts import print_conflict_report, print_failures

__all__ = [
    # Date
    "format_date",
    "format_age",
    # Links
    "format_pr_link",
    # Status
    "flag_labels",
    "format_base",
    "format_counts",
    "format_local",
    "format_share",
    "get_repo_style_type",
    # Plan
    "describe_integrate",
    "describe_pull",
    "describe_push",
    "format_integrate_plan",
    "format_pull_plan",
    "format_push_plan",
    # Reports
    "print_conflict_report",
    "print_failures",
]
