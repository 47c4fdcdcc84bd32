"""Pull request number extraction from merge and squash commit subjects."""

import re
from typing import Optional

_PR_PATTERNS = (
    re.compile(r"^Merge pull request #(\d+)\b"),  # GitHub merge commit
    re.compile(r"^Merged PR (\d+):"),              # Azure DevOps
    re.compile(r"\(#(\d+)\)\s*$"),                 # squash merge title suffix
)


def extract_pr_number(subject: Optional[str]) -> Optional[int]:
    """PR number referenced by a commit subject, or None."""
    if not subject:
        return None
    first_line = subject.splitlines()[0]
    for pattern in _PR_PATTERNS:
        match = pattern.search(first_line)
        if match:
            return int(match.group(1))
    return None
