"""GitHub API lookup of merged pull requests"""

import os
from typing import Optional, TYPE_CHECKING, Union

from github import Auth, Github

from git_workspace_keeper.logging_config import get_logger
from git_workspace_keeper.models.status import DetectedPr
from git_workspace_keeper.services.git.remotes import ParsedRemoteUrl

if TYPE_CHECKING:
    from github.Repository import Repository
    from git_workspace_keeper.config import Config

logger = get_logger(__name__)


class PullRequestLookup:
    """Finds the merged PR for a branch when commit subjects carry no number.

    Only used for github.com remotes and only when a token is available.
    Every failure degrades to None.
    """

    def __init__(self, config: Union["Config", dict]):
        self.config = config
        self.github_token = config.get("github_token") or os.environ.get("GITHUB_TOKEN")
        self.github: Optional[Github] = None
        self._repos = {}

    @property
    def enabled(self) -> bool:
        return bool(self.github_token)

    def _get_repo(self, parsed: ParsedRemoteUrl) -> Optional["Repository"]:
        full_name = f"{parsed.owner}/{parsed.repo}"
        if full_name in self._repos:
            return self._repos[full_name]
        if self.github is None:
            self.github = Github(auth=Auth.Token(self.github_token))
        gh_repo = self.github.get_repo(full_name)
        self._repos[full_name] = gh_repo
        logger.debug(f"[GitHub] GitHub integration enabled for: {full_name}")
        return gh_repo

    def find_merged_pr(self, parsed: Optional[ParsedRemoteUrl], branch: str) -> Optional[DetectedPr]:
        """Merged PR whose head is ``branch`` on the share repository."""
        if not self.enabled or parsed is None or parsed.provider != "github":
            return None
        try:
            gh_repo = self._get_repo(parsed)
            org_name = parsed.owner.split("/")[0]
            for pr in gh_repo.get_pulls(state="closed", head=f"{org_name}:{branch}"):
                if pr.merged:
                    logger.debug(f"[GitHub] Branch {branch} merged via PR #{pr.number}")
                    return DetectedPr(number=pr.number, url=pr.html_url)
        except Exception as e:
            logger.debug(f"[GitHub] Error looking up PRs for branch {branch}: {e}")
        return None

    def close(self) -> None:
        """Close the GitHub API connection to clean up resources."""
        if self.github:
            try:
                self.github.close()
                logger.debug("[GitHub] Closed GitHub API connection")
            except Exception as e:
                logger.debug(f"[GitHub] Error closing GitHub API connection: {e}")
