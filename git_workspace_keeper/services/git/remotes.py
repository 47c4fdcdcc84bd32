"""Remote role resolution and remote URL parsing."""

import re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlparse

from git_workspace_keeper.exceptions import AmbiguousRemotesError
from git_workspace_keeper.logging_config import get_logger
from git_workspace_keeper.models.status import RemoteSet
from git_workspace_keeper.services.git.gateway import GitGateway

logger = get_logger(__name__)


def get_remote_names(gateway: GitGateway) -> List[str]:
    """List all remote names for a repo."""
    return gateway.remote_names()


def resolve_remotes(gateway: GitGateway, names: Optional[List[str]] = None) -> Optional[RemoteSet]:
    """Resolve base (upstream) and share (publish) remotes for a repo.

    Resolution order:
    1. No remotes: None (local-only repo)
    2. Single remote: both roles
    3. ``remote.pushDefault``: share; base is the other remote, else ``upstream``
    4. ``upstream`` + ``origin``: base=upstream, share=origin

    Raises:
        AmbiguousRemotesError: when none of the rules applies
    """
    remotes = names if names is not None else get_remote_names(gateway)
    repo = gateway.name

    if not remotes:
        return None

    if len(remotes) == 1:
        return RemoteSet(base=remotes[0], share=remotes[0])

    push_default = gateway.config_get("remote.pushDefault")
    if push_default and push_default in remotes:
        others = [r for r in remotes if r != push_default]
        if len(others) == 1:
            base = others[0]
        elif "upstream" in others:
            base = "upstream"
        else:
            raise AmbiguousRemotesError(
                repo, remotes,
                "Add a remote named 'upstream' or reduce to two remotes.",
                subject="base remote",
            )
        return RemoteSet(base=base, share=push_default)

    if "upstream" in remotes and "origin" in remotes and len(remotes) == 2:
        return RemoteSet(base="upstream", share="origin")

    if "origin" in remotes and len(remotes) == 2:
        suggestion = next(r for r in remotes if r != "origin")
    elif "upstream" in remotes and "origin" in remotes:
        suggestion = "origin"
    else:
        suggestion = "<remote-name>"
    raise AmbiguousRemotesError(
        repo, remotes,
        f"Set the share remote: git -C {gateway.repo_dir} config remote.pushDefault {suggestion}",
    )


# -- remote URLs -------------------------------------------------------------

_PROVIDERS = {
    "github.com": "github",
    "gitlab.com": "gitlab",
    "bitbucket.org": "bitbucket",
    "dev.azure.com": "azure-devops",
    "ssh.dev.azure.com": "azure-devops",
}

_AZURE_SSH = re.compile(r"^git@ssh\.dev\.azure\.com:v3/([^/]+)/([^/]+)/(.+?)(?:\.git)?$")
_AZURE_HTTPS = re.compile(r"^https?://[^@/]*@?dev\.azure\.com/([^/]+)/([^/]+)/_git/(.+?)(?:\.git)?$")
_SCP_LIKE = re.compile(r"^[\w.-]+@([^:/]+):(.+?)(?:\.git)?/?$")


@dataclass(frozen=True)
class ParsedRemoteUrl:
    provider: str  # github, gitlab, bitbucket, azure-devops, unknown
    host: str
    owner: str
    repo: str
    project: Optional[str] = None  # Azure DevOps only


def parse_remote_url(url: Optional[str]) -> Optional[ParsedRemoteUrl]:
    """Parse SSH, HTTPS, ssh:// and Azure DevOps remote URLs."""
    if not url:
        return None

    match = _AZURE_SSH.match(url) or _AZURE_HTTPS.match(url)
    if match:
        org, project, repo = match.groups()
        return ParsedRemoteUrl("azure-devops", "dev.azure.com", org, repo, project)

    match = _SCP_LIKE.match(url)
    if match:
        host, path = match.groups()
    else:
        parsed = urlparse(url)
        if not parsed.hostname or parsed.scheme not in ("http", "https", "ssh", "git"):
            return None
        host = parsed.hostname
        path = parsed.path.strip("/")
        if path.endswith(".git"):
            path = path[:-4]

    parts = [p for p in path.split("/") if p]
    if len(parts) < 2:
        return None
    return ParsedRemoteUrl(_PROVIDERS.get(host, "unknown"), host, "/".join(parts[:-1]), parts[-1])


def build_pr_url(parsed: Optional[ParsedRemoteUrl], number: int) -> Optional[str]:
    """PR/MR URL for a known provider, None for unknown hosts."""
    if parsed is None:
        return None
    base = f"https://{parsed.host}/{parsed.owner}/{parsed.repo}"
    if parsed.provider == "github":
        return f"{base}/pull/{number}"
    if parsed.provider == "gitlab":
        return f"{base}/-/merge_requests/{number}"
    if parsed.provider == "bitbucket":
        return f"{base}/pull-requests/{number}"
    if parsed.provider == "azure-devops" and parsed.project:
        return f"https://{parsed.host}/{parsed.owner}/{parsed.project}/_git/{parsed.repo}/pullrequest/{number}"
    return None
