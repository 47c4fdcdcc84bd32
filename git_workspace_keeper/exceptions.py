"""Custom exceptions for git-workspace-keeper"""

from typing import Optional


class WorkspaceKeeperError(Exception):
    """Base exception for all git-workspace-keeper errors."""
    pass


class GitOperationError(WorkspaceKeeperError):
    """Exception raised for a git action that cannot be degraded."""

    def __init__(self, operation: str, repo: Optional[str] = None, message: Optional[str] = None):
        self.operation = operation
        self.repo = repo
        self.message = message

        error_msg = f"Git operation '{operation}' failed"
        if repo:
            error_msg += f" for repo '{repo}'"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class AmbiguousRemotesError(WorkspaceKeeperError):
    """Exception raised when base/share remote roles cannot be determined."""

    def __init__(self, repo: str, remotes: list, guidance: str, subject: str = "remote roles"):
        self.repo = repo
        self.remotes = list(remotes)
        self.guidance = guidance
        super().__init__(
            f"Cannot determine {subject} for {repo} (remotes: {', '.join(self.remotes)}).\n{guidance}"
        )


class WorkspaceNotFoundError(WorkspaceKeeperError):
    """Exception raised when no workspace can be located."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Not inside a workspace: {path}")


class NotATerminalError(WorkspaceKeeperError):
    """Exception raised when confirmation is needed but stdin is not a TTY."""

    def __init__(self):
        super().__init__("Not a terminal. Use --yes to skip confirmation.")


class UserAbort(WorkspaceKeeperError):
    """Exception raised when the user declines a confirmation prompt."""

    def __init__(self, message: str = "Aborted."):
        super().__init__(message)
