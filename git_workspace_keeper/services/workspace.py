"""Workspace discovery and the workspace key-value config file."""

import os
from pathlib import Path
from typing import Dict, List, Optional, Union

from git_workspace_keeper.constants import WORKSPACE_CONFIG_NAME, WORKSPACE_DIR_NAME
from git_workspace_keeper.exceptions import GitOperationError, WorkspaceNotFoundError
from git_workspace_keeper.logging_config import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


def config_get(config_file: PathLike, key: str) -> Optional[str]:
    """Value of ``key`` in a ``key = value`` config file, None when absent."""
    path = Path(config_file)
    if not path.is_file():
        return None
    prefix = f"{key} = "
    for line in path.read_text(encoding="utf-8").splitlines():
        if line.startswith(prefix):
            return line[len(prefix):].strip()
    return None


def write_config(config_file: PathLike, branch: str, base: Optional[str] = None) -> None:
    """Rewrite the workspace config with ``branch`` and optional ``base``."""
    path = Path(config_file)
    content = f"branch = {branch}\n"
    if base:
        content += f"base = {base}\n"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise GitOperationError("write_config", message=f"{path}: {e}") from e
    logger.debug(f"Wrote workspace config {path}: branch={branch} base={base}")


class Workspace:
    """A directory of sibling checkouts sharing one feature branch."""

    def __init__(self, root: PathLike):
        self.root = Path(root).resolve()

    @classmethod
    def discover(cls, start: Optional[PathLike] = None) -> "Workspace":
        """Walk up from ``start`` to the first directory holding the workspace config.

        Raises:
            WorkspaceNotFoundError: when no such directory exists
        """
        current = Path(start or os.getcwd()).resolve()
        for candidate in (current, *current.parents):
            if (candidate / WORKSPACE_DIR_NAME / WORKSPACE_CONFIG_NAME).is_file():
                return cls(candidate)
        raise WorkspaceNotFoundError(str(current))

    @property
    def name(self) -> str:
        return self.root.name

    @property
    def config_path(self) -> Path:
        return self.root / WORKSPACE_DIR_NAME / WORKSPACE_CONFIG_NAME

    @property
    def branch(self) -> str:
        """Workspace branch, defaulting to the lower-cased directory name."""
        return config_get(self.config_path, "branch") or self.name.lower()

    @property
    def base(self) -> Optional[str]:
        return config_get(self.config_path, "base")

    def set_base(self, base: Optional[str]) -> None:
        write_config(self.config_path, self.branch, base)

    def repo_dirs(self) -> List[str]:
        """Immediate sub-directories that are git checkouts, sorted by name."""
        dirs = []
        for entry in sorted(self.root.iterdir(), key=lambda p: p.name):
            if entry.name.startswith("."):
                continue
            if entry.is_dir() and (entry / ".git").exists():
                dirs.append(str(entry))
        return dirs

    def repo_map(self) -> Dict[str, str]:
        """Repo name -> checkout directory."""
        return {os.path.basename(d): d for d in self.repo_dirs()}

    def __repr__(self) -> str:
        return f"Workspace({str(self.root)!r})"
