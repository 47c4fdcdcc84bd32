"""
git-workspace-keeper - Keep a multi-repo workspace in sync
"""

from .__version__ import __version__
from .cli.main import main

__all__ = ["main", "__version__"]
