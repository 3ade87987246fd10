"""Version-control providers."""

from .base import VersionControlProvider
from .local_git import LOCAL_PULL_NUMBER, LocalGitProvider

__all__ = ["LOCAL_PULL_NUMBER", "LocalGitProvider", "VersionControlProvider"]
