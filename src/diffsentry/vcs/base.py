"""Version-control collaborator protocol."""

from typing import Protocol, runtime_checkable

from ..review.models import ChangedFile, CommitInfo, PullRequestInfo


@runtime_checkable
class VersionControlProvider(Protocol):
    """Read access to pull requests, commits and file contents."""

    async def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequestInfo: ...

    async def get_commit(self, owner: str, repo: str, sha: str) -> CommitInfo: ...

    async def get_changed_files(self, owner: str, repo: str, number: int) -> list[ChangedFile]: ...

    async def get_commit_changed_files(
        self, owner: str, repo: str, sha: str
    ) -> list[ChangedFile]: ...

    async def get_diff(self, owner: str, repo: str, number: int) -> str: ...

    async def get_commit_diff(self, owner: str, repo: str, sha: str) -> str: ...

    async def get_file_content(self, owner: str, repo: str, path: str, ref: str) -> str | None:
        """File content at ``ref``, or None when the file does not exist there."""
        ...
