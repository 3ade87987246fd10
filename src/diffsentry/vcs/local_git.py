"""
Local Git Provider

Serves a local checkout as a version-control provider. The checkout's
implicit pull request is HEAD compared with a base branch.
"""

import asyncio
from pathlib import Path

import structlog

from ..review.models import ChangedFile, CommitInfo, PullRequestInfo

logger = structlog.get_logger(__name__)

LOCAL_PULL_NUMBER = 0

STATUS_NAMES = {
    "A": "added",
    "M": "modified",
    "D": "deleted",
    "T": "modified",
}


def strip_diff_header(diff: str) -> str | None:
    """Reduce a single-file ``git diff`` to its hunks, or None when it has none."""
    lines = diff.splitlines()
    for i, line in enumerate(lines):
        if line.startswith("@@"):
            return "\n".join(lines[i:])
    return None


class LocalGitProvider:
    """Version-control provider backed by ``git`` on a local checkout.

    ``owner`` and ``repo`` arguments are accepted for protocol compatibility
    and ignored.
    """

    def __init__(self, repo_path: str | Path | None = None, base_branch: str = "main"):
        self.repo_path = Path(repo_path) if repo_path else Path.cwd()
        self.base_branch = base_branch

    @property
    def _range(self) -> str:
        # Changes since the merge base, as a pull request would show them
        return f"{self.base_branch}...HEAD"

    # =========================================================================
    # Metadata
    # =========================================================================

    async def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequestInfo:
        head_sha = (await self._run_git(["rev-parse", "HEAD"])).strip()
        head_branch = (await self._run_git(["rev-parse", "--abbrev-ref", "HEAD"])).strip()
        author = (await self._run_git(["log", "-1", "--format=%an"])).strip()
        subjects = await self._run_git(["log", "--format=%s", f"{self.base_branch}..HEAD"])

        subject_lines = [s for s in subjects.splitlines() if s.strip()]
        title = subject_lines[0] if subject_lines else f"{head_branch} into {self.base_branch}"
        description = "\n".join(f"- {s}" for s in subject_lines) or None

        return PullRequestInfo(
            number=number,
            title=title,
            description=description,
            author=author,
            head_commit_sha=head_sha,
            base_branch=self.base_branch,
            head_branch=head_branch,
        )

    async def get_commit(self, owner: str, repo: str, sha: str) -> CommitInfo:
        output = await self._run_git(["show", "-s", "--format=%H%x00%an%x00%B", sha])
        full_sha, author, message = output.split("\x00", 2)
        return CommitInfo(sha=full_sha.strip(), message=message.strip(), author=author)

    # =========================================================================
    # Changed files and diffs
    # =========================================================================

    async def get_changed_files(self, owner: str, repo: str, number: int) -> list[ChangedFile]:
        base = ["diff", "--no-renames", self._range]
        return await self._changed_files(base)

    async def get_commit_changed_files(
        self, owner: str, repo: str, sha: str
    ) -> list[ChangedFile]:
        base = ["show", "--format=", "--no-renames", sha]
        return await self._changed_files(base)

    async def get_diff(self, owner: str, repo: str, number: int) -> str:
        return await self._run_git(["diff", "--no-renames", self._range])

    async def get_commit_diff(self, owner: str, repo: str, sha: str) -> str:
        return await self._run_git(["show", "--format=", "--no-renames", sha])

    async def get_file_content(self, owner: str, repo: str, path: str, ref: str) -> str | None:
        try:
            return await self._run_git(["show", f"{ref}:{path}"])
        except RuntimeError as e:
            logger.debug("File not found at ref", path=path, ref=ref, error=str(e))
            return None

    async def _changed_files(self, base_cmd: list[str]) -> list[ChangedFile]:
        numstat = await self._run_git(base_cmd + ["--numstat"])
        name_status = await self._run_git(base_cmd + ["--name-status"])

        statuses: dict[str, str] = {}
        for line in name_status.splitlines():
            parts = line.split("\t")
            if len(parts) >= 2 and parts[0]:
                statuses[parts[-1]] = STATUS_NAMES.get(parts[0][0], "modified")

        files: list[ChangedFile] = []
        for line in numstat.splitlines():
            parts = line.split("\t")
            if len(parts) != 3:
                continue
            added, deleted, path = parts
            files.append(
                ChangedFile(
                    filename=path,
                    status=statuses.get(path, "modified"),
                    # Binary files report "-"
                    additions=int(added) if added.isdigit() else 0,
                    deletions=int(deleted) if deleted.isdigit() else 0,
                )
            )

        patches = await asyncio.gather(
            *(self._run_git(base_cmd + ["--", f.filename]) for f in files)
        )
        for changed, diff in zip(files, patches):
            changed.patch = strip_diff_header(diff)

        return files

    async def _run_git(self, args: list[str]) -> str:
        """Run git command and return output."""
        cmd = ["git", "-C", str(self.repo_path)] + args

        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        stdout, stderr = await proc.communicate()

        if proc.returncode != 0:
            error_msg = stderr.decode().strip()
            if "fatal" not in error_msg.lower():
                return ""
            raise RuntimeError(f"Git command failed: {error_msg}")

        return stdout.decode(errors="replace")
