"""
Analysis session.

One session per review run. It owns a scratch directory where analyzers
write the files they check, plus the project's lint configuration.
"""

import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LintConfig:
    """Lint configuration file fetched from the repository under review."""

    filename: str
    content: str


class AnalysisSession:
    """Per-run scratch space for static analyzers.

    Use as a context manager; the scratch directory is deleted on exit.
    """

    def __init__(self, lint_config: LintConfig | None = None):
        self.lint_config = lint_config
        self._work_dir: Path | None = None
        self._lint_config_written = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def work_dir(self) -> Path:
        """Scratch directory, created on first use."""
        if self._closed:
            raise RuntimeError("Analysis session is closed")
        if self._work_dir is None:
            self._work_dir = Path(tempfile.mkdtemp(prefix="diffsentry-"))
            logger.debug("Created analysis work dir", path=str(self._work_dir))
        return self._work_dir

    def write_source(self, filename: str, content: str, namespace: str | None = None) -> Path:
        """Write ``content`` under the work dir, keeping its repository-relative path.

        Analyzers that run side by side on the same file pass their own
        ``namespace`` so each tool reads a private copy.
        """
        parts = [p for p in PurePosixPath(filename).parts if p not in ("/", ".", "..")]
        if not parts:
            raise ValueError(f"Invalid file name: {filename!r}")
        root = self.work_dir / namespace if namespace else self.work_dir
        path = root.joinpath(*parts)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    def write_lint_config(self) -> Path | None:
        """Materialize the lint configuration once; None when there is none."""
        if self.lint_config is None:
            return None
        path = self.work_dir / PurePosixPath(self.lint_config.filename).name
        if not self._lint_config_written:
            path.write_text(self.lint_config.content, encoding="utf-8")
            self._lint_config_written = True
        return path

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._work_dir is not None:
            shutil.rmtree(self._work_dir, ignore_errors=True)
            logger.debug("Removed analysis work dir", path=str(self._work_dir))
            self._work_dir = None

    def __enter__(self) -> "AnalysisSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
