"""
Static analyzer protocol.

Analyzers wrap an external tool, run it against one file and translate its
report into ``NormalizedIssue`` objects.
"""

from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ..review.models import NormalizedIssue

if TYPE_CHECKING:
    from .session import AnalysisSession


def file_extension(filename: str) -> str:
    """Lower-case extension without the dot, or "" when there is none."""
    return PurePosixPath(filename).suffix.lower().lstrip(".")


@runtime_checkable
class StaticAnalyzer(Protocol):
    """A static analysis tool the gateway can dispatch files to."""

    name: str

    def supported_extensions(self) -> frozenset[str]:
        """Extensions (without the dot) this analyzer understands."""
        ...

    async def is_available(self) -> bool:
        """Whether the underlying tool is installed and runnable."""
        ...

    async def analyze(
        self, filename: str, content: str, session: "AnalysisSession"
    ) -> list[NormalizedIssue]:
        """Analyze in-memory content, reported under ``filename``."""
        ...

    async def analyze_file(self, path: str) -> list[NormalizedIssue]:
        """Analyze a file that already exists on disk."""
        ...


def supports(analyzer: StaticAnalyzer, filename: str) -> bool:
    return file_extension(filename) in analyzer.supported_extensions()
