"""
Static Analysis Gateway

Dispatches a file to every registered analyzer that handles its extension,
runs them concurrently and keeps only findings on changed, non-ignored lines.
"""

import asyncio
from collections.abc import Iterable

import structlog

from ..review.models import NormalizedIssue
from .base import StaticAnalyzer, supports
from .javascript import EslintAnalyzer
from .python import BanditAnalyzer, PipAuditAnalyzer, RuffAnalyzer
from .session import AnalysisSession

logger = structlog.get_logger(__name__)


class StaticAnalysisGateway:
    """Registry of analyzers plus concurrent dispatch."""

    def __init__(self, analyzers: Iterable[StaticAnalyzer] = (), timeout: float = 60.0):
        self.timeout = timeout
        self._analyzers: list[StaticAnalyzer] = []
        self._availability: dict[str, bool] = {}
        self._probe_locks: dict[str, asyncio.Lock] = {}
        for analyzer in analyzers:
            self.register(analyzer)

    @classmethod
    def with_builtin_analyzers(cls, timeout: float = 60.0) -> "StaticAnalysisGateway":
        return cls(
            [
                RuffAnalyzer(timeout),
                BanditAnalyzer(timeout),
                PipAuditAnalyzer(timeout),
                EslintAnalyzer(timeout),
            ],
            timeout=timeout,
        )

    def register(self, analyzer: StaticAnalyzer) -> None:
        if any(a.name == analyzer.name for a in self._analyzers):
            raise ValueError(f"Analyzer already registered: {analyzer.name}")
        self._analyzers.append(analyzer)
        logger.debug("Registered analyzer", analyzer=analyzer.name)

    @property
    def analyzers(self) -> list[StaticAnalyzer]:
        return list(self._analyzers)

    def analyzers_for(self, filename: str) -> list[StaticAnalyzer]:
        return [a for a in self._analyzers if supports(a, filename)]

    async def is_available(self, analyzer: StaticAnalyzer) -> bool:
        """Availability, probed once per analyzer.

        Concurrent callers wait for the first probe instead of starting
        their own.
        """
        if analyzer.name in self._availability:
            return self._availability[analyzer.name]

        lock = self._probe_locks.setdefault(analyzer.name, asyncio.Lock())
        async with lock:
            if analyzer.name not in self._availability:
                try:
                    available = await analyzer.is_available()
                except Exception as e:
                    logger.warning("Analyzer availability check failed", analyzer=analyzer.name, error=str(e))
                    available = False
                self._availability[analyzer.name] = available
                if not available:
                    logger.info("Analyzer not available, skipping", analyzer=analyzer.name)
        return self._availability[analyzer.name]

    async def analyze(
        self,
        filename: str,
        content: str,
        session: AnalysisSession,
        changed_lines: set[int],
        ignored_lines: set[int] | None = None,
    ) -> list[NormalizedIssue]:
        """Run every matching analyzer on ``content``.

        Failures and timeouts of one analyzer are logged and contribute no
        issues; they never fail the file.
        """
        matching = self.analyzers_for(filename)
        if not matching:
            return []

        available = [a for a in matching if await self.is_available(a)]
        if not available:
            return []

        results = await asyncio.gather(
            *(self._run_one(a, filename, content, session) for a in available)
        )

        ignored = ignored_lines or set()
        issues = [
            issue
            for found in results
            for issue in found
            if issue.start_line in changed_lines and issue.start_line not in ignored
        ]

        logger.debug(
            "Static analysis complete",
            file_path=filename,
            analyzers=[a.name for a in available],
            reported=sum(len(r) for r in results),
            kept=len(issues),
        )
        return issues

    async def _run_one(
        self,
        analyzer: StaticAnalyzer,
        filename: str,
        content: str,
        session: AnalysisSession,
    ) -> list[NormalizedIssue]:
        try:
            return await asyncio.wait_for(
                analyzer.analyze(filename, content, session), timeout=self.timeout
            )
        except TimeoutError:
            logger.warning(
                "Analyzer timed out", analyzer=analyzer.name, file_path=filename, timeout=self.timeout
            )
        except Exception as e:
            logger.warning(
                "Analyzer failed", analyzer=analyzer.name, file_path=filename, error=str(e)
            )
        return []
