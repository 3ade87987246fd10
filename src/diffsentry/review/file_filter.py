"""
Change-Set Filter

Selects which changed files get reviewed: drops noise, moves request
handlers and service layers to the front, and enforces the diff budgets.
"""

import re

import structlog

from ..errors import DiffTooLargeError
from .models import ChangedFile

logger = structlog.get_logger(__name__)


class ChangeSetFilter:
    """Skip, prioritize and budget the raw changed-file list."""

    # Test files - skipped unless include_tests is set
    TEST_PATTERNS = [
        r"Tests?\.(java|kt)$",
        r"Spec\.(java|kt)$",
        r"(^|/)tests?/",
        r"(^|/)__tests__/",
        r"\.test\.(js|ts|jsx|tsx)$",
        r"\.spec\.(js|ts|jsx|tsx)$",
        r"(^|/)test_[^/]*\.py$",
        r"_test\.(py|go)$",
        r"(^|/)conftest\.py$",
    ]

    # Generated code, lock files, assets and build output - always skipped
    SKIP_PATTERNS = [
        r"\.generated\.(java|ts|js)$",
        r"(^|/)generated/",
        r"_pb2?\.py$",
        r"_pb2_grpc\.py$",
        r"\.g\.dart$",
        r"(^|/)package-lock\.json$",
        r"(^|/)yarn\.lock$",
        r"(^|/)pnpm-lock\.yaml$",
        r"(^|/)composer\.lock$",
        r"(^|/)Gemfile\.lock$",
        r"(^|/)poetry\.lock$",
        r"(^|/)uv\.lock$",
        r"(^|/)Cargo\.lock$",
        r"\.(png|jpe?g|gif|svg|ico|webp|woff2?|ttf|eot|pdf|zip)$",
        r"\.min\.(js|css)$",
        r"\.d\.ts$",
        r"\.map$",
        r"(^|/)(dist|build|node_modules|vendor|__pycache__)/",
        r"\.pyc$",
    ]

    # Request handlers, services and data access - reviewed first
    PRIORITY_PATTERNS = [
        r"(?i)(^|/)controllers?/.*\.(java|kt)$",
        r"(?i)(^|/)services?/.*\.(java|kt)$",
        r"(?i)(^|/)api/.*\.(java|kt|ts|js|py)$",
        r"(?i)(^|/)(routes|handlers|endpoints)/.*\.(ts|js|py)$",
        r"Controller\.(java|kt)$",
        r"Service(Impl)?\.(java|kt)$",
        r"Repository(Impl)?\.(java|kt)$",
        r"(^|/)[^/]*_(service|handler|views?|repository)\.py$",
    ]

    def __init__(
        self,
        max_files: int = 50,
        max_diff_lines: int = 3000,
        include_tests: bool = False,
    ):
        """
        Initialize the filter.

        Args:
            max_files: Maximum files to review; excess normal files are dropped
            max_diff_lines: Maximum additions+deletions across the change-set
            include_tests: Review test files instead of skipping them
        """
        self.max_files = max_files
        self.max_diff_lines = max_diff_lines
        self.include_tests = include_tests

        self._tests = [re.compile(p) for p in self.TEST_PATTERNS]
        self._skip = [re.compile(p) for p in self.SKIP_PATTERNS]
        self._priority = [re.compile(p) for p in self.PRIORITY_PATTERNS]

    def check_budget(self, changed_files: list[ChangedFile]) -> int:
        """Raise DiffTooLargeError when the whole change-set is over budget."""
        total = sum(f.total_lines_changed for f in changed_files)
        logger.info("Diff size", total_lines=total, limit=self.max_diff_lines)
        if total > self.max_diff_lines:
            raise DiffTooLargeError(total, self.max_diff_lines)
        return total

    def is_test_file(self, filename: str) -> bool:
        return any(p.search(filename) for p in self._tests)

    def should_skip(self, filename: str) -> bool:
        if self.is_test_file(filename):
            return not self.include_tests
        return any(p.search(filename) for p in self._skip)

    def is_priority(self, filename: str) -> bool:
        return any(p.search(filename) for p in self._priority)

    def select(self, changed_files: list[ChangedFile]) -> list[ChangedFile]:
        """
        Filter and order the change-set.

        Returns:
            Priority files first, then normal files, each group in input
            order, truncated to max_files.
        """
        self.check_budget(changed_files)

        priority: list[ChangedFile] = []
        normal: list[ChangedFile] = []

        for changed in changed_files:
            if self.should_skip(changed.filename):
                logger.debug("Skipping file", file_path=changed.filename)
                continue
            if self.is_priority(changed.filename):
                priority.append(changed)
            else:
                normal.append(changed)

        selected = priority + normal
        if len(selected) > self.max_files:
            logger.warning(
                "Too many reviewable files, truncating",
                reviewable=len(selected),
                max_files=self.max_files,
            )
            selected = selected[: self.max_files]

        logger.info(
            "Selected files for review",
            selected=len(selected),
            skipped=len(changed_files) - len(selected),
            priority=len(priority),
        )
        return selected
