"""
Python analyzers: Ruff (lint), Bandit (security) and pip-audit (dependency
vulnerabilities).

Each tool is run with JSON output against a file written into the
analysis session's work dir.
"""

import json
import re
from pathlib import Path, PurePosixPath
from typing import Any

import structlog

from ..review.models import Category, IssueSource, NormalizedIssue, Severity
from .runner import run_tool, tool_available
from .session import AnalysisSession

logger = structlog.get_logger(__name__)

PYTHON_EXTENSIONS = frozenset({"py", "pyw", "pyi"})


# =============================================================================
# Ruff
# =============================================================================


class RuffAnalyzer:
    """Ruff linter."""

    name = "ruff"

    RULE_SELECTION = "E,F,W,C90,B,S,N,UP,ASYNC,A,DTZ,PIE,T20,SIM,TRY,PERF,PL,RUF"

    # Rule prefix -> tool label, longest prefixes first
    RULE_LABELS = [
        ("ASYNC", "Async"),
        ("PERF", "Performance"),
        ("TRY", "Exception"),
        ("RUF", "Ruff"),
        ("PL", "Pylint"),
        ("UP", "Upgrade"),
        ("S", "Security"),
        ("B", "Bugbear"),
        ("F", "PyFlakes"),
        ("E", "Style"),
        ("W", "Style"),
        ("C", "Complexity"),
        ("N", "Naming"),
    ]

    def __init__(self, timeout: float = 60.0):
        self.timeout = timeout

    def supported_extensions(self) -> frozenset[str]:
        return PYTHON_EXTENSIONS

    async def is_available(self) -> bool:
        return await tool_available(["ruff", "--version"])

    async def analyze(
        self, filename: str, content: str, session: AnalysisSession
    ) -> list[NormalizedIssue]:
        path = session.write_source(filename, content, namespace=self.name)
        return await self._run(path, filename)

    async def analyze_file(self, path: str) -> list[NormalizedIssue]:
        return await self._run(Path(path), path)

    async def _run(self, path: Path, reported_path: str) -> list[NormalizedIssue]:
        result = await run_tool(
            [
                "ruff", "check",
                "--output-format", "json",
                "--no-cache",
                "--exit-zero",
                "--select", self.RULE_SELECTION,
                str(path),
            ],
            cwd=path.parent,
            timeout=self.timeout,
        )
        output = result.stdout.strip()
        if not output.startswith("["):
            raise RuntimeError(f"ruff produced no report: {result.stderr.strip()}")

        issues = [self._to_issue(item, reported_path) for item in json.loads(output)]
        logger.debug("Ruff finished", file_path=reported_path, issues=len(issues))
        return issues

    def _to_issue(self, item: dict[str, Any], file_path: str) -> NormalizedIssue:
        code = item.get("code") or "unknown"
        location = item.get("location") or {}
        end_location = item.get("end_location") or {}
        line = location.get("row", 0)
        fix = item.get("fix") or {}

        return NormalizedIssue(
            file_path=file_path,
            start_line=line,
            end_line=end_location.get("row", line),
            severity=self.severity_for(code),
            category=Category.from_label(self.label_for(code)),
            rule_id=code,
            message=item.get("message", ""),
            suggestion=fix.get("message"),
            source=IssueSource.STATIC,
            analyzer=self.name,
        )

    @staticmethod
    def severity_for(code: str) -> Severity:
        if code.startswith("S"):
            return Severity.HIGH
        if code.startswith(("E", "F", "B")):
            return Severity.MEDIUM
        return Severity.LOW

    @classmethod
    def label_for(cls, code: str) -> str:
        for prefix, label in cls.RULE_LABELS:
            if code.startswith(prefix):
                return label
        return "Code Quality"


# =============================================================================
# Bandit
# =============================================================================


class BanditAnalyzer:
    """Bandit security scanner (medium severity and above)."""

    name = "bandit"

    def __init__(self, timeout: float = 60.0):
        self.timeout = timeout

    def supported_extensions(self) -> frozenset[str]:
        return PYTHON_EXTENSIONS

    async def is_available(self) -> bool:
        return await tool_available(["bandit", "--version"])

    async def analyze(
        self, filename: str, content: str, session: AnalysisSession
    ) -> list[NormalizedIssue]:
        path = session.write_source(filename, content, namespace=self.name)
        return await self._run(path, filename)

    async def analyze_file(self, path: str) -> list[NormalizedIssue]:
        return await self._run(Path(path), path)

    async def _run(self, path: Path, reported_path: str) -> list[NormalizedIssue]:
        # Exit status is 1 whenever issues are found; only the report matters
        result = await run_tool(
            ["bandit", "-f", "json", "-q", "-ll", str(path)],
            cwd=path.parent,
            timeout=self.timeout,
        )
        try:
            report = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise RuntimeError(f"bandit produced no report: {result.stderr.strip()}") from e

        issues = [self._to_issue(item, reported_path) for item in report.get("results", [])]
        logger.debug("Bandit finished", file_path=reported_path, issues=len(issues))
        return issues

    def _to_issue(self, item: dict[str, Any], file_path: str) -> NormalizedIssue:
        line = item.get("line_number", 0)
        line_range = item.get("line_range") or [line]
        test_name = item.get("test_name", "")
        text = item.get("issue_text", "")
        more_info = item.get("more_info")

        return NormalizedIssue(
            file_path=file_path,
            start_line=line,
            end_line=max(line_range),
            severity=self.severity_for(
                item.get("issue_severity", "MEDIUM"), item.get("issue_confidence", "MEDIUM")
            ),
            category=Category.SECURITY,
            rule_id=item.get("test_id", "unknown"),
            message=f"{test_name}: {text}" if test_name else text,
            suggestion=f"See: {more_info}" if more_info else None,
            source=IssueSource.STATIC,
            analyzer=self.name,
        )

    @staticmethod
    def severity_for(severity: str, confidence: str) -> Severity:
        severity = severity.upper()
        if severity == "HIGH" and confidence.upper() == "HIGH":
            return Severity.CRITICAL
        if severity == "HIGH":
            return Severity.HIGH
        if severity == "MEDIUM":
            return Severity.MEDIUM
        return Severity.LOW


# =============================================================================
# pip-audit
# =============================================================================


class PipAuditAnalyzer:
    """Known vulnerabilities in the dependencies a Python manifest declares.

    Handles ``requirements*.txt`` and ``pyproject.toml``; other ``.txt`` and
    ``.toml`` files yield nothing. Each finding is placed on the manifest line
    that declares the vulnerable package so it survives changed-line filtering.
    """

    name = "pip-audit"

    REQUIREMENTS_FILE = re.compile(r"(?i)(^|/)requirements[\w.-]*\.txt$")
    PYPROJECT_FILE = "pyproject.toml"

    def __init__(self, timeout: float = 60.0):
        self.timeout = timeout

    def supported_extensions(self) -> frozenset[str]:
        return frozenset({"txt", "toml"})

    async def is_available(self) -> bool:
        return await tool_available(["pip-audit", "--version"])

    @classmethod
    def is_manifest(cls, filename: str) -> bool:
        return bool(cls.REQUIREMENTS_FILE.search(filename)) or (
            PurePosixPath(filename).name == cls.PYPROJECT_FILE
        )

    async def analyze(
        self, filename: str, content: str, session: AnalysisSession
    ) -> list[NormalizedIssue]:
        if not self.is_manifest(filename):
            return []
        path = session.write_source(filename, content, namespace=self.name)
        return await self._run(path, filename, content)

    async def analyze_file(self, path: str) -> list[NormalizedIssue]:
        if not self.is_manifest(path):
            return []
        source = Path(path)
        return await self._run(source, path, source.read_text(encoding="utf-8"))

    async def _run(self, path: Path, reported_path: str, content: str) -> list[NormalizedIssue]:
        args = ["pip-audit", "-f", "json", "--progress-spinner", "off"]
        if path.name == self.PYPROJECT_FILE:
            args.append(str(path.parent))
        else:
            args.extend(["-r", str(path)])

        # Exit status is 1 whenever vulnerabilities are found
        result = await run_tool(args, cwd=path.parent, timeout=self.timeout)
        try:
            report = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise RuntimeError(f"pip-audit produced no report: {result.stderr.strip()}") from e

        # Older releases print the dependency list without the wrapping object
        dependencies = report.get("dependencies", []) if isinstance(report, dict) else report
        lines = content.splitlines()

        issues = []
        for dep in dependencies:
            name = dep.get("name", "unknown")
            line = self.declaring_line(lines, name)
            for vuln in dep.get("vulns") or []:
                issues.append(self._to_issue(vuln, name, dep.get("version", ""), line, reported_path))

        logger.debug("pip-audit finished", file_path=reported_path, issues=len(issues))
        return issues

    def _to_issue(
        self, vuln: dict[str, Any], package: str, version: str, line: int, file_path: str
    ) -> NormalizedIssue:
        vuln_id = vuln.get("id") or "unknown"
        fix_versions = vuln.get("fix_versions") or []

        return NormalizedIssue(
            file_path=file_path,
            start_line=line,
            end_line=line,
            severity=self.severity_for(vuln_id),
            category=Category.CVE,
            rule_id=vuln_id,
            message=f"Vulnerability in {package}=={version}: {vuln.get('description', '')}".rstrip(),
            suggestion=f"Upgrade to version: {', '.join(fix_versions)}" if fix_versions else None,
            source=IssueSource.STATIC,
            analyzer=self.name,
            cve_id=self.cve_for(vuln_id, vuln.get("aliases") or []),
        )

    @staticmethod
    def cve_for(vuln_id: str, aliases: list[str]) -> str:
        """The CVE identifier among the id and its aliases, else the id itself."""
        for candidate in [vuln_id, *aliases]:
            if candidate.upper().startswith("CVE-"):
                return candidate
        return vuln_id

    @staticmethod
    def severity_for(vuln_id: str) -> Severity:
        if vuln_id.startswith(("CVE-", "GHSA-")):
            return Severity.CRITICAL
        return Severity.HIGH

    @staticmethod
    def declaring_line(lines: list[str], package: str) -> int:
        """1-based line naming ``package``, or 0 when the manifest never does."""
        # PEP 503: runs of "-", "_" and "." are equivalent in project names
        name = r"[-_.]+".join(re.escape(part) for part in re.split(r"[-_.]+", package))
        pattern = re.compile(rf"(?i)(?<![\w.-]){name}(?![\w.-])")
        for number, text in enumerate(lines, start=1):
            if text.lstrip().startswith("#"):
                continue
            if pattern.search(text):
                return number
        return 0
