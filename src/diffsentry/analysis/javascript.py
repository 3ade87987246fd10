"""ESLint analyzer for JavaScript and TypeScript."""

import json
from pathlib import Path
from typing import Any

import structlog

from ..review.models import Category, IssueSource, NormalizedIssue, Severity
from .runner import run_tool, tool_available
from .session import AnalysisSession

logger = structlog.get_logger(__name__)

# Looked up at the head ref, in this order
ESLINT_CONFIG_FILES = (
    ".eslintrc",
    ".eslintrc.js",
    ".eslintrc.cjs",
    ".eslintrc.json",
    ".eslintrc.yaml",
    ".eslintrc.yml",
    "eslint.config.js",
    "eslint.config.mjs",
    "eslint.config.cjs",
)

PACKAGE_JSON = "package.json"
PACKAGE_JSON_CONFIG_KEY = '"eslintConfig"'

SECURITY_RULES = frozenset({"no-eval", "no-implied-eval", "no-new-func"})


class EslintAnalyzer:
    """Runs ESLint through npx, using the project's configuration when present."""

    name = "eslint"

    def __init__(self, timeout: float = 60.0):
        self.timeout = timeout

    def supported_extensions(self) -> frozenset[str]:
        return frozenset({"js", "jsx", "ts", "tsx", "mjs", "cjs"})

    async def is_available(self) -> bool:
        return await tool_available(["npx", "--no-install", "eslint", "--version"], timeout=30.0)

    async def analyze(
        self, filename: str, content: str, session: AnalysisSession
    ) -> list[NormalizedIssue]:
        session.write_lint_config()
        path = session.write_source(filename, content, namespace=self.name)
        return await self._run(path, filename, cwd=session.work_dir)

    async def analyze_file(self, path: str) -> list[NormalizedIssue]:
        return await self._run(Path(path), path, cwd=Path(path).parent)

    async def _run(self, path: Path, reported_path: str, cwd: Path) -> list[NormalizedIssue]:
        result = await run_tool(
            [
                "npx", "--no-install", "eslint",
                "--format", "json",
                "--no-error-on-unmatched-pattern",
                str(path),
            ],
            cwd=cwd,
            timeout=self.timeout,
        )
        output = result.stdout.strip()
        if not output.startswith("["):
            raise RuntimeError(f"eslint produced no report: {result.stderr.strip()}")

        issues = []
        for file_report in json.loads(output):
            for message in file_report.get("messages", []):
                issues.append(self._to_issue(message, reported_path))

        logger.debug("ESLint finished", file_path=reported_path, issues=len(issues))
        return issues

    def _to_issue(self, message: dict[str, Any], file_path: str) -> NormalizedIssue:
        rule_id = message.get("ruleId") or "unknown"
        line = message.get("line", 0)
        suggestions = message.get("suggestions") or []

        return NormalizedIssue(
            file_path=file_path,
            start_line=line,
            end_line=message.get("endLine", line),
            severity=self.severity_for(message.get("severity", 1), rule_id),
            category=Category.from_label(self.label_for(rule_id)),
            rule_id=rule_id,
            message=message.get("message", ""),
            suggestion=suggestions[0].get("desc") if suggestions else None,
            source=IssueSource.STATIC,
            analyzer=self.name,
        )

    @staticmethod
    def is_security_rule(rule_id: str) -> bool:
        return (
            "security" in rule_id
            or "xss" in rule_id
            or "injection" in rule_id
            or rule_id.startswith("@typescript-eslint/no-unsafe")
            or rule_id in SECURITY_RULES
        )

    @classmethod
    def severity_for(cls, eslint_severity: int, rule_id: str) -> Severity:
        if cls.is_security_rule(rule_id):
            return Severity.HIGH
        # ESLint: 1 = warning, 2 = error
        return Severity.MEDIUM if eslint_severity == 2 else Severity.LOW

    @classmethod
    def label_for(cls, rule_id: str) -> str:
        if cls.is_security_rule(rule_id):
            return "Security"
        if rule_id.startswith("@typescript-eslint/"):
            return "TypeScript"
        if rule_id.startswith(("react/", "react-hooks/")):
            return "React"
        if "prefer-" in rule_id or "no-unused" in rule_id:
            return "Style"
        return "Code Quality"
