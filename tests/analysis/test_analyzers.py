"""
Tests for the Ruff, Bandit, pip-audit and ESLint analyzers.

The external tools are replaced by canned JSON reports; only the
subprocess helper itself runs a real process.
"""

import asyncio
import json
import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from diffsentry.analysis.javascript import EslintAnalyzer
from diffsentry.analysis.python import BanditAnalyzer, PipAuditAnalyzer, RuffAnalyzer
from diffsentry.analysis.runner import ToolResult, run_tool, tool_available
from diffsentry.analysis.session import AnalysisSession, LintConfig
from diffsentry.review.models import Category, IssueSource, Severity

RUFF_REPORT = [
    {
        "code": "S602",
        "message": "subprocess call with shell=True identified",
        "location": {"row": 5, "column": 12},
        "end_location": {"row": 5, "column": 46},
        "fix": None,
    },
    {
        "code": "F401",
        "message": "`os` imported but unused",
        "location": {"row": 1, "column": 8},
        "end_location": {"row": 1, "column": 10},
        "fix": {"message": "Remove unused import: `os`"},
    },
]

BANDIT_REPORT = {
    "errors": [],
    "results": [
        {
            "test_id": "B602",
            "test_name": "subprocess_popen_with_shell_equals_true",
            "issue_text": "subprocess call with shell=True identified, security issue.",
            "issue_severity": "HIGH",
            "issue_confidence": "HIGH",
            "line_number": 5,
            "line_range": [5, 6],
            "more_info": "https://bandit.readthedocs.io/en/latest/plugins/b602.html",
        }
    ],
}

ESLINT_REPORT = [
    {
        "filePath": "/tmp/x/web/app.js",
        "messages": [
            {"ruleId": "no-eval", "severity": 2, "message": "eval can be harmful.", "line": 3, "endLine": 3},
            {
                "ruleId": "prefer-const",
                "severity": 1,
                "message": "'x' is never reassigned.",
                "line": 7,
                "suggestions": [{"desc": "Use const instead."}],
            },
        ],
    }
]


@pytest.fixture
def session():
    with AnalysisSession(LintConfig(".eslintrc.json", '{"rules": {}}')) as s:
        yield s


def fake_tool(monkeypatch, module: str, stdout: str, stderr: str = "", returncode: int = 0) -> AsyncMock:
    mock = AsyncMock(return_value=ToolResult(returncode, stdout, stderr))
    monkeypatch.setattr(f"diffsentry.analysis.{module}.run_tool", mock)
    return mock


# =============================================================================
# Ruff
# =============================================================================

class TestRuff:
    """Tests for RuffAnalyzer."""

    @pytest.mark.asyncio
    async def test_report_translation(self, monkeypatch, session):
        tool = fake_tool(monkeypatch, "python", json.dumps(RUFF_REPORT))

        issues = await RuffAnalyzer().analyze("src/app/run.py", "import os\n", session)

        shell, unused = issues
        assert shell.file_path == "src/app/run.py"
        assert (shell.start_line, shell.end_line) == (5, 5)
        assert shell.severity == Severity.HIGH
        assert shell.category == Category.SECURITY
        assert shell.source == IssueSource.STATIC
        assert shell.analyzer == "ruff"
        assert unused.severity == Severity.MEDIUM
        assert unused.suggestion == "Remove unused import: `os`"

        args = tool.await_args.args[0]
        assert args[:2] == ["ruff", "check"]
        assert Path(args[-1]) == session.work_dir / "ruff" / "src" / "app" / "run.py"

    @pytest.mark.asyncio
    async def test_missing_report_is_an_error(self, monkeypatch, session):
        fake_tool(monkeypatch, "python", "", stderr="ruff: bad config", returncode=2)

        with pytest.raises(RuntimeError, match="bad config"):
            await RuffAnalyzer().analyze("a.py", "x = 1\n", session)

    @pytest.mark.asyncio
    async def test_analyze_file_reports_given_path(self, monkeypatch, tmp_path):
        tool = fake_tool(monkeypatch, "python", json.dumps(RUFF_REPORT[:1]))
        source = tmp_path / "job.py"
        source.write_text("import subprocess\n")

        [issue] = await RuffAnalyzer().analyze_file(str(source))

        assert issue.file_path == str(source)
        assert tool.await_args.kwargs["cwd"] == tmp_path

    @pytest.mark.parametrize("code,severity,category", [
        ("S101", Severity.HIGH, Category.SECURITY),
        ("B006", Severity.MEDIUM, Category.BUG),
        ("E501", Severity.MEDIUM, Category.STYLE),
        ("PERF401", Severity.LOW, Category.PERFORMANCE),
        ("N802", Severity.LOW, Category.SMELL),
    ])
    def test_rule_mapping(self, code, severity, category):
        assert RuffAnalyzer.severity_for(code) == severity
        assert Category.from_label(RuffAnalyzer.label_for(code)) == category


# =============================================================================
# Bandit
# =============================================================================

class TestBandit:
    """Tests for BanditAnalyzer."""

    @pytest.mark.asyncio
    async def test_report_translation(self, monkeypatch, session):
        fake_tool(monkeypatch, "python", json.dumps(BANDIT_REPORT), returncode=1)

        [issue] = await BanditAnalyzer().analyze("run.py", "x = 1\n", session)

        assert issue.rule_id == "B602"
        assert issue.severity == Severity.CRITICAL
        assert issue.category == Category.SECURITY
        assert (issue.start_line, issue.end_line) == (5, 6)
        assert issue.message.startswith("subprocess_popen_with_shell_equals_true: ")
        assert issue.suggestion.startswith("See: https://bandit")

    @pytest.mark.asyncio
    async def test_does_not_share_scratch_file_with_ruff(self, monkeypatch, session):
        tool = fake_tool(monkeypatch, "python", json.dumps({"results": []}))
        monkeypatch.setattr(RuffAnalyzer, "_run", AsyncMock(return_value=[]))

        await RuffAnalyzer().analyze("run.py", "x = 1\n", session)
        await BanditAnalyzer().analyze("run.py", "x = 1\n", session)

        bandit_path = Path(tool.await_args.args[0][-1])
        assert bandit_path == session.work_dir / "bandit" / "run.py"
        assert (session.work_dir / "ruff" / "run.py").exists()

    @pytest.mark.asyncio
    async def test_unparseable_output(self, monkeypatch, session):
        fake_tool(monkeypatch, "python", "Traceback ...", returncode=2)

        with pytest.raises(RuntimeError):
            await BanditAnalyzer().analyze("run.py", "x = 1\n", session)

    @pytest.mark.parametrize("severity,confidence,expected", [
        ("HIGH", "HIGH", Severity.CRITICAL),
        ("HIGH", "LOW", Severity.HIGH),
        ("MEDIUM", "HIGH", Severity.MEDIUM),
        ("LOW", "HIGH", Severity.LOW),
    ])
    def test_severity(self, severity, confidence, expected):
        assert BanditAnalyzer.severity_for(severity, confidence) == expected


# =============================================================================
# pip-audit
# =============================================================================

REQUIREMENTS = "# web stack\nrequests==2.19.0\nFlask==0.12\nurllib3>=1.26\n"

PIP_AUDIT_REPORT = {
    "dependencies": [
        {"name": "requests", "version": "2.19.0", "vulns": [
            {
                "id": "PYSEC-2018-28",
                "fix_versions": ["2.20.0"],
                "aliases": ["GHSA-x84v-xcm2-53pg", "CVE-2018-18074"],
                "description": "Leaks Authorization headers on redirect.",
            }
        ]},
        {"name": "flask", "version": "0.12", "vulns": [
            {"id": "GHSA-562c-5r94-xh97", "fix_versions": [], "aliases": [], "description": "DoS via JSON."}
        ]},
        {"name": "urllib3", "version": "1.26.18", "vulns": []},
    ],
    "fixes": [],
}


class TestPipAudit:
    """Tests for PipAuditAnalyzer."""

    @pytest.mark.asyncio
    async def test_report_translation(self, monkeypatch, session):
        tool = fake_tool(monkeypatch, "python", json.dumps(PIP_AUDIT_REPORT), returncode=1)

        requests_vuln, flask_vuln = await PipAuditAnalyzer().analyze(
            "requirements.txt", REQUIREMENTS, session
        )

        assert requests_vuln.category == Category.CVE
        assert requests_vuln.rule_id == "PYSEC-2018-28"
        assert requests_vuln.cve_id == "CVE-2018-18074"
        assert requests_vuln.severity == Severity.HIGH
        assert requests_vuln.start_line == 2
        assert requests_vuln.message == (
            "Vulnerability in requests==2.19.0: Leaks Authorization headers on redirect."
        )
        assert requests_vuln.suggestion == "Upgrade to version: 2.20.0"
        assert requests_vuln.analyzer == "pip-audit"

        # No CVE alias: the advisory id stands in
        assert flask_vuln.cve_id == "GHSA-562c-5r94-xh97"
        assert flask_vuln.severity == Severity.CRITICAL
        assert flask_vuln.start_line == 3
        assert flask_vuln.suggestion is None

        args = tool.await_args.args[0]
        assert args[:3] == ["pip-audit", "-f", "json"]
        assert args[-2:] == ["-r", str(session.work_dir / "pip-audit" / "requirements.txt")]

    @pytest.mark.asyncio
    async def test_pyproject_audits_project_dir(self, monkeypatch, session):
        tool = fake_tool(monkeypatch, "python", json.dumps({"dependencies": []}))

        assert await PipAuditAnalyzer().analyze("svc/pyproject.toml", "[project]\n", session) == []
        assert tool.await_args.args[0][-1] == str(session.work_dir / "pip-audit" / "svc")

    @pytest.mark.asyncio
    async def test_other_text_files_are_ignored(self, monkeypatch, session):
        tool = fake_tool(monkeypatch, "python", "[]")

        assert await PipAuditAnalyzer().analyze("docs/notes.txt", "hello\n", session) == []
        assert await PipAuditAnalyzer().analyze("ruff.toml", "line-length = 100\n", session) == []
        tool.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unparseable_output(self, monkeypatch, session):
        fake_tool(monkeypatch, "python", "ERROR: resolution failed", returncode=1)

        with pytest.raises(RuntimeError):
            await PipAuditAnalyzer().analyze("requirements-dev.txt", "pytest\n", session)

    @pytest.mark.parametrize("filename,expected", [
        ("requirements.txt", True),
        ("deploy/requirements-prod.txt", True),
        ("services/api/pyproject.toml", True),
        ("LICENSE.txt", False),
        ("Cargo.toml", False),
    ])
    def test_is_manifest(self, filename, expected):
        assert PipAuditAnalyzer.is_manifest(filename) is expected

    def test_declaring_line_normalizes_names(self):
        lines = ["# zope_interface is pinned below", "Zope.Interface==5.0", "zope-interface-extras==1"]

        assert PipAuditAnalyzer.declaring_line(lines, "zope-interface") == 2
        assert PipAuditAnalyzer.declaring_line(lines, "django") == 0


# =============================================================================
# ESLint
# =============================================================================

class TestEslint:
    """Tests for EslintAnalyzer."""

    @pytest.mark.asyncio
    async def test_report_translation(self, monkeypatch, session):
        tool = fake_tool(monkeypatch, "javascript", json.dumps(ESLINT_REPORT), returncode=1)

        evil, style = await EslintAnalyzer().analyze("web/app.js", "eval(x)\n", session)

        assert evil.severity == Severity.HIGH
        assert evil.category == Category.SECURITY
        assert style.severity == Severity.LOW
        assert style.category == Category.STYLE
        assert style.suggestion == "Use const instead."
        assert style.end_line == 7
        assert tool.await_args.kwargs["cwd"] == session.work_dir

    @pytest.mark.asyncio
    async def test_lint_config_written_to_work_dir(self, monkeypatch, session):
        fake_tool(monkeypatch, "javascript", "[]")

        await EslintAnalyzer().analyze("web/app.js", "let x = 1\n", session)

        assert (session.work_dir / ".eslintrc.json").read_text() == '{"rules": {}}'

    @pytest.mark.parametrize("rule,severity,expected", [
        ("security/detect-object-injection", 1, Severity.HIGH),
        ("@typescript-eslint/no-unsafe-assignment", 1, Severity.HIGH),
        ("no-unused-vars", 2, Severity.MEDIUM),
        ("eqeqeq", 1, Severity.LOW),
    ])
    def test_severity(self, rule, severity, expected):
        assert EslintAnalyzer.severity_for(severity, rule) == expected

    def test_labels(self):
        assert EslintAnalyzer.label_for("react-hooks/exhaustive-deps") == "React"
        assert EslintAnalyzer.label_for("@typescript-eslint/no-explicit-any") == "TypeScript"
        assert EslintAnalyzer.label_for("curly") == "Code Quality"


# =============================================================================
# Subprocess helper
# =============================================================================

class TestRunTool:
    """Tests for run_tool() and tool_available() with real processes."""

    @pytest.mark.asyncio
    async def test_collects_output(self):
        result = await run_tool([sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr)"])

        assert result.returncode == 0
        assert result.stdout.strip() == "out"
        assert result.stderr.strip() == "err"

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        with pytest.raises(TimeoutError):
            await run_tool([sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.5)

    @pytest.mark.asyncio
    async def test_timed_out_process_is_reaped(self, monkeypatch):
        started = []
        real_exec = asyncio.create_subprocess_exec

        async def recording_exec(*args, **kwargs):
            proc = await real_exec(*args, **kwargs)
            started.append(proc)
            return proc

        monkeypatch.setattr(asyncio, "create_subprocess_exec", recording_exec)

        with pytest.raises(TimeoutError):
            await run_tool([sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.5)

        [proc] = started
        assert proc.returncode is not None

    @pytest.mark.asyncio
    async def test_missing_tool_not_available(self):
        assert await tool_available(["diffsentry-no-such-tool", "--version"]) is False

    @pytest.mark.asyncio
    async def test_present_tool_available(self):
        assert await tool_available([sys.executable, "--version"]) is True
