"""
Data models for the review pipeline.

Defines all types passed between the diff parser, the change-set filter,
the per-file workers and the orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class LineKind(str, Enum):
    """Kind of a single line inside a hunk."""

    ADDITION = "addition"
    DELETION = "deletion"
    CONTEXT = "context"


class ReviewMode(str, Enum):
    """How much of a file is exposed to the model reviewer."""

    SKIP_ANALYSIS_ONLY = "skip_analysis_only"  # static analysis only, no model call
    DIFF_ONLY = "diff_only"  # diff, no file context
    SMART_CONTEXT = "smart_context"  # diff + extracted context
    SECURITY_SCAN = "security_scan"  # diff only, security prompt


class Severity(str, Enum):
    """How severe is the issue."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    INFO = "INFO"

    @classmethod
    def parse(cls, value: Any, default: "Severity | None" = None) -> "Severity":
        """Parse free text, falling back to ``default`` (LOW) when unrecognized."""
        fallback = default or cls.LOW
        if not isinstance(value, str) or not value.strip():
            return fallback
        try:
            return cls(value.strip().upper())
        except ValueError:
            return fallback


class Category(str, Enum):
    """What kind of problem the issue describes."""

    SECURITY = "SECURITY"
    CVE = "CVE"
    BUG = "BUG"
    LOGIC = "LOGIC"
    PERFORMANCE = "PERFORMANCE"
    STYLE = "STYLE"
    SMELL = "SMELL"

    @classmethod
    def parse(cls, value: Any, default: "Category | None" = None) -> "Category":
        """Parse an exact category name, falling back to SMELL."""
        fallback = default or cls.SMELL
        if not isinstance(value, str) or not value.strip():
            return fallback
        try:
            return cls(value.strip().upper())
        except ValueError:
            return fallback

    @classmethod
    def from_label(cls, label: str | None) -> "Category":
        """Map a tool-specific category label (e.g. "Bugbear") onto a category."""
        if not label:
            return cls.SMELL
        upper = label.upper()
        if "CVE" in upper:
            return cls.CVE
        if "SECURITY" in upper or "VULN" in upper:
            return cls.SECURITY
        if "BUG" in upper or "ERROR" in upper:
            return cls.BUG
        if "PERF" in upper:
            return cls.PERFORMANCE
        if "STYLE" in upper or "FORMAT" in upper:
            return cls.STYLE
        if "LOGIC" in upper:
            return cls.LOGIC
        return cls.SMELL


class IssueSource(str, Enum):
    """Where an issue came from."""

    STATIC = "static"
    MODEL = "model"


class ProgressPhase(str, Enum):
    """Coarse phase reported through the progress callback."""

    ANALYZING = "analyzing"  # fetching change-set and files
    REVIEWING = "reviewing"  # per-file workers running
    SUMMARIZING = "summarizing"  # generating summary
    COMPLETE = "complete"


class ReviewState(str, Enum):
    """Orchestrator lifecycle."""

    BUILDING = "building"
    RUNNING = "running"
    CANCELLING = "cancelling"
    COMPLETING = "completing"
    DONE = "done"


# =============================================================================
# Diff model
# =============================================================================


@dataclass
class DiffLine:
    """A single line in a hunk.

    ``line_number`` is the new-file line for additions and context lines and
    the old-file line for deletions.
    """

    kind: LineKind
    line_number: int
    content: str

    @property
    def is_commentable(self) -> bool:
        return self.kind in (LineKind.ADDITION, LineKind.CONTEXT)


@dataclass
class Hunk:
    """A contiguous block of changes within one file."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    context: str = ""
    lines: list[DiffLine] = field(default_factory=list)

    @property
    def header(self) -> str:
        header = f"@@ -{self.old_start},{self.old_count} +{self.new_start},{self.new_count} @@"
        return f"{header} {self.context}" if self.context else header

    def count(self, kind: LineKind) -> int:
        return sum(1 for line in self.lines if line.kind == kind)

    def contains_new_line(self, line_number: int) -> bool:
        """Whether ``line_number`` falls in this hunk's new-file range."""
        return self.new_start <= line_number < self.new_start + self.new_count

    def render(self) -> str:
        """Serialize the hunk back to unified-diff text."""
        prefixes = {LineKind.ADDITION: "+", LineKind.DELETION: "-", LineKind.CONTEXT: " "}
        body = [prefixes[line.kind] + line.content for line in self.lines]
        return "\n".join([self.header, *body])


@dataclass
class FileDiff:
    """Parsed diff for a single file."""

    old_path: str | None
    new_path: str | None
    hunks: list[Hunk] = field(default_factory=list)

    @property
    def path(self) -> str:
        """The new path, or the old path for deleted files."""
        return self.new_path if self.new_path is not None else (self.old_path or "")

    @property
    def is_added(self) -> bool:
        return self.old_path is None

    @property
    def is_deleted(self) -> bool:
        return self.new_path is None


@dataclass
class ChangedFile:
    """Flat per-file summary as reported by the version-control provider."""

    filename: str
    status: str = "modified"  # added, modified, deleted, renamed
    additions: int = 0
    deletions: int = 0
    patch: str | None = None

    @property
    def total_lines_changed(self) -> int:
        return self.additions + self.deletions

    @property
    def is_deleted(self) -> bool:
        return self.status.lower() in ("deleted", "removed")


# =============================================================================
# Review target and change-set metadata
# =============================================================================


@dataclass(frozen=True)
class ReviewTarget:
    """Either a pull request or a single commit of ``owner/repo``."""

    owner: str
    repo: str
    pull_number: int | None = None
    commit_sha: str | None = None

    def __post_init__(self) -> None:
        if (self.pull_number is None) == (self.commit_sha is None):
            raise ValueError("ReviewTarget needs exactly one of pull_number or commit_sha")

    @property
    def is_commit(self) -> bool:
        return self.commit_sha is not None

    def describe(self) -> str:
        if self.is_commit:
            return f"{self.owner}/{self.repo}@{self.commit_sha[:12]}"
        return f"{self.owner}/{self.repo}#{self.pull_number}"


@dataclass
class PullRequestInfo:
    """Pull request metadata used for prompts and summaries."""

    number: int
    title: str
    description: str | None
    author: str
    head_commit_sha: str
    base_branch: str = ""
    head_branch: str = ""


@dataclass
class CommitInfo:
    """Commit metadata used for prompts and summaries."""

    sha: str
    message: str
    author: str

    @property
    def title(self) -> str:
        return self.message.split("\n", 1)[0]


# =============================================================================
# Findings
# =============================================================================


@dataclass(frozen=True)
class NormalizedIssue:
    """Analyzer-agnostic finding, from static analysis or the model."""

    file_path: str
    start_line: int
    severity: Severity
    category: Category
    rule_id: str
    message: str
    source: IssueSource
    end_line: int | None = None
    suggestion: str | None = None
    analyzer: str | None = None
    cve_id: str | None = None
    cvss_score: float | None = None
    explanation: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.file_path,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "severity": self.severity.value,
            "category": self.category.value,
            "rule_id": self.rule_id,
            "message": self.message,
            "suggestion": self.suggestion,
            "source": self.source.value,
            "analyzer": self.analyzer,
            "cve_id": self.cve_id,
            "cvss_score": self.cvss_score,
            "explanation": self.explanation,
        }


@dataclass(frozen=True)
class ReviewComment:
    """Inline comment derived from a model-sourced issue."""

    file_path: str
    line: int
    body: str
    severity: Severity
    commit_sha: str
    diff_position: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.file_path,
            "line": self.line,
            "body": self.body,
            "severity": self.severity.value,
            "commit_sha": self.commit_sha,
            "diff_position": self.diff_position,
        }


@dataclass
class FileReviewResult:
    """Review result for a single file."""

    file_path: str
    issues: list[NormalizedIssue] = field(default_factory=list)
    comments: list[ReviewComment] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class FileSkipped:
    """A file the worker pool never started, e.g. after cancellation."""

    file_path: str
    reason: str


FileOutcome = Union[FileReviewResult, FileSkipped]


@dataclass
class ReviewResult:
    """Complete review output."""

    summary: str
    issues: list[NormalizedIssue] = field(default_factory=list)
    comments: list[ReviewComment] = field(default_factory=list)

    # Metadata
    files_reviewed: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    provider: str = ""
    estimated_cost: float = 0.0
    review_duration_ms: int = 0

    # Diff
    raw_diff: str = ""
    file_diffs: list[FileDiff] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "summary": self.summary,
            "issues": [i.to_dict() for i in self.issues],
            "comments": [c.to_dict() for c in self.comments],
            "files_reviewed": self.files_reviewed,
            "lines_added": self.lines_added,
            "lines_removed": self.lines_removed,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "provider": self.provider,
            "estimated_cost": self.estimated_cost,
            "review_duration_ms": self.review_duration_ms,
        }


# =============================================================================
# Progress and outcomes
# =============================================================================


@dataclass(frozen=True)
class ProgressUpdate:
    """Progress snapshot passed to the caller's callback."""

    files_completed: int
    total_files: int
    current_file: str
    phase: ProgressPhase

    @property
    def percent_complete(self) -> int:
        if self.total_files == 0:
            return 0
        return int(self.files_completed * 100 / self.total_files)


@dataclass(frozen=True)
class ReviewCompleted:
    """The review ran to completion."""

    result: ReviewResult


@dataclass(frozen=True)
class ReviewCancelled:
    """The review was stopped; partial data is discarded."""

    reason: str
    files_completed: int = 0
    total_files: int = 0


ReviewOutcome = Union[ReviewCompleted, ReviewCancelled]
