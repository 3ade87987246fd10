"""
Review Module

Building blocks of a review run. The orchestrator that combines them lives in
``diffsentry.review.orchestrator``.
"""

from .context_extractor import ExtractionResult, SmartContextExtractor
from .diff_parser import DiffParser, changed_line_numbers
from .file_filter import ChangeSetFilter
from .models import (
    ChangedFile,
    FileDiff,
    NormalizedIssue,
    ProgressPhase,
    ProgressUpdate,
    ReviewCancelled,
    ReviewComment,
    ReviewCompleted,
    ReviewMode,
    ReviewOutcome,
    ReviewResult,
    ReviewState,
    ReviewTarget,
    Severity,
)
from .response_parser import ResponseParser
from .secret_redactor import SecretRedactor

__all__ = [
    "ChangeSetFilter",
    "ChangedFile",
    "DiffParser",
    "ExtractionResult",
    "FileDiff",
    "NormalizedIssue",
    "ProgressPhase",
    "ProgressUpdate",
    "ResponseParser",
    "ReviewCancelled",
    "ReviewComment",
    "ReviewCompleted",
    "ReviewMode",
    "ReviewOutcome",
    "ReviewResult",
    "ReviewState",
    "ReviewTarget",
    "SecretRedactor",
    "Severity",
    "SmartContextExtractor",
    "changed_line_numbers",
]
