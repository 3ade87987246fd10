"""
Review Orchestrator

Runs one review of a pull request or commit:

1. Building: resolve the model provider, fetch the change-set, enforce budgets
2. Running: bounded pool of per-file workers (static analysis + model call)
3. Completing: summary and aggregate counters, or Cancelling on request
"""

import asyncio
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

from ..analysis.gateway import StaticAnalysisGateway
from ..analysis.javascript import ESLINT_CONFIG_FILES, PACKAGE_JSON, PACKAGE_JSON_CONFIG_KEY
from ..analysis.session import AnalysisSession, LintConfig
from ..config import ReviewConfig
from ..llm.base import TaskCategory
from ..llm.gateway import ModelGateway
from ..vcs.base import VersionControlProvider
from .context_extractor import ExtractionResult, SmartContextExtractor
from .diff_parser import DiffParser, changed_line_numbers
from .file_filter import ChangeSetFilter
from .ignore_directives import ignored_lines, should_ignore_file
from .models import (
    ChangedFile,
    FileDiff,
    FileOutcome,
    FileReviewResult,
    FileSkipped,
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
)
from .prompts import (
    build_review_prompt,
    build_security_scan_prompt,
    build_summary_prompt,
    fallback_summary,
)
from .response_parser import ResponseParser
from .secret_redactor import SecretRedactor

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[ProgressUpdate], Any]

CANCELLED_BEFORE_START = "cancelled before start"


class CancellationToken:
    """Shared cancellation flag; safe to set from another thread or a signal handler."""

    def __init__(self):
        self._event = threading.Event()
        self._reason = "Review cancelled"

    def cancel(self, reason: str = "Review cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason


@dataclass
class _RunContext:
    """Read-only state shared by the workers of one run."""

    target: ReviewTarget
    head_sha: str
    session: AnalysisSession
    repo_rules: str | None = None
    file_diffs: dict[str, FileDiff] = field(default_factory=dict)


class ReviewOrchestrator:
    """Single-use coordinator for one review run."""

    def __init__(
        self,
        vcs: VersionControlProvider,
        model_gateway: ModelGateway,
        analysis_gateway: StaticAnalysisGateway | None = None,
        config: ReviewConfig | None = None,
        progress_callback: ProgressCallback | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            vcs: Source of change-sets and file contents
            model_gateway: Routed model access; never bypassed
            analysis_gateway: Static analyzers; built-ins when omitted
            config: Budgets, pool size and timeouts
            progress_callback: Called with a ProgressUpdate on phase
                transitions and per-file progress
        """
        self.config = config or ReviewConfig()
        self.vcs = vcs
        self.models = model_gateway
        self.analysis = analysis_gateway or StaticAnalysisGateway.with_builtin_analyzers(
            self.config.analysis_timeout_seconds
        )
        self.progress_callback = progress_callback

        self.file_filter = ChangeSetFilter(
            max_files=self.config.max_files,
            max_diff_lines=self.config.max_diff_lines,
            include_tests=self.config.include_tests,
        )
        self.classifier = SmartContextExtractor()
        self.redactor = SecretRedactor()
        self.diff_parser = DiffParser()
        self.response_parser = ResponseParser()

        self.token = CancellationToken()
        self._state: ReviewState | None = None
        self._files_completed = 0
        self._total_files = 0

    @property
    def state(self) -> ReviewState | None:
        return self._state

    def cancel(self, reason: str = "Review cancelled by user") -> None:
        """Stop dispatching files; the run returns ReviewCancelled.

        A cancel that arrives while the summary is generated also yields
        ReviewCancelled. Once run() has returned it has no effect.
        """
        self.token.cancel(reason)
        if self._state in (ReviewState.RUNNING, ReviewState.COMPLETING):
            self._state = ReviewState.CANCELLING
        logger.info("Review cancellation requested", reason=reason)

    async def run(self, target: ReviewTarget) -> ReviewOutcome:
        """
        Review ``target``.

        Returns:
            ReviewCompleted or ReviewCancelled

        Raises:
            DiffTooLargeError: the change-set exceeds the line budget
            NoModelProviderError: no model provider is configured
            RuntimeError: the orchestrator was already used
        """
        if self._state is not None:
            raise RuntimeError("ReviewOrchestrator is single-use; create a new one per review")
        self._state = ReviewState.BUILDING

        try:
            return await self._run(target)
        except asyncio.CancelledError:
            self.token.cancel("Review task cancelled")
            self._state = ReviewState.CANCELLING
            raise
        finally:
            self._state = ReviewState.DONE

    async def _run(self, target: ReviewTarget) -> ReviewOutcome:
        start_time = time.time()
        logger.info("Starting review", target=target.describe())

        # === Building ===
        review_provider = self.models.provider_for(TaskCategory.REVIEW)

        if target.is_commit:
            commit = await self.vcs.get_commit(target.owner, target.repo, target.commit_sha)
            title, description, head_sha = commit.title, commit.message, commit.sha
            changed_files = await self.vcs.get_commit_changed_files(
                target.owner, target.repo, target.commit_sha
            )
        else:
            pr = await self.vcs.get_pull_request(target.owner, target.repo, target.pull_number)
            title, description, head_sha = pr.title, pr.description, pr.head_commit_sha
            changed_files = await self.vcs.get_changed_files(
                target.owner, target.repo, target.pull_number
            )

        # Raises before any worker exists
        selected = self.file_filter.select(changed_files)
        self._total_files = len(selected)

        if not selected:
            logger.info("No reviewable files", changed=len(changed_files))
            self._state = ReviewState.COMPLETING
            self._emit(ProgressPhase.COMPLETE)
            return ReviewCompleted(
                ReviewResult(
                    summary="No reviewable changes (all files filtered).",
                    provider=review_provider.name,
                    review_duration_ms=int((time.time() - start_time) * 1000),
                )
            )

        lint_config, repo_rules = await asyncio.gather(
            self._fetch_lint_config(target, head_sha),
            self._fetch_repo_rules(target, head_sha),
        )

        self._emit(ProgressPhase.ANALYZING)

        if target.is_commit:
            raw_diff = await self.vcs.get_commit_diff(target.owner, target.repo, target.commit_sha)
        else:
            raw_diff = await self.vcs.get_diff(target.owner, target.repo, target.pull_number)
        file_diffs = self.diff_parser.parse(raw_diff)

        # === Running ===
        self._state = ReviewState.RUNNING
        with AnalysisSession(lint_config) as session:
            context = _RunContext(
                target=target,
                head_sha=head_sha,
                session=session,
                repo_rules=repo_rules,
                file_diffs={d.path: d for d in file_diffs},
            )
            outcomes = await self._review_files_parallel(selected, context)

        reviewed = [o for o in outcomes if isinstance(o, FileReviewResult)]

        if self.token.is_cancelled:
            return self._cancelled(len(reviewed), len(selected))

        # === Completing ===
        self._state = ReviewState.COMPLETING
        self._emit(ProgressPhase.SUMMARIZING)

        issues = [issue for r in reviewed for issue in r.issues]
        comments = [comment for r in reviewed for comment in r.comments]
        input_tokens = sum(r.input_tokens for r in reviewed)
        output_tokens = sum(r.output_tokens for r in reviewed)

        summary, summary_in, summary_out = await self._generate_summary(
            title, description, selected, len(issues)
        )
        input_tokens += summary_in
        output_tokens += summary_out

        # A cancel that lands while the summary is generated still wins
        if self.token.is_cancelled:
            return self._cancelled(len(reviewed), len(selected))

        result = ReviewResult(
            summary=summary,
            issues=issues,
            comments=comments,
            files_reviewed=len(reviewed),
            lines_added=sum(f.additions for f in selected),
            lines_removed=sum(f.deletions for f in selected),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            provider=review_provider.name,
            estimated_cost=review_provider.estimate_cost(input_tokens, output_tokens),
            review_duration_ms=int((time.time() - start_time) * 1000),
            raw_diff=raw_diff,
            file_diffs=file_diffs,
        )

        self._emit(ProgressPhase.COMPLETE)
        logger.info(
            "Review complete",
            target=target.describe(),
            files_reviewed=result.files_reviewed,
            issues=len(issues),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            duration_ms=result.review_duration_ms,
        )
        return ReviewCompleted(result)

    def _cancelled(self, files_completed: int, total_files: int) -> ReviewCancelled:
        self._state = ReviewState.CANCELLING
        logger.info(
            "Review cancelled",
            reason=self.token.reason,
            files_completed=files_completed,
            total_files=total_files,
        )
        return ReviewCancelled(
            reason=self.token.reason,
            files_completed=files_completed,
            total_files=total_files,
        )

    # =========================================================================
    # Workers
    # =========================================================================

    async def _review_files_parallel(
        self, files: list[ChangedFile], context: _RunContext
    ) -> list[FileOutcome]:
        """Review files in parallel with concurrency limit."""
        semaphore = asyncio.Semaphore(self.config.parallel_reviews)

        async def review_with_semaphore(changed: ChangedFile) -> FileOutcome:
            async with semaphore:
                return await self._review_single_file(changed, context)

        tasks = [review_with_semaphore(changed) for changed in files]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        outcomes: list[FileOutcome] = []
        for changed, result in zip(files, results):
            if isinstance(result, Exception):
                logger.warning("File review failed", file_path=changed.filename, error=str(result))
                outcomes.append(FileSkipped(changed.filename, f"Review failed: {result}"))
            else:
                outcomes.append(result)
        return outcomes

    async def _review_single_file(self, changed: ChangedFile, context: _RunContext) -> FileOutcome:
        path = changed.filename
        if self.token.is_cancelled:
            return FileSkipped(path, CANCELLED_BEFORE_START)

        self._emit(ProgressPhase.REVIEWING, path)

        content = None
        if not changed.is_deleted:
            content = await self._fetch_content(context.target, path, context.head_sha)

        if should_ignore_file(content):
            logger.info("File ignored by directive", file_path=path)
            return self._finish_file(FileReviewResult(file_path=path))

        ignored = ignored_lines(content)
        file_diff = context.file_diffs.get(path)
        if file_diff is None or not changed.patch:
            logger.debug("No diff for file", file_path=path)
            return self._finish_file(FileReviewResult(file_path=path))

        changed_lines = changed_line_numbers(changed.patch)

        extraction = self.classifier.extract(path, content, changed.patch)
        logger.debug(
            "Classified file", file_path=path, mode=extraction.mode.value, reason=extraction.reason
        )
        if self.token.is_cancelled:
            return FileSkipped(path, "cancelled after classification")

        static_issues, (model_issues, input_tokens, output_tokens) = await asyncio.gather(
            self._static_analysis(path, content, changed_lines, ignored, context.session),
            self._model_review(changed, extraction, context.repo_rules, ignored),
        )
        if self.token.is_cancelled:
            return FileSkipped(path, "cancelled during review")

        comments = [self._to_comment(issue, file_diff, context.head_sha) for issue in model_issues]

        logger.debug(
            "File reviewed",
            file_path=path,
            mode=extraction.mode.value,
            static_issues=len(static_issues),
            model_issues=len(model_issues),
        )
        return self._finish_file(
            FileReviewResult(
                file_path=path,
                issues=static_issues + model_issues,
                comments=comments,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
            )
        )

    def _finish_file(self, result: FileReviewResult) -> FileReviewResult:
        self._files_completed += 1
        self._emit(ProgressPhase.REVIEWING, result.file_path)
        return result

    async def _static_analysis(
        self,
        path: str,
        content: str | None,
        changed_lines: set[int],
        ignored: set[int],
        session: AnalysisSession,
    ) -> list[NormalizedIssue]:
        if content is None:
            return []
        return await self.analysis.analyze(path, content, session, changed_lines, ignored)

    async def _model_review(
        self,
        changed: ChangedFile,
        extraction: ExtractionResult,
        repo_rules: str | None,
        ignored: set[int],
    ) -> tuple[list[NormalizedIssue], int, int]:
        """Model call for one file; returns (issues, input tokens, output tokens)."""
        if extraction.mode == ReviewMode.SKIP_ANALYSIS_ONLY:
            return [], 0, 0

        path = changed.filename
        safe_patch = self.redactor.redact(changed.patch) or ""
        if extraction.mode == ReviewMode.SECURITY_SCAN:
            prompt = build_security_scan_prompt(path, safe_patch)
            task = TaskCategory.SECURITY
        else:
            prompt = build_review_prompt(
                path,
                safe_patch,
                extraction.mode,
                context=self.redactor.redact(extraction.context),
                repo_rules=repo_rules,
            )
            task = TaskCategory.REVIEW

        try:
            response = await asyncio.wait_for(
                self.models.generate(prompt, task), timeout=self.config.model_timeout_seconds
            )
        except TimeoutError:
            logger.warning(
                "Model call timed out", file_path=path, timeout=self.config.model_timeout_seconds
            )
            return [], 0, 0
        except Exception as e:
            logger.warning("Model call failed", file_path=path, error=str(e))
            return [], 0, 0

        issues = self.response_parser.parse(response.content, path, ignored)
        return issues, response.input_tokens, response.output_tokens

    @staticmethod
    def _to_comment(issue: NormalizedIssue, file_diff: FileDiff, head_sha: str) -> ReviewComment:
        body = issue.message
        if issue.suggestion:
            body += f"\n\n**Suggestion:** {issue.suggestion}"
        return ReviewComment(
            file_path=issue.file_path,
            line=issue.start_line,
            body=body,
            severity=issue.severity,
            commit_sha=head_sha,
            diff_position=DiffParser.diff_position(file_diff, issue.start_line),
        )

    # =========================================================================
    # Optional documents and content
    # =========================================================================

    async def _fetch_content(self, target: ReviewTarget, path: str, ref: str) -> str | None:
        try:
            return await self.vcs.get_file_content(target.owner, target.repo, path, ref)
        except Exception as e:
            logger.warning("Could not fetch file content", file_path=path, ref=ref, error=str(e))
            return None

    async def _fetch_lint_config(self, target: ReviewTarget, ref: str) -> LintConfig | None:
        for filename in ESLINT_CONFIG_FILES:
            content = await self._fetch_content(target, filename, ref)
            if content:
                logger.debug("Found lint config", filename=filename)
                return LintConfig(filename, content)

        package_json = await self._fetch_content(target, PACKAGE_JSON, ref)
        if package_json and PACKAGE_JSON_CONFIG_KEY in package_json:
            logger.debug("Found lint config", filename=PACKAGE_JSON)
            return LintConfig(PACKAGE_JSON, package_json)
        return None

    async def _fetch_repo_rules(self, target: ReviewTarget, ref: str) -> str | None:
        rules = await self._fetch_content(target, self.config.repo_rules_path, ref)
        if not rules or not rules.strip():
            return None

        limit = self.config.max_repo_rules_chars
        if len(rules) > limit:
            logger.warning("Repository rules truncated", length=len(rules), limit=limit)
            rules = rules[:limit] + f"\n\n[Rules truncated at {limit} characters]"
        logger.info("Loaded repository review rules", path=self.config.repo_rules_path)
        return rules

    # =========================================================================
    # Summary and progress
    # =========================================================================

    async def _generate_summary(
        self,
        title: str,
        description: str | None,
        files: list[ChangedFile],
        issue_count: int,
    ) -> tuple[str, int, int]:
        prompt = build_summary_prompt(title, description, files, issue_count)
        try:
            response = await asyncio.wait_for(
                self.models.generate(prompt, TaskCategory.SUMMARY),
                timeout=self.config.model_timeout_seconds,
            )
        except Exception as e:
            logger.warning("Summary generation failed", error=str(e))
            return fallback_summary(issue_count), 0, 0
        return response.content.strip(), response.input_tokens, response.output_tokens

    def _emit(self, phase: ProgressPhase, current_file: str = "") -> None:
        if self.progress_callback is None:
            return
        update = ProgressUpdate(
            files_completed=self._files_completed,
            total_files=self._total_files,
            current_file=current_file,
            phase=phase,
        )
        try:
            self.progress_callback(update)
        except Exception as e:
            logger.warning("Progress callback failed", phase=phase.value, error=str(e))
