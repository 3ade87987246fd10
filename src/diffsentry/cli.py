"""Review a local git checkout from the command line.

Usage:
    diffsentry review
    diffsentry review --repo ../service --base develop
    diffsentry review --commit 1a2b3c4 --json
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path

import httpx
import structlog

from .config import ReviewConfig, RoutingConfig, providers_from_env
from .errors import ReviewError
from .llm.gateway import ModelGateway
from .llm.openai_compat import OpenAICompatibleProvider
from .review.models import (
    ProgressUpdate,
    ReviewCancelled,
    ReviewResult,
    ReviewTarget,
)
from .review.orchestrator import ReviewOrchestrator
from .vcs.local_git import LOCAL_PULL_NUMBER, LocalGitProvider

logger = structlog.get_logger(__name__)

EXIT_REVIEW_ERROR = 2
EXIT_CANCELLED = 130


def configure_logging(level: str = "INFO") -> None:
    # Logs go to stderr so --json output stays parseable
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="diffsentry", description="Automated code review")
    subparsers = parser.add_subparsers(dest="command", required=True)

    review = subparsers.add_parser("review", help="Review a local checkout")
    review.add_argument("--repo", type=Path, default=Path.cwd(), help="Path to git repository")
    target = review.add_mutually_exclusive_group()
    target.add_argument("--base", default="main", help="Base branch to compare HEAD against")
    target.add_argument("--commit", help="Review a single commit instead of HEAD vs base")
    review.add_argument("--json", action="store_true", help="Print the result as JSON")
    review.add_argument("--log-level", default="INFO", help="Log level (DEBUG, INFO, WARNING)")
    return parser


def _print_progress(update: ProgressUpdate) -> None:
    file_part = f" {update.current_file}" if update.current_file else ""
    print(f"[{update.percent_complete:3d}%] {update.phase.value}{file_part}", file=sys.stderr)


def format_result(result: ReviewResult) -> str:
    lines = [
        result.summary,
        "",
        f"Files reviewed: {result.files_reviewed} (+{result.lines_added}/-{result.lines_removed})",
        f"Tokens: {result.input_tokens} in / {result.output_tokens} out "
        f"via {result.provider} (~${result.estimated_cost:.4f})",
        "",
    ]
    if not result.issues:
        lines.append("No issues found.")
    for issue in sorted(result.issues, key=lambda i: (i.file_path, i.start_line)):
        lines.append(
            f"[{issue.severity.value}] {issue.file_path}:{issue.start_line} "
            f"{issue.rule_id} ({issue.source.value}) - {issue.message}"
        )
        if issue.suggestion:
            lines.append(f"    Suggestion: {issue.suggestion}")
    return "\n".join(lines)


async def run_review(args: argparse.Namespace) -> int:
    config = ReviewConfig.from_env()
    repo_path = args.repo.resolve()

    if args.commit:
        target = ReviewTarget(owner="local", repo=repo_path.name, commit_sha=args.commit)
    else:
        target = ReviewTarget(owner="local", repo=repo_path.name, pull_number=LOCAL_PULL_NUMBER)

    async with httpx.AsyncClient(timeout=config.model_timeout_seconds) as http_client:
        providers = [OpenAICompatibleProvider(s, http_client) for s in providers_from_env()]
        orchestrator = ReviewOrchestrator(
            vcs=LocalGitProvider(repo_path, base_branch=args.base),
            model_gateway=ModelGateway(providers, RoutingConfig.from_env()),
            config=config,
            progress_callback=None if args.json else _print_progress,
        )

        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, orchestrator.cancel)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            signal.signal(signal.SIGINT, lambda *_: orchestrator.cancel())

        outcome = await orchestrator.run(target)

    if isinstance(outcome, ReviewCancelled):
        print(
            f"Review cancelled: {outcome.reason} "
            f"({outcome.files_completed}/{outcome.total_files} files done)",
            file=sys.stderr,
        )
        return EXIT_CANCELLED

    if args.json:
        print(json.dumps(outcome.result.to_dict(), indent=2))
    else:
        print(format_result(outcome.result))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        return asyncio.run(run_review(args))
    except ReviewError as e:
        logger.error("Review failed", error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_REVIEW_ERROR


if __name__ == "__main__":
    sys.exit(main())
