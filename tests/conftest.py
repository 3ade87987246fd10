"""Pytest configuration and fixtures for diffsentry tests."""

import subprocess
from pathlib import Path
from typing import Callable, Generator
from unittest.mock import AsyncMock, MagicMock

import pytest

from diffsentry.llm.base import ModelResponse
from diffsentry.review.models import NormalizedIssue


def git(repo: Path, *args: str) -> str:
    """Run a git command in ``repo`` and return stdout."""
    result = subprocess.run(
        ["git", *args], cwd=repo, check=True, capture_output=True, text=True
    )
    return result.stdout


# =============================================================================
# GIT REPOSITORY FIXTURES
# =============================================================================

@pytest.fixture
def temp_git_repo(tmp_path: Path) -> Generator[Path, None, None]:
    """
    Create a minimal git repository whose default branch is ``main``.

    Yields:
        Path to the initialized git repository
    """
    repo_path = tmp_path / "test_repo"
    repo_path.mkdir()

    git(repo_path, "init")
    git(repo_path, "symbolic-ref", "HEAD", "refs/heads/main")
    git(repo_path, "config", "user.email", "test@test.com")
    git(repo_path, "config", "user.name", "Test User")
    git(repo_path, "config", "commit.gpgsign", "false")

    (repo_path / "initial.py").write_text("# Initial file\n")
    git(repo_path, "add", ".")
    git(repo_path, "commit", "-m", "Initial commit")

    yield repo_path


# =============================================================================
# COLLABORATOR FAKES
# =============================================================================

def _make_provider(
    name: str = "groq",
    enabled: bool = True,
    content: str = "[]",
    input_tokens: int = 10,
    output_tokens: int = 5,
    cost: float = 0.0,
) -> MagicMock:
    provider = MagicMock()
    provider.name = name
    provider.is_enabled.return_value = enabled
    provider.generate = AsyncMock(
        return_value=ModelResponse(
            content=content,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            provider=name,
            model="test-model",
        )
    )
    provider.estimate_cost.return_value = cost
    return provider


def _make_analyzer(
    name: str = "fake-lint",
    extensions: tuple[str, ...] = ("py",),
    issues: list[NormalizedIssue] | None = None,
    available: bool = True,
) -> MagicMock:
    analyzer = MagicMock()
    analyzer.name = name
    analyzer.supported_extensions.return_value = frozenset(extensions)
    analyzer.is_available = AsyncMock(return_value=available)
    analyzer.analyze = AsyncMock(return_value=list(issues or []))
    return analyzer


@pytest.fixture
def make_provider() -> Callable[..., MagicMock]:
    """Factory for mock model providers."""
    return _make_provider


@pytest.fixture
def make_analyzer() -> Callable[..., MagicMock]:
    """Factory for mock static analyzers."""
    return _make_analyzer


@pytest.fixture
def run_git() -> Callable[..., str]:
    """The ``git`` helper, for tests that shape a repository further."""
    return git
