"""Configuration management for diffsentry.

All settings have defaults and can be overridden from the environment.
"""

import os
from dataclasses import dataclass, field

DEFAULT_REPO_RULES_PATH = ".diffsentry/review-rules.md"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return float(value)


@dataclass
class ReviewConfig:
    """Budgets and limits for one review run."""

    # Change-set budgets
    max_files: int = 50
    max_diff_lines: int = 3000
    include_tests: bool = False

    # Worker pool
    parallel_reviews: int = 5

    # Per-call timeouts
    model_timeout_seconds: float = 120.0
    analysis_timeout_seconds: float = 60.0

    # Repository review rules document
    repo_rules_path: str = DEFAULT_REPO_RULES_PATH
    max_repo_rules_chars: int = 5000

    @classmethod
    def from_env(cls) -> "ReviewConfig":
        """Create configuration from environment variables."""
        return cls(
            max_files=_env_int("DIFFSENTRY_MAX_FILES", 50),
            max_diff_lines=_env_int("DIFFSENTRY_MAX_DIFF_LINES", 3000),
            include_tests=_env_bool("DIFFSENTRY_INCLUDE_TESTS", False),
            parallel_reviews=_env_int("DIFFSENTRY_PARALLEL_REVIEWS", 5),
            model_timeout_seconds=_env_float("DIFFSENTRY_MODEL_TIMEOUT_SECONDS", 120.0),
            analysis_timeout_seconds=_env_float("DIFFSENTRY_ANALYSIS_TIMEOUT_SECONDS", 60.0),
            repo_rules_path=os.getenv("DIFFSENTRY_REPO_RULES_PATH", DEFAULT_REPO_RULES_PATH),
            max_repo_rules_chars=_env_int("DIFFSENTRY_MAX_REPO_RULES_CHARS", 5000),
        )


@dataclass
class RoutingConfig:
    """Which model provider serves which task, and how fallback behaves."""

    default_provider: str = "groq"
    fallback_provider: str | None = "openai"
    task_providers: dict[str, str] = field(default_factory=dict)  # task -> provider name
    fallback_enabled: bool = True
    max_attempts: int = 3

    @classmethod
    def from_env(cls) -> "RoutingConfig":
        """Create routing from DIFFSENTRY_LLM_* variables."""
        task_providers = {}
        for task in ("review", "security", "summary"):
            name = os.getenv(f"DIFFSENTRY_LLM_{task.upper()}_PROVIDER")
            if name:
                task_providers[task] = name

        return cls(
            default_provider=os.getenv("DIFFSENTRY_LLM_DEFAULT_PROVIDER", "groq"),
            fallback_provider=os.getenv("DIFFSENTRY_LLM_FALLBACK_PROVIDER", "openai") or None,
            task_providers=task_providers,
            fallback_enabled=_env_bool("DIFFSENTRY_LLM_FALLBACK_ENABLED", True),
            max_attempts=_env_int("DIFFSENTRY_LLM_MAX_ATTEMPTS", 3),
        )


@dataclass
class ProviderSettings:
    """Endpoint, credentials and model for one OpenAI-compatible provider."""

    name: str
    base_url: str
    model: str
    api_key: str | None = None
    requires_key: bool = True
    enabled: bool = True
    max_output_tokens: int = 4096
    temperature: float = 0.1

    @property
    def is_configured(self) -> bool:
        return self.enabled and (bool(self.api_key) or not self.requires_key)


def providers_from_env() -> list[ProviderSettings]:
    """Settings for every provider diffsentry knows how to talk to."""
    return [
        ProviderSettings(
            name="groq",
            base_url="https://api.groq.com/openai/v1",
            model=os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile"),
            api_key=os.getenv("GROQ_API_KEY"),
        ),
        ProviderSettings(
            name="openai",
            base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
            model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            api_key=os.getenv("OPENAI_API_KEY"),
        ),
        ProviderSettings(
            name="ollama",
            base_url=os.getenv("OLLAMA_URL", "http://localhost:11434").rstrip("/") + "/v1",
            model=os.getenv("OLLAMA_MODEL", "qwen2.5-coder:7b"),
            api_key="ollama",
            requires_key=False,
            enabled=os.getenv("OLLAMA_URL") is not None,
        ),
    ]
