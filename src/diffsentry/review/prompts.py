"""
Prompt assembly for file reviews, config security scans and summaries.

Callers pass text that has already been redacted; the model gateway redacts
again before anything leaves the process.
"""

from pathlib import PurePosixPath

from .models import ChangedFile, ReviewMode

LANGUAGES = {
    ".py": "Python",
    ".java": "Java",
    ".kt": "Kotlin",
    ".js": "JavaScript",
    ".jsx": "JavaScript (React)",
    ".mjs": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TypeScript (React)",
    ".vue": "Vue",
    ".svelte": "Svelte",
    ".go": "Go",
    ".rs": "Rust",
    ".rb": "Ruby",
    ".php": "PHP",
    ".cs": "C#",
    ".sql": "SQL",
}

# Language-specific things worth extra attention
LANGUAGE_FOCUS = {
    "Python": "mutable default arguments, broad exception handlers, unsafe eval/pickle/subprocess use",
    "Java": "null handling, resource leaks, transaction boundaries, injection through string concatenation",
    "JavaScript": "async error handling, unsanitized DOM/HTML injection, loose equality",
    "TypeScript": "unsafe `any` casts, unchecked optional values, async error handling",
    "Go": "ignored errors, goroutine leaks, unsynchronized shared state",
}

RESPONSE_FORMAT = """Respond with a JSON array:
```json
[
  {
    "line": 42,
    "severity": "HIGH",
    "category": "SECURITY",
    "rule": "sql-injection",
    "message": "User input concatenated into SQL query",
    "suggestion": "Use parameterized queries",
    "existing_code": "query = \\"SELECT * FROM users WHERE id=\\" + user_id",
    "confidence": "HIGH"
  }
]
```

Severity: CRITICAL, HIGH, MEDIUM, LOW, INFO
Category: SECURITY, BUG, LOGIC, PERFORMANCE, STYLE, SMELL
If there are no issues, return: []
Return ONLY the JSON array."""

DIFF_ONLY_CONTEXT = "(diff only, no additional context needed)"


def detect_language(filename: str) -> str | None:
    return LANGUAGES.get(PurePosixPath(filename).suffix.lower())


def build_review_prompt(
    filename: str,
    patch: str,
    mode: ReviewMode,
    context: str | None = None,
    repo_rules: str | None = None,
) -> str:
    """Build the review prompt for a DIFF_ONLY or SMART_CONTEXT file."""
    language = detect_language(filename)
    reviewer = f"an expert {language} code reviewer" if language else "an expert code reviewer"

    prompt_parts = [
        f"You are {reviewer}. Review the following code changes.",
        "",
        f"File: {filename}",
        "",
        "Changes (diff):",
        patch,
        "",
    ]

    if mode == ReviewMode.SMART_CONTEXT and context:
        prompt_parts.extend(["Relevant context from the file:", context, ""])
    else:
        prompt_parts.extend([f"Context: {DIFF_ONLY_CONTEXT}", ""])

    prompt_parts.extend([
        "**Guidelines:**",
        "- Focus ONLY on new or modified code (lines starting with '+')",
        "- Do NOT question imports, variables or functions defined elsewhere",
        "- Ignore minor style and formatting issues",
        "- Be constructive and give actionable suggestions",
    ])
    if language in LANGUAGE_FOCUS:
        prompt_parts.append(f"- Pay particular attention to {LANGUAGE_FOCUS[language]}")
    prompt_parts.extend(["", RESPONSE_FORMAT])

    if repo_rules and repo_rules.strip():
        prompt_parts.extend(["", "---", "", "## Additional Project-Specific Rules", "", repo_rules])

    return "\n".join(prompt_parts)


def build_security_scan_prompt(filename: str, patch: str) -> str:
    """Security-only prompt for configuration files; sees the diff, never the file."""
    prompt_parts = [
        "You are a security engineer reviewing a change to a configuration file.",
        "Only the changed lines are shown. Report ONLY security problems introduced",
        "by this change:",
        "- hardcoded credentials, tokens or private keys",
        "- insecure defaults (debug mode, permissive CORS, disabled TLS verification)",
        "- overly broad permissions or exposed ports",
        "- secrets passed through build arguments or CI logs",
        "Values shown as [REDACTED] were removed before review; flag the assignment",
        "itself if a secret appears to be hardcoded.",
        "",
        f"File: {filename}",
        "",
        "Changes (diff):",
        patch,
        "",
        RESPONSE_FORMAT,
    ]
    return "\n".join(prompt_parts)


def build_summary_prompt(
    title: str,
    description: str | None,
    files: list[ChangedFile],
    issue_count: int,
) -> str:
    file_list = "\n".join(f"- {f.filename} (+{f.additions}/-{f.deletions})" for f in files)
    return "\n".join([
        "Summarize this change in 2-3 sentences.",
        "",
        f"Title: {title}",
        f"Description: {description or ''}",
        "",
        "Changed files:",
        file_list,
        "",
        f"Issues found: {issue_count}",
        "",
        "Provide a concise summary of what the change does and any concerns.",
    ])


def fallback_summary(issue_count: int) -> str:
    return f"Review completed with {issue_count} issues found."
