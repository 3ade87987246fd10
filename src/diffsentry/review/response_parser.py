"""
Model Response Parser

Turns model output into NormalizedIssue objects. The expected shape is a
JSON array of issue objects, possibly inside a fenced code block and possibly
cut off mid-object when the model hits its output limit.
"""

import json
import re
from typing import Any

import structlog

from .ignore_directives import filter_ignored
from .models import Category, IssueSource, NormalizedIssue, Severity

logger = structlog.get_logger(__name__)

DEFAULT_RULE = "ai-review"
DEFAULT_CONFIDENCE = "MEDIUM"
MODEL_ANALYZER = "ai"

LEGACY_LINE = re.compile(r"^Line (\d+):(.*)$")
LEGACY_SEVERITY = re.compile(r"\[(CRITICAL|HIGH|MEDIUM|LOW)\]\s*")

# Keyword groups for legacy category inference, checked in order
CATEGORY_KEYWORDS: list[tuple[Category, tuple[str, ...]]] = [
    (Category.SECURITY, ("security", "injection", "xss", "vulnerability", "auth", "credential")),
    (Category.BUG, ("bug", "error", "null", "exception", "crash")),
    (Category.PERFORMANCE, ("performance", "slow", "memory", "optimize")),
    (Category.STYLE, ("style", "naming", "format")),
    (Category.LOGIC, ("logic", "condition", "branch")),
]


class ResponseParser:
    """Parse and repair structured model output."""

    def parse(
        self, response: str | None, file_path: str, ignored_lines: set[int] | None = None
    ) -> list[NormalizedIssue]:
        """
        Parse a model response into issues for ``file_path``.

        Issues on ignored lines are dropped after parsing so line numbers
        stay those the model reported.
        """
        if not response:
            return []
        ignored = ignored_lines or set()

        items = self._load_items(response, file_path)
        if items is None:
            issues = self.parse_legacy(response, file_path)
        else:
            issues = []
            for item in items:
                issue = self._to_issue(item, file_path)
                if issue is not None:
                    issues.append(issue)

        return filter_ignored(issues, lambda issue: issue.start_line, ignored)

    def _load_items(self, response: str, file_path: str) -> list[Any] | None:
        """Decoded issue objects, or None when no JSON could be recovered."""
        text = extract_json(response)
        if not text:
            logger.debug("No JSON found in model response", file_path=file_path)
            return None

        try:
            return _as_item_list(json.loads(text))
        except (json.JSONDecodeError, ValueError):
            pass

        logger.debug("Model JSON needs repair", file_path=file_path)
        array_start = text.find("[")
        repaired = repair_truncated_json(text[array_start:]) if array_start >= 0 else None
        if repaired is None:
            return None
        try:
            items = _as_item_list(json.loads(repaired))
        except (json.JSONDecodeError, ValueError) as e:
            logger.debug("JSON repair failed", file_path=file_path, error=str(e))
            return None

        logger.info("Repaired truncated model JSON", file_path=file_path, recovered=len(items))
        return items

    def _to_issue(self, item: Any, file_path: str) -> NormalizedIssue | None:
        if not isinstance(item, dict):
            return None
        line = _as_line_number(item.get("line"))
        if line is None:
            logger.debug("Skipping model issue without a line", item=item)
            return None

        message = item.get("message")
        suggestion = item.get("suggestion")
        existing_code = item.get("existing_code")
        confidence = item.get("confidence")

        explanation = None
        if existing_code is not None or confidence is not None:
            parts = []
            if existing_code is not None:
                parts.append(f"**Problematic code:**\n```\n{existing_code}\n```")
            parts.append(f"**Confidence:** {confidence or DEFAULT_CONFIDENCE}")
            explanation = "\n".join(parts)

        return NormalizedIssue(
            file_path=file_path,
            start_line=line,
            end_line=_as_line_number(item.get("end_line")),
            severity=Severity.parse(item.get("severity")),
            category=Category.parse(item.get("category")),
            rule_id=str(item.get("rule") or DEFAULT_RULE),
            message=str(message) if message is not None else "",
            suggestion=str(suggestion) if suggestion is not None else None,
            source=IssueSource.MODEL,
            analyzer=MODEL_ANALYZER,
            explanation=explanation,
        )

    def parse_legacy(self, response: str, file_path: str) -> list[NormalizedIssue]:
        """Parse the plain-text ``Line N: [SEVERITY] message`` format."""
        issues = []
        for raw in response.split("\n"):
            match = LEGACY_LINE.match(raw.strip())
            if not match:
                continue
            rest = match.group(2).strip()
            description = LEGACY_SEVERITY.sub("", rest)
            issues.append(
                NormalizedIssue(
                    file_path=file_path,
                    start_line=int(match.group(1)),
                    severity=_legacy_severity(rest),
                    category=infer_category(description),
                    rule_id=DEFAULT_RULE,
                    message=description,
                    source=IssueSource.MODEL,
                    analyzer=MODEL_ANALYZER,
                )
            )
        return issues


def extract_json(response: str) -> str | None:
    """
    Locate the JSON payload in a model response.

    Order: a ```json fence (unterminated means truncated, take the rest),
    then the first plain fence whose body starts with ``[`` or ``{``, then
    the raw text when it starts with ``[`` or ``{``.
    """
    marker = response.find("```json")
    if marker >= 0:
        start = marker + len("```json")
        end = response.find("```", start)
        if end > start:
            return response[start:end].strip()
        return response[start:].strip()

    marker = response.find("```")
    if marker >= 0:
        start = marker + 3
        end = response.find("```", start)
        if end > start:
            body = response[start:end].strip()
            if body.startswith(("[", "{")):
                return body

    stripped = response.strip()
    if stripped.startswith(("[", "{")):
        return stripped
    return None


def repair_truncated_json(text: str | None) -> str | None:
    """
    Cut a JSON array back to its last complete top-level object and close it.

    Scans once tracking string, escape, brace and bracket state. Returns
    None when no object ever closed at array depth.
    """
    if not text:
        return None
    text = text.strip()
    if not text.startswith("["):
        return None

    last_complete = -1
    braces = 0
    brackets = 0
    in_string = False
    escape = False

    for i, char in enumerate(text):
        if escape:
            escape = False
            continue
        if char == "\\" and in_string:
            escape = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if char == "[":
            brackets += 1
        elif char == "]":
            brackets -= 1
        elif char == "{":
            braces += 1
        elif char == "}":
            braces -= 1
            if brackets == 1 and braces == 0:
                last_complete = i

    if last_complete < 0:
        return None

    repaired = text[: last_complete + 1].rstrip()
    if repaired.endswith(","):
        repaired = repaired[:-1]
    return repaired + "]"


def infer_category(description: str) -> Category:
    lower = description.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(word in lower for word in keywords):
            return category
    return Category.SMELL


def _legacy_severity(text: str) -> Severity:
    for severity in (Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM):
        if f"[{severity.value}]" in text:
            return severity
    return Severity.LOW


def _as_item_list(data: Any) -> list[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("issues"), list):
        return data["issues"]
    raise ValueError("Expected a JSON array of issues")


def _as_line_number(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None
