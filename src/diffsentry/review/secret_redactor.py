"""
Secret Redactor

Detects credentials in code before it is sent to a model provider and
replaces them with a fixed marker.
"""

import re
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)

REDACTED = "[REDACTED]"


@dataclass(frozen=True)
class SecretPattern:
    """A named secret shape.

    ``value_group`` names the capture group holding the secret itself; when
    set, only that span is replaced and the key name or URI structure around
    it is kept. When None the whole match is the secret.
    """

    name: str
    pattern: re.Pattern
    value_group: int | None = None


SECRET_PATTERNS: list[SecretPattern] = [
    # === Cloud provider keys ===
    SecretPattern("AWS Access Key", re.compile(r"\b(A[KBS]IA[A-Z0-9]{16})\b")),
    SecretPattern(
        "AWS Secret Key",
        re.compile(
            r"(?i)(aws_secret_access_key|aws_secret_key|secret_access_key)"
            r"\s*[=:]\s*['\"]?([A-Za-z0-9/+=]{40})['\"]?"
        ),
        value_group=2,
    ),
    SecretPattern("Google API Key", re.compile(r"\bAIza[A-Za-z0-9_-]{35}\b")),
    SecretPattern(
        "Azure Key",
        re.compile(
            r"(?i)(azure[_-]?(storage)?[_-]?(account)?[_-]?key)"
            r"\s*[=:]\s*['\"]?([A-Za-z0-9+/]{86}==)['\"]?"
        ),
        value_group=4,
    ),
    # === Code hosting tokens ===
    SecretPattern(
        "GitHub Token",
        re.compile(r"\b(gh[posr]_[A-Za-z0-9]{36}|github_pat_[A-Za-z0-9_]{22,82})\b"),
    ),
    SecretPattern(
        "GitLab Token",
        re.compile(r"\b(glpat-[A-Za-z0-9_-]{20,}|gldt-[A-Za-z0-9_-]{20,})\b"),
    ),
    SecretPattern(
        "Bitbucket Token",
        re.compile(
            r"(?i)(bitbucket[_-]?(app)?[_-]?password)\s*[=:]\s*['\"]?([A-Za-z0-9]{20,})['\"]?"
        ),
        value_group=3,
    ),
    # === Payment and SaaS tokens ===
    SecretPattern(
        "Stripe Key",
        re.compile(r"\b([spr]k_(live|test)_[A-Za-z0-9]{24,})\b"),
    ),
    SecretPattern("Slack Token", re.compile(r"\b(xox[baprs]-[A-Za-z0-9-]{10,})\b")),
    SecretPattern("Twilio Key", re.compile(r"\bSK[a-f0-9]{32}\b")),
    SecretPattern(
        "SendGrid Key", re.compile(r"\bSG\.[A-Za-z0-9_-]{22}\.[A-Za-z0-9_-]{43}\b")
    ),
    SecretPattern("Mailchimp Key", re.compile(r"\b[a-f0-9]{32}-us[0-9]{1,2}\b")),
    # === Model provider keys ===
    SecretPattern("Anthropic Key", re.compile(r"\bsk-ant-[A-Za-z0-9_-]{40,}")),
    SecretPattern("OpenAI Key", re.compile(r"\bsk-(proj-)?[A-Za-z0-9]{48,}\b")),
    # === Connection strings (password component only) ===
    SecretPattern(
        "MongoDB URI",
        re.compile(r"(?i)mongodb(\+srv)?://[^:\s/]+:([^@\s]+)@[^\s\"']+"),
        value_group=2,
    ),
    SecretPattern(
        "Database URI",
        re.compile(r"(?i)(postgres(?:ql)?|mysql|jdbc:[a-z]+)://[^:\s/]+:([^@\s]+)@[^\s\"']+"),
        value_group=2,
    ),
    SecretPattern(
        "Redis URI",
        re.compile(r"(?i)rediss?://[^:\s/]*:([^@\s]+)@[^\s\"']+"),
        value_group=1,
    ),
    # === Generic shapes ===
    SecretPattern(
        "Private Key",
        re.compile(
            r"-----BEGIN (RSA |EC |DSA |OPENSSH |PGP )?PRIVATE KEY( BLOCK)?-----"
            r"[\s\S]*?"
            r"-----END (RSA |EC |DSA |OPENSSH |PGP )?PRIVATE KEY( BLOCK)?-----"
        ),
    ),
    SecretPattern(
        "JWT Token", re.compile(r"\beyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]*\.[A-Za-z0-9_-]*\b")
    ),
    SecretPattern(
        "Bearer Token",
        re.compile(
            r"(?i)(bearer|authorization)\s*[=:]\s*['\"]?(Bearer\s+)?([A-Za-z0-9_-]{20,})['\"]?"
        ),
        value_group=3,
    ),
    SecretPattern("Basic Auth", re.compile(r"(?i)\bbasic\s+[A-Za-z0-9+/]{20,}={0,2}")),
    SecretPattern(
        "Password",
        re.compile(
            r"(?i)(password|passwd|pwd|secret|api_key|apikey|api-key|auth_token|"
            r"access_token|private_key|encryption_key)\s*[=:]\s*['\"]([^'\"\s]{8,})['\"]"
        ),
        value_group=2,
    ),
    SecretPattern(
        "Env Secret",
        re.compile(
            r"(?i)(PASSWORD|SECRET|TOKEN|API_KEY|APIKEY|PRIVATE_KEY|ACCESS_KEY|AUTH_KEY)"
            r"\s*=\s*['\"]?([^'\"\s]{8,})['\"]?"
        ),
        value_group=2,
    ),
    SecretPattern(
        "Hex Secret",
        re.compile(r"(?i)(secret|key|token|salt|hash)\s*[=:]\s*['\"]?([a-f0-9]{32,})['\"]?"),
        value_group=2,
    ),
    # === Package registry tokens ===
    SecretPattern("NPM Token", re.compile(r"\b(npm_[A-Za-z0-9]{36})\b")),
    SecretPattern("PyPI Token", re.compile(r"\b(pypi-[A-Za-z0-9_-]{50,})")),
    SecretPattern("NuGet Key", re.compile(r"\b(oy2[A-Za-z0-9]{43})\b")),
]


class SecretRedactor:
    """Stateless filter that replaces recognised secrets with ``[REDACTED]``."""

    # Passes until the text stops changing; one replacement can expose
    # another pattern's match.
    MAX_PASSES = 4

    def __init__(self, patterns: list[SecretPattern] | None = None):
        self.patterns = patterns if patterns is not None else SECRET_PATTERNS

    def redact(self, content: str | None) -> str | None:
        """Return ``content`` with every detected secret replaced.

        Redacting already-redacted text returns it unchanged.
        """
        if not content:
            return content

        redacted = content
        total = 0
        for _ in range(self.MAX_PASSES):
            redacted, count = self._redact_pass(redacted)
            total += count
            if count == 0:
                break

        if total:
            logger.info("Redacted secrets before model submission", count=total)
        return redacted

    def _redact_pass(self, text: str) -> tuple[str, int]:
        total = 0
        for secret in self.patterns:
            count = 0

            def replace(match: re.Match) -> str:
                nonlocal count
                if secret.value_group is None:
                    if REDACTED in match.group(0):
                        return match.group(0)
                    count += 1
                    return REDACTED

                value = match.group(secret.value_group)
                if not value or REDACTED in value:
                    return match.group(0)
                count += 1
                start = match.start(secret.value_group) - match.start()
                end = match.end(secret.value_group) - match.start()
                whole = match.group(0)
                return whole[:start] + REDACTED + whole[end:]

            text = secret.pattern.sub(replace, text)
            if count:
                logger.debug("Redacted secret occurrences", secret_type=secret.name, count=count)
                total += count
        return text, total

    def contains_secrets(self, content: str | None) -> bool:
        """Pre-flight check without redacting."""
        if not content:
            return False
        return bool(self.detect_secret_types(content))

    def detect_secret_types(self, content: str | None) -> list[str]:
        """Names of the secret types found in ``content``."""
        if not content:
            return []
        return [
            s.name
            for s in self.patterns
            if any(_is_live(s, m) for m in s.pattern.finditer(content))
        ]


def _is_live(secret: SecretPattern, match: re.Match) -> bool:
    """False for matches whose secret part is already the redaction marker."""
    group = secret.value_group or 0
    value = match.group(group)
    return bool(value) and REDACTED not in value
