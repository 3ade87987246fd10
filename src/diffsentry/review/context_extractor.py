"""
Smart Context Extractor

Decides per file how much of it the model reviewer sees, and extracts a
minimal context blob (relevant imports, state, injected dependencies, types)
instead of sending the whole file.
"""

import re
from dataclasses import dataclass

import structlog

from .models import ReviewMode

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ExtractionResult:
    """Review mode for one file, with optional context and the reason."""

    mode: ReviewMode
    context: str | None
    reason: str


# =============================================================================
# File name patterns
# =============================================================================

# Docs, lock files, generated code, assets, schemas and .env files.
# .env files are never sent to a model, even as a diff.
SKIP_PATTERNS = [
    r"(?i)\.(md|txt|rst|adoc)$",
    r"(package-lock|yarn\.lock|pnpm-lock|Gemfile\.lock|poetry\.lock|composer\.lock)",
    r"\.generated\.(java|ts|js)$",
    r"_pb2?\.py$",
    r"(?i)\.(css|scss|less|svg|png|jpe?g|gif|ico|woff2?|ttf|eot)$",
    r"(?i)\.(xsd|dtd|wsdl)$",
    r"(?i)\.env(\.\w+)?$",
]

# Build and lint configuration that rarely holds secrets
SAFE_CONFIG_PATTERNS = [
    r"(?i)eslint[^/]*\.(json|js|cjs|mjs|yaml|yml)$",
    r"(?i)prettier[^/]*\.(json|js|yaml|yml)$",
    r"(?i)tsconfig[^/]*\.json$",
    r"(^|/)package\.json$",
    r"\.editorconfig$",
    r"\.gitignore$",
    r"\.gitattributes$",
    r"(?i)babel[^/]*\.(json|js)$",
    r"(?i)jest[^/]*\.(json|js)$",
    r"(?i)webpack[^/]*\.(json|js)$",
    r"(?i)vite[^/]*\.(json|js|ts)$",
    r"(^|/)pom\.xml$",
    r"(^|/)build\.gradle(\.kts)?$",
]

# Files that plausibly hold credentials: only the diff is ever sent
SECURITY_SCAN_PATTERNS = [
    r"(?i)application[.-]?(\w+)?\.(yaml|yml|properties)$",
    r"(?i)config\.(yaml|yml|json|properties)$",
    r"(?i)(^|/)config/.*\.(yaml|yml|json|properties)$",
    r"[Dd]ockerfile",
    r"(?i)docker-compose.*\.(yaml|yml)$",
    r"\.dockerignore$",
    r"(^|/)\.github/workflows/.*\.(yaml|yml)$",
    r"\.gitlab-ci\.(yaml|yml)$",
    r"[Jj]enkinsfile",
    r"\.travis\.yml$",
    r"azure-pipelines.*\.(yaml|yml)$",
    r"(?i)\.(k8s|kubernetes)\.(yaml|yml)$",
    r"(^|/)(k8s|kubernetes)/.*\.(yaml|yml)$",
    r"(?i)values[^/]*\.(yaml|yml)$",
    r"(?i)(security|auth|oauth)[^/]*\.(xml|yaml|yml|json)$",
    r"(?i)database[^/]*\.(yaml|yml|properties|xml)$",
    r"(?i)persistence[^/]*\.xml$",
    r"(?i)(nginx|apache)[^/]*\.conf$",
    r"\.htaccess$",
]

JS_EXTENSIONS = (".js", ".jsx", ".ts", ".tsx", ".mjs", ".vue", ".svelte")

# === JavaScript / React ===
JS_IMPORT = re.compile(r"^import\s+.*?['\"];?\s*$", re.M)
JS_STATE_HOOK = re.compile(r"\buse(State|Reducer|Context|Ref|Memo|Callback)\s*[<(]")
JS_EFFECT_HOOK = re.compile(r"\buseEffect\s*\(")
JS_COMPONENT = re.compile(r"(function\s+[A-Z]\w*|const\s+[A-Z]\w*\s*=|class\s+[A-Z]\w*\s+extends)")
JS_STATE_DECLARATION = re.compile(
    r"^\s*const\s+\[\s*(\w+)\s*,\s*set\w+\s*\]\s*=\s*use(State|Reducer).*$", re.M
)
JS_CUSTOM_HOOK = re.compile(r"^\s*const\s+(\w+)\s*=\s*use[A-Z]\w*\(.*$", re.M)
TS_TYPE_DEFINITION = re.compile(
    r"^(export\s+)?(interface|type)\s+(\w+).*?"
    r"(?=^(?:export\s+)?(?:interface|type|class|function|const)\b|\Z)",
    re.M | re.S,
)

# === Java ===
JAVA_IMPORT = re.compile(r"^import\s+.*?;\s*$", re.M)
JAVA_CLASS_ANNOTATION = re.compile(
    r"^@(Service|Component|Repository|Controller|RestController|Configuration|"
    r"Entity|Transactional|Async)\b.*$",
    re.M,
)
JAVA_INJECTED_FIELD = re.compile(
    r"^\s*@(?:Autowired|Inject|Resource)\b.*$\s*^\s*(?:private|protected|public)?\s*"
    r"(?:final\s+)?(\w+(?:<[^>]+>)?)\s+(\w+)\s*;",
    re.M,
)
JAVA_METHOD_ANNOTATION = re.compile(
    r"^\s*@(Transactional|Async|Cacheable|Scheduled|PreAuthorize|PostAuthorize)\b.*$", re.M
)
JAVA_CLASS_DECLARATION = re.compile(
    r"^(public\s+)?(abstract\s+|final\s+)?(class|interface|enum|record)\s+(\w+).*\{"
)
JAVA_DATA_ANNOTATION = re.compile(
    r"@(Data|Getter|Setter|Builder|NoArgsConstructor|AllArgsConstructor|Entity|Value)\b"
)
JAVA_ACCESSOR = re.compile(r"^\s*(public|private|protected)?\s+\w+\s+(get|set|is)\w+\s*\(")
JAVA_METHOD_NAME = re.compile(r"\s(\w+)\s*\(")

# === Python ===
PY_IMPORT = re.compile(r"^(import|from)\s+.*$", re.M)
PY_CLASS = re.compile(r"^class\s+\w+.*:\s*$", re.M)
PY_DECORATOR = re.compile(r"^\s*@(\w+(?:\.\w+)*)")
PY_DEF = re.compile(r"^\s+(async\s+)?def\s+(\w+)\s*\(")
PY_FIELD = re.compile(r"^\s+\w+\s*:\s*[^=]+(=.*)?$")

# Imported names too generic to prove an import is relevant
IMPORT_STOPWORDS = {"import", "from", "as", "type", "static", "typing", "java"}

MAX_TYPE_DEFINITION_CHARS = 500


class SmartContextExtractor:
    """Classify a file into a ReviewMode and extract minimal context."""

    def __init__(self):
        self._skip = [re.compile(p) for p in SKIP_PATTERNS]
        self._safe_config = [re.compile(p) for p in SAFE_CONFIG_PATTERNS]
        self._security_scan = [re.compile(p) for p in SECURITY_SCAN_PATTERNS]

    def extract(self, filename: str, content: str | None, patch: str | None) -> ExtractionResult:
        """
        Determine the review mode and context for a file.

        First match wins: static-only files, safe build configs, credential-
        bearing configs, missing content, then per-language extraction.

        Args:
            filename: Repository-relative path
            content: Full file content at the head ref, or None
            patch: The file's hunk text

        Returns:
            ExtractionResult; context is None for every mode but SMART_CONTEXT
        """
        if any(p.search(filename) for p in self._skip):
            return ExtractionResult(
                ReviewMode.SKIP_ANALYSIS_ONLY, None, "Asset/lock/doc file - static analysis only"
            )

        if any(p.search(filename) for p in self._safe_config):
            return ExtractionResult(
                ReviewMode.SKIP_ANALYSIS_ONLY, None, "Build/lint config - static analysis only"
            )

        if any(p.search(filename) for p in self._security_scan):
            logger.debug("Sensitive config file detected", file_path=filename)
            return ExtractionResult(
                ReviewMode.SECURITY_SCAN, None, "Sensitive config - security scan (diff only)"
            )

        if content is None or not content.strip():
            return ExtractionResult(ReviewMode.DIFF_ONLY, None, "No file content available")

        lower = filename.lower()
        if lower.endswith(JS_EXTENSIONS):
            result = self._extract_javascript(lower, content, patch)
        elif lower.endswith(".java"):
            result = self._extract_java(content, patch)
        elif lower.endswith(".py"):
            result = self._extract_python(content, patch)
        else:
            return ExtractionResult(ReviewMode.DIFF_ONLY, None, "Unknown language - using diff only")

        if result.context:
            logger.debug(
                "Extracted context",
                file_path=filename,
                mode=result.mode.value,
                chars=len(result.context),
            )
        return result

    # =========================================================================
    # JavaScript / TypeScript
    # =========================================================================

    def _extract_javascript(self, filename: str, content: str, patch: str | None) -> ExtractionResult:
        has_hooks = bool(JS_STATE_HOOK.search(content) or JS_EFFECT_HOOK.search(content))
        is_component = bool(JS_COMPONENT.search(content))
        if not has_hooks and not is_component:
            return ExtractionResult(ReviewMode.DIFF_ONLY, None, "Simple JS utility - no hooks/state")

        sections: list[str] = []

        imports = [
            imp
            for imp in _matches(JS_IMPORT, content)
            if any(word in imp for word in ("react", "use", "type", "interface"))
            or _import_used_in_patch(imp, patch)
        ]
        if imports:
            sections.append("// Imports:\n" + "\n".join(imports))

        state = _matches(JS_STATE_DECLARATION, content) + _matches(JS_CUSTOM_HOOK, content)
        if state:
            sections.append("// State & Hooks:\n" + "\n".join(state))

        if filename.endswith((".ts", ".tsx")):
            types = _type_definitions(content, patch)
            if types:
                sections.append("// Types:\n" + "\n\n".join(types))

        if not sections:
            return ExtractionResult(ReviewMode.DIFF_ONLY, None, "React file but no extractable context")
        return ExtractionResult(
            ReviewMode.SMART_CONTEXT, "\n\n".join(sections), "React component with hooks/state"
        )

    # =========================================================================
    # Java
    # =========================================================================

    def _extract_java(self, content: str, patch: str | None) -> ExtractionResult:
        if _is_java_data_holder(content):
            return ExtractionResult(
                ReviewMode.SKIP_ANALYSIS_ONLY, None, "Simple DTO/Entity - static analysis only"
            )

        has_injection = bool(JAVA_INJECTED_FIELD.search(content))
        has_class_annotations = bool(JAVA_CLASS_ANNOTATION.search(content))
        has_method_annotations = bool(JAVA_METHOD_ANNOTATION.search(content))
        if not (has_injection or has_class_annotations or has_method_annotations):
            return ExtractionResult(ReviewMode.DIFF_ONLY, None, "Simple Java class - no DI/annotations")

        sections: list[str] = []

        imports = [
            imp
            for imp in _matches(JAVA_IMPORT, content)
            if any(
                word in imp
                for word in (
                    "springframework",
                    "javax.persistence",
                    "jakarta.persistence",
                    "security",
                    "transaction",
                )
            )
            or _import_used_in_patch(imp, patch)
        ]
        if imports:
            sections.append("// Key imports:\n" + "\n".join(imports))

        header = _java_class_header(content)
        if header:
            sections.append("// Class definition:\n" + header)

        fields = _java_injected_fields(content)
        if fields:
            sections.append("// Injected dependencies:\n" + "\n".join(fields))

        if has_method_annotations and patch:
            annotated = _java_method_annotations(content, patch)
            if annotated:
                sections.append("// Method annotations:\n" + "\n".join(annotated))

        if not sections:
            return ExtractionResult(ReviewMode.DIFF_ONLY, None, "Java file but no extractable context")
        return ExtractionResult(
            ReviewMode.SMART_CONTEXT, "\n\n".join(sections), "Spring/JPA class with DI/annotations"
        )

    # =========================================================================
    # Python
    # =========================================================================

    def _extract_python(self, content: str, patch: str | None) -> ExtractionResult:
        if _is_python_data_holder(content):
            return ExtractionResult(
                ReviewMode.SKIP_ANALYSIS_ONLY, None, "Simple dataclass/model - static analysis only"
            )

        sections: list[str] = []

        imports = [imp for imp in _matches(PY_IMPORT, content) if _import_used_in_patch(imp, patch)]
        if imports:
            sections.append("# Imports:\n" + "\n".join(imports))

        classes = _matches(PY_CLASS, content)
        if classes:
            sections.append("# Classes:\n" + "\n".join(classes))

        if not sections:
            return ExtractionResult(ReviewMode.DIFF_ONLY, None, "Simple Python file")
        return ExtractionResult(
            ReviewMode.SMART_CONTEXT, "\n\n".join(sections), "Python with imports/classes"
        )


# =============================================================================
# Helpers
# =============================================================================


def _matches(pattern: re.Pattern, content: str) -> list[str]:
    return [m.group(0).strip() for m in pattern.finditer(content)]


def _import_used_in_patch(import_line: str, patch: str | None) -> bool:
    """Whether any name the import brings in appears in the patch."""
    if not patch:
        return False
    for name in re.findall(r"\b(\w+)\b", import_line):
        if name in IMPORT_STOPWORDS or len(name) < 3:
            continue
        if name in patch:
            return True
    return False


def _type_definitions(content: str, patch: str | None) -> list[str]:
    """TypeScript interfaces and type aliases referenced by the patch."""
    if not patch:
        return []
    types = []
    for match in TS_TYPE_DEFINITION.finditer(content):
        if match.group(3) not in patch:
            continue
        definition = match.group(0).strip()
        if len(definition) > MAX_TYPE_DEFINITION_CHARS:
            definition = definition[:MAX_TYPE_DEFINITION_CHARS] + "\n  // ... truncated"
        types.append(definition)
    return types


def _is_java_data_holder(content: str) -> bool:
    """Lombok/JPA class that is mostly fields and accessor boilerplate."""
    if not JAVA_DATA_ANNOTATION.search(content):
        return False

    method_count = 0
    field_count = 0
    for line in content.split("\n"):
        stripped = line.strip()
        if stripped.startswith(("private ", "protected ")):
            if "(" in stripped:
                method_count += 1
            elif ";" in stripped:
                field_count += 1
        if JAVA_ACCESSOR.search(line):
            method_count += 1
    return field_count > 0 and method_count <= 2


def _is_python_data_holder(content: str) -> bool:
    """Dataclass or pydantic-style model made of annotated fields only."""
    decorated = any(
        m.group(1).split(".")[-1] in ("dataclass", "define", "frozen", "mutable")
        for m in map(PY_DECORATOR.match, content.split("\n"))
        if m
    )
    is_model = bool(re.search(r"^class\s+\w+\((\w+\.)?(BaseModel|NamedTuple|TypedDict)\)", content, re.M))
    if not decorated and not is_model:
        return False

    method_count = 0
    field_count = 0
    for line in content.split("\n"):
        if PY_DEF.match(line):
            method_count += 1
        elif PY_FIELD.match(line):
            field_count += 1
    return field_count > 0 and method_count <= 2


def _java_class_header(content: str) -> str | None:
    """Class-level annotations plus the class declaration line."""
    header: list[str] = []
    in_annotations = False

    for line in content.split("\n"):
        trimmed = line.strip()
        if trimmed.startswith("@") and ("(" not in trimmed or trimmed.endswith(")")):
            in_annotations = True
            header.append(trimmed)
        elif in_annotations and trimmed.startswith("@"):
            header.append(trimmed)
        elif JAVA_CLASS_DECLARATION.search(trimmed):
            header.append(trimmed)
            break
        elif in_annotations and trimmed and not trimmed.startswith(
            ("//", "/*", "*", "package", "import")
        ):
            # annotations belonged to something other than the class
            in_annotations = False
            header = []

    return "\n".join(header) or None


def _java_injected_fields(content: str) -> list[str]:
    lines = content.split("\n")
    fields = []
    for i, line in enumerate(lines):
        trimmed = line.strip()
        if not trimmed.startswith(("@Autowired", "@Inject", "@Resource", "@Value")):
            continue
        field = trimmed
        if i + 1 < len(lines):
            next_line = lines[i + 1].strip()
            if ";" in next_line and not next_line.startswith("@"):
                field += "\n    " + next_line
        fields.append(field)
    return fields


def _java_method_annotations(content: str, patch: str) -> list[str]:
    """Annotated methods whose name appears in the patch."""
    lines = content.split("\n")
    annotated = []
    for i, line in enumerate(lines):
        trimmed = line.strip()
        if not JAVA_METHOD_ANNOTATION.search(trimmed) or i + 1 >= len(lines):
            continue
        method_line = lines[i + 1].strip()
        name = JAVA_METHOD_NAME.search(method_line)
        if name and name.group(1) in patch:
            annotated.append(f"{trimmed}\n    {method_line}")
    return annotated
