"""
Unified Diff Parser

Parses unified diff output into files, hunks and numbered lines, and answers
the line-addressing questions inline comments need.
"""

import re

import structlog

from .models import DiffLine, FileDiff, Hunk, LineKind

logger = structlog.get_logger(__name__)


class DiffParser:
    """Parse unified diff text into structured FileDiff objects."""

    # Regex patterns for parsing diff output
    FILE_HEADER = re.compile(r"^diff --git a/(.+) b/(.+)$")
    HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)$")
    OLD_FILE = re.compile(r"^--- (?:a/)?(.+)$")
    NEW_FILE = re.compile(r"^\+\+\+ (?:b/)?(.+)$")

    # Header lines that never advance the line counters
    METADATA_PREFIXES = ("---", "+++", "index ", "new file", "deleted file")

    DEV_NULL = "/dev/null"

    def parse(self, diff_text: str) -> list[FileDiff]:
        """Parse a full multi-file diff."""
        files: list[FileDiff] = []
        current_file: FileDiff | None = None
        current_hunk: Hunk | None = None
        old_line = 0
        new_line = 0

        if not diff_text:
            return files

        for line in diff_text.splitlines():
            file_match = self.FILE_HEADER.match(line)
            if file_match:
                if current_file is not None:
                    files.append(current_file)
                old_path, new_path = file_match.groups()
                current_file = FileDiff(old_path=old_path, new_path=new_path)
                current_hunk = None
                continue

            if current_file is None:
                continue

            hunk_match = self.HUNK_HEADER.match(line)
            if hunk_match:
                current_hunk = Hunk(
                    old_start=int(hunk_match.group(1)),
                    old_count=int(hunk_match.group(2) or "1"),
                    new_start=int(hunk_match.group(3)),
                    new_count=int(hunk_match.group(4) or "1"),
                    context=hunk_match.group(5).strip(),
                )
                current_file.hunks.append(current_hunk)
                old_line = current_hunk.old_start
                new_line = current_hunk.new_start
                continue

            if current_hunk is None or self._hunk_is_full(current_hunk, old_line, new_line):
                # header lines (rename/mode/index/---/+++) or trailing noise
                if line.startswith(self.METADATA_PREFIXES) and not current_file.hunks:
                    self._apply_header(current_file, line)
                continue

            if line.startswith("+"):
                current_hunk.lines.append(DiffLine(LineKind.ADDITION, new_line, line[1:]))
                new_line += 1
            elif line.startswith("-"):
                current_hunk.lines.append(DiffLine(LineKind.DELETION, old_line, line[1:]))
                old_line += 1
            elif line.startswith(" ") or line == "":
                current_hunk.lines.append(DiffLine(LineKind.CONTEXT, new_line, line[1:]))
                new_line += 1
                old_line += 1
            # "\ No newline at end of file" and anything else is skipped

        if current_file is not None:
            files.append(current_file)

        logger.debug("Parsed diff", files=len(files))
        return files

    def _apply_header(self, file_diff: FileDiff, line: str) -> None:
        """Record /dev/null sides so added and deleted files have a null path."""
        if line.startswith("new file"):
            file_diff.old_path = None
        elif line.startswith("deleted file"):
            file_diff.new_path = None
        elif line.startswith("--- "):
            match = self.OLD_FILE.match(line)
            if match and match.group(1).strip() == self.DEV_NULL:
                file_diff.old_path = None
        elif line.startswith("+++ "):
            match = self.NEW_FILE.match(line)
            if match and match.group(1).strip() == self.DEV_NULL:
                file_diff.new_path = None

    @staticmethod
    def _hunk_is_full(hunk: Hunk, old_line: int, new_line: int) -> bool:
        """True once the running line counters have covered the declared ranges."""
        old_seen = old_line - hunk.old_start
        new_seen = new_line - hunk.new_start
        return old_seen >= hunk.old_count and new_seen >= hunk.new_count

    # =========================================================================
    # Line addressing
    # =========================================================================

    @staticmethod
    def added_lines(file_diff: FileDiff) -> list[DiffLine]:
        return [
            line
            for hunk in file_diff.hunks
            for line in hunk.lines
            if line.kind == LineKind.ADDITION
        ]

    @staticmethod
    def is_line_in_diff(file_diff: FileDiff, line_number: int) -> bool:
        """Whether a new-file line is an addition or context line of some hunk."""
        for hunk in file_diff.hunks:
            if not hunk.contains_new_line(line_number):
                continue
            for line in hunk.lines:
                if line.is_commentable and line.line_number == line_number:
                    return True
        return False

    @staticmethod
    def commentable_lines(file_diff: FileDiff) -> list[int]:
        return [
            line.line_number
            for hunk in file_diff.hunks
            for line in hunk.lines
            if line.is_commentable
        ]

    @staticmethod
    def diff_position(file_diff: FileDiff, line_number: int) -> int | None:
        """
        Position of a new-file line counted from the first hunk header.

        Every hunk header and every body line (deletions included) advances
        the position by one; the first hunk header is position 1. Returns
        None when the line is not commentable in this diff.
        """
        position = 0
        for hunk in file_diff.hunks:
            position += 1
            for line in hunk.lines:
                position += 1
                if line.is_commentable and line.line_number == line_number:
                    return position
        return None


def changed_line_numbers(patch: str | None) -> set[int]:
    """
    New-file line numbers of the ``+`` lines in a raw per-file patch.

    Computed independently of DiffParser by replaying hunk headers, so static
    analysis findings can be limited to lines the change actually touched.
    """
    changed: set[int] = set()
    if not patch:
        return changed

    current_line = 0
    in_hunk = False
    for line in patch.splitlines():
        hunk_match = DiffParser.HUNK_HEADER.match(line)
        if hunk_match:
            current_line = int(hunk_match.group(3))
            in_hunk = True
            continue
        if not in_hunk:
            continue
        if line.startswith("+") and not line.startswith("+++"):
            changed.add(current_line)
            current_line += 1
        elif line.startswith("-") and not line.startswith("---"):
            continue
        elif not line.startswith("\\"):
            current_line += 1
    return changed
