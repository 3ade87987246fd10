"""
Inline ignore directives.

Source files can silence findings with comments:

    x = eval(data)  # @diffsentry-ignore trusted input
    # @diffsentry-ignore-start
    ...
    # @diffsentry-ignore-end
    // @diffsentry-ignore-file

A single-line directive ignores its own line and the next one.
"""

import re
from typing import Callable, Iterable, TypeVar

T = TypeVar("T")

_COMMENT = r"(?://|/\*|#)\s*"
_CLOSE = r"(?:\s*\*/)?"

IGNORE_LINE = re.compile(_COMMENT + r"@diffsentry-ignore(?![-\w])(?:\s+(.+?))?" + _CLOSE + r"\s*$")
IGNORE_BLOCK_START = re.compile(_COMMENT + r"@diffsentry-ignore-start\b")
IGNORE_BLOCK_END = re.compile(_COMMENT + r"@diffsentry-ignore-end\b")
IGNORE_FILE = re.compile(_COMMENT + r"@diffsentry-ignore-file\b")


def should_ignore_file(content: str | None) -> bool:
    """True when the file carries the whole-file directive."""
    return bool(content) and IGNORE_FILE.search(content) is not None


def ignored_lines(content: str | None) -> set[int]:
    """1-based line numbers silenced by line and block directives."""
    ignored: set[int] = set()
    if not content:
        return ignored

    in_block = False
    for number, line in enumerate(content.split("\n"), start=1):
        if IGNORE_BLOCK_START.search(line):
            in_block = True
            ignored.add(number)
        elif IGNORE_BLOCK_END.search(line):
            in_block = False
            ignored.add(number)
        elif in_block:
            ignored.add(number)
        elif IGNORE_LINE.search(line):
            ignored.update((number, number + 1))
    return ignored


def ignore_reason(line: str) -> str | None:
    match = IGNORE_LINE.search(line)
    if match and match.group(1):
        return match.group(1).strip()
    return None


def filter_ignored(
    issues: Iterable[T], line_of: Callable[[T], int | None], ignored: set[int]
) -> list[T]:
    """Drop issues whose line is ignored; issues without a line are kept."""
    return [issue for issue in issues if line_of(issue) is None or line_of(issue) not in ignored]
