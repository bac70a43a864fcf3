"""Whitespace folding for diff text.

Shrinks diffs before they are handed to size-constrained consumers:
runs of whitespace collapse to one space, trailing whitespace is dropped and
leading indentation is capped at two spaces. Diff markers are preserved.
"""

import re

_PREFIX_RE = re.compile(r"^[+ -]")
_INDENT_RE = re.compile(r"^\s*")
_WHITESPACE_RE = re.compile(r"\s+")

MAX_INDENT = 2
HEADER_PREFIXES = ("Index:", "===", "---", "+++", "diff --git", "@@")


def compress_line(line: str) -> str:
    """Fold whitespace in a single diff line."""
    if not line or line.startswith(HEADER_PREFIXES):
        return line

    match = _PREFIX_RE.match(line)
    prefix = match.group(0) if match else ""
    content = line[len(prefix):]

    indent = _INDENT_RE.match(content).group(0)
    content = _WHITESPACE_RE.sub(" ", content.strip())

    return prefix + " " * min(MAX_INDENT, len(indent)) + content


def simplify_diff(diff: str) -> str:
    """Apply compress_line to every line of ``diff``."""
    return "\n".join(compress_line(line) for line in diff.split("\n"))
