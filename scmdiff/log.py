"""Commit-log parsing.

Contains:
- parse_log: Extract commit messages from raw log output
- parse_log_first_lines: Same, reduced to each message's first line
- SVN_LOG_DELIMITER: The 72-dash separator used by ``svn log``
"""

import re
from xml.sax.saxutils import unescape

from scmdiff.models import LogFormat

SVN_LOG_DELIMITER = "-" * 72

_DELIMITER_RE = re.compile(r"^-{72}$", re.MULTILINE)
_REVISION_HEADER_RE = re.compile(r"^r\d+\s+\|")
_XML_ENTRY_RE = re.compile(r"<logentry[^>]*>[\s\S]*?<msg>([\s\S]*?)</msg>[\s\S]*?</logentry>")


def _parse_text(raw: str) -> list[str]:
    messages = []
    for chunk in _DELIMITER_RE.split(raw):
        lines = chunk.strip("\n").split("\n")
        if not lines or not _REVISION_HEADER_RE.match(lines[0]):
            continue
        body_start = 1
        if body_start < len(lines) and not lines[body_start].strip():
            body_start += 1
        message = "\n".join(lines[body_start:]).strip()
        if message:
            messages.append(message)
    return messages


def _parse_xml(raw: str) -> list[str]:
    messages = []
    for match in _XML_ENTRY_RE.finditer(raw):
        message = unescape(match.group(1)).strip()
        if message:
            messages.append(message)
    return messages


def _parse_lines(raw: str) -> list[str]:
    return [line.strip() for line in raw.split("\n") if line.strip()]


_PARSERS = {
    LogFormat.TEXT: _parse_text,
    LogFormat.XML: _parse_xml,
    LogFormat.LINES: _parse_lines,
}


def parse_log(raw: str, fmt: LogFormat = LogFormat.TEXT, first_line_only: bool = False) -> list[str]:
    """Extract commit messages from raw log output.

    Args:
        raw: Output of ``svn log``, ``svn log --xml`` or ``git log --pretty=format:%s``.
        fmt: Encoding of ``raw``.
        first_line_only: Reduce each message to its first line.

    Returns:
        Messages in log order. Malformed chunks and empty messages are
        skipped; multi-line messages keep their internal newlines.
    """
    if not raw:
        return []

    messages = _PARSERS[LogFormat(fmt)](raw.replace("\r\n", "\n"))
    if first_line_only:
        return [message.split("\n", 1)[0].strip() for message in messages]
    return messages


def parse_log_first_lines(raw: str, fmt: LogFormat = LogFormat.TEXT) -> list[str]:
    """First line of every message in ``raw``."""
    return parse_log(raw, fmt, first_line_only=True)
