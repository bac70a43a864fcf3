"""Parsers for raw git and svn command output.

Every function here is pure: it takes command output as text and returns
structured values, so each format can be tested without a repository.
"""

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Optional

from scmdiff.models import FileStatus, RenameInfo

_GIT_DIFF_HEADER_RE = re.compile(r"^diff --git (\"?)a/(.+?)\1 (\"?)b/(.+?)\3$")
_SVN_INDEX_RE = re.compile(r"^Index: (.+)$")
_NAME_STATUS_RENAME_RE = re.compile(r"^R(\d*)\t([^\t]+)\t([^\t]+)$")
_MOVED_FROM_RE = re.compile(r"^\s+>\s+moved from (.+)$")


@dataclass
class PorcelainEntry:
    """One line of ``git status --porcelain=v1``."""

    code: str
    path: str
    orig_path: Optional[str] = None


@dataclass
class SvnStatusEntry:
    """One item of ``svn status`` output."""

    code: str
    path: str
    moved_from: Optional[str] = None


def unquote_git_path(path: str) -> str:
    """Undo git's C-style quoting of paths with special characters."""
    if len(path) < 2 or not (path.startswith('"') and path.endswith('"')):
        return path
    inner = path[1:-1]
    try:
        return inner.encode("latin-1").decode("unicode_escape").encode("latin-1").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return inner


def git_status_from_code(code: str) -> FileStatus:
    """Map a two-column porcelain code to a FileStatus.

    ``??`` is New, otherwise the first matching letter in either column wins:
    A Added, D Deleted, R Renamed, C Copied. Any other code is Modified.
    """
    code = code[:2]
    if not code.strip() or code == "!!":
        return FileStatus.UNKNOWN
    if code == "??":
        return FileStatus.NEW
    if "A" in code:
        return FileStatus.ADDED
    if "D" in code:
        return FileStatus.DELETED
    if "R" in code:
        return FileStatus.RENAMED
    if "C" in code:
        return FileStatus.COPIED
    return FileStatus.MODIFIED


def parse_git_porcelain(output: str) -> list[PorcelainEntry]:
    """Parse ``git status --porcelain=v1`` output.

    Branch header lines (``## main``) are skipped. Rename and copy lines
    (``R  old -> new``) keep the original path.
    """
    entries = []
    for line in output.splitlines():
        if len(line) < 4 or line.startswith("##"):
            continue
        code = line[:2]
        rest = line[3:]
        orig_path = None
        if code[0] in "RC" and " -> " in rest:
            orig, rest = rest.split(" -> ", 1)
            orig_path = unquote_git_path(orig)
        entries.append(PorcelainEntry(code=code, path=unquote_git_path(rest), orig_path=orig_path))
    return entries


def parse_name_status_renames(output: str) -> list[RenameInfo]:
    """Parse rename pairs from ``git diff --name-status -M``.

    Lines look like ``R095<TAB>old<TAB>new``; other statuses are ignored.
    """
    renames = []
    for line in output.splitlines():
        match = _NAME_STATUS_RENAME_RE.match(line.strip("\r"))
        if not match:
            continue
        score, old_path, new_path = match.groups()
        renames.append(
            RenameInfo(
                old_path=unquote_git_path(old_path),
                new_path=unquote_git_path(new_path),
                similarity=int(score) if score else None,
                raw=line,
            )
        )
    return renames


def parse_name_only(output: str) -> list[str]:
    """Parse one path per line (``--name-only``, ``ls-files``)."""
    return [unquote_git_path(line.strip()) for line in output.splitlines() if line.strip()]


def parse_numstat(output: str) -> tuple[list[str], int, int]:
    """Parse ``git diff --numstat`` into files and added/deleted totals.

    Binary files report ``-`` counts and contribute no lines.
    """
    files: list[str] = []
    additions = 0
    deletions = 0
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 3:
            continue
        added, deleted, path = parts[0], parts[1], "\t".join(parts[2:])
        files.append(unquote_git_path(path))
        if added.isdigit():
            additions += int(added)
        if deleted.isdigit():
            deletions += int(deleted)
    return files, additions, deletions


def split_diff_sections(diff: str) -> list[tuple[str, str]]:
    """Split a multi-file unified diff into ``(path, section)`` pairs.

    Understands git headers (``diff --git a/x b/x``) and svn headers
    (``Index: x``). Text before the first header is dropped.
    """
    sections: list[tuple[str, str]] = []
    current_path: Optional[str] = None
    current_lines: list[str] = []

    for line in diff.splitlines(keepends=True):
        stripped = line.rstrip("\r\n")
        git_match = _GIT_DIFF_HEADER_RE.match(stripped)
        svn_match = None if git_match else _SVN_INDEX_RE.match(stripped)
        if git_match or svn_match:
            if current_path is not None:
                sections.append((current_path, "".join(current_lines)))
            current_path = git_match.group(4) if git_match else svn_match.group(1).strip()
            current_lines = [line]
        elif current_path is not None:
            current_lines.append(line)

    if current_path is not None:
        sections.append((current_path, "".join(current_lines)))
    return sections


def svn_status_from_code(code: str) -> FileStatus:
    """Map an ``svn status`` item code to a FileStatus.

    The first column carries the item state; a blank first column with
    ``M`` in the second means a property-only modification.
    """
    if not code:
        return FileStatus.UNKNOWN
    letter = code[0]
    mapping = {
        "?": FileStatus.NEW,
        "A": FileStatus.ADDED,
        "D": FileStatus.DELETED,
        "M": FileStatus.MODIFIED,
        "R": FileStatus.RENAMED,
        "C": FileStatus.COPIED,
    }
    if letter in mapping:
        return mapping[letter]
    if letter == " " and len(code) > 1 and code[1] == "M":
        return FileStatus.MODIFIED
    return FileStatus.UNKNOWN


def parse_svn_status(output: str) -> list[SvnStatusEntry]:
    """Parse plain ``svn status`` output.

    Item lines carry seven status columns, a space and the path.
    ``> moved from X`` annotation lines attach to the preceding item.
    """
    entries: list[SvnStatusEntry] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        moved = _MOVED_FROM_RE.match(line)
        if moved:
            if entries:
                entries[-1].moved_from = moved.group(1).strip()
            continue
        if line.lstrip().startswith(">"):
            continue
        if len(line) < 8 or line.startswith(("Performing", "Summary", "Status against")):
            continue
        entries.append(SvnStatusEntry(code=line[:7], path=line[8:].strip()))
    return entries


def parse_svn_status_xml(output: str) -> list[tuple[str, str]]:
    """Parse ``svn status --xml`` into ``(path, item)`` pairs.

    Returns an empty list for malformed XML.
    """
    if not output.strip():
        return []
    try:
        root = ET.fromstring(output)
    except ET.ParseError:
        return []

    entries = []
    for entry in root.iter("entry"):
        path = entry.get("path")
        wc_status = entry.find("wc-status")
        if path is None or wc_status is None:
            continue
        entries.append((path, wc_status.get("item", "")))
    return entries


_SVN_REALM_RE = re.compile(r"Authentication realm: <([^>]+)>")
_SVN_USERNAME_RE = re.compile(r"Username: (.+)")
_SVN_INFO_URL_RE = re.compile(r"^URL: (.+)$", re.MULTILINE)


@dataclass
class SvnCredential:
    """A cached credential from ``svn auth``."""

    realm: str
    username: str


def parse_svn_auth(output: str) -> list[SvnCredential]:
    """Credentials listed by ``svn auth``; blocks lacking a realm or user are skipped."""
    credentials = []
    for block in re.split(r"\n{2,}", output.replace("\r\n", "\n")):
        realm = _SVN_REALM_RE.search(block)
        username = _SVN_USERNAME_RE.search(block)
        if realm and username:
            credentials.append(
                SvnCredential(realm=realm.group(1).strip(), username=username.group(1).strip())
            )
    return credentials


def parse_svn_info_url(output: str) -> Optional[str]:
    match = _SVN_INFO_URL_RE.search(output.replace("\r\n", "\n"))
    return match.group(1).strip() if match else None


def url_host(url: str) -> str:
    """Host name of a repository URL or realm, without scheme or port."""
    host = re.sub(r"^[a-z+]+://", "", url.strip(), flags=re.IGNORECASE)
    return re.split(r"[/:]", host, maxsplit=1)[0].lower()


def pick_svn_author(credentials: list[SvnCredential], url: Optional[str]) -> Optional[str]:
    """Username cached for the repository's host, else the first cached one."""
    if not credentials:
        return None
    if url:
        host = url_host(url)
        for credential in credentials:
            if host and url_host(credential.realm) == host:
                return credential.username
    return credentials[0].username
