"""Path normalization and containment helpers.

All repository matching happens on normalized forward-slash paths. Functions
take an optional ``windows`` flag (defaulting to the running platform) so
Windows semantics such as case-insensitive comparison and the ``\\\\?\\``
long-path prefix can be exercised on any OS.
"""

import posixpath
import re
import shlex
import sys
from typing import Iterable, Optional, Sequence

# Classic Windows MAX_PATH
WINDOWS_MAX_PATH = 260
LONG_PATH_PREFIX = "\\\\?\\"

_DRIVE_RE = re.compile(r"^[A-Za-z]:(/|$)")
_WINDOWS_SAFE_RE = re.compile(r"^[\w@%+=:,./\\-]+$")


def _is_windows(windows: Optional[bool]) -> bool:
    return sys.platform == "win32" if windows is None else windows


def _strip_long_prefix(path: str) -> str:
    for prefix in (LONG_PATH_PREFIX, "//?/"):
        if path.startswith(prefix):
            return path[len(prefix):]
    return path


def normalize_path(path: str) -> str:
    """Normalize a path to forward slashes without a trailing separator.

    Strips the long-path prefix, collapses ``.`` and ``..`` segments and
    removes trailing separators (a bare root such as ``/`` or ``C:/`` is kept).
    """
    if not path:
        return ""

    path = _strip_long_prefix(str(path)).replace("\\", "/")
    path = posixpath.normpath(path)

    if _DRIVE_RE.match(path):
        # normpath leaves "C:" alone; make drive roots explicit
        if len(path) == 2:
            return path + "/"
        return path

    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


def is_absolute(path: str) -> bool:
    """Whether the path is absolute on either POSIX or Windows."""
    normalized = _strip_long_prefix(str(path)).replace("\\", "/")
    return normalized.startswith("/") or bool(_DRIVE_RE.match(normalized))


def _comparable(path: str, windows: Optional[bool]) -> str:
    normalized = normalize_path(path)
    return normalized.lower() if _is_windows(windows) else normalized


def paths_equal(a: str, b: str, windows: Optional[bool] = None) -> bool:
    """Compare two paths after normalization (case-insensitive on Windows)."""
    return _comparable(a, windows) == _comparable(b, windows)


def is_descendant(path: str, root: str, windows: Optional[bool] = None) -> bool:
    """Whether ``path`` is ``root`` or lies inside it."""
    p = _comparable(path, windows)
    r = _comparable(root, windows)
    if not p or not r:
        return False
    if p == r:
        return True
    return p.startswith(r.rstrip("/") + "/")


def to_absolute(path: str, base: str) -> str:
    """Resolve ``path`` against ``base`` unless it is already absolute."""
    if is_absolute(path):
        return normalize_path(path)
    return normalize_path(posixpath.join(normalize_path(base), str(path).replace("\\", "/")))


def relative_to(path: str, root: str, windows: Optional[bool] = None) -> str:
    """Return ``path`` relative to ``root`` as a POSIX path.

    Relative inputs are returned normalized. Absolute paths outside the root
    are returned unchanged (normalized) so callers can report them.
    """
    if not is_absolute(path):
        return normalize_path(path)

    normalized = normalize_path(path)
    if not is_descendant(normalized, root, windows):
        return normalized

    root_len = len(normalize_path(root).rstrip("/"))
    return normalized[root_len:].lstrip("/")


def common_ancestor(paths: Iterable[str]) -> Optional[str]:
    """Longest directory prefix shared by all paths, or None."""
    split = [normalize_path(p).split("/") for p in paths if p]
    if not split:
        return None

    shared: list[str] = []
    for parts in zip(*split):
        if all(part == parts[0] for part in parts):
            shared.append(parts[0])
        else:
            break

    if not shared:
        return None
    if shared == [""]:
        return "/"
    return "/".join(shared)


def apply_long_path_prefix(path: str, windows: Optional[bool] = None) -> str:
    """Re-add the ``\\\\?\\`` prefix to long absolute Windows paths."""
    if not _is_windows(windows):
        return path
    if path.startswith(LONG_PATH_PREFIX) or len(path) <= WINDOWS_MAX_PATH:
        return path
    if not is_absolute(path):
        return path
    return LONG_PATH_PREFIX + path.replace("/", "\\")


def to_native(path: str, windows: Optional[bool] = None) -> str:
    """Convert a normalized path back to the platform's native form."""
    normalized = normalize_path(path)
    if not _is_windows(windows):
        return normalized
    return apply_long_path_prefix(normalized.replace("/", "\\"), windows=True)


def shell_escape(arg: str, windows: Optional[bool] = None) -> str:
    """Quote a single argument for display in a shell command line."""
    arg = str(arg)
    if not _is_windows(windows):
        return shlex.quote(arg)
    if arg and _WINDOWS_SAFE_RE.match(arg):
        return arg
    return '"' + arg.replace('"', '\\"') + '"'


def format_command(argv: Sequence[str], windows: Optional[bool] = None) -> str:
    """Render an argv list as a copy-pasteable command line."""
    return " ".join(shell_escape(arg, windows) for arg in argv)
