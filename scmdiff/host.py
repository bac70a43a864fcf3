"""Host integration interfaces.

The library never talks to an editor directly. Everything it needs from
the surrounding application is described by the narrow protocols below;
any object with matching attributes satisfies them.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

from scmdiff.logging_config import get_logger

# Default English text for notification keys
MESSAGES = {
    "diff.files.selected": "Generating diff for {count} selected file(s)",
    "diff.staged.info": "Using staged changes ({count} file(s))",
    "diff.all.info": "Using all changes ({count} file(s))",
    "diff.target.selected": "Diff target: {target} ({reason})",
    "diff.simplified": "Diff was simplified; whitespace has been folded",
    "diff.truncated": "Diff truncated to {limit} characters",
    "diff.files.outside": "Ignoring {count} file(s) outside {root}",
    "commit.message.copied": "Commit message copied to clipboard",
    "provider.degraded": "Using basic {vcs} command support; some features are unavailable",
}


@runtime_checkable
class InputBox(Protocol):
    """The host's commit message box."""

    value: str


@runtime_checkable
class HostRepository(Protocol):
    """A repository exposed by a host VCS extension."""

    @property
    def root_path(self) -> str:
        ...

    @property
    def input_box(self) -> InputBox:
        ...

    async def commit(self, message: str, files: Optional[Sequence[str]] = None) -> None:
        """Commit ``files`` (all included changes when None)."""
        ...

    async def log(self, max_entries: int = 20) -> list[str]:
        """Recent commit messages, newest first."""
        ...

    async def get_config(self, key: str) -> Optional[str]:
        """Read a VCS config value such as ``user.name``."""
        ...


@runtime_checkable
class HostScmApi(Protocol):
    """A host VCS extension API."""

    @property
    def repositories(self) -> Sequence[HostRepository]:
        ...


@runtime_checkable
class Clipboard(Protocol):
    """System clipboard access."""

    async def write_text(self, text: str) -> None:
        ...


@runtime_checkable
class Notifier(Protocol):
    """User-visible notifications, addressed by message key."""

    def info(self, key: str, **kwargs: Any) -> None:
        ...

    def warn(self, key: str, **kwargs: Any) -> None:
        ...

    def error(self, key: str, **kwargs: Any) -> None:
        ...


@runtime_checkable
class EditorState(Protocol):
    """Files and folders the user is working with."""

    @property
    def active_file(self) -> Optional[str]:
        ...

    @property
    def recent_files(self) -> Sequence[str]:
        ...

    @property
    def workspace_folders(self) -> Sequence[str]:
        ...


def format_message(key: str, **kwargs: Any) -> str:
    """Render a notification key with its arguments."""
    template = MESSAGES.get(key)
    if template is None:
        return key if not kwargs else f"{key} {kwargs}"
    try:
        return template.format(**kwargs)
    except (KeyError, IndexError):
        return template


class LoggingNotifier:
    """Notifier that writes messages to the scmdiff logger."""

    def __init__(self, logger: Optional[logging.Logger] = None, enabled: bool = True):
        self.logger = logger or get_logger("notify")
        self.enabled = enabled

    def info(self, key: str, **kwargs: Any) -> None:
        if self.enabled:
            self.logger.info(format_message(key, **kwargs))

    def warn(self, key: str, **kwargs: Any) -> None:
        if self.enabled:
            self.logger.warning(format_message(key, **kwargs))

    def error(self, key: str, **kwargs: Any) -> None:
        self.logger.error(format_message(key, **kwargs))


@dataclass
class StaticEditorState:
    """Fixed editor state, for command-line use and tests."""

    active_file: Optional[str] = None
    recent_files: list[str] = field(default_factory=list)
    workspace_folders: list[str] = field(default_factory=list)
