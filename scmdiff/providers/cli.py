"""Provider that drives a located git or svn executable."""

import shutil
import sys
from typing import Optional

from scmdiff.exceptions import ExecutableNotFoundError
from scmdiff.logging_config import get_logger
from scmdiff.models import RepositoryContext, VcsType
from scmdiff.paths import normalize_path
from scmdiff.providers.base import ScmProvider

logger = get_logger(__name__)

# Install locations checked when the executable is not on PATH
COMMON_LOCATIONS = {
    VcsType.DISTRIBUTED: {
        "win32": [
            r"C:\Program Files\Git\cmd\git.exe",
            r"C:\Program Files (x86)\Git\cmd\git.exe",
        ],
        "darwin": [
            "/usr/bin/git",
            "/usr/local/bin/git",
            "/opt/homebrew/bin/git",
            "/opt/local/bin/git",
        ],
        "linux": ["/usr/bin/git", "/usr/local/bin/git"],
    },
    VcsType.CENTRALIZED: {
        "win32": [
            r"C:\Program Files\TortoiseSVN\bin\svn.exe",
            r"C:\Program Files (x86)\TortoiseSVN\bin\svn.exe",
            r"C:\Program Files\SlikSvn\bin\svn.exe",
            r"C:\Program Files\VisualSVN\bin\svn.exe",
        ],
        "darwin": [
            "/usr/bin/svn",
            "/usr/local/bin/svn",
            "/opt/homebrew/bin/svn",
            "/opt/local/bin/svn",
        ],
        "linux": ["/usr/bin/svn", "/usr/local/bin/svn"],
    },
}


def common_locations(vcs_type: VcsType, platform: Optional[str] = None) -> list[str]:
    """Install locations for ``vcs_type`` on ``platform`` (default: current)."""
    platform = platform or sys.platform
    table = COMMON_LOCATIONS[vcs_type]
    if platform.startswith("linux"):
        platform = "linux"
    return list(table.get(platform, table["linux"]))


class CliProvider(ScmProvider):
    """Talk to the VCS through its command-line executable.

    The executable is taken from configuration, then PATH, then a list of
    common install locations; each candidate must answer ``--version``.
    """

    name = "cli"

    def __init__(self, vcs_type, deps):
        super().__init__(vcs_type, deps)
        self._executable: Optional[str] = None
        self._pending: dict[str, str] = {}

    def candidates(self) -> list[str]:
        settings = self.deps.settings
        configured = settings.git_path if self.vcs_type == VcsType.DISTRIBUTED else settings.svn_path
        found = shutil.which(self.backend.default_executable)

        candidates = []
        for candidate in [configured, found, *common_locations(self.vcs_type)]:
            if candidate and candidate not in candidates:
                candidates.append(candidate)
        return candidates

    async def locate_executable(self) -> Optional[str]:
        """First candidate that answers its version probe."""
        for candidate in self.candidates():
            if await self.deps.executor.is_available(candidate):
                logger.debug("Found %s executable at %s", self.vcs_type.value, candidate)
                return candidate
        return None

    async def is_available(self) -> bool:
        if self._executable is None:
            self._executable = await self.locate_executable()
        return self._executable is not None

    async def init(self) -> None:
        if self._executable is None and not await self.is_available():
            raise ExecutableNotFoundError(
                f"No working {self.vcs_type.value} executable found",
                scm_type=self.vcs_type.value,
                operation="init",
                details={"candidates": ", ".join(self.candidates())},
            )
        self.backend.executable = self._executable
        logger.info("Using %s at %s", self.vcs_type.value, self._executable)

    async def set_commit_input(self, ctx: RepositoryContext, message: str) -> None:
        self._pending[normalize_path(ctx.root_path)] = message
        await self._copy_to_clipboard(message)

    async def get_commit_input(self, ctx: RepositoryContext) -> str:
        return self._pending.get(normalize_path(ctx.root_path), "")

    async def commit(self, ctx, message, files=None) -> None:
        await super().commit(ctx, message, files)
        self._pending.pop(normalize_path(ctx.root_path), None)
