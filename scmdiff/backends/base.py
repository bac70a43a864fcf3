"""Base class for VCS command strategies."""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from scmdiff.models import RecentCommitMessages, RenameInfo, RepositoryContext, VcsType
from scmdiff.runner import CommandExecutor


class VcsBackend(ABC):
    """Command primitives for one backend family.

    A backend knows how to ask its CLI for status, diffs and history. It
    holds no per-repository state; every call receives the RepositoryContext
    it operates on. The shared DiffAssembler and StatusClassifier compose
    these primitives.
    """

    vcs_type: VcsType
    default_executable: str

    def __init__(self, executor: CommandExecutor, executable: Optional[str] = None):
        self.executor = executor
        self.executable = executable or self.default_executable

    @property
    def settings(self):
        return self.executor.settings

    def base_args(self) -> list[str]:
        """Arguments placed after the executable on every invocation."""
        return []

    async def run(
        self,
        ctx: Optional[RepositoryContext],
        args: Sequence[str],
        *,
        cwd: Optional[str] = None,
        timeout: Optional[float] = None,
        check: bool = True,
        retries: int = 0,
    ) -> str:
        """Run the backend executable and return stdout."""
        result = await self.executor.run(
            [self.executable, *args, *self.base_args()],
            cwd=cwd or (ctx.root_path if ctx else None),
            timeout=timeout,
            check=check,
            retries=retries,
            vcs_type=self.vcs_type,
        )
        return result.stdout

    @abstractmethod
    async def validate(self, ctx: RepositoryContext, timeout: Optional[float] = None) -> None:
        """Raise RepositoryNotFoundError unless ``ctx`` is a working copy."""
        pass

    @abstractmethod
    async def rename_map(self, ctx: RepositoryContext) -> dict[str, RenameInfo]:
        """Rename pairs keyed by new path, computed once per request."""
        pass

    @abstractmethod
    async def new_file_diff(self, ctx: RepositoryContext, path: str) -> str:
        """Diff of an untracked file against empty content."""
        pass

    @abstractmethod
    async def added_file_diff(self, ctx: RepositoryContext, path: str) -> str:
        """Diff of a file scheduled for addition."""
        pass

    @abstractmethod
    async def renamed_file_diff(self, ctx: RepositoryContext, rename: RenameInfo) -> str:
        """Diff of a renamed file covering both sides of the pair."""
        pass

    @abstractmethod
    async def modified_file_diff(self, ctx: RepositoryContext, path: str) -> str:
        """Diff of a tracked file against the last commit."""
        pass

    @abstractmethod
    async def deleted_file_diff(self, ctx: RepositoryContext, path: str) -> str:
        """Diff of a deleted file; may be empty when only a header is shown."""
        pass

    @abstractmethod
    async def all_changes(self, ctx: RepositoryContext) -> list[tuple[str, str]]:
        """Per-file sections for every tracked change."""
        pass

    @abstractmethod
    async def staged_changes(self, ctx: RepositoryContext) -> list[tuple[str, str]]:
        """Per-file sections for changes included in the next commit."""
        pass

    @abstractmethod
    async def untracked_files(self, ctx: RepositoryContext) -> list[str]:
        """Repository-relative paths of unversioned files."""
        pass

    @abstractmethod
    async def staged_files(self, ctx: RepositoryContext, timeout: Optional[float] = None) -> list[str]:
        """Repository-relative paths included in the next commit."""
        pass

    @abstractmethod
    async def commit(
        self, ctx: RepositoryContext, message: str, files: Optional[Sequence[str]] = None
    ) -> str:
        """Create a commit; never retried."""
        pass

    @abstractmethod
    async def commit_log(
        self, ctx: RepositoryContext, base: Optional[str] = None, head: Optional[str] = None
    ) -> list[str]:
        """Commit messages between ``base`` and ``head``."""
        pass

    @abstractmethod
    async def recent_messages(
        self, ctx: RepositoryContext, count: int = 5, author: Optional[str] = None
    ) -> RecentCommitMessages:
        """Recent messages for the repository and for ``author``.

        Without ``author`` the backend looks up the current user itself.
        """
        pass
