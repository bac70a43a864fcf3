"""Base class and shared dependencies for SCM providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from scmdiff.backends import VcsBackend
from scmdiff.config import ScmSettings
from scmdiff.diff import DiffAssembler
from scmdiff.exceptions import ScmError
from scmdiff.host import Clipboard, HostScmApi, Notifier
from scmdiff.logging_config import get_logger
from scmdiff.models import DiffResult, DiffTarget, RecentCommitMessages, RepositoryContext, VcsType
from scmdiff.runner import CommandExecutor

logger = get_logger(__name__)

RECENT_MESSAGE_COUNT = 5


@dataclass
class ProviderDeps:
    """Collaborators shared by every provider of a session."""

    settings: ScmSettings
    executor: CommandExecutor
    backend: VcsBackend
    assembler: DiffAssembler
    clipboard: Optional[Clipboard] = None
    notifier: Optional[Notifier] = None
    host_api: Optional[HostScmApi] = None


class ScmProvider(ABC):
    """One way of talking to a VCS: host API, CLI, or bare shell commands.

    ``is_available`` must be cheap and free of side effects; ``init`` is only
    called on the provider the factory selects.
    """

    name = "provider"

    def __init__(self, vcs_type: VcsType, deps: ProviderDeps):
        self.vcs_type = vcs_type
        self.deps = deps

    @property
    def backend(self) -> VcsBackend:
        return self.deps.backend

    @abstractmethod
    async def is_available(self) -> bool:
        """Whether this provider can serve requests."""
        pass

    async def init(self) -> None:
        """Prepare the provider after selection."""
        pass

    async def get_diff(
        self,
        ctx: RepositoryContext,
        files: Optional[Sequence[str]] = None,
        target: Optional[DiffTarget] = None,
    ) -> DiffResult:
        """Assemble the diff for ``files`` or for a resolved target."""
        if target is None or target == DiffTarget.AUTO:
            target = DiffTarget.ALL
        return await self.deps.assembler.assemble(ctx, files=files, target=target)

    async def commit(
        self, ctx: RepositoryContext, message: str, files: Optional[Sequence[str]] = None
    ) -> None:
        """Commit ``files`` (everything included when None). Never retried."""
        output = await self.backend.commit(ctx, message, files)
        logger.info("Committed in %s", ctx.root_path)
        logger.debug("%s", output.strip())

    @abstractmethod
    async def set_commit_input(self, ctx: RepositoryContext, message: str) -> None:
        """Place ``message`` where the user will commit from."""
        pass

    @abstractmethod
    async def get_commit_input(self, ctx: RepositoryContext) -> str:
        """Current pending commit message, or an empty string."""
        pass

    async def get_commit_log(
        self, ctx: RepositoryContext, base: Optional[str] = None, head: Optional[str] = None
    ) -> list[str]:
        """Commit messages between ``base`` and ``head``; empty on failure."""
        try:
            return await self.backend.commit_log(ctx, base=base, head=head)
        except ScmError as e:
            logger.warning("Could not read commit log in %s: %s", ctx.root_path, e.message)
            return []

    async def get_recent_commit_messages(self, ctx: RepositoryContext) -> RecentCommitMessages:
        """Recent repository and user commit messages; empty on failure."""
        try:
            return await self.backend.recent_messages(ctx, count=RECENT_MESSAGE_COUNT)
        except ScmError as e:
            logger.warning("Could not read recent commits in %s: %s", ctx.root_path, e.message)
            return RecentCommitMessages()

    async def _copy_to_clipboard(self, message: str) -> None:
        clipboard = self.deps.clipboard
        if clipboard is None:
            logger.warning("No clipboard available; commit message:\n%s", message)
            return
        await clipboard.write_text(message)
        if self.deps.notifier is not None and self.deps.settings.show_notifications:
            self.deps.notifier.info("commit.message.copied")
