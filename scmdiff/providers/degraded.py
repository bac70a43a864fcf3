"""Last-resort provider using plain shell commands."""

from typing import Optional, Sequence

from scmdiff.backends.svn import peg
from scmdiff.exceptions import NoChangesError
from scmdiff.logging_config import get_logger
from scmdiff.models import DiffResult, DiffTarget, RepositoryContext, VcsType
from scmdiff.paths import relative_to
from scmdiff.providers.base import ScmProvider

logger = get_logger(__name__)


class DegradedProvider(ScmProvider):
    """Run ``diff`` and ``commit`` through the bare executable name.

    There is no status classification, rename handling or commit input box;
    a commit message set here goes to the clipboard.
    """

    name = "degraded"

    async def is_available(self) -> bool:
        return await self.deps.executor.is_available(self.backend.default_executable)

    async def init(self) -> None:
        self.backend.executable = self.backend.default_executable
        logger.warning("Using basic %s command support", self.vcs_type.value)
        if self.deps.notifier is not None and self.deps.settings.show_notifications:
            self.deps.notifier.warn("provider.degraded", vcs=self.vcs_type.value)

    async def get_diff(
        self,
        ctx: RepositoryContext,
        files: Optional[Sequence[str]] = None,
        target: Optional[DiffTarget] = None,
    ) -> DiffResult:
        if target is None or target == DiffTarget.AUTO:
            target = DiffTarget.ALL

        requested = list(files or [])
        paths = [relative_to(f, ctx.root_path) for f in requested]
        args = ["diff"]
        if target == DiffTarget.STAGED and not paths:
            if self.vcs_type == VcsType.DISTRIBUTED:
                args.append("--cached")
            else:
                # Subversion stages by scheduling files for addition
                paths = await self.backend.staged_files(ctx)
                if not paths:
                    raise NoChangesError(
                        "No staged changes found",
                        scm_type=self.vcs_type.value,
                        operation="diff",
                        details={"target": target.value, "repository": ctx.root_path},
                    )
                requested = list(paths)
        if paths:
            if self.vcs_type == VcsType.DISTRIBUTED:
                args += ["--", *paths]
            else:
                args += [peg(p) for p in paths]

        content = await self.backend.run(ctx, args)
        if not content.strip():
            raise NoChangesError(
                "No changes detected",
                scm_type=self.vcs_type.value,
                operation="diff",
                details={"target": target.value, "repository": ctx.root_path},
            )
        return DiffResult(content=content, target=target, files=requested, repository_path=ctx.root_path)

    async def set_commit_input(self, ctx: RepositoryContext, message: str) -> None:
        await self._copy_to_clipboard(message)

    async def get_commit_input(self, ctx: RepositoryContext) -> str:
        return ""
