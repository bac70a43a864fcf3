"""Provider backed by a host VCS extension API."""

from typing import Optional, Sequence

from scmdiff.exceptions import RepositoryNotFoundError, ScmError
from scmdiff.host import HostRepository
from scmdiff.logging_config import get_logger
from scmdiff.models import RecentCommitMessages, RepositoryContext, VcsType
from scmdiff.paths import is_descendant, normalize_path, paths_equal
from scmdiff.providers.base import RECENT_MESSAGE_COUNT, ScmProvider

logger = get_logger(__name__)


class HostApiProvider(ScmProvider):
    """Use the host's repositories for commit input, commits and history.

    Diffs still come from the CLI backend; the host API has no diff text.
    """

    name = "host-api"

    async def is_available(self) -> bool:
        api = self.deps.host_api
        if api is None:
            return False
        try:
            return len(api.repositories) > 0
        except (AttributeError, TypeError) as e:
            logger.debug("Host API unusable: %s", e)
            return False

    def _host_repository(self, ctx: RepositoryContext) -> HostRepository:
        repositories = list(self.deps.host_api.repositories) if self.deps.host_api else []
        for repo in repositories:
            if paths_equal(repo.root_path, ctx.root_path):
                return repo

        # Nested checkouts: pick the host repository with the longest containing root
        containing = [r for r in repositories if is_descendant(ctx.root_path, r.root_path)]
        if containing:
            return max(containing, key=lambda r: len(normalize_path(r.root_path)))

        raise RepositoryNotFoundError(
            f"Host has no repository for {ctx.root_path}",
            scm_type=self.vcs_type.value,
            operation="host-lookup",
        )

    async def commit(
        self, ctx: RepositoryContext, message: str, files: Optional[Sequence[str]] = None
    ) -> None:
        await self._host_repository(ctx).commit(message, list(files) if files else None)
        logger.info("Committed in %s via host API", ctx.root_path)

    async def set_commit_input(self, ctx: RepositoryContext, message: str) -> None:
        self._host_repository(ctx).input_box.value = message

    async def get_commit_input(self, ctx: RepositoryContext) -> str:
        return self._host_repository(ctx).input_box.value or ""

    async def get_commit_log(
        self, ctx: RepositoryContext, base: Optional[str] = None, head: Optional[str] = None
    ) -> list[str]:
        if base is not None or head is not None:
            return await super().get_commit_log(ctx, base=base, head=head)
        try:
            return await self._host_repository(ctx).log(self.deps.settings.log_limit)
        except ScmError as e:
            logger.warning("Host log unavailable for %s: %s", ctx.root_path, e.message)
            return []

    async def get_recent_commit_messages(self, ctx: RepositoryContext) -> RecentCommitMessages:
        try:
            host_repo = self._host_repository(ctx)
        except ScmError as e:
            logger.warning("Host repository unavailable for %s: %s", ctx.root_path, e.message)
            return await super().get_recent_commit_messages(ctx)

        author = None
        if self.vcs_type == VcsType.DISTRIBUTED:
            author = await host_repo.get_config("user.name")
        try:
            recent = await self.backend.recent_messages(ctx, count=RECENT_MESSAGE_COUNT, author=author)
        except ScmError as e:
            logger.warning("Could not read recent commits in %s: %s", ctx.root_path, e.message)
            recent = RecentCommitMessages()

        try:
            repository = await host_repo.log(RECENT_MESSAGE_COUNT)
        except ScmError as e:
            logger.warning("Host log unavailable for %s: %s", ctx.root_path, e.message)
            return recent
        return RecentCommitMessages(repository=repository, user=recent.user)
