"""Git command strategy.

Contains:
- GitBackend: Status, diff, staging and log primitives built on the git CLI
"""

from typing import Optional, Sequence

from scmdiff.backends.base import VcsBackend
from scmdiff.exceptions import CommandFailedError, RepositoryNotFoundError
from scmdiff.log import parse_log
from scmdiff.logging_config import get_logger
from scmdiff.models import LogFormat, RecentCommitMessages, RenameInfo, RepositoryContext, VcsType
from scmdiff.parsing import (
    parse_name_only,
    parse_name_status_renames,
    parse_numstat,
    split_diff_sections,
)

logger = get_logger(__name__)

DEV_NULL = "/dev/null"
DEFAULT_BASE_BRANCHES = ("main", "master")


class GitBackend(VcsBackend):
    """Primitives for git working trees."""

    vcs_type = VcsType.DISTRIBUTED
    default_executable = "git"

    async def find_root(self, path: str) -> Optional[str]:
        """Work-tree root containing ``path``, or None outside a repository."""
        try:
            root = await self.run(
                None, ["rev-parse", "--show-toplevel"],
                cwd=path, timeout=self.settings.quick_command_timeout,
            )
        except CommandFailedError:
            return None
        return root.strip() or None

    async def validate(self, ctx: RepositoryContext, timeout: Optional[float] = None) -> None:
        try:
            await self.run(ctx, ["rev-parse", "--git-dir"], timeout=timeout)
        except CommandFailedError as e:
            raise RepositoryNotFoundError(
                f"Not a git repository: {ctx.root_path}",
                scm_type=self.vcs_type.value,
                operation="validate",
                details={"stderr": e.stderr.strip()},
            )

    async def has_commits(self, ctx: RepositoryContext) -> bool:
        """Whether HEAD resolves to a commit."""
        result = await self.executor.run(
            [self.executable, "rev-parse", "--verify", "--quiet", "HEAD"],
            cwd=ctx.root_path,
            check=False,
            timeout=self.settings.quick_command_timeout,
            vcs_type=self.vcs_type,
        )
        return result.returncode == 0 and bool(result.stdout.strip())

    async def status_porcelain(self, ctx: RepositoryContext, path: str) -> str:
        """Raw ``git status --porcelain=v1`` for one path."""
        return await self.run(ctx, ["status", "--porcelain=v1", "--", path])

    async def rename_pairs(self, ctx: RepositoryContext, cached: bool) -> list[RenameInfo]:
        """Rename pairs from the index (``cached``) or the working tree."""
        args = ["diff"]
        if cached:
            args.append("--cached")
        args += ["--name-status", f"-M{self.settings.rename_similarity}%", "--diff-filter=R"]
        if not cached and await self.has_commits(ctx):
            args.append("HEAD")
        return parse_name_status_renames(await self.run(ctx, args))

    async def rename_map(self, ctx: RepositoryContext) -> dict[str, RenameInfo]:
        renames: dict[str, RenameInfo] = {}
        for cached in (True, False):
            for rename in await self.rename_pairs(ctx, cached=cached):
                renames.setdefault(rename.new_path, rename)
        return renames

    async def new_file_diff(self, ctx: RepositoryContext, path: str) -> str:
        # --no-index exits 1 whenever the inputs differ
        return await self.executor.run_tolerant(
            [self.executable, "diff", "--no-index", "--", DEV_NULL, path],
            cwd=ctx.root_path,
            vcs_type=self.vcs_type,
        )

    async def added_file_diff(self, ctx: RepositoryContext, path: str) -> str:
        return await self.run(ctx, ["diff", "--cached", "--", path])

    async def renamed_file_diff(self, ctx: RepositoryContext, rename: RenameInfo) -> str:
        similarity = f"-M{self.settings.rename_similarity}%"
        paths = ["--", rename.old_path, rename.new_path]
        diff = await self.run(ctx, ["diff", "--cached", similarity, *paths])
        if not diff.strip() and await self.has_commits(ctx):
            diff = await self.run(ctx, ["diff", similarity, "HEAD", *paths])
        return diff

    async def modified_file_diff(self, ctx: RepositoryContext, path: str) -> str:
        if await self.has_commits(ctx):
            return await self.run(ctx, ["diff", "HEAD", "--", path])
        return await self.run(ctx, ["diff", "--", path])

    async def deleted_file_diff(self, ctx: RepositoryContext, path: str) -> str:
        if await self.has_commits(ctx):
            return await self.run(ctx, ["diff", "HEAD", "--", path])
        return await self.run(ctx, ["diff", "--cached", "--", path])

    async def all_changes(self, ctx: RepositoryContext) -> list[tuple[str, str]]:
        if await self.has_commits(ctx):
            tracked = await self.run(ctx, ["diff", "HEAD"])
        else:
            tracked = await self.run(ctx, ["diff"])
        staged = await self.run(ctx, ["diff", "--cached"])

        sections = split_diff_sections(tracked)
        covered = {path for path, _ in sections}
        for path, section in split_diff_sections(staged):
            if path not in covered:
                sections.append((path, section))
                covered.add(path)
        return sections

    async def staged_changes(self, ctx: RepositoryContext) -> list[tuple[str, str]]:
        return split_diff_sections(await self.run(ctx, ["diff", "--cached"]))

    async def untracked_files(self, ctx: RepositoryContext) -> list[str]:
        return parse_name_only(
            await self.run(ctx, ["ls-files", "--others", "--exclude-standard"])
        )

    async def staged_files(self, ctx: RepositoryContext, timeout: Optional[float] = None) -> list[str]:
        return parse_name_only(
            await self.run(ctx, ["diff", "--cached", "--name-only"], timeout=timeout)
        )

    async def staged_numstat(self, ctx: RepositoryContext) -> tuple[list[str], int, int]:
        """Staged files with added and deleted line totals."""
        return parse_numstat(await self.run(ctx, ["diff", "--cached", "--numstat"]))

    async def commit(
        self, ctx: RepositoryContext, message: str, files: Optional[Sequence[str]] = None
    ) -> str:
        args = ["commit", "-m", message]
        if files:
            args += ["--", *files]
        return await self.run(ctx, args, timeout=self.settings.network_command_timeout)

    async def resolve_base_branch(self, ctx: RepositoryContext, base: Optional[str]) -> Optional[str]:
        """Find the first existing ref among ``base`` and the default branches.

        Remote-tracking refs are preferred over local branches.
        """
        candidates = []
        if base:
            candidates += [f"refs/remotes/{base}", f"refs/remotes/origin/{base}", f"refs/heads/{base}"]
        for name in DEFAULT_BASE_BRANCHES:
            candidates.append(f"refs/remotes/origin/{name}")
        for name in DEFAULT_BASE_BRANCHES:
            candidates.append(f"refs/heads/{name}")

        for ref in candidates:
            result = await self.executor.run(
                [self.executable, "show-ref", "--verify", "--quiet", ref],
                cwd=ctx.root_path,
                check=False,
                timeout=self.settings.quick_command_timeout,
                vcs_type=self.vcs_type,
            )
            if result.returncode == 0:
                return ref.removeprefix("refs/remotes/").removeprefix("refs/heads/")

        logger.debug("No base branch found for %s in %s", base, ctx.root_path)
        return None

    async def commit_log(
        self, ctx: RepositoryContext, base: Optional[str] = None, head: Optional[str] = None
    ) -> list[str]:
        head = head or "HEAD"
        if base is None:
            raw = await self.run(
                ctx, ["log", f"-n{self.settings.log_limit}", "--pretty=format:%s", "--no-merges", head]
            )
            return parse_log(raw, LogFormat.LINES)

        resolved = await self.resolve_base_branch(ctx, base)
        if resolved is None:
            return []
        raw = await self.run(ctx, ["log", f"{resolved}..{head}", "--pretty=format:%s", "--no-merges"])
        return parse_log(raw, LogFormat.LINES)

    async def recent_messages(
        self, ctx: RepositoryContext, count: int = 5, author: Optional[str] = None
    ) -> RecentCommitMessages:
        repository = parse_log(
            await self.run(ctx, ["log", f"-n{count}", "--pretty=format:%s"]), LogFormat.LINES
        )

        user: list[str] = []
        name = author or (await self.executor.run(
            [self.executable, "config", "user.name"],
            cwd=ctx.root_path, check=False, vcs_type=self.vcs_type,
        )).stdout.strip()
        if name:
            user = parse_log(
                await self.run(ctx, ["log", f"-n{count}", f"--author={name}", "--pretty=format:%s"]),
                LogFormat.LINES,
            )
        return RecentCommitMessages(repository=repository, user=user)
