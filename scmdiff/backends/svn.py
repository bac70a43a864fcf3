"""Subversion command strategy.

Subversion has no staging area: a file is part of the next commit when
``svn status`` reports it as added. Untracked files never appear in
``svn diff`` output, so their diffs are synthesized from file contents.
"""

from pathlib import Path
from typing import Optional, Sequence

from scmdiff.backends.base import VcsBackend
from scmdiff.exceptions import CommandFailedError, RepositoryNotFoundError, ScmError
from scmdiff.log import parse_log
from scmdiff.logging_config import get_logger
from scmdiff.models import LogFormat, RecentCommitMessages, RenameInfo, RepositoryContext, VcsType
from scmdiff.parsing import (
    parse_svn_auth,
    parse_svn_info_url,
    parse_svn_status,
    parse_svn_status_xml,
    pick_svn_author,
    split_diff_sections,
)

logger = get_logger(__name__)


def peg(path: str) -> str:
    """Escape ``@`` so svn does not read it as a peg revision."""
    return f"{path}@" if "@" in path else path


def synthesize_new_file_diff(path: str, content: str) -> str:
    """Unified diff of ``content`` against an empty file."""
    lines = content.splitlines()
    header = f"--- /dev/null\n+++ {path}\n"
    if not lines:
        return header
    body = "".join(f"+{line}\n" for line in lines)
    return f"{header}@@ -0,0 +1,{len(lines)} @@\n{body}"


class SvnBackend(VcsBackend):
    """Primitives for Subversion working copies."""

    vcs_type = VcsType.CENTRALIZED
    default_executable = "svn"

    def base_args(self) -> list[str]:
        return ["--non-interactive"]

    async def validate(self, ctx: RepositoryContext, timeout: Optional[float] = None) -> None:
        try:
            await self.run(ctx, ["info"], timeout=timeout)
        except CommandFailedError as e:
            raise RepositoryNotFoundError(
                f"Not an svn working copy: {ctx.root_path}",
                scm_type=self.vcs_type.value,
                operation="validate",
                details={"stderr": e.stderr.strip()},
            )

    async def status_text(self, ctx: RepositoryContext, path: str) -> str:
        """Raw ``svn status`` for one path."""
        return await self.run(ctx, ["status", peg(path)])

    async def rename_map(self, ctx: RepositoryContext) -> dict[str, RenameInfo]:
        renames: dict[str, RenameInfo] = {}
        for entry in parse_svn_status(await self.run(ctx, ["status"])):
            if entry.moved_from:
                renames[entry.path] = RenameInfo(
                    old_path=entry.moved_from,
                    new_path=entry.path,
                    raw=f"{entry.moved_from} -> {entry.path}",
                )
        return renames

    async def new_file_diff(self, ctx: RepositoryContext, path: str) -> str:
        file_path = Path(ctx.root_path) / path
        try:
            data = file_path.read_bytes()
        except OSError as e:
            logger.warning("Cannot read new file %s: %s", file_path, e)
            return ""
        if b"\0" in data:
            return f"Binary file {path} added\n"
        return synthesize_new_file_diff(path, data.decode("utf-8", errors="replace"))

    async def added_file_diff(self, ctx: RepositoryContext, path: str) -> str:
        return await self.run(ctx, ["diff", peg(path)])

    async def renamed_file_diff(self, ctx: RepositoryContext, rename: RenameInfo) -> str:
        return await self.run(ctx, ["diff", peg(rename.new_path)])

    async def modified_file_diff(self, ctx: RepositoryContext, path: str) -> str:
        return await self.run(ctx, ["diff", peg(path)])

    async def deleted_file_diff(self, ctx: RepositoryContext, path: str) -> str:
        # A deleted item is reported by its section header alone
        return ""

    async def all_changes(self, ctx: RepositoryContext) -> list[tuple[str, str]]:
        return split_diff_sections(await self.run(ctx, ["diff"]))

    async def staged_changes(self, ctx: RepositoryContext) -> list[tuple[str, str]]:
        sections = []
        for path in await self.staged_files(ctx):
            diff = await self.added_file_diff(ctx, path)
            if diff.strip():
                sections.append((path, diff))
        return sections

    async def untracked_files(self, ctx: RepositoryContext) -> list[str]:
        entries = parse_svn_status(await self.run(ctx, ["status"]))
        return [entry.path for entry in entries if entry.code.startswith("?")]

    async def staged_files(self, ctx: RepositoryContext, timeout: Optional[float] = None) -> list[str]:
        raw = await self.run(ctx, ["status", "--xml"], timeout=timeout)
        return [path for path, item in parse_svn_status_xml(raw) if item == "added"]

    async def commit(
        self, ctx: RepositoryContext, message: str, files: Optional[Sequence[str]] = None
    ) -> str:
        args = ["commit", "-m", message, *(peg(f) for f in files or [])]
        return await self.run(ctx, args, timeout=self.settings.network_command_timeout)

    async def commit_log(
        self, ctx: RepositoryContext, base: Optional[str] = None, head: Optional[str] = None
    ) -> list[str]:
        limit = str(self.settings.log_limit)
        if base:
            args = ["log", "-r", f"{head or 'HEAD'}:{base}"]
        elif head:
            args = ["log", "-r", f"{head}:1", "-l", limit]
        else:
            args = ["log", "-l", limit]
        raw = await self.run(ctx, args, timeout=self.settings.network_command_timeout, retries=1)
        return parse_log(raw, LogFormat.TEXT)

    async def current_author(self, ctx: RepositoryContext) -> Optional[str]:
        """The working copy's user: cached credentials first, then the last committer."""
        quick = self.settings.quick_command_timeout
        try:
            credentials = parse_svn_auth(await self.run(ctx, ["auth"], timeout=quick))
            url = parse_svn_info_url(await self.run(ctx, ["info"], timeout=quick))
            author = pick_svn_author(credentials, url)
            if author:
                return author
        except ScmError as e:
            logger.debug("svn auth cache unavailable in %s: %s", ctx.root_path, e.message)

        try:
            author = await self.run(ctx, ["info", "--show-item", "last-changed-author"], timeout=quick)
        except ScmError as e:
            logger.warning("Could not determine the svn user in %s: %s", ctx.root_path, e.message)
            return None
        return author.strip() or None

    async def recent_messages(
        self, ctx: RepositoryContext, count: int = 5, author: Optional[str] = None
    ) -> RecentCommitMessages:
        timeout = self.settings.network_command_timeout
        repository = parse_log(
            await self.run(ctx, ["log", "-l", str(count)], timeout=timeout, retries=1), LogFormat.TEXT
        )

        user: list[str] = []
        author = author or await self.current_author(ctx)
        if author:
            try:
                user = parse_log(
                    await self.run(
                        ctx, ["log", "-l", str(count), "--search", author], timeout=timeout, retries=1
                    ),
                    LogFormat.TEXT,
                )
            except ScmError as e:
                logger.warning("Could not read commits by %s: %s", author, e.message)
        return RecentCommitMessages(repository=repository, user=user)
